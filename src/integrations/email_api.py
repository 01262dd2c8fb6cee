"""
Email provider HTTP integration.

This module issues the single outbound POST to a Resend-compatible email
endpoint and maps every failure onto a small exception taxonomy that the
delivery worker classifies as permanent or retryable.

Usage:
    from integrations import email_api

    provider_id = email_api.send_email(
        endpoint_url="https://api.resend.com/emails",
        api_key=config.api_key,
        payload=request.to_payload(),
        timeout_seconds=10.0
    )
"""

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from typing import Any, Dict, List, Optional

import requests

# Keep diagnostic bodies short enough for a single log line
MAX_DETAIL_LENGTH = 500


# ============================================================================
# Custom Exception Classes
# ============================================================================

class EmailApiError(Exception):
    """Base class for email provider failures."""

    retryable = True

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UpstreamClientError(EmailApiError):
    """Provider rejected the request (4xx); redelivery will not help."""
    retryable = False


class UpstreamServerError(EmailApiError):
    """Provider failed to handle the request (5xx)."""
    pass


class UpstreamTimeout(EmailApiError):
    """Provider did not answer within the configured timeout."""
    pass


class NetworkFailure(EmailApiError):
    """Connection could not be established or was dropped."""
    pass


# ============================================================================
# Module-Level Initialization
# ============================================================================

# Session reused across warm invocations for connection pooling.
# requests never retries on its own unless a Retry adapter is mounted.
http_session = requests.Session()


def _truncate(text: str) -> str:
    if len(text) <= MAX_DETAIL_LENGTH:
        return text
    return text[:MAX_DETAIL_LENGTH] + '...'


def _extract_provider_id(response: requests.Response) -> Optional[str]:
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict) and data.get('id'):
        return str(data['id'])
    return None


def _post_and_read(
    endpoint_url: str,
    payload: Dict[str, Any],
    headers: Dict[str, str],
    timeout_seconds: float,
    opened: List[requests.Response]
) -> requests.Response:
    response = http_session.post(
        endpoint_url,
        json=payload,
        headers=headers,
        timeout=(timeout_seconds, timeout_seconds),
        allow_redirects=False,
        stream=True
    )
    # Exposed so the caller can close the socket once the deadline passes
    opened.append(response)
    response.content
    return response


def _close_abandoned(future) -> None:
    if future.cancelled() or future.exception() is not None:
        return
    future.result().close()


def send_email(
    endpoint_url: str,
    api_key: str,
    payload: Dict[str, Any],
    timeout_seconds: float
) -> str:
    """
    POST one email to the provider.

    Exactly one HTTP request is made; there is no retry here.

    Args:
        endpoint_url: Provider endpoint
        api_key: Bearer credential
        payload: JSON body ({from, to, subject, html})
        timeout_seconds: Deadline for the whole call (connect, headers and body)

    Returns:
        str: Provider message id, or "HTTP <status>" when the body carries none

    Raises:
        UpstreamClientError: 4xx response
        UpstreamServerError: 5xx (or other non-2xx) response
        UpstreamTimeout: No response within timeout_seconds
        NetworkFailure: Connection-level failure
    """
    headers = {
        'Content-Type': 'application/json',
        'Authorization': f'Bearer {api_key}',
    }

    # requests only bounds each socket operation, so the overall deadline is
    # enforced here and a slow upstream is cut off when it passes
    opened: List[requests.Response] = []
    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(_post_and_read, endpoint_url, payload, headers, timeout_seconds, opened)

    try:
        response = future.result(timeout=timeout_seconds)
    except FuturesTimeoutError:
        for pending in opened:
            pending.close()
        future.add_done_callback(_close_abandoned)
        raise UpstreamTimeout(f"Email API timed out after {timeout_seconds:.3f}s: deadline exceeded")
    except requests.Timeout as e:
        raise UpstreamTimeout(f"Email API timed out after {timeout_seconds:.3f}s: {type(e).__name__}")
    except requests.ConnectionError as e:
        raise NetworkFailure(f"Email API connection failed: {e}")
    except requests.RequestException as e:
        raise NetworkFailure(f"Email API request failed: {e}")
    finally:
        executor.shutdown(wait=False)

    status = response.status_code

    if 200 <= status < 300:
        return _extract_provider_id(response) or f"HTTP {status}"

    detail = f"HTTP {status}: {_truncate(response.text or '')}"

    if 400 <= status < 500:
        raise UpstreamClientError(detail, status_code=status)

    raise UpstreamServerError(detail, status_code=status)
