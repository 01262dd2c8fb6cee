"""
Email delivery pipeline - core business logic.

This module turns one queued message into one delivery attempt:
1. Parse the SQS record into an InboundMessage
2. Validate the recipient (no network call on failure)
3. Build the provider payload from the configured sender identity
4. POST it once, bounded by the configured timeout and the invocation deadline
5. Classify the outcome as Delivered, RetryableFailure or PermanentFailure

All errors are caught and returned as DeliveryResult. No exceptions propagate
out of the public methods. Retries belong to the queue, never to this module.
"""

import json
import logging
import re
import time
from typing import Dict, Any, Optional

from .models import DeliveryOutcome, DeliveryResult, EmailRequest, InboundMessage
from integrations import email_api
from services.config import WorkerConfig

logger = logging.getLogger(__name__)

REDACTED = '[REDACTED]'

# RFC 5321 path limit
MAX_ADDRESS_LENGTH = 254

# Time kept back from the platform deadline so the result can still be reported
DEADLINE_MARGIN_MS = 500

_ADDRESS_PATTERN = re.compile(r'^[^@\s<>(),;:"\[\]]+@[^@\s<>(),;:"\[\]]+\.[^@\s<>(),;:"\[\]]+$')


class ValidationError(Exception):
    """Raised when an inbound message cannot be delivered as-is."""
    pass


def is_plausible_address(value: Any) -> bool:
    """
    Check that a value looks like a single "local@domain.tld" address.

    Args:
        value: Candidate recipient

    Returns:
        True if the address is a non-empty string of plausible shape
    """
    if not isinstance(value, str) or not value:
        return False
    if len(value) > MAX_ADDRESS_LENGTH:
        return False
    if not _ADDRESS_PATTERN.match(value):
        return False
    domain = value.rsplit('@', 1)[1]
    return not (domain.startswith('.') or domain.endswith('.') or '..' in domain)


class DeliveryWorker:
    """
    Single-attempt email forwarder.

    Stateless apart from the read-only configuration it is built with, so one
    instance is safely shared by concurrent invocations.
    """

    def __init__(self, config: WorkerConfig):
        """
        Args:
            config: Immutable worker configuration
        """
        self.config = config

    def process_record(
        self,
        record: Dict[str, Any],
        remaining_ms: Optional[int] = None
    ) -> DeliveryResult:
        """
        Process a single SQS record.

        Args:
            record: SQS record dict
            remaining_ms: Time left before the platform deadline (if known)

        Returns:
            DeliveryResult for the record
        """
        message_id = record.get('messageId', 'UNKNOWN') if isinstance(record, dict) else 'UNKNOWN'

        try:
            message = self._parse_record(record)
        except Exception as e:
            # Redelivering a record that cannot be parsed would fail the same way
            if isinstance(e, ValidationError):
                detail = f"Invalid message: {e}"
            else:
                detail = f"Invalid message: {type(e).__name__}: {e}"
            result = DeliveryResult(
                outcome=DeliveryOutcome.PERMANENT_FAILURE,
                detail=self._redact(detail),
                message_id=message_id
            )
            self._log_result(result)
            return result

        return self.process(message, remaining_ms=remaining_ms)

    def process(
        self,
        message: InboundMessage,
        remaining_ms: Optional[int] = None
    ) -> DeliveryResult:
        """
        Deliver one message with exactly one provider call.

        Args:
            message: Message to deliver
            remaining_ms: Time left before the platform deadline (if known)

        Returns:
            DeliveryResult (one structured log record is emitted for it)
        """
        start_time = time.time()

        try:
            result = self._deliver(message, remaining_ms)
        except Exception as e:
            # Unknown failures get redelivered rather than dropped
            result = DeliveryResult(
                outcome=DeliveryOutcome.RETRYABLE_FAILURE,
                detail=f"Unexpected error: {type(e).__name__}: {e}",
                message_id=message.message_id
            )

        result.detail = self._redact(result.detail)
        result.extra['elapsedMs'] = int((time.time() - start_time) * 1000)
        self._log_result(result)
        return result

    def _deliver(self, message: InboundMessage, remaining_ms: Optional[int]) -> DeliveryResult:
        try:
            self._validate(message)
        except ValidationError as e:
            return DeliveryResult(
                outcome=DeliveryOutcome.PERMANENT_FAILURE,
                detail=f"Validation error: {e}",
                message_id=message.message_id
            )

        timeout_seconds = self._effective_timeout(remaining_ms)
        if timeout_seconds is None:
            return DeliveryResult(
                outcome=DeliveryOutcome.RETRYABLE_FAILURE,
                detail=f"Invocation deadline too close to call email API ({remaining_ms}ms left)",
                message_id=message.message_id
            )

        request = self._build_request(message)

        try:
            provider_id = email_api.send_email(
                endpoint_url=self.config.endpoint_url,
                api_key=self.config.api_key,
                payload=request.to_payload(),
                timeout_seconds=timeout_seconds
            )
        except email_api.EmailApiError as e:
            outcome = (
                DeliveryOutcome.RETRYABLE_FAILURE if e.retryable
                else DeliveryOutcome.PERMANENT_FAILURE
            )
            result = DeliveryResult(
                outcome=outcome,
                detail=str(e),
                message_id=message.message_id
            )
            if e.status_code is not None:
                result.extra['statusCode'] = e.status_code
            return result

        return DeliveryResult(
            outcome=DeliveryOutcome.DELIVERED,
            detail=provider_id,
            message_id=message.message_id
        )

    def _parse_record(self, record: Dict[str, Any]) -> InboundMessage:
        """
        Parse SQS record body into an InboundMessage.

        The body is a JSON object {recipient, subject, bodyHtml}. A missing
        subject falls back to the "Title" message attribute.

        Raises:
            ValidationError: If the body is not a JSON object
        """
        message_id = record.get('messageId', 'UNKNOWN')

        try:
            body = json.loads(record.get('body') or '')
        except (TypeError, ValueError):
            raise ValidationError("body is not valid JSON")

        if not isinstance(body, dict):
            raise ValidationError("body must be a JSON object")

        subject = body.get('subject')
        if subject is None:
            subject = self._title_attribute(record)

        return InboundMessage(
            recipient=body.get('recipient'),
            subject=subject if isinstance(subject, str) else str(subject),
            body_html=body.get('bodyHtml') or '',
            message_id=message_id
        )

    def _title_attribute(self, record: Dict[str, Any]) -> str:
        attributes = record.get('messageAttributes') or {}
        if not isinstance(attributes, dict):
            return ''
        title = attributes.get('Title') or {}
        if not isinstance(title, dict):
            return ''
        value = title.get('stringValue')
        return value if isinstance(value, str) else ''

    def _validate(self, message: InboundMessage) -> None:
        if not message.recipient:
            raise ValidationError("recipient is missing")
        if not is_plausible_address(message.recipient):
            raise ValidationError(f"recipient is not a valid email address: {message.recipient!r}")
        if not isinstance(message.body_html, str):
            raise ValidationError("bodyHtml must be a string")

    def _build_request(self, message: InboundMessage) -> EmailRequest:
        return EmailRequest(
            sender=self.config.sender_identity,
            to=[message.recipient],
            subject=message.subject,
            html=message.body_html
        )

    def _effective_timeout(self, remaining_ms: Optional[int]) -> Optional[float]:
        """
        Bound the HTTP call by both timeoutMs and the invocation deadline.

        Returns:
            Timeout in seconds, or None if no time is left to make the call
        """
        timeout_seconds = self.config.timeout_seconds
        if remaining_ms is not None:
            budget_ms = remaining_ms - DEADLINE_MARGIN_MS
            if budget_ms <= 0:
                return None
            timeout_seconds = min(timeout_seconds, budget_ms / 1000.0)
        return timeout_seconds

    def _redact(self, text: str) -> str:
        api_key = self.config.api_key
        if api_key and api_key in text:
            return text.replace(api_key, REDACTED)
        return text

    def _log_result(self, result: DeliveryResult) -> None:
        """Emit the single structured record for this invocation."""
        line = self._redact(json.dumps(result.to_log_record(), default=str))

        if result.outcome is DeliveryOutcome.DELIVERED:
            logger.info(line)
        elif result.outcome is DeliveryOutcome.RETRYABLE_FAILURE:
            logger.warning(line)
        else:
            logger.error(line)
