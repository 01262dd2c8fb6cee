"""
Worker configuration loaded from the Lambda environment.

The configuration is read once per process (cold start) and passed into the
worker explicitly. It is immutable for the lifetime of the process.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 10000


class ConfigurationError(Exception):
    """Raised when worker configuration is invalid or missing."""
    pass


@dataclass(frozen=True)
class WorkerConfig:
    """
    Read-only delivery settings.

    Attributes:
        sender_identity: Fixed "from" identity, e.g. "Toggle Labs <onboarding@togglelabs.net>"
        api_key: Bearer credential for the email provider (never logged)
        endpoint_url: Provider endpoint receiving the POST
        timeout_ms: Upper bound for the outbound call
    """
    sender_identity: str
    api_key: str = field(repr=False)
    endpoint_url: str
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


def _require(env: Mapping[str, str], name: str) -> str:
    value = (env.get(name) or '').strip()
    if not value:
        raise ConfigurationError(
            f"{name} environment variable is required but not set. "
            f"Please configure this in your Lambda environment."
        )
    return value


def _parse_timeout(raw: Optional[str]) -> int:
    if raw is None or not raw.strip():
        return DEFAULT_TIMEOUT_MS
    try:
        timeout_ms = int(raw)
    except ValueError:
        raise ConfigurationError(f"EMAIL_API_TIMEOUT_MS must be an integer, got: '{raw}'")
    if timeout_ms <= 0:
        raise ConfigurationError(f"EMAIL_API_TIMEOUT_MS must be positive, got: {timeout_ms}")
    return timeout_ms


def _resolve_api_key(env: Mapping[str, str]) -> str:
    api_key = (env.get('EMAIL_API_KEY') or '').strip()
    if api_key:
        return api_key

    secret_id = (env.get('EMAIL_API_KEY_SECRET_ID') or '').strip()
    if not secret_id:
        raise ConfigurationError(
            "EMAIL_API_KEY or EMAIL_API_KEY_SECRET_ID environment variable is required but not set."
        )

    # Imported lazily so plain-env deployments never build a boto3 client
    from services import secrets as secrets_service
    return secrets_service.fetch_secret_string(secret_id)


def load_config(env: Optional[Mapping[str, str]] = None) -> WorkerConfig:
    """
    Build WorkerConfig from environment variables.

    Args:
        env: Mapping to read from (defaults to os.environ)

    Returns:
        WorkerConfig: Validated, immutable configuration

    Raises:
        ConfigurationError: If a required option is missing or malformed
    """
    if env is None:
        env = os.environ

    sender_identity = _require(env, 'SENDER_IDENTITY')
    endpoint_url = _require(env, 'EMAIL_API_ENDPOINT_URL')

    if not endpoint_url.startswith(('https://', 'http://')):
        raise ConfigurationError(
            f"EMAIL_API_ENDPOINT_URL has invalid format. "
            f"Expected an http(s) URL, got: '{endpoint_url[:50]}'"
        )

    config = WorkerConfig(
        sender_identity=sender_identity,
        api_key=_resolve_api_key(env),
        endpoint_url=endpoint_url,
        timeout_ms=_parse_timeout(env.get('EMAIL_API_TIMEOUT_MS')),
    )

    logger.info(
        f"Worker configured: endpoint={config.endpoint_url}, "
        f"sender={config.sender_identity}, timeout_ms={config.timeout_ms}"
    )
    return config
