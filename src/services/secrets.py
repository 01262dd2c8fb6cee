"""
AWS Secrets Manager access for the email provider credential.
"""

import json
import logging
import os

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from services.config import ConfigurationError

logger = logging.getLogger(__name__)

# Single attempt with strict timeouts; a failed cold start is retried by Lambda
secrets_config = Config(
    retries={
        'max_attempts': 1,
        'mode': 'standard'
    },
    connect_timeout=5,
    read_timeout=10
)

region = os.environ.get('AWS_REGION', os.environ.get('AWS_DEFAULT_REGION', 'us-west-2'))

# Initialize client at module level (reused across invocations)
secrets_client = boto3.client('secretsmanager', region_name=region, config=secrets_config)


def fetch_secret_string(secret_id: str) -> str:
    """
    Fetch a plaintext secret value.

    The secret may be a bare string or a JSON object with an "apiKey" field.

    Args:
        secret_id: Secret name or ARN

    Returns:
        str: The secret value

    Raises:
        ConfigurationError: If the secret is missing or empty
        ClientError: For other AWS service errors
    """
    try:
        response = secrets_client.get_secret_value(SecretId=secret_id)
    except ClientError as e:
        error_code = e.response.get('Error', {}).get('Code', 'Unknown')
        if error_code == 'ResourceNotFoundException':
            logger.error(f"Secret not found: {secret_id}")
            raise ConfigurationError(f"Secret not found: {secret_id}")
        logger.error(f"Failed to read secret {secret_id}: error_code={error_code}")
        raise

    value = (response.get('SecretString') or '').strip()

    if value.startswith('{'):
        try:
            value = (json.loads(value).get('apiKey') or '').strip()
        except json.JSONDecodeError:
            raise ConfigurationError(f"Secret {secret_id} is not valid JSON")

    if not value:
        raise ConfigurationError(f"Secret {secret_id} is empty")

    logger.info(f"Loaded API key from secret: {secret_id}")
    return value
