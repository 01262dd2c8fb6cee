"""
SQS producer for email delivery requests.

Publishes messages in the shape the delivery worker consumes, so producers
(e.g. the sign-up flow sending verification emails) do not hand-build bodies.
"""

import json
import logging
import os
from typing import Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

# SQS caps DelaySeconds at 15 minutes
MAX_DELAY_SECONDS = 900

sqs_config = Config(
    retries={
        'max_attempts': 1,
        'mode': 'standard'
    },
    connect_timeout=5,
    read_timeout=10
)

region = os.environ.get('AWS_REGION', os.environ.get('AWS_DEFAULT_REGION', 'us-west-2'))

# Initialize SQS client at module level (reused across invocations)
sqs_client = boto3.client('sqs', region_name=region, config=sqs_config)

QUEUE_URL = os.environ.get('EMAIL_QUEUE_URL', '')


def build_message_body(recipient: str, subject: str = '', body_html: str = '') -> str:
    """Serialize an email request into the worker's JSON body format."""
    return json.dumps({
        'recipient': recipient,
        'subject': subject,
        'bodyHtml': body_html,
    })


def enqueue_email(
    recipient: str,
    subject: str = '',
    body_html: str = '',
    delay_seconds: int = 0,
    attributes: Optional[Dict[str, str]] = None,
    queue_url: Optional[str] = None
) -> str:
    """
    Publish one email request to the delivery queue.

    Args:
        recipient: Destination address
        subject: Subject line (also sent as the "Title" attribute)
        body_html: HTML body
        delay_seconds: SQS delivery delay (0-900)
        attributes: Extra string message attributes (e.g. {"UserId": "..."})
        queue_url: Target queue (defaults to EMAIL_QUEUE_URL)

    Returns:
        str: SQS MessageId

    Raises:
        ValueError: If no queue is configured or arguments are out of range
        ClientError: If SQS rejects the request
    """
    queue_url = queue_url or QUEUE_URL
    if not queue_url:
        raise ValueError("EMAIL_QUEUE_URL is not configured")
    if not recipient:
        raise ValueError("recipient cannot be empty")
    if not 0 <= delay_seconds <= MAX_DELAY_SECONDS:
        raise ValueError(f"delay_seconds must be between 0 and {MAX_DELAY_SECONDS}, got: {delay_seconds}")

    message_attributes = {}
    if subject:
        message_attributes['Title'] = {'DataType': 'String', 'StringValue': subject}
    for name, value in (attributes or {}).items():
        message_attributes[name] = {'DataType': 'String', 'StringValue': str(value)}

    try:
        response = sqs_client.send_message(
            QueueUrl=queue_url,
            MessageBody=build_message_body(recipient, subject, body_html),
            DelaySeconds=delay_seconds,
            MessageAttributes=message_attributes
        )
    except ClientError as e:
        error_code = e.response.get('Error', {}).get('Code', 'Unknown')
        error_message = e.response.get('Error', {}).get('Message', str(e))
        logger.error(
            f"Failed to enqueue email: queue={queue_url}, "
            f"error_code={error_code}, error_message={error_message}"
        )
        raise

    message_id = response['MessageId']
    logger.info(f"Enqueued email {message_id} (delay={delay_seconds}s)")
    return message_id
