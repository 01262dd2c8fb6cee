"""
AWS Lambda handler for delivering queued emails from SQS.

Thin orchestration layer that delegates to DeliveryWorker.
Policy: one attempt per message. Retryable failures are reported back as
batchItemFailures so SQS redelivers them; everything else is consumed.
"""

import logging
import os
from typing import Dict, Any, List, Optional

from domain.delivery_worker import DeliveryWorker
from services.config import load_config

# Configure logging
logger = logging.getLogger()
logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO').upper())

# Add console handler for local testing (AWS Lambda provides handlers automatically)
if not logger.handlers:
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG)
    formatter = logging.Formatter('%(levelname)s - %(message)s')
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

# Load configuration and build the worker once per process (reused across invocations)
config = load_config()
delivery_worker = DeliveryWorker(config)


def _remaining_ms(context: Any) -> Optional[int]:
    get_remaining = getattr(context, 'get_remaining_time_in_millis', None)
    if not callable(get_remaining):
        return None
    try:
        return int(get_remaining())
    except (TypeError, ValueError):
        return None


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Deliver emails for each SQS record in the event.

    Args:
        event: Lambda event with SQS records
        context: Lambda context (used for the invocation deadline)

    Returns:
        Dict with batchItemFailures listing only retryable records
    """
    records = event.get('Records', [])
    logger.info(f"Processing batch of {len(records)} message(s)")

    failures: List[Dict[str, str]] = []
    delivered = 0
    permanent = 0

    for record in records:
        result = delivery_worker.process_record(record, remaining_ms=_remaining_ms(context))

        if result.delivered:
            delivered += 1
        elif result.should_redeliver:
            failures.append({'itemIdentifier': record.get('messageId', result.message_id)})
        else:
            permanent += 1

    logger.info(
        f"Batch complete: delivered={delivered}, "
        f"retryable={len(failures)}, permanent={permanent}"
    )

    return {"batchItemFailures": failures}
