"""
Data models for the email delivery domain.

These type-safe data structures define clear contracts between the SQS
handler, the delivery worker and the email API integration.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List


class DeliveryOutcome(str, Enum):
    """Outcome of a single delivery attempt."""
    DELIVERED = 'Delivered'
    RETRYABLE_FAILURE = 'RetryableFailure'
    PERMANENT_FAILURE = 'PermanentFailure'


@dataclass(frozen=True)
class InboundMessage:
    """
    One unit of work delivered by the queue.

    Attributes:
        recipient: Destination email address
        subject: Subject line (may be empty)
        body_html: HTML body (may be empty)
        message_id: Platform-assigned identifier, used only for log correlation
    """
    recipient: str
    subject: str = ''
    body_html: str = ''
    message_id: str = 'UNKNOWN'


@dataclass(frozen=True)
class EmailRequest:
    """
    Outbound payload for the email provider.

    Attributes:
        sender: Configured sender identity ("Name <address>")
        to: Recipient list (always exactly one address)
        subject: Subject line
        html: HTML body
    """
    sender: str
    to: List[str]
    subject: str
    html: str

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the provider's JSON body shape."""
        return {
            'from': self.sender,
            'to': list(self.to),
            'subject': self.subject,
            'html': self.html,
        }


@dataclass
class DeliveryResult:
    """
    Result of one delivery attempt.

    Lets the invoker decide on redelivery without exceptions being used for
    control flow.

    Attributes:
        outcome: Delivered, RetryableFailure or PermanentFailure
        detail: Provider message id, upstream status/body or validation error
        message_id: Correlation id of the processed message
    """
    outcome: DeliveryOutcome
    detail: str
    message_id: str = 'UNKNOWN'
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def delivered(self) -> bool:
        return self.outcome is DeliveryOutcome.DELIVERED

    @property
    def should_redeliver(self) -> bool:
        """Only transient failures go back to the queue."""
        return self.outcome is DeliveryOutcome.RETRYABLE_FAILURE

    def to_log_record(self) -> Dict[str, Any]:
        """Structured fields emitted once per invocation."""
        record = {
            'messageId': self.message_id,
            'outcome': self.outcome.value,
            'detail': self.detail,
        }
        record.update(self.extra)
        return record

    def __repr__(self) -> str:
        return (
            f"DeliveryResult(outcome={self.outcome.value}, "
            f"message_id={self.message_id}, detail={self.detail})"
        )
