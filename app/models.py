"""Request-scoped value objects shared by the drafting and delivery paths."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


PLACEHOLDER_SUBJECT = 'Generated Email'


@dataclass(frozen=True)
class GeneratedEmail:
    """Clean subject/body pair.

    ``subject`` is never empty and ``body`` never carries a serialized
    ``{"subject": ..., "body": ...}`` envelope.
    """
    subject: str
    body: str

    def to_dict(self) -> dict:
        return {'subject': self.subject, 'body': self.body}


@dataclass(frozen=True)
class OutboundMessage:
    """One message handed to the transport, addressed to a single recipient."""
    from_header: str
    to: str
    subject: str
    html: str
    text: str


class DeliveryStatus(str, Enum):
    SENT = 'sent'
    FAILED = 'failed'


@dataclass(frozen=True)
class DeliveryResult:
    recipient: str
    status: DeliveryStatus
    message_id: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is DeliveryStatus.SENT

    def to_dict(self) -> dict:
        payload = {'email': self.recipient, 'status': self.status.value}
        if self.message_id is not None:
            payload['messageId'] = self.message_id
        if self.error is not None:
            payload['error'] = self.error
        return payload


@dataclass(frozen=True)
class DeliveryReport:
    """Aggregated per-recipient outcome of one send call."""
    results: tuple[DeliveryResult, ...] = field(default_factory=tuple)

    @property
    def total_recipients(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for result in self.results if result.ok)

    @property
    def failed(self) -> int:
        return self.total_recipients - self.successful

    @property
    def failures(self) -> list[DeliveryResult]:
        return [result for result in self.results if not result.ok]

    def to_dict(self) -> dict:
        return {
            'totalRecipients': self.total_recipients,
            'successful': self.successful,
            'failed': self.failed,
            'results': [result.to_dict() for result in self.results],
            'failures': [
                {'email': result.recipient, 'error': result.error}
                for result in self.failures
            ],
        }
