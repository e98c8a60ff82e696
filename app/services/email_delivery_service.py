"""Service layer for sending an email to a list of recipients."""
from __future__ import annotations

import logging
import re
from email.utils import formataddr

from app.body_renderer import render, unwrap_body
from app.errors import TransportError, ValidationError
from app.event_log import log_event
from app.models import (
    DeliveryReport,
    DeliveryResult,
    DeliveryStatus,
    GeneratedEmail,
    OutboundMessage,
)
from app.settings import DEFAULT_SENDER_NAME

logger = logging.getLogger(__name__)


EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')


def is_valid_email(address: str) -> bool:
    return bool(EMAIL_RE.match(address or ''))


def validate_email_list(emails: list) -> tuple[list[str], list[str]]:
    """Split ``emails`` into trimmed valid addresses and error messages."""
    valid_emails = []
    errors = []
    for index, email in enumerate(emails):
        trimmed = email.strip() if isinstance(email, str) else ''
        if not trimmed:
            errors.append(f'Email at position {index + 1} is empty')
        elif not is_valid_email(trimmed):
            errors.append(f'Invalid email format: {trimmed}')
        else:
            valid_emails.append(trimmed)
    return valid_emails, errors


def _validated_recipients(recipients) -> list[str]:
    if not isinstance(recipients, (list, tuple)):
        raise ValidationError('recipients must be a list of email addresses')
    valid_emails, errors = validate_email_list(list(recipients))
    if errors:
        raise ValidationError(f"Email validation failed: {', '.join(errors)}", details=errors)
    if not valid_emails:
        raise ValidationError('No valid recipients found')
    return valid_emails


def canonical_email(subject, body) -> GeneratedEmail:
    """Convert caller-supplied subject/body into a GeneratedEmail."""
    cleaned_subject = subject.strip() if isinstance(subject, str) else ''
    if not cleaned_subject:
        raise ValidationError('subject is required', details=['subject is required'])
    return GeneratedEmail(subject=cleaned_subject, body=unwrap_body(body))


def _sender_header(sender_name: str | None, transport) -> str:
    default_name = transport.sender_name or DEFAULT_SENDER_NAME
    name = (sender_name or '').strip() or default_name
    return formataddr((name, transport.sender_address))


def send_email(
    *,
    transport,
    recipients,
    subject,
    body,
    sender_name: str | None = None,
) -> DeliveryReport:
    """Deliver one email to every recipient and report per-recipient outcomes.

    Invalid input raises ValidationError before the transport is touched. An
    unreachable transport raises TransportError before any delivery attempt.
    Individual delivery failures are recorded in the report, not raised.
    """
    addresses = _validated_recipients(recipients)
    email = canonical_email(subject, body)

    transport.verify_connectivity()

    rendered = render(email.body)
    from_header = _sender_header(sender_name, transport)

    results = []
    for address in addresses:
        message = OutboundMessage(
            from_header=from_header,
            to=address,
            subject=email.subject,
            html=rendered.html,
            text=rendered.text,
        )
        try:
            message_id = transport.deliver(message)
        except TransportError as exc:
            log_event(
                logger,
                'error',
                'email.delivery.failed',
                recipient=address,
                kind=exc.kind.value,
                error=str(exc),
            )
            results.append(
                DeliveryResult(recipient=address, status=DeliveryStatus.FAILED, error=str(exc))
            )
            continue

        log_event(logger, 'info', 'email.delivery.sent', recipient=address, message_id=message_id)
        results.append(
            DeliveryResult(recipient=address, status=DeliveryStatus.SENT, message_id=message_id)
        )

    report = DeliveryReport(results=tuple(results))
    log_event(
        logger,
        'info',
        'email.send.completed',
        total=report.total_recipients,
        successful=report.successful,
        failed=report.failed,
    )
    return report
