"""SMTP transport for outbound email."""
from __future__ import annotations

import logging
import smtplib
from datetime import datetime, timezone
from email.message import EmailMessage
from email.utils import format_datetime, make_msgid

from app.errors import TransportError, TransportFailure
from app.event_log import log_event
from app.models import OutboundMessage
from app.settings import SmtpSettings

logger = logging.getLogger(__name__)


def _translate(exc: Exception, action: str) -> TransportError:
    """Map smtplib/socket failures onto typed transport errors."""
    if isinstance(exc, smtplib.SMTPAuthenticationError):
        return TransportError(
            TransportFailure.AUTHENTICATION,
            'Email authentication failed. Please check your email credentials.',
        )
    if isinstance(exc, (smtplib.SMTPConnectError, smtplib.SMTPServerDisconnected)):
        return TransportError(
            TransportFailure.CONNECTION,
            'Failed to connect to email server. Please check your network connection.',
        )
    # SMTPException derives from OSError, so it has to be checked first.
    if isinstance(exc, smtplib.SMTPException):
        return TransportError(TransportFailure.OTHER, f'{action} failed: {exc}')
    if isinstance(exc, OSError):
        return TransportError(
            TransportFailure.CONNECTION,
            'Failed to connect to email server. Please check your network connection.',
        )
    return TransportError(TransportFailure.OTHER, f'{action} failed: {exc}')


class SmtpTransport:
    """Deliver messages through the configured SMTP relay.

    Holds nothing but settings; every call opens its own connection so one
    instance is safe to share across requests.
    """

    def __init__(self, settings: SmtpSettings):
        self.settings = settings

    @property
    def sender_address(self) -> str:
        return self.settings.from_email

    @property
    def sender_name(self) -> str:
        return self.settings.from_name

    @property
    def configured(self) -> bool:
        return self.settings.configured

    def _require_configured(self) -> None:
        if not self.settings.configured:
            raise TransportError(
                TransportFailure.NOT_CONFIGURED,
                'Email service is not configured. Please check your environment variables.',
            )
        issues = self.settings.issues()
        if issues:
            raise TransportError(
                TransportFailure.NOT_CONFIGURED,
                f"Invalid email configuration: {'; '.join(issues)}",
            )

    def _connect(self) -> smtplib.SMTP:
        settings = self.settings
        if settings.use_ssl:
            server = smtplib.SMTP_SSL(
                settings.host,
                settings.port,
                timeout=settings.timeout_seconds,
            )
        else:
            server = smtplib.SMTP(
                settings.host,
                settings.port,
                timeout=settings.timeout_seconds,
            )
        try:
            if settings.use_starttls and not settings.use_ssl:
                server.starttls()
            if settings.username:
                server.login(settings.username, settings.password)
        except Exception:
            server.close()
            raise
        return server

    def verify_connectivity(self) -> None:
        """Open, authenticate and close one connection, or raise TransportError."""
        self._require_configured()
        try:
            with self._connect() as server:
                server.noop()
        except (smtplib.SMTPException, OSError) as exc:
            error = _translate(exc, 'SMTP connection check')
            log_event(
                logger,
                'error',
                'email.transport.unreachable',
                host=self.settings.host,
                port=self.settings.port,
                kind=error.kind.value,
                error=str(exc),
            )
            raise error from exc

    def test_connection(self) -> dict:
        self.verify_connectivity()
        return {'success': True, 'message': 'Email service connection successful'}

    def build_message(self, message: OutboundMessage) -> EmailMessage:
        domain = self.sender_address.rpartition('@')[2] or None
        msg = EmailMessage()
        msg['Subject'] = message.subject
        msg['From'] = message.from_header
        msg['To'] = message.to
        msg['Date'] = format_datetime(datetime.now(timezone.utc))
        msg['Message-ID'] = make_msgid(domain=domain)
        msg.set_content(message.text)
        msg.add_alternative(message.html, subtype='html')
        return msg

    def deliver(self, message: OutboundMessage) -> str:
        """Send one message and return its Message-ID."""
        self._require_configured()
        try:
            msg = self.build_message(message)
            with self._connect() as server:
                server.send_message(msg, from_addr=self.sender_address, to_addrs=[message.to])
        except (smtplib.SMTPException, OSError, ValueError) as exc:
            raise _translate(exc, 'Email sending') from exc
        return msg['Message-ID']

    def summary(self) -> dict:
        return {
            'configured': self.configured,
            'host': self.settings.host or 'Not configured',
            'user': self.settings.masked_username or 'Not configured',
        }
