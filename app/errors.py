"""Typed service errors mapped to HTTP status codes by the routes."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass
class ServiceError(Exception):
    """Base typed service error mapped to HTTP status codes."""
    message: str
    status_code: int

    def __str__(self) -> str:
        return self.message


@dataclass
class ValidationError(ServiceError):
    """Bad input shape or addresses. Raised before any external call."""
    status_code: int = 400
    details: list[str] = field(default_factory=list)


class ProviderFailure(str, Enum):
    QUOTA_EXCEEDED = 'quota_exceeded'
    INVALID_CREDENTIAL = 'invalid_credential'
    OTHER = 'other'


_PROVIDER_STATUS = {
    ProviderFailure.QUOTA_EXCEEDED: 429,
    ProviderFailure.INVALID_CREDENTIAL: 502,
    ProviderFailure.OTHER: 502,
}


class ProviderError(ServiceError):
    """Language-model provider failure."""

    def __init__(self, kind: ProviderFailure, message: str):
        super().__init__(message, _PROVIDER_STATUS[kind])
        self.kind = kind


class TransportFailure(str, Enum):
    AUTHENTICATION = 'authentication'
    CONNECTION = 'connection'
    NOT_CONFIGURED = 'not_configured'
    OTHER = 'other'


_TRANSPORT_STATUS = {
    TransportFailure.AUTHENTICATION: 502,
    TransportFailure.CONNECTION: 503,
    TransportFailure.NOT_CONFIGURED: 503,
    TransportFailure.OTHER: 502,
}


class TransportError(ServiceError):
    """SMTP-level failure."""

    def __init__(self, kind: TransportFailure, message: str):
        super().__init__(message, _TRANSPORT_STATUS[kind])
        self.kind = kind
