"""Structured single-line JSON log events."""
from __future__ import annotations

import json
import logging


def log_event(logger: logging.Logger, level: str, event: str, **fields) -> None:
    payload = {'event': event, **fields}
    message = json.dumps(payload, sort_keys=True, default=str)
    getattr(logger, level, logger.info)(message)


def preview(text, limit: int = 100) -> str:
    """Shorten free text for log payloads."""
    value = str(text or '')
    if len(value) <= limit:
        return value
    return value[:limit] + '...'
