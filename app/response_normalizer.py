"""Normalize raw model completions into a clean subject/body pair.

Stages, each tried only when the previous one gives no clean result:
  1. strip markdown code fences
  2. slice to the first ``{`` .. last ``}``
  3. strict JSON parse of the envelope
  4. regex extraction of the ``"subject"`` / ``"body"`` string values
  5. plain-text fallback looking for a ``Subject:`` line

Normalization never raises. When a body still carries envelope keys after
every stage the defect is logged and the best-effort pair is returned.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum

from app import envelope
from app.event_log import log_event, preview
from app.models import PLACEHOLDER_SUBJECT, GeneratedEmail

logger = logging.getLogger(__name__)

MAX_UNWRAP_DEPTH = 3

_SUBJECT_PREFIX_RE = re.compile(r'^.*?subject:\s*', re.IGNORECASE)


class Stage(str, Enum):
    JSON = 'json'
    FIELDS = 'fields'
    PLAIN_TEXT = 'plain_text'


@dataclass
class NormalizationContext:
    """Diagnostics for a single normalize call. Never shared."""
    raw_text: str
    bounded_text: str = ''
    stage: Stage = Stage.JSON
    json_parsed: bool = False
    regex_extraction: bool = False
    nested_depth: int = 0
    defect: bool = False

    @property
    def clean(self) -> bool:
        return not self.defect

    def summary(self) -> dict:
        return {'stage': self.stage.value, 'clean': self.clean}


def normalize(raw_text) -> GeneratedEmail:
    """Return a best-effort clean GeneratedEmail for any completion text."""
    email, _ = normalize_with_context(raw_text)
    return email


def normalize_with_context(raw_text) -> tuple[GeneratedEmail, NormalizationContext]:
    if raw_text is None:
        raw_text = ''
    elif not isinstance(raw_text, str):
        raw_text = str(raw_text)

    context = NormalizationContext(raw_text=raw_text)
    email = _normalize_text(raw_text, context, depth=0)

    if envelope.contains_envelope_field(email.body):
        context.defect = True
        log_event(
            logger,
            'warning',
            'normalize.defect',
            stage=context.stage.value,
            json_parsed=context.json_parsed,
            regex_extraction=context.regex_extraction,
            raw=preview(raw_text, 500),
            body=preview(email.body),
        )
        email = GeneratedEmail(
            subject=email.subject,
            body=envelope.scrub_envelope_fields(email.body).strip(),
        )
    return email, context


def _normalize_text(text: str, context: NormalizationContext, *, depth: int) -> GeneratedEmail:
    unfenced = envelope.strip_code_fences(text.strip()).strip()
    bounded = envelope.bound_to_braces(unfenced).strip()
    if depth == 0:
        context.bounded_text = bounded

    email = _from_json(bounded, context)
    if email is None:
        email = _from_fields(bounded, unfenced, context)

    # Envelope serialized inside the body: unwrap one more level.
    if depth < MAX_UNWRAP_DEPTH and envelope.contains_envelope_field(email.body):
        context.nested_depth = depth + 1
        log_event(logger, 'info', 'normalize.nested_envelope', depth=depth + 1)
        inner = _normalize_text(email.body, context, depth=depth + 1)
        subject = email.subject if email.subject != PLACEHOLDER_SUBJECT else inner.subject
        email = GeneratedEmail(subject=subject, body=inner.body)
    return email


def _from_json(text: str, context: NormalizationContext) -> GeneratedEmail | None:
    data = envelope.parse_object(text)
    if data is None:
        log_event(logger, 'info', 'normalize.json_failed', raw=preview(text))
        return None
    context.json_parsed = True

    subject = data.get('subject')
    body = data.get('body')
    if not isinstance(subject, str):
        subject = PLACEHOLDER_SUBJECT
    if not isinstance(body, str):
        body = text

    subject = envelope.strip_wrapping_quotes(subject).strip() or PLACEHOLDER_SUBJECT
    body = envelope.unescape_newlines(envelope.strip_wrapping_quotes(body)).strip()

    if envelope.mentions_envelope_key(body):
        log_event(logger, 'warning', 'normalize.recursion_guard', body=preview(body))
        return None

    context.stage = Stage.JSON
    return GeneratedEmail(subject=subject, body=body)


def _from_fields(text: str, unbounded: str, context: NormalizationContext) -> GeneratedEmail:
    context.regex_extraction = True

    subject = PLACEHOLDER_SUBJECT
    raw_subject = envelope.extract_field(text, 'subject')
    if raw_subject:
        subject = envelope.unescape_field(raw_subject).strip() or PLACEHOLDER_SUBJECT

    raw_body = envelope.extract_field(text, 'body')
    if raw_body is not None:
        context.stage = Stage.FIELDS
        return GeneratedEmail(subject=subject, body=envelope.unescape_field(raw_body).strip())

    # No envelope at all: braces in the prose must not cut the text down.
    context.stage = Stage.PLAIN_TEXT
    return _from_plain_text(unbounded, subject)


def _from_plain_text(text: str, subject: str) -> GeneratedEmail:
    lines = text.split('\n')
    for index, line in enumerate(lines):
        if 'subject:' in line.lower():
            found = _SUBJECT_PREFIX_RE.sub('', line, count=1).strip().rstrip(',')
            subject = envelope.strip_wrapping_quotes(found).strip() or subject
            del lines[index]
            break

    body = '\n'.join(lines).strip()
    body = envelope.strip_wrapping_quotes(body)
    body = body.replace('{', '').replace('}', '').strip()
    return GeneratedEmail(subject=subject, body=body)
