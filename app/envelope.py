"""Detection and extraction of the ``{"subject", "body"}`` envelope.

Model completions are asked to be exactly one JSON object with ``subject`` and
``body`` keys. They are frequently fenced, wrapped in prose, escaped one level
too many, nested or truncated. Both the response normalizer and the body
renderer use the helpers here so there is a single definition of what an
envelope artifact looks like.
"""
from __future__ import annotations

import json
import re
from typing import Any


_FENCE_RE = re.compile(r'```(?:json)?\s*', re.IGNORECASE)
_KEY_MENTION_RE = re.compile(r'"(?:subject|body)"')
_KEY_FIELD_RE = re.compile(r'"(?:subject|body)"\s*:\s*')
_WRAPPING_QUOTES_RE = re.compile(r'^["\']|["\']$')

# A JSON string value: any run of non-quote/non-backslash characters or
# backslash escapes, so interior \" does not terminate the match.
_STRING_BODY = r'((?:[^"\\]|\\.)*)'


def _field_pattern(key: str) -> re.Pattern:
    return re.compile(rf'"{key}"\s*:\s*"{_STRING_BODY}"', re.DOTALL)


def _truncated_field_pattern(key: str) -> re.Pattern:
    return re.compile(rf'"{key}"\s*:\s*"{_STRING_BODY}\Z', re.DOTALL)


_FIELD_PATTERNS = {key: _field_pattern(key) for key in ('subject', 'body')}
_TRUNCATED_PATTERNS = {key: _truncated_field_pattern(key) for key in ('subject', 'body')}


def strip_code_fences(text: str) -> str:
    """Remove every ```json / ``` marker, wherever it appears."""
    return _FENCE_RE.sub('', text)


def bound_to_braces(text: str) -> str:
    """Slice to the span between the first ``{`` and the last ``}``."""
    first = text.find('{')
    last = text.rfind('}')
    if first != -1 and last > first:
        return text[first:last + 1]
    return text


def looks_like_object(text: str) -> bool:
    stripped = text.strip()
    return stripped.startswith('{') and stripped.endswith('}')


def parse_object(text: str) -> dict[str, Any] | None:
    """Parse ``text`` as a JSON object, or return None."""
    try:
        data = json.loads(text)
    except (TypeError, ValueError):
        return None
    if isinstance(data, dict):
        return data
    return None


def mentions_envelope_key(text: str) -> bool:
    """True when ``"subject"`` or ``"body"`` appears anywhere in ``text``."""
    return bool(_KEY_MENTION_RE.search(text))


def contains_envelope_field(text: str) -> bool:
    """True when ``text`` still carries a ``"subject":`` or ``"body":`` key."""
    return bool(_KEY_FIELD_RE.search(text))


def scrub_envelope_fields(text: str) -> str:
    # Removing one key can join its neighbours into another.
    while contains_envelope_field(text):
        text = _KEY_FIELD_RE.sub('', text)
    return text


def strip_wrapping_quotes(text: str) -> str:
    """Drop one leading and one trailing quote character."""
    return _WRAPPING_QUOTES_RE.sub('', text)


def unescape_newlines(text: str) -> str:
    return text.replace('\\n', '\n')


def unescape_field(text: str) -> str:
    """Decode the escapes of a raw JSON string value (``\\n``, ``\\"`` ...)."""
    try:
        decoded = json.loads(f'"{text}"', strict=False)
    except ValueError:
        return unescape_newlines(text).replace('\\"', '"')
    if isinstance(decoded, str):
        return decoded
    return text


def extract_field(text: str, key: str) -> str | None:
    """Pull the raw (still escaped) string value of ``key`` out of ``text``.

    Falls back to an unterminated value running to the end of the text, which
    is what a completion cut off at the token limit looks like.
    """
    match = _FIELD_PATTERNS[key].search(text)
    if match is None:
        match = _TRUNCATED_PATTERNS[key].search(text)
    if match is None:
        return None
    return match.group(1)
