"""Render an email body into HTML and plain-text parts.

Bodies reach the renderer from more than one path: drafted by the model and
already normalized, or typed by a caller and passed through unchanged. The
renderer therefore re-checks for envelope artifacts before converting line
breaks into markup.

  blank line   -> paragraph boundary  </p><p>
  line break   -> <br>
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from app import envelope
from app.event_log import log_event, preview

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r'<[^>]*>')


@dataclass(frozen=True)
class RenderedBody:
    html: str
    text: str


def render(body) -> RenderedBody:
    """Render ``body`` into an HTML part and a plain-text fallback."""
    html = render_html(body)
    return RenderedBody(html=html, text=html_to_text(html))


def render_html(body) -> str:
    text = unwrap_body(body).replace('\r\n', '\n').strip()
    html = text.replace('\n\n', '</p><p>').replace('\n', '<br>')
    html = f'<p>{html}</p>'
    return html.replace('<p></p>', '')


def html_to_text(html: str) -> str:
    """Strip markup so clients without HTML rendering see readable text."""
    text = html.replace('</p><p>', '\n\n').replace('<br>', '\n')
    text = _TAG_RE.sub('', text)
    return text.replace('&nbsp;', ' ')


def unwrap_body(body) -> str:
    """Reduce ``body`` to plain text, dropping any envelope wrapped around it."""
    if isinstance(body, dict) and 'body' in body:
        log_event(logger, 'warning', 'render.unwrapped_envelope', source='object')
        return unwrap_body(body['body'])
    if not isinstance(body, str):
        log_event(logger, 'error', 'render.coerced_body', body_type=type(body).__name__)
        return '' if body is None else str(body)

    if envelope.looks_like_object(body):
        data = envelope.parse_object(body.strip())
        if data is not None:
            if 'body' not in data:
                return body
            log_event(logger, 'warning', 'render.unwrapped_envelope', source='json')
            inner = data['body']
            # Non-string values go through the coercion branch.
            return inner if isinstance(inner, str) else unwrap_body(inner)
        log_event(logger, 'info', 'render.json_failed', body=preview(body))
        return envelope.unescape_newlines(envelope.strip_wrapping_quotes(body))

    if envelope.contains_envelope_field(body):
        extracted = envelope.extract_field(body, 'body')
        if extracted is not None:
            log_event(logger, 'warning', 'render.unwrapped_envelope', source='fields')
            return envelope.unescape_field(extracted)
    return body
