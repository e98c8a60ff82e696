"""Service layer for AI-drafted emails."""
from __future__ import annotations

import logging

from app.event_log import log_event, preview
from app.models import PLACEHOLDER_SUBJECT, GeneratedEmail
from app.response_normalizer import NormalizationContext, normalize_with_context

logger = logging.getLogger(__name__)

TONES = ('professional', 'casual', 'formal', 'friendly')
EMAIL_TYPES = ('general', 'business', 'marketing', 'follow-up', 'invitation')

GENERATION_TEMPERATURE = 0.7
GENERATION_MAX_TOKENS = 1000


def generation_system_prompt(tone: str) -> str:
    return f"""You are a professional email writer. Generate a well-structured, {tone} email based on the user's prompt.

CRITICAL: You MUST return ONLY a valid JSON object with this EXACT structure:
{{
  "subject": "Your email subject here",
  "body": "Your complete email content here with proper line breaks"
}}

Rules:
- NO text before or after the JSON
- NO markdown formatting
- NO extra quotes or escaping
- The body should be plain text with \\n for line breaks
- Include proper greeting, content, and closing in the body
- Make it sound natural and professional"""


def generation_user_prompt(prompt: str, tone: str, email_type: str, recipients: list[str]) -> str:
    lines = [f'Generate a {tone} email for the following context:', '', f'Prompt: {prompt}']
    if recipients:
        lines.append(f"Recipients: {', '.join(recipients)}")
    if email_type:
        lines.append(f'Email Type: {email_type}')
    lines.append('')
    lines.append('Please create an appropriate email that addresses this request professionally.')
    return '\n'.join(lines)


IMPROVEMENT_SYSTEM_PROMPT = """You are a professional email editor. Improve the given email based on the user's specific request. Maintain professionalism while implementing the requested changes.

Return ONLY a valid JSON object in the following format, with no text around it:
{
  "subject": "Improved subject line",
  "body": "Improved email body"
}"""


def improvement_user_prompt(original: GeneratedEmail, improvement_request: str) -> str:
    return (
        'Please improve this email based on the following request:\n\n'
        'Original Email:\n'
        f'Subject: {original.subject}\n'
        f'Body: {original.body}\n\n'
        f'Improvement Request: {improvement_request}\n\n'
        'Please provide the improved version.'
    )


def generate_email(
    *,
    client,
    prompt: str,
    tone: str = 'professional',
    email_type: str = 'general',
    recipients: list[str] | None = None,
) -> tuple[GeneratedEmail, NormalizationContext]:
    """Draft an email with the provider and normalize the completion."""
    raw = client.complete(
        generation_system_prompt(tone),
        generation_user_prompt(prompt, tone, email_type, recipients or []),
        temperature=GENERATION_TEMPERATURE,
        max_tokens=GENERATION_MAX_TOKENS,
    )
    email, context = normalize_with_context(raw)
    log_event(
        logger,
        'info',
        'ai.generate.completed',
        stage=context.stage.value,
        clean=context.clean,
        subject=preview(email.subject, 50),
        body_length=len(email.body),
    )
    return email, context


def improve_email(
    *,
    client,
    original: GeneratedEmail,
    improvement_request: str,
) -> GeneratedEmail:
    """Revise an existing email; keeps the original subject if none comes back."""
    raw = client.complete(
        IMPROVEMENT_SYSTEM_PROMPT,
        improvement_user_prompt(original, improvement_request),
        temperature=GENERATION_TEMPERATURE,
        max_tokens=GENERATION_MAX_TOKENS,
    )
    improved, context = normalize_with_context(raw)
    subject = improved.subject
    if subject == PLACEHOLDER_SUBJECT:
        subject = original.subject
    body = improved.body or original.body
    log_event(
        logger,
        'info',
        'ai.improve.completed',
        stage=context.stage.value,
        clean=context.clean,
        kept_subject=subject == original.subject,
    )
    return GeneratedEmail(subject=subject, body=body)
