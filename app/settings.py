"""Environment-backed configuration for the SMTP transport and AI provider."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping


DEFAULT_SENDER_NAME = 'Email Sender App'
GROQ_BASE_URL = 'https://api.groq.com/openai/v1'
GROQ_KEY_PREFIX = 'gsk_'
GROQ_DEFAULT_MODEL = 'llama3-8b-8192'
OPENAI_DEFAULT_MODEL = 'gpt-3.5-turbo'


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = str(value).strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _parse_int(value: str | None, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _parse_float(value: str | None, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _text(environ: Mapping[str, str], key: str, default: str = '') -> str:
    return (environ.get(key) or default).strip()


@dataclass(frozen=True)
class SmtpSettings:
    host: str = ''
    port: int = 587
    username: str = ''
    password: str = ''
    from_email: str = ''
    from_name: str = DEFAULT_SENDER_NAME
    use_starttls: bool = True
    use_ssl: bool = False
    timeout_seconds: int = 10

    @property
    def configured(self) -> bool:
        return bool(self.host and self.from_email)

    @property
    def masked_username(self) -> str:
        """``abc***@example.com`` style rendering for status output."""
        if not self.username:
            return ''
        local, sep, domain = self.username.partition('@')
        if not sep:
            return self.username[:3] + '***'
        return f'{local[:3]}***@{domain}'

    def issues(self) -> list[str]:
        issues = []
        if not self.host:
            issues.append('SMTP host is required')
        if not self.from_email:
            issues.append('SMTP from_email is required')
        if self.use_ssl and self.use_starttls:
            issues.append('SMTP cannot enable both SSL and STARTTLS')
        if self.port <= 0:
            issues.append('SMTP port must be a positive integer')
        if self.timeout_seconds <= 0:
            issues.append('SMTP timeout_seconds must be a positive integer')
        return issues


def load_smtp_settings(environ: Mapping[str, str] | None = None) -> SmtpSettings:
    env = os.environ if environ is None else environ
    username = _text(env, 'SMTP_USERNAME')
    return SmtpSettings(
        host=_text(env, 'SMTP_HOST'),
        port=_parse_int(env.get('SMTP_PORT'), 587),
        username=username,
        password=_text(env, 'SMTP_PASSWORD'),
        from_email=_text(env, 'SMTP_FROM_EMAIL') or username,
        from_name=_text(env, 'SMTP_FROM_NAME', DEFAULT_SENDER_NAME) or DEFAULT_SENDER_NAME,
        use_starttls=_parse_bool(env.get('SMTP_USE_STARTTLS'), True),
        use_ssl=_parse_bool(env.get('SMTP_USE_SSL'), False),
        timeout_seconds=_parse_int(env.get('SMTP_TIMEOUT_SECONDS'), 10),
    )


@dataclass(frozen=True)
class AISettings:
    api_key: str = ''
    model: str = OPENAI_DEFAULT_MODEL
    base_url: str | None = None
    temperature: float = 0.7
    max_tokens: int = 1000
    timeout_seconds: float = 30.0

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @property
    def is_groq(self) -> bool:
        return self.api_key.startswith(GROQ_KEY_PREFIX)

    @property
    def provider_name(self) -> str:
        return 'Groq' if self.is_groq else 'OpenAI'


def load_ai_settings(environ: Mapping[str, str] | None = None) -> AISettings:
    env = os.environ if environ is None else environ
    api_key = _text(env, 'OPENAI_API_KEY')
    is_groq = api_key.startswith(GROQ_KEY_PREFIX)
    default_model = GROQ_DEFAULT_MODEL if is_groq else OPENAI_DEFAULT_MODEL
    default_base_url = GROQ_BASE_URL if is_groq else ''
    return AISettings(
        api_key=api_key,
        model=_text(env, 'AI_MODEL', default_model) or default_model,
        base_url=_text(env, 'AI_BASE_URL', default_base_url) or None,
        temperature=_parse_float(env.get('AI_TEMPERATURE'), 0.7),
        max_tokens=_parse_int(env.get('AI_MAX_TOKENS'), 1000),
        timeout_seconds=_parse_float(env.get('AI_TIMEOUT_SECONDS'), 30.0),
    )
