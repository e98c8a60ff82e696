"""Chat-completion client for the language-model provider (OpenAI or Groq)."""
from __future__ import annotations

import logging
from typing import Any

import openai
from openai import OpenAI

from app.errors import ProviderError, ProviderFailure
from app.event_log import log_event
from app.settings import AISettings

logger = logging.getLogger(__name__)


class CompletionClient:
    """Thin wrapper turning one system+user prompt pair into completion text.

    The underlying SDK client is created on first use so the service can start
    without provider credentials.
    """

    def __init__(self, settings: AISettings, *, client: OpenAI | None = None):
        self.settings = settings
        self._client = client

    @property
    def provider_name(self) -> str:
        return self.settings.provider_name

    @property
    def configured(self) -> bool:
        return self._client is not None or self.settings.configured

    def _get_client(self) -> OpenAI:
        if self._client is None:
            if not self.settings.api_key:
                raise ProviderError(
                    ProviderFailure.INVALID_CREDENTIAL,
                    'AI API key is required (OPENAI_API_KEY)',
                )
            self._client = OpenAI(
                api_key=self.settings.api_key,
                base_url=self.settings.base_url,
                timeout=self.settings.timeout_seconds,
                max_retries=0,
            )
        return self._client

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Return the raw completion text or raise ProviderError."""
        client = self._get_client()
        try:
            response = client.chat.completions.create(
                model=self.settings.model,
                messages=[
                    {'role': 'system', 'content': system_prompt},
                    {'role': 'user', 'content': user_prompt},
                ],
                temperature=self.settings.temperature if temperature is None else temperature,
                max_tokens=self.settings.max_tokens if max_tokens is None else max_tokens,
            )
        except openai.OpenAIError as exc:
            error = self._translate(exc)
            log_event(
                logger,
                'error',
                'ai.complete.failed',
                provider=self.provider_name,
                model=self.settings.model,
                kind=error.kind.value,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise error from exc

        content = _extract_content(response)
        if not content:
            log_event(logger, 'warning', 'ai.complete.empty', provider=self.provider_name)
            raise ProviderError(
                ProviderFailure.OTHER,
                'Failed to generate email: provider returned an empty completion',
            )
        return content.strip()

    def _translate(self, exc: openai.OpenAIError) -> ProviderError:
        provider = self.provider_name
        code = getattr(exc, 'code', None)
        if code == 'insufficient_quota' or isinstance(exc, openai.RateLimitError):
            return ProviderError(
                ProviderFailure.QUOTA_EXCEEDED,
                f'{provider} API quota exceeded. Please check your billing.',
            )
        if code == 'invalid_api_key' or isinstance(exc, openai.AuthenticationError):
            return ProviderError(
                ProviderFailure.INVALID_CREDENTIAL,
                f'Invalid {provider} API key. Please check your configuration.',
            )
        return ProviderError(ProviderFailure.OTHER, f'Failed to generate email: {exc}')


def _extract_content(response: Any) -> str | None:
    try:
        return response.choices[0].message.content if response.choices else None
    except (AttributeError, IndexError):
        return None
