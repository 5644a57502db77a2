"""Request pipeline: configuration check, validation, provider call, normalization."""

from __future__ import annotations

from typing import TYPE_CHECKING

from grammar_proxy.errors import ConfigurationError
from grammar_proxy.logger import BaseComponent
from grammar_proxy.prompts import load_system_prompt
from grammar_proxy.providers import build_provider
from grammar_proxy.transport import ProviderTransport
from grammar_proxy.validation import parse_chat_request

if TYPE_CHECKING:
    from grammar_proxy.models import CanonicalResponse
    from grammar_proxy.providers import ChatProvider
    from grammar_proxy.settings import Settings


class ChatProxyService(BaseComponent):
    """Forwards a chat history to the configured provider and returns the canonical response."""

    def __init__(
        self,
        app_settings: Settings,
        *,
        transport: ProviderTransport | None = None,
        provider: ChatProvider | None = None,
        system_prompt: str | None = None,
    ) -> None:
        """Select the provider once; a missing key is kept and reported on every request."""
        self._settings = app_settings
        self._transport = transport or ProviderTransport(timeout_seconds=app_settings.request_timeout_seconds)
        self._system_prompt = system_prompt or load_system_prompt(app_settings.system_prompt_name).system
        self._configuration_error: ConfigurationError | None = None
        self._provider: ChatProvider | None = provider
        if self._provider is None:
            try:
                self._provider = build_provider(app_settings)
            except ConfigurationError as exc:
                self.logger.error("configuration_error", provider=app_settings.provider, error=exc.message)
                self._configuration_error = exc

    def ensure_configured(self) -> ChatProvider:
        """Return the selected provider or raise the stored configuration error."""
        if self._provider is None:
            raise self._configuration_error or ConfigurationError("No AI provider is configured.")
        return self._provider

    async def complete(self, payload: object) -> CanonicalResponse:
        """Validate ``{model?, messages}``, call the provider once and normalize its answer."""
        provider = self.ensure_configured()
        chat_request = parse_chat_request(payload)
        model = chat_request.model if self._settings.allow_model_override else None

        self.log_start("complete", provider=provider.name, message_count=len(chat_request.messages))
        self.log_io(
            direction="request",
            messages=[{"role": msg.role, "content": msg.content} for msg in chat_request.messages],
        )
        provider_request = provider.build_request(list(chat_request.messages), self._system_prompt, model=model)
        provider_response = await self._transport.invoke(provider_request)
        canonical = provider.normalize(provider_response)
        self.log_io(direction="response", content=canonical.content)
        self.log_end("complete", provider=provider.name)
        return canonical

    async def aclose(self) -> None:
        """Release the outbound HTTP client."""
        await self._transport.aclose()
