from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, cast

from grammar_proxy.errors import AdapterError
from grammar_proxy.logger import BaseComponent
from grammar_proxy.models import CanonicalResponse, ProviderName, ProviderRequest, ProviderResponse
from grammar_proxy.validation import parse_messages

if TYPE_CHECKING:
    from grammar_proxy.settings import Settings


class OpenRouterProvider(BaseComponent):
    """Adapter for OpenRouter-compatible chat completion APIs."""

    name: ProviderName = "openrouter"

    def __init__(
        self,
        api_key: str,
        default_model: str,
        *,
        base_url: str = "https://openrouter.ai/api/v1",
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> None:
        """Create an adapter bound to a key, endpoint and generation defaults."""
        self._api_key = api_key
        self._default_model = default_model
        self._base_url = base_url.rstrip("/")
        self._temperature = temperature
        self._max_tokens = max_tokens

    @classmethod
    def from_settings(cls, app_settings: Settings) -> OpenRouterProvider:
        """Build the adapter from application settings."""
        return cls(
            app_settings.api_key_for("openrouter"),
            app_settings.model_for("openrouter"),
            base_url=app_settings.base_url_for("openrouter"),
            temperature=app_settings.default_temperature,
            max_tokens=app_settings.max_output_tokens,
        )

    def build_request(
        self,
        messages: object,
        system_prompt: str,
        *,
        model: str | None = None,
    ) -> ProviderRequest:
        """Prepend the system prompt and drop client-supplied system messages."""
        chat_messages = parse_messages(messages)
        resolved_model = model or self._default_model
        wire_messages: list[dict[str, str]] = [{"role": "system", "content": system_prompt}]
        wire_messages.extend(
            {"role": msg.role, "content": msg.content} for msg in chat_messages if msg.role != "system"
        )
        self.log_start(
            "openrouter_build_request",
            model=resolved_model,
            message_count=len(wire_messages),
            dropped_system=len(chat_messages) + 1 - len(wire_messages),
        )
        return ProviderRequest(
            provider=self.name,
            url=f"{self._base_url}/chat/completions",
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            body={
                "model": resolved_model,
                "messages": wire_messages,
                "temperature": self._temperature,
                "max_tokens": self._max_tokens,
            },
        )

    def normalize(self, response: ProviderResponse) -> CanonicalResponse:
        """Check that the payload carries message content and re-emit only that content."""
        return CanonicalResponse.from_text(_extract_content(response))


def _extract_content(response: object) -> str:
    if not isinstance(response, Mapping):
        raise AdapterError.missing_content("OpenRouter response is not a JSON object")
    choices = cast("Mapping[str, Any]", response).get("choices")
    if not isinstance(choices, list) or not choices:
        raise AdapterError.missing_content("OpenRouter response has no choices")

    first = cast("list[Any]", choices)[0]
    message = first.get("message") if isinstance(first, Mapping) else None
    content = message.get("content") if isinstance(message, Mapping) else None
    if not isinstance(content, str) or not content.strip():
        raise AdapterError.missing_content("OpenRouter response has no choices[0].message.content")
    return content
