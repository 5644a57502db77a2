from __future__ import annotations

import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, cast

from grammar_proxy.errors import AdapterError, ValidationError
from grammar_proxy.logger import BaseComponent
from grammar_proxy.models import CanonicalResponse, ChatMessage, ProviderName, ProviderRequest, ProviderResponse
from grammar_proxy.validation import parse_messages

if TYPE_CHECKING:
    from grammar_proxy.settings import Settings

_ROLE_MAP: dict[str, str] = {"assistant": "model", "user": "user"}
_MODEL_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class GeminiProvider(BaseComponent):
    """Adapter for the Gemini ``generateContent`` REST API."""

    name: ProviderName = "gemini"

    def __init__(
        self,
        api_key: str,
        default_model: str,
        *,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        temperature: float = 0.7,
        max_output_tokens: int = 1000,
    ) -> None:
        """Create an adapter bound to a key, endpoint and generation defaults."""
        self._api_key = api_key
        self._default_model = default_model
        self._base_url = base_url.rstrip("/")
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens

    @classmethod
    def from_settings(cls, app_settings: Settings) -> GeminiProvider:
        """Build the adapter from application settings."""
        return cls(
            app_settings.api_key_for("gemini"),
            app_settings.model_for("gemini"),
            base_url=app_settings.base_url_for("gemini"),
            temperature=app_settings.default_temperature,
            max_output_tokens=app_settings.max_output_tokens,
        )

    def build_request(
        self,
        messages: object,
        system_prompt: str,
        *,
        model: str | None = None,
    ) -> ProviderRequest:
        """Convert the history to Gemini contents and carry the prompt as a system instruction."""
        chat_messages = parse_messages(messages)
        resolved_model = model or self._default_model
        if not _MODEL_NAME.fullmatch(resolved_model):
            error_message = f"Bad Request: invalid Gemini model name {resolved_model!r}."
            raise ValidationError(error_message)
        contents = _to_contents(chat_messages)
        self.log_start(
            "gemini_build_request",
            model=resolved_model,
            message_count=len(contents),
            dropped_system=len(chat_messages) - len(contents),
        )
        return ProviderRequest(
            provider=self.name,
            url=f"{self._base_url}/models/{resolved_model}:generateContent?key={self._api_key}",
            headers={"Content-Type": "application/json"},
            body={
                "contents": contents,
                "systemInstruction": {"parts": [{"text": system_prompt}]},
                "generationConfig": {
                    "temperature": self._temperature,
                    "maxOutputTokens": self._max_output_tokens,
                },
            },
        )

    def normalize(self, response: ProviderResponse) -> CanonicalResponse:
        """Extract ``candidates[0].content.parts[0].text`` into the canonical shape."""
        return CanonicalResponse.from_text(extract_gemini_text(response))


def _to_contents(messages: list[ChatMessage]) -> list[dict[str, object]]:
    # System entries never enter contents; the prompt travels in systemInstruction.
    return [
        {"role": _ROLE_MAP[msg.role], "parts": [{"text": msg.content}]}
        for msg in messages
        if msg.role != "system"
    ]


def extract_gemini_text(response: object) -> str:
    """Return the first candidate's first text part, or raise when there is none."""
    if not isinstance(response, Mapping):
        raise AdapterError.missing_content("Gemini response is not a JSON object")
    candidates = cast("Mapping[str, Any]", response).get("candidates")
    if not isinstance(candidates, list) or not candidates:
        block_reason = _block_reason(cast("Mapping[str, Any]", response))
        detail = "Gemini response has no candidates"
        if block_reason:
            detail = f"{detail} (blockReason={block_reason})"
        raise AdapterError.missing_content(detail)

    first = cast("list[Any]", candidates)[0]
    content = first.get("content") if isinstance(first, Mapping) else None
    parts = content.get("parts") if isinstance(content, Mapping) else None
    part = parts[0] if isinstance(parts, list) and parts else None
    text = part.get("text") if isinstance(part, Mapping) else None
    if not isinstance(text, str) or not text.strip():
        finish_reason = first.get("finishReason") if isinstance(first, Mapping) else None
        detail = "Gemini response has no candidates[0].content.parts[0].text"
        if finish_reason:
            detail = f"{detail} (finishReason={finish_reason})"
        raise AdapterError.missing_content(detail)
    return text


def _block_reason(response: Mapping[str, Any]) -> str | None:
    feedback = response.get("promptFeedback")
    if isinstance(feedback, Mapping):
        reason = cast("Mapping[str, Any]", feedback).get("blockReason")
        return str(reason) if reason else None
    return None
