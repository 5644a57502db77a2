"""Pydantic data models shared by the providers, the service and the HTTP layer."""

from __future__ import annotations

from typing import Any, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant", "system"]
ProviderName = Literal["openrouter", "gemini"]

ProviderResponse: TypeAlias = dict[str, Any]


class ChatMessage(BaseModel):
    """Represents a single chat message."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    role: Role
    content: str


class ChatRequest(BaseModel):
    """Inbound request body sent by the browser client."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    model: str | None = None
    messages: tuple[ChatMessage, ...]


class ProviderRequest(BaseModel):
    """Provider-specific wire request ready to be sent."""

    model_config = ConfigDict(frozen=True)

    provider: ProviderName
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: dict[str, Any]

    def redacted_url(self) -> str:
        """Return the URL without its query string, which may carry the API key."""
        return self.url.split("?", 1)[0]


class ChoiceMessage(BaseModel):
    """Message payload inside a canonical choice."""

    content: str


class Choice(BaseModel):
    """Single canonical choice."""

    message: ChoiceMessage


class CanonicalResponse(BaseModel):
    """The one response shape clients receive regardless of the upstream provider."""

    choices: list[Choice]

    @classmethod
    def from_text(cls, text: str) -> CanonicalResponse:
        """Wrap response text into the canonical envelope."""
        return cls(choices=[Choice(message=ChoiceMessage(content=text))])

    @property
    def content(self) -> str:
        """Return the text of the first choice."""
        return self.choices[0].message.content


class ErrorEnvelope(BaseModel):
    """Failure body returned to the caller."""

    error: str
    details: Any | None = None

    def to_payload(self) -> dict[str, Any]:
        """Dump the envelope, omitting ``details`` when there are none."""
        payload: dict[str, Any] = {"error": self.error}
        if self.details is not None:
            payload["details"] = self.details
        return payload
