from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from grammar_proxy.models import CanonicalResponse, ProviderName, ProviderRequest, ProviderResponse


@runtime_checkable
class ChatProvider(Protocol):
    """Protocol for upstream chat-completion providers."""

    name: ProviderName

    def build_request(
        self,
        messages: object,
        system_prompt: str,
        *,
        model: str | None = None,
    ) -> ProviderRequest:
        """Build the provider wire request from a chat history and a system prompt."""
        ...

    def normalize(self, response: ProviderResponse) -> CanonicalResponse:
        """Map a successful provider payload to the canonical response."""
        ...
