"""Grammar-correction proxy for OpenRouter- and Gemini-compatible chat APIs."""

from grammar_proxy.models import CanonicalResponse, ChatMessage
from grammar_proxy.service import ChatProxyService

__all__ = ["CanonicalResponse", "ChatMessage", "ChatProxyService"]
