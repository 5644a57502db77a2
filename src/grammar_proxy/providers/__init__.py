"""Upstream provider adapters and the factory that selects one from settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

from grammar_proxy.providers.gemini import GeminiProvider
from grammar_proxy.providers.openrouter import OpenRouterProvider
from grammar_proxy.providers.protocol import ChatProvider

if TYPE_CHECKING:
    from grammar_proxy.settings import Settings

__all__ = ["ChatProvider", "GeminiProvider", "OpenRouterProvider", "build_provider"]


def build_provider(app_settings: Settings) -> ChatProvider:
    """Select the configured provider adapter; raises ``ConfigurationError`` when its key is missing."""
    if app_settings.provider == "openrouter":
        return OpenRouterProvider.from_settings(app_settings)
    return GeminiProvider.from_settings(app_settings)
