"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeAlias
from dataclasses import dataclass, field

import httpx
import pytest

from grammar_proxy.settings import Settings
from grammar_proxy.transport import ProviderTransport

Handler: TypeAlias = Callable[[httpx.Request], httpx.Response]


@dataclass
class RecordingUpstream:
    """httpx mock transport that records every outbound request."""

    handler: Handler
    requests: list[httpx.Request] = field(default_factory=list)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def transport(self, *, timeout_seconds: float = 5.0) -> ProviderTransport:
        client = httpx.AsyncClient(transport=httpx.MockTransport(self))
        return ProviderTransport(client, timeout_seconds=timeout_seconds)


@pytest.fixture
def upstream() -> Callable[..., RecordingUpstream]:
    """Build a recording upstream answering with a fixed status and JSON body."""

    def _factory(status_code: int = 200, json: object | None = None, text: str | None = None) -> RecordingUpstream:
        def handler(_request: httpx.Request) -> httpx.Response:
            if text is not None:
                return httpx.Response(status_code, text=text)
            return httpx.Response(status_code, json=json if json is not None else {})

        return RecordingUpstream(handler)

    return _factory


@pytest.fixture
def gemini_settings() -> Settings:
    """Settings selecting Gemini with a fake key."""
    return Settings.model_validate({"PROVIDER": "gemini", "GEMINI_API_KEY": "test-gemini-key"})


@pytest.fixture
def openrouter_settings() -> Settings:
    """Settings selecting OpenRouter with a fake key."""
    return Settings.model_validate({"PROVIDER": "openrouter", "OPENROUTER_API_KEY": "test-openrouter-key"})
