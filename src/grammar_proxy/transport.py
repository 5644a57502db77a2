from __future__ import annotations

import asyncio
from time import perf_counter
from typing import TYPE_CHECKING, Any, cast

import httpx

from grammar_proxy.errors import (
    AdapterError,
    UpstreamError,
    UpstreamTimeoutError,
    UpstreamTransportError,
    extract_upstream_message,
)
from grammar_proxy.logger import BaseComponent

if TYPE_CHECKING:
    from grammar_proxy.models import ProviderRequest, ProviderResponse

DEFAULT_TIMEOUT_SECONDS = 30.0


class ProviderTransport(BaseComponent):
    """Sends one provider request over HTTP and returns the decoded JSON payload."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        """Wrap an optional shared client; one is created (and owned) when omitted."""
        if timeout_seconds <= 0:
            msg = "timeout_seconds must be positive"
            raise ValueError(msg)
        self._timeout_seconds = timeout_seconds
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def invoke(self, request: ProviderRequest) -> ProviderResponse:
        """Perform a single POST without retry and map failures to upstream errors."""
        self.log_start("invoke", provider=request.provider, url=request.redacted_url())
        start = perf_counter()
        try:
            async with asyncio.timeout(self._timeout_seconds):
                response = await self._client.post(
                    request.url,
                    headers=request.headers,
                    json=request.body,
                    timeout=self._timeout_seconds,
                )
        except (TimeoutError, httpx.TimeoutException) as exc:
            self.log_failure("invoke", provider=request.provider, reason="timeout")
            raise UpstreamTimeoutError(self._timeout_seconds) from exc
        except httpx.HTTPError as exc:
            self.log_failure("invoke", provider=request.provider, reason="transport", error=str(exc))
            error_message = f"Could not reach the AI provider: {exc}"
            raise UpstreamTransportError(error_message) from exc
        elapsed_seconds = perf_counter() - start

        body = _decode_body(response)
        if not response.is_success:
            message = extract_upstream_message(body)
            self.log_failure(
                "invoke",
                provider=request.provider,
                status=response.status_code,
                error=message,
                elapsed_seconds=elapsed_seconds,
            )
            raise UpstreamError(message, status=response.status_code, body=body)

        if not isinstance(body, dict):
            raise AdapterError.missing_content(f"{request.provider} returned a non-JSON success body")

        self.log_end("invoke", provider=request.provider, status=response.status_code, elapsed_seconds=elapsed_seconds)
        return cast("dict[str, Any]", body)

    async def aclose(self) -> None:
        """Close the underlying client when this transport created it."""
        if self._owns_client:
            await self._client.aclose()


def _decode_body(response: httpx.Response) -> object:
    try:
        return response.json()
    except ValueError:
        return response.text
