from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from grammar_proxy.errors import MethodNotAllowedError, ProxyError, ValidationError
from grammar_proxy.logger import configure_logging, get_logger
from grammar_proxy.models import ErrorEnvelope
from grammar_proxy.service import ChatProxyService
from grammar_proxy.settings import Settings, settings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

CHAT_PATH = "/api/chat"
INTERNAL_ERROR_MESSAGE = "An internal server error occurred."
ALLOWED_METHODS = "POST, OPTIONS"


def _is_json(content_type: str) -> bool:
    return content_type.split(";", 1)[0].strip().lower() == "application/json"


def create_app(app_settings: Settings | None = None, *, service: ChatProxyService | None = None) -> FastAPI:
    """Build the HTTP application around a single proxy service instance."""
    active_settings = app_settings or settings
    configure_logging(active_settings)
    proxy = service or ChatProxyService(active_settings)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        await proxy.aclose()

    app = FastAPI(title="grammar-proxy", lifespan=lifespan)
    app.state.service = proxy
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[active_settings.cors_allow_origin],
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(ProxyError)
    async def _proxy_error(_request: Request, exc: ProxyError) -> JSONResponse:
        headers = {"Allow": ALLOWED_METHODS} if isinstance(exc, MethodNotAllowedError) else None
        return JSONResponse(exc.to_envelope().to_payload(), status_code=exc.status_code, headers=headers)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        envelope = ErrorEnvelope(error=str(exc.detail))
        return JSONResponse(envelope.to_payload(), status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(Exception)
    async def _unexpected_error(_request: Request, exc: Exception) -> JSONResponse:
        get_logger(component="api").exception("unhandled_error", error=str(exc))
        envelope = ErrorEnvelope(error=INTERNAL_ERROR_MESSAGE, details=str(exc))
        # Served outside CORSMiddleware, so the browser needs the header set here.
        headers = {"Access-Control-Allow-Origin": active_settings.cors_allow_origin}
        return JSONResponse(envelope.to_payload(), status_code=500, headers=headers)

    @app.options(CHAT_PATH)
    async def chat_preflight() -> Response:
        return Response(status_code=200)

    @app.api_route(CHAT_PATH, methods=["GET", "HEAD", "PUT", "PATCH", "DELETE"])
    async def chat_method_not_allowed() -> Response:
        raise MethodNotAllowedError("Method Not Allowed")

    @app.post(CHAT_PATH)
    async def chat(request: Request) -> JSONResponse:
        """Forward the chat history to the AI provider and return the canonical response."""
        proxy.ensure_configured()
        if not _is_json(request.headers.get("content-type", "")):
            raise ValidationError("Bad Request: Content-Type must be application/json.")
        try:
            payload = await request.json()
        except ValueError as exc:
            raise ValidationError("Bad Request: request body is not valid JSON.") from exc

        result = await proxy.complete(payload)
        return JSONResponse(result.model_dump())

    return app
