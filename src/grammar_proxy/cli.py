from __future__ import annotations

import asyncio
import json

import typer
from rich.console import Console

from grammar_proxy.errors import ProxyError
from grammar_proxy.models import CanonicalResponse
from grammar_proxy.service import ChatProxyService
from grammar_proxy.settings import settings

app = typer.Typer(help="Grammar-correction proxy in front of OpenRouter or Gemini.")
console = Console()

MISSING_HISTORY_FORMAT_ERROR = "History entries must use the 'role:content' format."

HISTORY_OPTION: list[str] | None = typer.Option(
    None,
    help="Prior turns as 'role:content'; may be given several times.",
    show_default=False,
)


def parse_history(history: list[str]) -> list[dict[str, str]]:
    """Convert history strings into ``{role, content}`` entries."""
    messages: list[dict[str, str]] = []
    for entry in history:
        if ":" not in entry:
            raise typer.BadParameter(MISSING_HISTORY_FORMAT_ERROR)
        role, content = entry.split(":", 1)
        messages.append({"role": role.strip(), "content": content.strip()})
    return messages


def _service() -> ChatProxyService:
    return ChatProxyService(settings)


async def _complete(payload: dict[str, object]) -> CanonicalResponse:
    service = _service()
    try:
        return await service.complete(payload)
    finally:
        await service.aclose()


@app.command("check")
def check(
    sentence: str,
    history: list[str] | None = HISTORY_OPTION,
    model: str | None = typer.Option(None, help="Override the model (requires ALLOW_MODEL_OVERRIDE)."),
) -> None:
    """Send one sentence through the proxy and print the correction."""
    messages = parse_history(history or [])
    messages.append({"role": "user", "content": sentence})
    payload: dict[str, object] = {"messages": messages}
    if model:
        payload["model"] = model

    try:
        with console.status(f"Checking with {settings.provider}...", spinner="dots"):
            response = asyncio.run(_complete(payload))
    except ProxyError as exc:
        console.print(json.dumps(exc.to_envelope().to_payload(), ensure_ascii=False, default=str), markup=False)
        raise typer.Exit(code=1) from exc
    console.print(response.content, markup=False)


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Interface to bind."),
    port: int = typer.Option(8000, help="Port to listen on."),
    reload: bool = typer.Option(False, help="Reload on code changes."),
) -> None:
    """Run the HTTP API under uvicorn."""
    import uvicorn

    uvicorn.run(
        "grammar_proxy.api:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
        log_level="info",
    )


def main() -> None:
    """Entrypoint for the CLI application."""
    app()


if __name__ == "__main__":
    main()
