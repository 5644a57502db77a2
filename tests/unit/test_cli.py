from __future__ import annotations

from types import SimpleNamespace
from typing import TYPE_CHECKING

import pytest
import typer
from typer.testing import CliRunner

from grammar_proxy.cli import app, parse_history
from grammar_proxy.errors import UpstreamError
from grammar_proxy.models import CanonicalResponse

if TYPE_CHECKING:
    from pytest_mock import MockerFixture

runner = CliRunner()


def _fake_service(complete: object) -> SimpleNamespace:
    async def aclose() -> None:
        return None

    return SimpleNamespace(complete=complete, aclose=aclose)


def test_check_prints_correction(monkeypatch: pytest.MonkeyPatch) -> None:
    """The check command prints the canonical content."""
    captured: list[object] = []

    async def complete(payload: object) -> CanonicalResponse:
        captured.append(payload)
        return CanonicalResponse.from_text("I have an apple.")

    monkeypatch.setattr("grammar_proxy.cli._service", lambda: _fake_service(complete))

    result = runner.invoke(app, ["check", "I has a apple.", "--history", "assistant:Hello!"])

    assert result.exit_code == 0, result.stdout
    assert "I have an apple." in result.stdout
    assert captured == [
        {
            "messages": [
                {"role": "assistant", "content": "Hello!"},
                {"role": "user", "content": "I has a apple."},
            ],
        },
    ]


def test_check_reports_errors_with_exit_code(monkeypatch: pytest.MonkeyPatch) -> None:
    """Proxy errors print the envelope and exit non-zero."""

    async def complete(_payload: object) -> CanonicalResponse:
        raise UpstreamError("Rate limit exceeded", status=429)

    monkeypatch.setattr("grammar_proxy.cli._service", lambda: _fake_service(complete))

    result = runner.invoke(app, ["check", "hello"])

    assert result.exit_code == 1
    assert '"error": "Rate limit exceeded"' in result.stdout


def test_serve_runs_uvicorn_factory(mocker: MockerFixture) -> None:
    """serve hands the app factory to uvicorn."""
    run = mocker.patch("uvicorn.run")

    result = runner.invoke(app, ["serve", "--port", "9001"])

    assert result.exit_code == 0
    run.assert_called_once_with(
        "grammar_proxy.api:create_app",
        host="127.0.0.1",
        port=9001,
        reload=False,
        factory=True,
        log_level="info",
    )


def test_parse_history_requires_role_prefix() -> None:
    """History entries without a role prefix are rejected."""
    with pytest.raises(typer.BadParameter):
        parse_history(["no separator"])
