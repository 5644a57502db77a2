from __future__ import annotations

import logging
import re
import sys
from collections.abc import Iterable, Mapping
from functools import cached_property
from pathlib import Path
from typing import TYPE_CHECKING, Literal, TypeAlias, cast

from pydantic import BaseModel, ConfigDict
from rich.console import Console
from rich.logging import RichHandler
import structlog
from structlog.processors import CallsiteParameter
from structlog.stdlib import BoundLogger

from grammar_proxy.settings import Settings, settings

if TYPE_CHECKING:
    from structlog.typing import EventDict, Processor, WrappedLogger

LogValue: TypeAlias = (
    str
    | bytes
    | int
    | float
    | bool
    | None
    | Mapping[str, "LogValue"]
    | list["LogValue"]
    | tuple["LogValue", ...]
)

REDACTED = "***"

# Gemini authenticates with ``?key=``; OpenRouter with ``Authorization: Bearer``.
_QUERY_KEY = re.compile(r"([?&]key=)[^&\s\"']+")
_BEARER_TOKEN = re.compile(r"(?i)(bearer\s+)[\w.~+/=-]+")

_LEVEL_STYLES: dict[str, str] = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bright_red",
}
_HEADER_KEYS = frozenset({"timestamp", "level", "component", "event", "direction"})


class LoggingConfigState(BaseModel):
    """Settings the logging pipeline was last configured with."""

    model_config = ConfigDict(arbitrary_types_allowed=True, validate_assignment=True)

    configured: bool = False
    active_settings: Settings = settings


_CONFIG_STATE = LoggingConfigState()


def scrub_credentials(text: str) -> str:
    """Mask provider API keys embedded in URLs and bearer tokens."""
    text = _QUERY_KEY.sub(rf"\g<1>{REDACTED}", text)
    return _BEARER_TOKEN.sub(rf"\g<1>{REDACTED}", text)


def redact_credentials(_logger: WrappedLogger, _name: str, event_dict: EventDict) -> EventDict:
    """Processor applying :func:`scrub_credentials` to every string in the event.

    Covers third-party records too: httpx logs each request line with its full
    URL, which for Gemini includes the key.
    """
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = scrub_credentials(value)
    return event_dict


def _console_renderer(_logger: WrappedLogger, _name: str, event_dict: EventDict) -> str:
    level = str(event_dict.get("level", "")).upper()
    component = event_dict.get("component")
    event = event_dict.get("event")
    direction = event_dict.get("direction")

    parts = [
        f"[dim]{event_dict['timestamp']}[/]" if event_dict.get("timestamp") else "",
        f"[{_LEVEL_STYLES.get(level, 'white')}]{level:>8}[/]" if level else "",
        f"[bold]{component}[/]" if component else "",
        f"[italic]{event}[/]" if event else "",
    ]
    if event == "io" and direction == "request":
        parts.append("[cyan]learner ➡ provider[/]")
    elif event == "io" and direction == "response":
        parts.append("[magenta]provider ➡ learner[/]")

    details = sorted((key, value) for key, value in event_dict.items() if key not in _HEADER_KEYS)
    parts.extend(f"[blue]{key}[/]=[white]{value}[/]" for key, value in details)

    return " ".join(part for part in parts if part) or str(event)


def _shared_pre_chain(app_settings: Settings) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if app_settings.log_verbose:
        processors.append(
            structlog.processors.CallsiteParameterAdder(  # type: ignore[arg-type]
                parameters=(CallsiteParameter.FUNC_NAME, CallsiteParameter.LINENO),
            ),
        )
    return processors


def _build_handlers(app_settings: Settings) -> list[logging.Handler]:
    foreign_pre_chain = [*_shared_pre_chain(app_settings), redact_credentials]
    handlers: list[logging.Handler] = []

    if app_settings.log_destination in {"stdout", "both"}:
        console_handler = RichHandler(
            console=Console(file=sys.stdout, force_terminal=True, width=200),
            rich_tracebacks=True,
            show_time=False,
            markup=True,
        )
        console_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(  # type: ignore[arg-type]
                processor=_console_renderer,
                foreign_pre_chain=foreign_pre_chain,
            ),
        )
        handlers.append(console_handler)

    if app_settings.log_destination in {"file", "both"}:
        log_path = Path(app_settings.log_file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(  # type: ignore[arg-type]
                processor=structlog.processors.JSONRenderer(ensure_ascii=False),
                foreign_pre_chain=foreign_pre_chain,
            ),
        )
        handlers.append(file_handler)

    return handlers


def configure_logging(app_settings: Settings | None = None, *, force: bool = False) -> None:
    """Route structlog and stdlib records to the console and/or a JSON-lines file."""
    if force:
        structlog.reset_defaults()
        _CONFIG_STATE.configured = False
    if app_settings is not None:
        _CONFIG_STATE.active_settings = app_settings
    if _CONFIG_STATE.configured:
        return

    active_settings = _CONFIG_STATE.active_settings
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    for handler in _build_handlers(active_settings):
        root_logger.addHandler(handler)
    root_logger.setLevel(logging.getLevelNamesMapping().get(active_settings.log_level.upper(), logging.INFO))

    structlog.configure(
        processors=[
            *_shared_pre_chain(active_settings),
            structlog.processors.format_exc_info,
            redact_credentials,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )
    _CONFIG_STATE.configured = True


def get_logger(*, component: str | None = None) -> BoundLogger:
    """Return a structlog logger bound to the optional component name."""
    configure_logging()
    logger = structlog.get_logger()
    if component:
        return logger.bind(component=component)
    return logger


class BaseComponent:
    """Mixin giving proxy components a bound logger and standard lifecycle events."""

    @cached_property
    def logger(self) -> BoundLogger:
        """Return a logger bound with the current class name."""
        return get_logger(component=self.__class__.__name__)

    def log_start(self, action: str, **kwargs: LogValue) -> None:
        """Emit a ``start`` event."""
        self.logger.info("start", action=action, **kwargs)

    def log_end(self, action: str, **kwargs: LogValue) -> None:
        """Emit an ``end`` event."""
        self.logger.info("end", action=action, **kwargs)

    def log_failure(self, action: str, **kwargs: LogValue) -> None:
        """Emit a ``failure`` event at error level."""
        self.logger.error("failure", action=action, **kwargs)

    def log_io(self, direction: Literal["request", "response"], **kwargs: LogValue) -> None:
        """Log learner text going to or coming from the provider.

        Text is reduced to its length unless ``ALLOW_SENSITIVE_LOGGING`` is set.
        """
        if not _CONFIG_STATE.active_settings.allow_sensitive_logging:
            kwargs = redact_learner_text(kwargs)
        self.logger.info("io", direction=direction, **kwargs)


def redact_learner_text(payload: Mapping[str, LogValue]) -> dict[str, LogValue]:
    """Replace every string in ``payload`` with a length marker, keeping structure and roles."""
    return {key: value if key == "role" else _redact(value) for key, value in payload.items()}


def _redact(value: LogValue) -> LogValue:
    if isinstance(value, str):
        return f"<redacted text length={len(value)}>"
    if isinstance(value, bytes):
        return f"<bytes length={len(value)}>"
    if isinstance(value, Mapping):
        return redact_learner_text(cast("Mapping[str, LogValue]", value))
    if isinstance(value, (list, tuple)):
        items = [_redact(item) for item in cast("Iterable[LogValue]", value)]
        return items if isinstance(value, list) else tuple(items)
    return value
