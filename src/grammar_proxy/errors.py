"""Error taxonomy shared by the provider adapters, the service and the HTTP layer."""

from __future__ import annotations

from enum import StrEnum

from grammar_proxy.models import ErrorEnvelope

DEFAULT_UPSTREAM_MESSAGE = "API request failed"


class ProxyError(Exception):
    """Base class for every failure reported to the caller in an error envelope."""

    status_code: int = 500

    def __init__(self, message: str, *, details: object | None = None, status_code: int | None = None) -> None:
        """Store the client-facing message, optional details and status override."""
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_envelope(self) -> ErrorEnvelope:
        """Render the error as the client-facing envelope."""
        return ErrorEnvelope(error=self.message, details=self.details)


class ValidationError(ProxyError):
    """Inbound payload is malformed."""

    status_code = 400


class ConfigurationError(ProxyError):
    """Server-side configuration is incomplete (for example a missing API key)."""

    status_code = 500


class MethodNotAllowedError(ProxyError):
    """HTTP method other than POST was used."""

    status_code = 405


class UpstreamErrorKind(StrEnum):
    """Classification of upstream failures."""

    HTTP_STATUS = "http_status"
    TRANSPORT = "transport"
    TIMEOUT = "timeout"


class UpstreamError(ProxyError):
    """Provider returned a non-2xx status or could not be reached."""

    kind: UpstreamErrorKind = UpstreamErrorKind.HTTP_STATUS

    def __init__(self, message: str, *, status: int, body: object | None = None) -> None:
        """Mirror the upstream status and keep the upstream body as details."""
        super().__init__(message, details=body, status_code=status)
        self.status = status
        self.body = body


class UpstreamTransportError(UpstreamError):
    """Network-level failure before any upstream status was received."""

    kind = UpstreamErrorKind.TRANSPORT

    def __init__(self, message: str) -> None:
        """Report transport failures as a bad gateway."""
        super().__init__(message, status=502)


class UpstreamTimeoutError(UpstreamError):
    """Upstream call exceeded the configured bounded wait."""

    kind = UpstreamErrorKind.TIMEOUT

    def __init__(self, timeout_seconds: float) -> None:
        """Report the expired wait as a gateway timeout."""
        super().__init__(f"Upstream request timed out after {timeout_seconds:g}s", status=504)
        self.timeout_seconds = timeout_seconds


class AdapterErrorKind(StrEnum):
    """Failures raised while mapping a successful upstream payload."""

    MISSING_CONTENT = "missing_content"


class AdapterError(ProxyError):
    """Upstream call succeeded but its payload could not be mapped to a canonical response."""

    status_code = 500

    def __init__(self, kind: AdapterErrorKind, detail: str) -> None:
        """Keep the kind so callers can tell adapter failures from transport ones."""
        super().__init__(
            "Invalid response format from the AI provider: no message content was returned.",
            details=detail,
        )
        self.kind = kind

    @classmethod
    def missing_content(cls, detail: str) -> AdapterError:
        """Build the error raised when no response text could be extracted."""
        return cls(AdapterErrorKind.MISSING_CONTENT, detail)


def extract_upstream_message(body: object) -> str:
    """Return the provider error message unchanged, falling back to the raw body text."""
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message:
                return message
        if isinstance(error, str) and error:
            return error
        return DEFAULT_UPSTREAM_MESSAGE
    if isinstance(body, str) and body.strip():
        return body
    return DEFAULT_UPSTREAM_MESSAGE
