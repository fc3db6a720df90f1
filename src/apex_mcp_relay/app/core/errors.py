from typing import Optional


class RelayError(Exception):
    """Base class for every failure surfaced to an MCP caller."""

    status_code: int = 500

    def __init__(self, message: str, detail: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code

    def to_body(self, expose_detail: bool = True) -> dict:
        body = {"error": self.message}
        if expose_detail and self.detail:
            body["detail"] = self.detail
        return body


class UpstreamAuthError(RelayError):
    """The APEX token endpoint rejected the credentials or failed."""


class UpstreamDataError(RelayError):
    """The APEX product endpoint failed or returned an unexpected body."""


class MalformedPayloadError(RelayError):
    """A product record carried a nested payload that could not be parsed."""


class UnauthorizedError(RelayError):
    status_code = 401


class UnsupportedRequestError(RelayError):
    status_code = 400


class ConfigurationError(ValueError):
    """Raised at startup when the environment cannot produce a RelayConfig."""
