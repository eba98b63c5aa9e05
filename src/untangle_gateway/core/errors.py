"""
Gateway error types.

Each error knows the HTTP status and unified error type/code it maps to,
so the request boundary can turn it into `{"error": {...}}` directly.
"""

from typing import Any, Dict, Optional

from ..models.response import ErrorBody

# Upstream statuses passed through verbatim; anything else collapses.
PASSTHROUGH_STATUSES = frozenset({400, 401, 403, 404, 408, 409, 422, 429, 500, 502, 503, 504})


class GatewayError(Exception):
    """Base exception for gateway errors."""

    status_code: int = 500
    error_type: str = "internal_error"
    code: Optional[str] = None

    def __init__(self, message: str, provider: str = None):
        self.message = message
        self.provider = provider
        super().__init__(message)

    def to_body(self) -> ErrorBody:
        return ErrorBody.of(self.message, self.error_type, self.code)

    def to_dict(self) -> Dict[str, Any]:
        return self.to_body().to_dict()


class InvalidRequestError(GatewayError):
    """Raised when the client body is malformed."""
    status_code = 400
    error_type = "invalid_request_error"


class ModelNotFoundError(GatewayError):
    """Raised when no enabled provider serves the requested model."""
    status_code = 404
    error_type = "invalid_request_error"
    code = "model_not_found"

    def __init__(self, model: str):
        super().__init__(f"Model not found: {model}")
        self.model = model


class MissingApiKeyError(GatewayError):
    """Raised when the resolved provider has no credential."""
    status_code = 401
    error_type = "authentication_error"
    code = "missing_api_key"

    def __init__(self, provider: str):
        super().__init__(f"No API key configured for provider: {provider}", provider=provider)


class UpstreamError(GatewayError):
    """Raised when the upstream provider answers with a non-2xx status."""
    error_type = "api_error"

    def __init__(
        self,
        message: str,
        provider: str = None,
        upstream_status: int = 502,
        error_type: str = "api_error",
        code: Optional[str] = None,
    ):
        super().__init__(message, provider=provider)
        self.upstream_status = upstream_status
        self.status_code = map_upstream_status(upstream_status)
        self.error_type = error_type
        self.code = code

    @classmethod
    def from_body(cls, body: ErrorBody, provider: str, upstream_status: int) -> "UpstreamError":
        return cls(
            body.error.message,
            provider=provider,
            upstream_status=upstream_status,
            error_type=body.error.type,
            code=body.error.code,
        )


class TemplateError(GatewayError):
    """Base class for custom-provider template failures."""


class TemplateCompileError(TemplateError):
    """Raised when a template fails to compile at registration time."""


class TemplateRenderError(TemplateError):
    """Raised when a template fails to render or its output is not valid JSON."""


def map_upstream_status(status: int) -> int:
    """
    Map an upstream HTTP status onto the statuses the gateway answers with.

    Args:
        status: Upstream status code

    Returns:
        The same status when whitelisted, 400 for other 4xx, 502 otherwise
    """
    if status in PASSTHROUGH_STATUSES:
        return status
    if 400 <= status < 500:
        return 400
    return 502


def internal_error(exc: BaseException) -> ErrorBody:
    """Unified body for unexpected failures."""
    return ErrorBody.of(str(exc) or "Internal server error", "internal_error")
