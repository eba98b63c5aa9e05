"""
Core gateway components.
"""

from .interface import ProviderAdapter, EndpointKind, DONE_SENTINEL
from .registry import ProviderRegistry, ModelEntry
from .config import GatewayConfig, ProviderSettings, ServerConfig, load_config
from .errors import (
    GatewayError,
    InvalidRequestError,
    MissingApiKeyError,
    ModelNotFoundError,
    TemplateCompileError,
    TemplateError,
    TemplateRenderError,
    UpstreamError,
    map_upstream_status,
)
from .tokens import estimate_tokens, estimate_message_tokens

__all__ = [
    "ProviderAdapter",
    "EndpointKind",
    "DONE_SENTINEL",
    "ProviderRegistry",
    "ModelEntry",
    "GatewayConfig",
    "ProviderSettings",
    "ServerConfig",
    "load_config",
    "GatewayError",
    "InvalidRequestError",
    "MissingApiKeyError",
    "ModelNotFoundError",
    "TemplateCompileError",
    "TemplateError",
    "TemplateRenderError",
    "UpstreamError",
    "map_upstream_status",
    "estimate_tokens",
    "estimate_message_tokens",
]
