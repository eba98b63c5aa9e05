"""
Gateway data models.
"""

from .request import ChatRequest, Message, ToolCall, Tool, FunctionDefinition
from .response import (
    ChatResponse,
    ChatStreamChunk,
    Choice,
    ErrorBody,
    FinishReason,
    ModelCard,
    ResponseMessage,
    StreamChoice,
    StreamDelta,
    Usage,
)
from .provider import (
    DiscoveredModel,
    ModelCapability,
    ModelConfig,
    ProviderConfig,
    to_model_config,
)

__all__ = [
    "ChatRequest",
    "Message",
    "ToolCall",
    "Tool",
    "FunctionDefinition",
    "ChatResponse",
    "ChatStreamChunk",
    "Choice",
    "ErrorBody",
    "FinishReason",
    "ModelCard",
    "ResponseMessage",
    "StreamChoice",
    "StreamDelta",
    "Usage",
    "DiscoveredModel",
    "ModelCapability",
    "ModelConfig",
    "ProviderConfig",
    "to_model_config",
]
