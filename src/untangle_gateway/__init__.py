"""
Untangle Gateway

One OpenAI-compatible API in front of many AI providers:
- Adapters translate requests, responses, streams and errors per provider
- A registry routes model ids and aliases to enabled providers
- Custom providers are declared with templates instead of code
"""

from .core.interface import ProviderAdapter
from .core.registry import ProviderRegistry
from .core.config import GatewayConfig, load_config
from .models.request import ChatRequest, Message, ToolCall
from .models.response import ChatResponse, ChatStreamChunk, Choice, Usage
from .models.provider import ModelConfig, ProviderConfig

__version__ = "0.1.0"

__all__ = [
    "ProviderAdapter",
    "ProviderRegistry",
    "GatewayConfig",
    "load_config",
    "ChatRequest",
    "ChatResponse",
    "ChatStreamChunk",
    "Message",
    "Choice",
    "Usage",
    "ToolCall",
    "ModelConfig",
    "ProviderConfig",
]
