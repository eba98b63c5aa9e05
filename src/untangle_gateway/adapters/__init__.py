"""
Provider adapters.
"""

from .openai_adapter import OpenAIAdapter
from .anthropic_adapter import AnthropicAdapter
from .google_adapter import GoogleAdapter
from .groq_adapter import GroqAdapter
from .openrouter_adapter import OpenRouterAdapter
from .custom_adapter import (
    CustomProviderAdapter,
    CustomProviderDefinition,
    create_custom_provider,
)

BUILTIN_ADAPTERS = {
    "openai": OpenAIAdapter,
    "anthropic": AnthropicAdapter,
    "google": GoogleAdapter,
    "groq": GroqAdapter,
    "openrouter": OpenRouterAdapter,
}

__all__ = [
    "OpenAIAdapter",
    "AnthropicAdapter",
    "GoogleAdapter",
    "GroqAdapter",
    "OpenRouterAdapter",
    "CustomProviderAdapter",
    "CustomProviderDefinition",
    "create_custom_provider",
    "BUILTIN_ADAPTERS",
]
