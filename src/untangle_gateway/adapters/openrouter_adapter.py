"""
OpenRouter adapter.

OpenRouter aggregates many upstream models behind an OpenAI-compatible
API. Its model ids use the `vendor/model` form; the defaults carry
`or-` aliases so they do not collide with first-party providers.
"""

from typing import List, Dict, Any

from .openai_adapter import OpenAIAdapter


OPENROUTER_MODELS: List[Dict[str, Any]] = [
    {
        "id": "anthropic/claude-opus-4",
        "alias": "or-claude-opus-4",
        "context_window": 200000,
        "max_output_tokens": 64000,
        "input_price_per_1m": 15,
        "output_price_per_1m": 75,
        "capabilities": ["chat", "vision", "tools"],
    },
    {
        "id": "anthropic/claude-sonnet-4",
        "alias": "or-claude-sonnet-4",
        "context_window": 200000,
        "max_output_tokens": 64000,
        "input_price_per_1m": 3,
        "output_price_per_1m": 15,
        "capabilities": ["chat", "vision", "tools"],
    },
    {
        "id": "anthropic/claude-3.5-sonnet",
        "alias": "or-claude-3.5-sonnet",
        "context_window": 200000,
        "max_output_tokens": 8192,
        "input_price_per_1m": 3,
        "output_price_per_1m": 15,
        "capabilities": ["chat", "vision", "tools"],
    },
    {
        "id": "openai/gpt-4o",
        "alias": "or-gpt-4o",
        "context_window": 128000,
        "max_output_tokens": 16384,
        "input_price_per_1m": 2.5,
        "output_price_per_1m": 10,
        "capabilities": ["chat", "vision", "tools", "json_mode"],
    },
    {
        "id": "google/gemini-2.0-flash-exp",
        "alias": "or-gemini-2.0-flash",
        "context_window": 1000000,
        "max_output_tokens": 8192,
        "input_price_per_1m": 0,
        "output_price_per_1m": 0,
        "capabilities": ["chat", "vision", "tools"],
    },
    {
        "id": "meta-llama/llama-3.3-70b-instruct",
        "alias": "or-llama-3.3-70b",
        "context_window": 131072,
        "max_output_tokens": 8192,
        "input_price_per_1m": 0.4,
        "output_price_per_1m": 0.4,
        "capabilities": ["chat", "tools"],
    },
]


class OpenRouterAdapter(OpenAIAdapter):
    """OpenRouter aggregator adapter."""

    PROVIDER_ID = "openrouter"
    PROVIDER_NAME = "OpenRouter"
    BASE_URL = "https://openrouter.ai/api/v1"
    DEFAULT_MODELS = OPENROUTER_MODELS

    REFERER = "https://untangle-ai.dev"
    TITLE = "untangle-ai"

    default_error_message = "Unknown OpenRouter error"

    def get_auth_headers(self, api_key: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "HTTP-Referer": self.REFERER,
            "X-Title": self.TITLE,
        }
