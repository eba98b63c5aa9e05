"""
OpenAI adapter.

The unified format is OpenAI's own, so requests and responses pass
through; only aliases are resolved to native model ids.
"""

import json
import logging
from typing import Optional, List, Dict, Any

from ..core.interface import ProviderAdapter, DONE_SENTINEL, map_finish_reason
from ..models.provider import ModelConfig, ProviderConfig
from ..models.request import ChatRequest
from ..models.response import ChatResponse, ChatStreamChunk

logger = logging.getLogger(__name__)


FINISH_REASONS = {
    "stop": "stop",
    "length": "length",
    "tool_calls": "tool_calls",
    "function_call": "tool_calls",
    "content_filter": "content_filter",
}


OPENAI_MODELS: List[Dict[str, Any]] = [
    {
        "id": "gpt-4o",
        "context_window": 128000,
        "max_output_tokens": 16384,
        "input_price_per_1m": 2.5,
        "output_price_per_1m": 10,
        "capabilities": ["chat", "vision", "tools", "json_mode"],
    },
    {
        "id": "gpt-4o-mini",
        "context_window": 128000,
        "max_output_tokens": 16384,
        "input_price_per_1m": 0.15,
        "output_price_per_1m": 0.6,
        "capabilities": ["chat", "vision", "tools", "json_mode"],
    },
    {
        "id": "gpt-4-turbo",
        "context_window": 128000,
        "max_output_tokens": 4096,
        "input_price_per_1m": 10,
        "output_price_per_1m": 30,
        "capabilities": ["chat", "vision", "tools", "json_mode"],
    },
    {
        "id": "gpt-4",
        "context_window": 8192,
        "max_output_tokens": 8192,
        "input_price_per_1m": 30,
        "output_price_per_1m": 60,
        "capabilities": ["chat", "tools"],
    },
    {
        "id": "gpt-3.5-turbo",
        "context_window": 16385,
        "max_output_tokens": 4096,
        "input_price_per_1m": 0.5,
        "output_price_per_1m": 1.5,
        "capabilities": ["chat", "tools", "json_mode"],
    },
    {
        "id": "o1",
        "context_window": 200000,
        "max_output_tokens": 100000,
        "input_price_per_1m": 15,
        "output_price_per_1m": 60,
        "capabilities": ["chat"],
    },
    {
        "id": "o1-mini",
        "context_window": 128000,
        "max_output_tokens": 65536,
        "input_price_per_1m": 3,
        "output_price_per_1m": 12,
        "capabilities": ["chat"],
    },
]


def build_models(defaults: List[Dict[str, Any]]) -> List[ModelConfig]:
    """Fresh ModelConfig instances so adapters never share mutable state."""
    return [ModelConfig(**spec) for spec in defaults]


class OpenAIAdapter(ProviderAdapter):
    """
    OpenAI chat completions adapter.

    Also the base for OpenAI-compatible providers (Groq, OpenRouter), which
    only differ in identity, defaults and auth headers.
    """

    PROVIDER_ID = "openai"
    PROVIDER_NAME = "OpenAI"
    BASE_URL = "https://api.openai.com/v1"
    DEFAULT_MODELS = OPENAI_MODELS

    def __init__(
        self,
        base_url: Optional[str] = None,
        models: Optional[List[ModelConfig]] = None,
        enabled: bool = True,
    ):
        """
        Initialize the adapter.

        Args:
            base_url: API base URL (defaults to the provider's public endpoint)
            models: Model list replacing the built-in defaults
            enabled: Initial provider state
        """
        self.config = ProviderConfig(
            id=self.PROVIDER_ID,
            name=self.PROVIDER_NAME,
            base_url=(base_url or self.BASE_URL).rstrip("/"),
            auth_header="Authorization",
            auth_scheme="Bearer",
            models=models if models is not None else build_models(self.DEFAULT_MODELS),
            enabled=enabled,
        )

    def transform_request(self, request: ChatRequest) -> Dict[str, Any]:
        data = request.to_openai_format()
        data["model"] = self.resolve_model_id(request.model)
        return data

    def transform_response(
        self,
        response: Any,
        request: Optional[ChatRequest] = None,
    ) -> ChatResponse:
        result = ChatResponse.model_validate(response)
        for choice in result.choices:
            choice.finish_reason = map_finish_reason(choice.finish_reason, FINISH_REASONS)
        return result

    def transform_stream_chunk(
        self,
        chunk: str,
        request: Optional[ChatRequest] = None,
    ) -> Optional[ChatStreamChunk]:
        if chunk == DONE_SENTINEL:
            return None
        try:
            return ChatStreamChunk.model_validate(json.loads(chunk))
        except ValueError:
            logger.debug(f"Skipping unparseable {self.config.id} stream payload")
            return None
