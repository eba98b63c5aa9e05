"""
Anthropic Messages API adapter.

Anthropic keeps the system prompt outside the message list, requires
max_tokens, and streams typed events instead of OpenAI chunks.
"""

import json
import logging
from typing import Optional, List, Dict, Any

from ..core.interface import DONE_SENTINEL, ProviderAdapter, completion_id, map_finish_reason
from ..models.provider import ModelConfig, ProviderConfig
from ..models.request import ChatRequest, Message
from ..models.response import ChatResponse, ChatStreamChunk, Choice, ResponseMessage, ResponseToolCall, Usage
from .openai_adapter import build_models

logger = logging.getLogger(__name__)


ANTHROPIC_MODELS: List[Dict[str, Any]] = [
    {
        "id": "claude-opus-4-20250514",
        "alias": "claude-opus-4",
        "context_window": 200000,
        "max_output_tokens": 64000,
        "input_price_per_1m": 15,
        "output_price_per_1m": 75,
        "capabilities": ["chat", "vision", "tools"],
    },
    {
        "id": "claude-sonnet-4-20250514",
        "alias": "claude-sonnet-4",
        "context_window": 200000,
        "max_output_tokens": 64000,
        "input_price_per_1m": 3,
        "output_price_per_1m": 15,
        "capabilities": ["chat", "vision", "tools"],
    },
    {
        "id": "claude-3-7-sonnet-20250219",
        "alias": "claude-3.7-sonnet",
        "context_window": 200000,
        "max_output_tokens": 128000,
        "input_price_per_1m": 3,
        "output_price_per_1m": 15,
        "capabilities": ["chat", "vision", "tools"],
    },
    {
        "id": "claude-3-5-sonnet-20241022",
        "alias": "claude-3.5-sonnet",
        "context_window": 200000,
        "max_output_tokens": 8192,
        "input_price_per_1m": 3,
        "output_price_per_1m": 15,
        "capabilities": ["chat", "vision", "tools"],
    },
    {
        "id": "claude-3-5-haiku-20241022",
        "alias": "claude-3.5-haiku",
        "context_window": 200000,
        "max_output_tokens": 8192,
        "input_price_per_1m": 0.8,
        "output_price_per_1m": 4,
        "capabilities": ["chat", "vision", "tools"],
    },
    {
        "id": "claude-3-opus-20240229",
        "alias": "claude-3-opus",
        "context_window": 200000,
        "max_output_tokens": 4096,
        "input_price_per_1m": 15,
        "output_price_per_1m": 75,
        "capabilities": ["chat", "vision", "tools"],
    },
]

STOP_REASONS = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "max_tokens": "length",
    "tool_use": "tool_calls",
    "refusal": "content_filter",
}


class AnthropicAdapter(ProviderAdapter):
    """
    Anthropic Messages API adapter.

    Connects directly to Anthropic's Claude API.
    """

    ANTHROPIC_BASE_URL = "https://api.anthropic.com/v1"
    ANTHROPIC_VERSION = "2023-06-01"
    DEFAULT_MAX_TOKENS = 4096

    default_error_message = "Unknown Anthropic error"
    passes_error_code = False

    def __init__(
        self,
        base_url: Optional[str] = None,
        models: Optional[List[ModelConfig]] = None,
        enabled: bool = True,
    ):
        """
        Initialize Anthropic adapter.

        Args:
            base_url: Anthropic API URL (defaults to api.anthropic.com)
            models: Model list replacing the built-in defaults
            enabled: Initial provider state
        """
        self.config = ProviderConfig(
            id="anthropic",
            name="Anthropic",
            base_url=(base_url or self.ANTHROPIC_BASE_URL).rstrip("/"),
            auth_header="x-api-key",
            auth_scheme=None,
            models=models if models is not None else build_models(ANTHROPIC_MODELS),
            enabled=enabled,
        )

    def get_endpoint_url(self, endpoint, request=None, api_key=None) -> str:
        if endpoint == "chat":
            return f"{self.config.base_url}/messages"
        return f"{self.config.base_url}/models"

    def get_auth_headers(self, api_key: str) -> Dict[str, str]:
        return {
            "x-api-key": api_key,
            "anthropic-version": self.ANTHROPIC_VERSION,
        }

    def transform_request(self, request: ChatRequest) -> Dict[str, Any]:
        """Convert to Anthropic API format."""
        data: Dict[str, Any] = {
            "model": self.resolve_model_id(request.model),
            "max_tokens": request.max_tokens or self.DEFAULT_MAX_TOKENS,
            "messages": [self._convert_message(m) for m in request.non_system_messages()],
        }

        system = request.system_prompt()
        if system is not None:
            data["system"] = system

        if request.stream:
            data["stream"] = True

        if request.temperature is not None:
            data["temperature"] = request.temperature

        if request.top_p is not None:
            data["top_p"] = request.top_p

        if request.stop_sequences:
            data["stop_sequences"] = request.stop_sequences

        if request.tools:
            data["tools"] = [
                {
                    "name": tool.function.name,
                    "description": tool.function.description or "",
                    "input_schema": tool.function.parameters or {"type": "object", "properties": {}},
                }
                for tool in request.tools
            ]

        tool_choice = self._convert_tool_choice(request.tool_choice)
        if tool_choice is not None:
            data["tool_choice"] = tool_choice

        return data

    def _convert_message(self, message: Message) -> Dict[str, Any]:
        """Map one non-system message; tool results ride on user turns."""
        if message.role == "tool":
            if message.tool_call_id:
                return {
                    "role": "user",
                    "content": [{
                        "type": "tool_result",
                        "tool_use_id": message.tool_call_id,
                        "content": message.text,
                    }],
                }
            return {"role": "user", "content": message.text}

        if message.role == "assistant":
            if not message.tool_calls:
                return {"role": "assistant", "content": message.text}

            blocks: List[Dict[str, Any]] = []
            if message.text:
                blocks.append({"type": "text", "text": message.text})
            for call in message.tool_calls:
                blocks.append({
                    "type": "tool_use",
                    "id": call.id,
                    "name": call.function.get("name", ""),
                    "input": _parse_arguments(call.function.get("arguments")),
                })
            return {"role": "assistant", "content": blocks}

        if isinstance(message.content, list):
            blocks = [
                {"type": "text", "text": part.get("text", "")}
                for part in message.content
                if isinstance(part, dict) and part.get("type") == "text"
            ]
            return {"role": "user", "content": blocks}

        return {"role": "user", "content": message.text}

    @staticmethod
    def _convert_tool_choice(choice: Any) -> Optional[Dict[str, Any]]:
        if choice is None or choice == "none":
            return None
        if choice == "auto":
            return {"type": "auto"}
        if choice == "required":
            return {"type": "any"}
        if isinstance(choice, dict):
            name = (choice.get("function") or {}).get("name")
            if name:
                return {"type": "tool", "name": name}
        return None

    def transform_response(
        self,
        response: Any,
        request: Optional[ChatRequest] = None,
    ) -> ChatResponse:
        """Create a unified response from an Anthropic message."""
        content = ""
        tool_calls = []

        for block in response.get("content") or []:
            if block.get("type") == "text":
                content += block.get("text", "")
            elif block.get("type") == "tool_use":
                tool_calls.append(ResponseToolCall(
                    id=block.get("id", ""),
                    type="function",
                    function={
                        "name": block.get("name", ""),
                        "arguments": json.dumps(block.get("input") or {}),
                    },
                ))

        usage = None
        usage_data = response.get("usage")
        if usage_data:
            input_tokens = usage_data.get("input_tokens", 0)
            output_tokens = usage_data.get("output_tokens", 0)
            usage = Usage(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            )

        model = response.get("model") or (self.resolve_model_id(request.model) if request else "")

        return ChatResponse(
            id=response.get("id") or completion_id(),
            model=model,
            choices=[Choice(
                index=0,
                message=ResponseMessage(
                    role="assistant",
                    content=content,
                    tool_calls=tool_calls or None,
                ),
                finish_reason=map_finish_reason(response.get("stop_reason"), STOP_REASONS),
            )],
            usage=usage,
        )

    def transform_stream_chunk(
        self,
        chunk: str,
        request: Optional[ChatRequest] = None,
    ) -> Optional[ChatStreamChunk]:
        """
        Parse an Anthropic streaming event.

        Text deltas produce content chunks and the message_delta carrying
        stop_reason produces the terminal chunk. message_start,
        content_block_start/stop, message_stop, ping and error events are
        skipped, as is any event whose shape does not match.
        """
        if chunk == DONE_SENTINEL:
            return None

        try:
            event = json.loads(chunk)
        except ValueError:
            return None
        if not isinstance(event, dict):
            return None

        model = self.resolve_model_id(request.model) if request else ""
        try:
            return self._stream_event(event, model)
        except (AttributeError, TypeError, ValueError) as e:
            logger.debug(f"Skipping malformed Anthropic stream event: {e}")
            return None

    def _stream_event(self, event: Dict[str, Any], model: str) -> Optional[ChatStreamChunk]:
        event_type = event.get("type")
        delta = event.get("delta") or {}

        if event_type == "content_block_delta":
            if delta.get("type") == "text_delta":
                return ChatStreamChunk.build(
                    id=f"chunk-{event.get('index', 0)}",
                    model=model,
                    content=delta.get("text", ""),
                )

        elif event_type == "message_delta":
            reason = delta.get("stop_reason")
            if reason is not None:
                return ChatStreamChunk.build(
                    id="done",
                    model=model,
                    finish_reason=map_finish_reason(reason, STOP_REASONS),
                )

        return None


def _parse_arguments(arguments: Any) -> Dict[str, Any]:
    """Tool-call arguments arrive as a JSON string; Anthropic wants an object."""
    if isinstance(arguments, dict):
        return arguments
    if not arguments:
        return {}
    try:
        parsed = json.loads(arguments)
    except ValueError:
        return {"arguments": arguments}
    return parsed if isinstance(parsed, dict) else {"value": parsed}
