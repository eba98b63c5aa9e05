"""
Google AI (Gemini) adapter.

Gemini puts the model id in the URL path, calls the assistant role
"model", carries system text in `systemInstruction`, and reports usage as
`usageMetadata`.
"""

import json
import logging
from typing import Optional, List, Dict, Any

from ..core.interface import DONE_SENTINEL, ProviderAdapter, map_finish_reason
from ..models.provider import ModelConfig, ProviderConfig
from ..models.request import ChatRequest
from ..models.response import (
    ChatResponse,
    ChatStreamChunk,
    Choice,
    ResponseMessage,
    ResponseToolCall,
    StreamChoice,
    StreamDelta,
    Usage,
    unix_now,
)
from .openai_adapter import build_models

logger = logging.getLogger(__name__)


GOOGLE_MODELS: List[Dict[str, Any]] = [
    {
        "id": "gemini-2.0-flash",
        "context_window": 1048576,
        "max_output_tokens": 8192,
        "input_price_per_1m": 0.10,
        "output_price_per_1m": 0.40,
        "capabilities": ["chat", "vision", "tools"],
    },
    {
        "id": "gemini-1.5-pro",
        "context_window": 2097152,
        "max_output_tokens": 8192,
        "input_price_per_1m": 1.25,
        "output_price_per_1m": 5.00,
        "capabilities": ["chat", "vision", "tools"],
    },
    {
        "id": "gemini-1.5-flash",
        "context_window": 1048576,
        "max_output_tokens": 8192,
        "input_price_per_1m": 0.075,
        "output_price_per_1m": 0.30,
        "capabilities": ["chat", "vision", "tools"],
    },
]

FINISH_REASONS = {
    "STOP": "stop",
    "MAX_TOKENS": "length",
    "SAFETY": "content_filter",
    "RECITATION": "content_filter",
    "BLOCKLIST": "content_filter",
    "PROHIBITED_CONTENT": "content_filter",
    "SPII": "content_filter",
}


class GoogleAdapter(ProviderAdapter):
    """
    Google Generative Language API adapter.

    Supports:
    - Gemini 2.0 Flash
    - Gemini 1.5 Pro, Flash
    """

    GOOGLE_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    FALLBACK_MODEL = "gemini-1.5-flash"

    default_error_message = "Unknown Google AI error"
    error_type_field = "status"
    passes_error_code = False

    def __init__(
        self,
        base_url: Optional[str] = None,
        models: Optional[List[ModelConfig]] = None,
        enabled: bool = True,
    ):
        """
        Initialize Google adapter.

        Args:
            base_url: API URL (defaults to the v1beta Generative Language API)
            models: Model list replacing the built-in defaults
            enabled: Initial provider state
        """
        self.config = ProviderConfig(
            id="google",
            name="Google AI",
            base_url=(base_url or self.GOOGLE_BASE_URL).rstrip("/"),
            auth_header="x-goog-api-key",
            auth_scheme=None,
            models=models if models is not None else build_models(GOOGLE_MODELS),
            enabled=enabled,
        )

    def _model_for(self, request: Optional[ChatRequest]) -> str:
        """Canonical id of the requested model; unknown ids pass through verbatim."""
        requested = request.model if request else self.FALLBACK_MODEL
        return self.resolve_model_id(requested)

    def get_endpoint_url(self, endpoint, request=None, api_key=None) -> str:
        if endpoint == "chat":
            model_id = self._model_for(request)
            if request is not None and request.stream:
                return f"{self.config.base_url}/models/{model_id}:streamGenerateContent?alt=sse"
            return f"{self.config.base_url}/models/{model_id}:generateContent"
        return f"{self.config.base_url}/models"

    def get_auth_headers(self, api_key: str) -> Dict[str, str]:
        return {"x-goog-api-key": api_key}

    def transform_request(self, request: ChatRequest) -> Dict[str, Any]:
        """Build a generateContent payload."""
        contents = []
        call_names: Dict[str, str] = {}
        for msg in request.non_system_messages():
            if msg.role == "tool":
                contents.append({
                    "role": "user",
                    "parts": [{
                        "functionResponse": {
                            "name": call_names.get(msg.tool_call_id or "", msg.name or ""),
                            "response": _tool_result(msg.text),
                        },
                    }],
                })
                continue

            role = "model" if msg.role == "assistant" else "user"
            parts: List[Dict[str, Any]] = [{"text": msg.text}]
            if msg.tool_calls:
                parts = [p for p in parts if p["text"]]
                for call in msg.tool_calls:
                    name = call.function.get("name", "")
                    call_names[call.id] = name
                    parts.append({
                        "functionCall": {
                            "name": name,
                            "args": _parse_args(call.function.get("arguments")),
                        },
                    })
            contents.append({"role": role, "parts": parts})

        payload: Dict[str, Any] = {"contents": contents}

        system = request.system_prompt()
        if system is not None:
            payload["systemInstruction"] = {"parts": [{"text": system}]}

        generation_config: Dict[str, Any] = {}
        if request.temperature is not None:
            generation_config["temperature"] = request.temperature
        if request.top_p is not None:
            generation_config["topP"] = request.top_p
        if request.max_tokens is not None:
            generation_config["maxOutputTokens"] = request.max_tokens
        if request.stop_sequences:
            generation_config["stopSequences"] = request.stop_sequences
        if generation_config:
            payload["generationConfig"] = generation_config

        if request.tools:
            payload["tools"] = [{
                "functionDeclarations": [
                    tool.function.model_dump(exclude_none=True) for tool in request.tools
                ],
            }]

        return payload

    def transform_response(
        self,
        response: Any,
        request: Optional[ChatRequest] = None,
    ) -> ChatResponse:
        """Parse a generateContent response."""
        candidates = response.get("candidates") or []
        candidate = candidates[0] if candidates else {}
        parts = (candidate.get("content") or {}).get("parts") or []

        content = "".join(p.get("text", "") for p in parts if "text" in p)
        tool_calls = [
            ResponseToolCall(
                id=f"call_{index}",
                type="function",
                function={
                    "name": p["functionCall"].get("name", ""),
                    "arguments": json.dumps(p["functionCall"].get("args") or {}),
                },
            )
            for index, p in enumerate(parts)
            if "functionCall" in p
        ]

        finish_reason = map_finish_reason(candidate.get("finishReason"), FINISH_REASONS)
        if tool_calls and finish_reason == "stop":
            finish_reason = "tool_calls"

        usage = None
        metadata = response.get("usageMetadata")
        if metadata:
            usage = Usage(
                prompt_tokens=metadata.get("promptTokenCount", 0),
                completion_tokens=metadata.get("candidatesTokenCount", 0),
                total_tokens=metadata.get("totalTokenCount", 0),
            )

        now = unix_now()
        return ChatResponse(
            id=f"google-{now}",
            created=now,
            model=self._model_for(request),
            choices=[Choice(
                index=0,
                message=ResponseMessage(
                    role="assistant",
                    content=content,
                    tool_calls=tool_calls or None,
                ),
                finish_reason=finish_reason,
            )],
            usage=usage,
        )

    def transform_stream_chunk(
        self,
        chunk: str,
        request: Optional[ChatRequest] = None,
    ) -> Optional[ChatStreamChunk]:
        """
        Parse one streamGenerateContent event.

        Each event is a partial GenerateContentResponse. Text becomes a
        content delta and functionCall parts become tool_calls deltas; a
        finishReason alone becomes the terminal chunk. Events of any other
        shape are skipped.
        """
        if chunk == DONE_SENTINEL:
            return None

        try:
            data = json.loads(chunk)
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None

        try:
            return self._stream_event(data, request)
        except (AttributeError, TypeError, ValueError) as e:
            logger.debug(f"Skipping malformed Google stream event: {e}")
            return None

    def _stream_event(self, data: Dict[str, Any], request: Optional[ChatRequest]) -> Optional[ChatStreamChunk]:
        candidates = data.get("candidates") or []
        if not candidates:
            return None

        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
        tool_calls = [
            {
                "index": index,
                "id": f"call_{index}",
                "type": "function",
                "function": {
                    "name": p["functionCall"].get("name", ""),
                    "arguments": json.dumps(p["functionCall"].get("args") or {}),
                },
            }
            for index, p in enumerate(parts)
            if isinstance(p, dict) and "functionCall" in p
        ]
        reason = candidate.get("finishReason")

        if not text and not tool_calls and not reason:
            return None

        finish_reason = map_finish_reason(reason, FINISH_REASONS) if reason else None
        if tool_calls and finish_reason == "stop":
            finish_reason = "tool_calls"

        return ChatStreamChunk(
            id=f"google-{unix_now()}",
            model=self._model_for(request),
            choices=[StreamChoice(
                index=0,
                delta=StreamDelta(content=text or None, tool_calls=tool_calls or None),
                finish_reason=finish_reason,
            )],
        )


def _parse_args(arguments: Any) -> Dict[str, Any]:
    if isinstance(arguments, dict):
        return arguments
    try:
        parsed = json.loads(arguments or "{}")
    except ValueError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _tool_result(text: str) -> Dict[str, Any]:
    """functionResponse.response must be an object; plain results are wrapped."""
    try:
        parsed = json.loads(text)
    except ValueError:
        return {"content": text}
    return parsed if isinstance(parsed, dict) else {"content": text}
