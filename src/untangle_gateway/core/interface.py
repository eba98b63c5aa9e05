"""
Provider adapter interface.

Defines the contract every provider adapter implements: pure translation
between the unified (OpenAI-compatible) format and one provider's native
wire format, plus endpoint and auth construction. Adapters never do I/O.
"""

import json
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Literal, Mapping, Optional

from ..models.provider import ModelConfig, ProviderConfig
from ..models.request import ChatRequest
from ..models.response import ChatResponse, ChatStreamChunk, ErrorBody, FinishReason

EndpointKind = Literal["chat", "models"]

DONE_SENTINEL = "[DONE]"


def completion_id(prefix: str = "chatcmpl") -> str:
    """Synthesize a response id for providers that do not supply one."""
    return f"{prefix}-{uuid.uuid4().hex[:24]}"


def map_finish_reason(reason: Optional[str], table: Mapping[str, str]) -> str:
    """
    Map a native terminal reason onto the unified vocabulary.

    Unknown or missing reasons become "stop"; a terminal response never
    reports null.
    """
    if reason is None:
        return FinishReason.STOP.value
    return table.get(reason, FinishReason.STOP.value)


class ProviderAdapter(ABC):
    """
    Abstract base class for provider adapters.

    Each instance owns exactly one ProviderConfig. The registry mutates the
    config's enabled flag and model list in place, so lookups here always
    read the live state.
    """

    config: ProviderConfig

    # Framing of the upstream stream: "sse" or "json-lines"
    stream_format: str = "sse"

    # HTTP method of the chat endpoint
    chat_method: str = "POST"

    # normalize_error tuning for subclasses
    default_error_message: str = "Unknown error"
    error_type_field: str = "type"
    passes_error_code: bool = True

    @property
    def id(self) -> str:
        return self.config.id

    @abstractmethod
    def transform_request(self, request: ChatRequest) -> Dict[str, Any]:
        """
        Translate a unified request into the provider's native request body.

        Args:
            request: Unified chat request

        Returns:
            JSON-serializable native request
        """
        pass

    @abstractmethod
    def transform_response(
        self,
        response: Any,
        request: Optional[ChatRequest] = None,
    ) -> ChatResponse:
        """
        Translate a native non-streaming response into the unified format.

        Args:
            response: Decoded native response body
            request: The originating unified request, when available

        Returns:
            Unified chat response
        """
        pass

    @abstractmethod
    def transform_stream_chunk(
        self,
        chunk: str,
        request: Optional[ChatRequest] = None,
    ) -> Optional[ChatStreamChunk]:
        """
        Translate one upstream event payload into a unified chunk.

        Returns None when the event carries nothing user-visible, when the
        payload is the [DONE] sentinel, or when it cannot be parsed. Never
        raises for malformed payloads.
        """
        pass

    def normalize_error(self, error: Any) -> ErrorBody:
        """
        Convert any native error into the unified error body. Never raises.

        Args:
            error: Decoded error body, raw text, or exception

        Returns:
            Unified error body
        """
        try:
            detail = _error_detail(error)
            if detail is None:
                return ErrorBody.of(_stringify(error), "unknown_error")

            message = detail.get("message") or self.default_error_message
            error_type = detail.get(self.error_type_field) or "api_error"
            code = detail.get("code") if self.passes_error_code else None
            return ErrorBody.of(
                str(message),
                str(error_type),
                None if code is None else str(code),
            )
        except Exception:
            return ErrorBody.of(self.default_error_message, "unknown_error")

    def supports_model(self, model_id: str) -> bool:
        """True when an enabled model matches model_id by id or alias."""
        return self.get_model_config(model_id) is not None

    def get_model_config(self, model_id: str) -> Optional[ModelConfig]:
        """Find an enabled model by id or alias. Disabled models are invisible."""
        for model in self.config.models:
            if model.enabled and model.matches(model_id):
                return model
        return None

    def resolve_model_id(self, model_id: str) -> str:
        """Native id for an alias; unknown ids are returned verbatim."""
        model = self.get_model_config(model_id)
        return model.id if model else model_id

    def get_endpoint_url(
        self,
        endpoint: EndpointKind,
        request: Optional[ChatRequest] = None,
        api_key: Optional[str] = None,
    ) -> str:
        """
        Build the upstream URL for an endpoint kind.

        Args:
            endpoint: "chat" or "models"
            request: Originating request, for providers that embed the model in the path
            api_key: Credential, for providers that authenticate through the URL

        Returns:
            Absolute URL
        """
        paths = {
            "chat": "/chat/completions",
            "models": "/models",
        }
        return f"{self.config.base_url}{paths.get(endpoint, '')}"

    def get_auth_headers(self, api_key: str) -> Dict[str, str]:
        """Headers that authenticate a call with api_key."""
        value = f"{self.config.auth_scheme} {api_key}" if self.config.auth_scheme else api_key
        return {self.config.auth_header: value}

    def build_authenticated_url(
        self,
        endpoint: EndpointKind,
        api_key: str,
        request: Optional[ChatRequest] = None,
    ) -> str:
        """Endpoint URL including any URL-borne credential."""
        return self.get_endpoint_url(endpoint, request=request, api_key=api_key)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.config.id!r}, enabled={self.config.enabled!r})"


def _error_detail(error: Any) -> Optional[Dict[str, Any]]:
    if isinstance(error, Mapping) and "error" in error:
        inner = error["error"]
        if isinstance(inner, Mapping):
            return dict(inner)
        if isinstance(inner, str):
            return {"message": inner}
    return None


def _stringify(error: Any) -> str:
    if isinstance(error, str):
        return error
    if isinstance(error, BaseException):
        return str(error) or error.__class__.__name__
    try:
        return json.dumps(error)
    except (TypeError, ValueError):
        return str(error)
