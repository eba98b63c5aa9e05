"""
Custom provider adapter.

Lets an operator declare a provider entirely in configuration: base URL,
auth mode, models, and Jinja2 templates that map the unified request to
the native one and the native response back.
"""

import json
import logging
from typing import Optional, List, Dict, Any, Literal

import httpx
from pydantic import BaseModel, Field

from ..core.errors import TemplateRenderError
from ..core.interface import DONE_SENTINEL, ProviderAdapter, completion_id
from ..models.provider import ModelConfig, ProviderConfig
from ..models.request import ChatRequest
from ..models.response import ChatResponse, ChatStreamChunk
from ..templates.engine import TemplateEngine

logger = logging.getLogger(__name__)


class CustomAuth(BaseModel):
    """How the API key is sent: a header, or a URL query parameter."""
    type: Literal["header", "query"] = "header"
    header: str = "Authorization"
    scheme: Optional[str] = None
    query_param: str = "api_key"


class CustomChatEndpoint(BaseModel):
    path: str = "/chat/completions"
    method: Literal["POST", "GET"] = "POST"
    request_template: str
    response_template: str
    stream_parser: Literal["sse", "json-lines"] = "sse"


class CustomEndpoints(BaseModel):
    chat: CustomChatEndpoint
    # Path used to list models; the base URL itself when unset
    models: Optional[str] = None


class CustomProviderDefinition(BaseModel):
    """
    Declarative description of a custom provider.

    Example (YAML):
        id: acme
        name: Acme AI
        base_url: https://api.acme.example/v2
        auth: {type: header, header: X-Acme-Key}
        models:
          - id: acme-large
        endpoints:
          chat:
            path: /generate
            request_template: '{"model": "{{ model }}", "messages": {{ messages | json }}}'
            response_template: '{"choices": [{"message": {"content": {{ output.text | json }}}}]}'
    """
    id: str
    name: Optional[str] = None
    base_url: str
    auth: CustomAuth = Field(default_factory=CustomAuth)
    headers: Dict[str, str] = Field(default_factory=dict)
    models: List[ModelConfig] = Field(default_factory=list)
    endpoints: CustomEndpoints
    enabled: bool = True


class CustomProviderAdapter(ProviderAdapter):
    """
    Adapter driven by a CustomProviderDefinition.

    Both templates are compiled at construction, so a syntax error fails
    registration instead of the first request.
    """

    def __init__(self, definition: CustomProviderDefinition):
        """
        Initialize custom adapter.

        Args:
            definition: Provider definition

        Raises:
            TemplateCompileError: If either template does not compile
        """
        self.definition = definition
        self._engine = TemplateEngine()
        self._request_template = f"{definition.id}-request"
        self._response_template = f"{definition.id}-response"

        chat = definition.endpoints.chat
        self._engine.compile(self._request_template, chat.request_template)
        self._engine.compile(self._response_template, chat.response_template)

        self.stream_format = chat.stream_parser
        self.chat_method = chat.method
        self.default_error_message = f"Unknown {definition.name or definition.id} error"

        self.config = ProviderConfig(
            id=definition.id,
            name=definition.name or definition.id,
            base_url=definition.base_url.rstrip("/"),
            auth_header=definition.auth.header,
            auth_scheme=definition.auth.scheme,
            models=[m.model_copy() for m in definition.models],
            enabled=definition.enabled,
        )

    def get_endpoint_url(self, endpoint, request=None, api_key=None) -> str:
        if endpoint == "chat":
            return f"{self.config.base_url}{self.definition.endpoints.chat.path}"
        if self.definition.endpoints.models:
            return f"{self.config.base_url}{self.definition.endpoints.models}"
        return self.config.base_url

    def build_authenticated_url(self, endpoint, api_key, request=None) -> str:
        url = self.get_endpoint_url(endpoint, request=request)
        if self.definition.auth.type != "query":
            return url
        return str(httpx.URL(url).copy_merge_params({self.definition.auth.query_param: api_key}))

    def get_auth_headers(self, api_key: str) -> Dict[str, str]:
        headers = dict(self.definition.headers)
        if self.definition.auth.type == "header":
            headers.update(super().get_auth_headers(api_key))
        return headers

    def transform_request(self, request: ChatRequest) -> Dict[str, Any]:
        """
        Render the request template.

        The template sees the unified request fields (`model`, `messages`,
        `temperature`, ...) with `model` resolved to the native id.
        """
        data = request.to_openai_format()
        data["model"] = self.resolve_model_id(request.model)
        return self._engine.render_json(self._request_template, data)

    def transform_response(
        self,
        response: Any,
        request: Optional[ChatRequest] = None,
    ) -> ChatResponse:
        """
        Render the response template with `output` bound to the native body.

        Raises:
            TemplateRenderError: If rendering fails or the result is not a
                chat completion
        """
        rendered = self._engine.render_json(self._response_template, {"output": response})
        if not isinstance(rendered, dict):
            raise TemplateRenderError(
                f"Response template for {self.config.id} rendered {type(rendered).__name__}, expected an object"
            )

        try:
            result = ChatResponse.model_validate(rendered)
        except ValueError as e:
            raise TemplateRenderError(
                f"Response template for {self.config.id} rendered an invalid completion: {e}"
            ) from e

        if not result.id:
            result.id = completion_id()
        if not result.model and request is not None:
            result.model = self.resolve_model_id(request.model)
        return result

    def transform_stream_chunk(
        self,
        chunk: str,
        request: Optional[ChatRequest] = None,
    ) -> Optional[ChatStreamChunk]:
        if chunk == DONE_SENTINEL:
            return None

        try:
            output = json.loads(chunk)
            rendered = self._engine.render_json(self._response_template, {"output": output})
            if not isinstance(rendered, dict):
                return None
            # One template serves both paths; completion-shaped choices become deltas
            choices = rendered.get("choices")
            for choice in choices if isinstance(choices, list) else []:
                if isinstance(choice, dict) and "delta" not in choice and "message" in choice:
                    choice["delta"] = choice.pop("message")
            rendered["object"] = "chat.completion.chunk"
            result = ChatStreamChunk.model_validate(rendered)
        except (TypeError, ValueError, TemplateRenderError) as e:
            logger.debug(f"Dropping {self.config.id} stream payload: {e}")
            return None

        if not result.model and request is not None:
            result.model = self.resolve_model_id(request.model)
        return result


def create_custom_provider(definition: Any) -> CustomProviderAdapter:
    """
    Build a custom adapter from a definition or its raw dict form.

    Args:
        definition: CustomProviderDefinition or a dict with the same fields

    Returns:
        CustomProviderAdapter
    """
    if not isinstance(definition, CustomProviderDefinition):
        definition = CustomProviderDefinition.model_validate(definition)
    return CustomProviderAdapter(definition)
