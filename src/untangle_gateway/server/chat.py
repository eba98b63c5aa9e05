"""
Chat completion orchestration.

Resolves the adapter and credential for a request, dispatches it
upstream, and translates the answer (or the stream) back into the
unified format. Every dispatched request is reported to the usage sink
exactly once.
"""

import asyncio
import json
import logging
import time
from typing import Optional, Dict, Any, AsyncIterator

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from opentelemetry import trace
from pydantic import ValidationError

from ..core.errors import (
    GatewayError,
    InvalidRequestError,
    MissingApiKeyError,
    ModelNotFoundError,
    UpstreamError,
    internal_error,
    map_upstream_status,
)
from ..core.interface import DONE_SENTINEL, ProviderAdapter
from ..core.registry import ProviderRegistry
from ..core.tokens import estimate_message_tokens, estimate_tokens
from ..models.request import ChatRequest
from ..models.response import ErrorBody
from .keys import KeyProvider
from .sse import EventDecoder
from .usage import UsageSink

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}
SSE_MEDIA_TYPE = "text/event-stream; charset=utf-8"
DONE_EVENT = f"data: {DONE_SENTINEL}\n\n"


def sse_event(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def error_response(error: GatewayError) -> JSONResponse:
    return JSONResponse(error.to_dict(), status_code=error.status_code)


def sse_error_response(body: ErrorBody, status_code: int) -> StreamingResponse:
    """A stream holding a single error event."""
    async def single_event() -> AsyncIterator[str]:
        yield sse_event(body.to_dict())

    return StreamingResponse(
        single_event(),
        status_code=status_code,
        media_type=SSE_MEDIA_TYPE,
        headers=SSE_HEADERS,
    )


def validate_body(body: Any) -> ChatRequest:
    """
    Check the shape of a client body and parse it.

    Raises:
        InvalidRequestError: If model, messages or a message role is malformed
    """
    if not isinstance(body, dict):
        raise InvalidRequestError("Request body must be a JSON object")
    if not isinstance(body.get("model"), str) or not body["model"]:
        raise InvalidRequestError("model is required and must be a string")
    if not isinstance(body.get("messages"), list):
        raise InvalidRequestError("messages is required and must be an array")
    for index, message in enumerate(body["messages"]):
        if not isinstance(message, dict) or not isinstance(message.get("role"), str):
            raise InvalidRequestError(f"messages[{index}].role is required and must be a string")

    try:
        return ChatRequest.model_validate(body)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise InvalidRequestError(f"Invalid request at {location}: {first['msg']}")


def read_error_payload(response: httpx.Response) -> Any:
    """Decoded JSON when the upstream says it sent JSON, the raw text otherwise."""
    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        try:
            return response.json()
        except ValueError:
            pass
    return response.text or response.reason_phrase


class ChatCompletionService:
    """
    Orchestrates one chat completion per call to `handle`.

    Args:
        registry: Provider registry used for routing
        key_provider: Credential source
        usage_sink: Receiver of usage records
        http_client: Client for upstream calls
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        key_provider: KeyProvider,
        usage_sink: UsageSink,
        http_client: httpx.AsyncClient,
    ):
        self.registry = registry
        self.key_provider = key_provider
        self.usage_sink = usage_sink
        self.http_client = http_client

    async def handle(self, body: Any) -> Response:
        """
        Run a chat completion for a decoded client body.

        Returns:
            JSON response, SSE stream, or unified error response
        """
        start = time.monotonic()
        provider_id: Optional[str] = None
        model_id: Optional[str] = None

        with tracer.start_as_current_span("chat_completion") as span:
            try:
                chat_request = validate_body(body)
                model_id = chat_request.model
                span.set_attribute("model", model_id)
                span.set_attribute("stream", chat_request.stream)

                adapter = self.registry.get_for_model(model_id)
                if adapter is None:
                    raise ModelNotFoundError(model_id)
                provider_id = adapter.id
                span.set_attribute("provider", provider_id)

                api_key = await self.key_provider.get_api_key(provider_id)
                if not api_key:
                    raise MissingApiKeyError(provider_id)

                native_request = adapter.transform_request(chat_request)
                upstream_request = self.http_client.build_request(
                    adapter.chat_method,
                    adapter.build_authenticated_url("chat", api_key, request=chat_request),
                    headers={"Content-Type": "application/json", **adapter.get_auth_headers(api_key)},
                    **self._body_kwargs(adapter, native_request),
                )
                input_tokens = estimate_message_tokens(body["messages"])

                if chat_request.stream:
                    return await self._stream(
                        adapter, chat_request, upstream_request, input_tokens, start,
                    )
                return await self._complete(
                    adapter, chat_request, upstream_request, input_tokens, start, span,
                )

            except GatewayError as e:
                if isinstance(e, (ModelNotFoundError, MissingApiKeyError, InvalidRequestError)):
                    logger.info(f"Rejected chat request: {e.message}")
                elif not isinstance(e, UpstreamError) and provider_id and model_id:
                    self._record(provider_id, model_id, 0, 0, start, False, e.message)
                span.set_attribute("error.type", e.error_type)
                return error_response(e)

            except Exception as e:
                logger.exception(f"Chat completion error: {e}")
                if provider_id and model_id:
                    self._record(provider_id, model_id, 0, 0, start, False, str(e))
                span.record_exception(e)
                return JSONResponse(internal_error(e).to_dict(), status_code=500)

    @staticmethod
    def _body_kwargs(adapter: ProviderAdapter, native_request: Any) -> Dict[str, Any]:
        if adapter.chat_method == "GET":
            return {"params": native_request} if isinstance(native_request, dict) else {}
        return {"json": native_request}

    async def _complete(
        self,
        adapter: ProviderAdapter,
        chat_request: ChatRequest,
        upstream_request: httpx.Request,
        input_tokens: int,
        start: float,
        span,
    ) -> Response:
        provider_id = adapter.id
        response = await self.http_client.send(upstream_request)

        if not response.is_success:
            body = adapter.normalize_error(read_error_payload(response))
            logger.warning(
                f"Upstream {provider_id} answered {response.status_code}: {body.error.message}"
            )
            self._record(provider_id, chat_request.model, 0, 0, start, False, body.error.message)
            raise UpstreamError.from_body(body, provider_id, response.status_code)

        unified = adapter.transform_response(response.json(), chat_request)

        if unified.usage is not None:
            prompt_tokens = unified.usage.prompt_tokens
            completion_tokens = unified.usage.completion_tokens
        else:
            prompt_tokens = input_tokens
            completion_tokens = estimate_tokens(unified.get_content() or "")

        span.set_attribute("input_tokens", prompt_tokens)
        span.set_attribute("output_tokens", completion_tokens)
        self._record(provider_id, chat_request.model, prompt_tokens, completion_tokens, start, True)
        return JSONResponse(unified.to_dict())

    async def _stream(
        self,
        adapter: ProviderAdapter,
        chat_request: ChatRequest,
        upstream_request: httpx.Request,
        input_tokens: int,
        start: float,
    ) -> Response:
        provider_id = adapter.id

        try:
            upstream = await self.http_client.send(upstream_request, stream=True)
        except httpx.HTTPError as e:
            logger.error(f"Stream dispatch to {provider_id} failed: {e}")
            self._record(provider_id, chat_request.model, 0, 0, start, False, str(e))
            return sse_error_response(internal_error(e), 500)

        if not upstream.is_success:
            try:
                await upstream.aread()
                body = adapter.normalize_error(read_error_payload(upstream))
            finally:
                await upstream.aclose()
            logger.warning(f"Upstream {provider_id} answered {upstream.status_code}: {body.error.message}")
            self._record(provider_id, chat_request.model, 0, 0, start, False, body.error.message)
            return sse_error_response(body, map_upstream_status(upstream.status_code))

        return StreamingResponse(
            self._relay(adapter, chat_request, upstream, input_tokens, start),
            media_type=SSE_MEDIA_TYPE,
            headers=SSE_HEADERS,
        )

    async def _relay(
        self,
        adapter: ProviderAdapter,
        chat_request: ChatRequest,
        upstream: httpx.Response,
        input_tokens: int,
        start: float,
    ) -> AsyncIterator[str]:
        """Re-frame upstream events as unified chunks."""
        decoder = EventDecoder(adapter.stream_format)
        output_tokens = 0
        success = False
        error: Optional[str] = None

        def convert(payload: str) -> Optional[str]:
            nonlocal output_tokens
            chunk = adapter.transform_stream_chunk(payload, chat_request)
            if chunk is None:
                return None
            output_tokens += estimate_tokens(chunk.delta_text)
            return sse_event(chunk.to_dict())

        try:
            done = False
            async for text in upstream.aiter_text():
                for payload in decoder.feed(text):
                    if payload == DONE_SENTINEL:
                        done = True
                        break
                    event = convert(payload)
                    if event is not None:
                        yield event
                if done:
                    break

            if not done:
                for payload in decoder.flush():
                    if payload == DONE_SENTINEL:
                        break
                    event = convert(payload)
                    if event is not None:
                        yield event

            yield DONE_EVENT
            success = True

        except (asyncio.CancelledError, GeneratorExit):
            error = "client disconnected"
            logger.info(f"Client disconnected from {adapter.id} stream")
            raise

        except Exception as e:
            error = str(e) or e.__class__.__name__
            logger.error(f"Stream from {adapter.id} failed: {error}")
            yield sse_event(adapter.normalize_error(e).to_dict())

        finally:
            self._record(
                adapter.id,
                chat_request.model,
                input_tokens if success else 0,
                output_tokens if success else 0,
                start,
                success,
                error,
            )
            await upstream.aclose()

    def _record(
        self,
        provider_id: str,
        model_id: str,
        input_tokens: int,
        output_tokens: int,
        start: float,
        success: bool,
        error: Optional[str] = None,
    ) -> None:
        duration_ms = int((time.monotonic() - start) * 1000)
        try:
            self.usage_sink.record_usage(
                provider_id, model_id, input_tokens, output_tokens, duration_ms, success, error,
            )
        except Exception as e:
            logger.warning(f"Usage sink rejected record for {provider_id}/{model_id}: {e}")


def create_chat_router(service: ChatCompletionService) -> APIRouter:
    """Build the `/v1/chat/completions` route."""
    router = APIRouter(tags=["chat"])

    @router.post("/v1/chat/completions")
    async def chat_completions(request: Request):
        """OpenAI-compatible chat completions, streaming or not."""
        try:
            body = await request.json()
        except ValueError:
            return error_response(InvalidRequestError("Request body must be valid JSON"))
        return await service.handle(body)

    return router
