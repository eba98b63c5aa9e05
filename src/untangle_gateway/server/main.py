"""
Untangle Gateway Service

A FastAPI service exposing one OpenAI-compatible API in front of several
AI providers.

Features:
- OpenAI, Anthropic, Google, Groq and OpenRouter adapters
- Custom providers declared with Jinja2 templates
- Runtime provider/model enable and disable
- Streaming re-framing to OpenAI server-sent events
- Usage accounting and OpenTelemetry tracing
"""

import os
import time
import logging
from contextlib import asynccontextmanager
from typing import Optional, Dict

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.middleware.base import BaseHTTPMiddleware
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.resources import Resource

from ..adapters import BUILTIN_ADAPTERS, create_custom_provider
from ..core.config import GatewayConfig, ProviderSettings, load_config
from ..core.errors import GatewayError, TemplateError
from ..core.registry import ProviderRegistry
from ..models.provider import ModelConfig
from .chat import ChatCompletionService, create_chat_router
from .keys import EnvironmentKeyProvider, KeyProvider, create_keys_router
from .routes import create_management_router, create_models_router
from .usage import UsageLog, UsageSink

logger = logging.getLogger(__name__)

SERVICE_NAME = "untangle-gateway"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs `METHOD path status durationms` for every request."""

    async def dispatch(self, request: Request, call_next):
        start = time.monotonic()
        response = await call_next(request)
        duration_ms = int((time.monotonic() - start) * 1000)
        logger.info(f"{request.method} {request.url.path} {response.status_code} {duration_ms}ms")
        return response


def setup_telemetry() -> Optional[TracerProvider]:
    """Install an OTLP exporter when OTEL_EXPORTER_OTLP_ENDPOINT is set."""
    otel_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if not otel_endpoint:
        return None

    resource = Resource.create({"service.name": SERVICE_NAME})
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otel_endpoint)))
    trace.set_tracer_provider(provider)
    logger.info(f"Exporting traces to {otel_endpoint}")
    return provider


def _apply_model_overrides(models, settings: ProviderSettings) -> None:
    """Overlay configured models on an adapter's defaults."""
    for override in settings.models:
        existing = next((m for m in models if m.id == override.id), None)
        if existing is None:
            models.append(ModelConfig(id=override.id, alias=override.alias, enabled=override.enabled))
            continue
        existing.enabled = override.enabled
        if override.alias:
            existing.alias = override.alias


def build_registry(config: GatewayConfig) -> ProviderRegistry:
    """
    Create a registry holding the built-in adapters and configured custom providers.

    Args:
        config: Gateway configuration

    Returns:
        Populated registry
    """
    registry = ProviderRegistry()

    for provider_id, adapter_cls in BUILTIN_ADAPTERS.items():
        settings = config.providers.get(provider_id) or ProviderSettings()
        adapter = adapter_cls(base_url=settings.base_url, enabled=settings.enabled)
        _apply_model_overrides(adapter.config.models, settings)
        registry.register(adapter)

    for provider_id, raw in config.custom_providers.items():
        definition = {k: v for k, v in (raw or {}).items() if k != "api_key"}
        definition.setdefault("id", provider_id)
        try:
            registry.register(create_custom_provider(definition))
        except (TemplateError, ValidationError) as e:
            logger.error(f"Skipping custom provider {provider_id}: {e}")

    return registry


def config_api_keys(config: GatewayConfig) -> Dict[str, str]:
    """API keys given directly in the config file, by provider id."""
    keys = {pid: s.api_key for pid, s in config.providers.items() if s.api_key}
    for provider_id, raw in config.custom_providers.items():
        if raw and raw.get("api_key"):
            keys[raw.get("id", provider_id)] = raw["api_key"]
    return keys


def create_app(
    config: Optional[GatewayConfig] = None,
    registry: Optional[ProviderRegistry] = None,
    key_provider: Optional[KeyProvider] = None,
    usage_sink: Optional[UsageSink] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the gateway application.

    Args:
        config: Gateway configuration (loaded from disk when None)
        registry: Provider registry (built from config when None)
        key_provider: Credential source (environment and config keys when None)
        usage_sink: Usage receiver (an in-memory UsageLog when None)
        transport: httpx transport for upstream calls, for tests

    Returns:
        FastAPI application
    """
    if config is None:
        config = load_config()
    if registry is None:
        registry = build_registry(config)
    if key_provider is None:
        key_provider = EnvironmentKeyProvider(config_keys=config_api_keys(config))
    usage_sink = usage_sink if usage_sink is not None else UsageLog()

    http_client = httpx.AsyncClient(
        transport=transport,
        timeout=config.upstream_timeout_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        tracer_provider = setup_telemetry()
        logger.info(f"Gateway started with {len(registry)} providers")
        for model_id, providers in registry.conflicts().items():
            logger.warning(f"Model {model_id!r} is served by {providers}; {providers[0]!r} wins")
        yield

        await http_client.aclose()
        if tracer_provider:
            try:
                tracer_provider.force_flush(timeout_millis=5000)
            except Exception as e:
                logger.warning(f"Error flushing traces: {e}")
        logger.info("Gateway stopped")

    app = FastAPI(
        title="Untangle Gateway",
        description="OpenAI-compatible gateway for multiple AI providers",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.registry = registry
    app.state.key_provider = key_provider
    app.state.usage_sink = usage_sink
    app.state.http_client = http_client

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0]["msg"] if errors else "Invalid request"
        return JSONResponse(
            {"error": {"message": message, "type": "invalid_request_error", "code": None}},
            status_code=400,
        )

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    service = ChatCompletionService(registry, key_provider, usage_sink, http_client)
    app.include_router(create_chat_router(service))
    app.include_router(create_models_router(registry))
    app.include_router(create_management_router(
        registry,
        usage_sink if isinstance(usage_sink, UsageLog) else None,
    ))
    app.include_router(create_keys_router(
        registry,
        key_provider,
        http_client,
        test_timeout=config.key_test_timeout_seconds,
    ))

    FastAPIInstrumentor.instrument_app(app)
    return app


def main() -> None:
    """Run the gateway with uvicorn."""
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    config = load_config()
    app = create_app(config)
    uvicorn.run(app, host=config.server.host, port=config.server.port)


if __name__ == "__main__":
    main()
