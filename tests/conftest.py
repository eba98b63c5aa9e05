"""
Shared fixtures for gateway tests.
"""

from typing import Callable, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from untangle_gateway.adapters import OpenAIAdapter
from untangle_gateway.core.config import GatewayConfig
from untangle_gateway.core.interface import ProviderAdapter
from untangle_gateway.core.registry import ProviderRegistry
from untangle_gateway.models.provider import ModelConfig
from untangle_gateway.server.keys import EnvironmentKeyProvider
from untangle_gateway.server.main import create_app
from untangle_gateway.server.usage import UsageLog


def make_provider(provider_id: str, models: List[dict], enabled: bool = True) -> OpenAIAdapter:
    """An OpenAI-compatible adapter with its own id and model list."""
    adapter = OpenAIAdapter(
        base_url=f"https://{provider_id}.test/v1",
        models=[ModelConfig(**m) for m in models],
        enabled=enabled,
    )
    adapter.config.id = provider_id
    adapter.config.name = provider_id.title()
    return adapter


class GatewayHarness:
    """A gateway app wired to a mock upstream."""

    def __init__(
        self,
        handler: Callable[[httpx.Request], httpx.Response],
        adapters: List[ProviderAdapter],
        keys: Optional[Dict[str, str]] = None,
        allow_runtime_keys: bool = True,
    ):
        self.registry = ProviderRegistry()
        for adapter in adapters:
            self.registry.register(adapter)
        self.usage = UsageLog()
        self.keys = EnvironmentKeyProvider(
            config_keys=keys or {},
            environ={},
            allow_runtime_keys=allow_runtime_keys,
        )
        self.app = create_app(
            config=GatewayConfig(),
            registry=self.registry,
            key_provider=self.keys,
            usage_sink=self.usage,
            transport=httpx.MockTransport(handler),
        )
        self.client = TestClient(self.app)


def sse_events(text: str) -> List[str]:
    """Split an SSE body into its event blocks."""
    return [block for block in text.split("\n\n") if block]


@pytest.fixture
def unreachable_upstream():
    """Handler for tests that must not reach the upstream."""
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"Unexpected upstream call: {request.method} {request.url}")
    return handler
