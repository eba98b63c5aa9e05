"""
Provider credentials and the key management API.

The gateway only needs `get_api_key(provider_id)`. Where keys come from
(environment, config file, an encrypted store) is up to the provider
object; the environment-backed one below also accepts keys at runtime.
"""

import os
import re
import logging
from typing import Optional, Dict, Any, Mapping, Protocol, runtime_checkable

import httpx
from fastapi import APIRouter, Request

from ..core.errors import GatewayError, InvalidRequestError
from ..core.registry import ProviderRegistry

logger = logging.getLogger(__name__)

ENV_VAR_OVERRIDES = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "google": "GOOGLE_API_KEY",
    "groq": "GROQ_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
}


def env_var_name(provider_id: str) -> str:
    """Environment variable holding a provider's key, e.g. `MY_LLM_API_KEY` for `my-llm`."""
    if provider_id in ENV_VAR_OVERRIDES:
        return ENV_VAR_OVERRIDES[provider_id]
    return f"{re.sub(r'[^a-zA-Z0-9]', '_', provider_id).upper()}_API_KEY"


@runtime_checkable
class KeyProvider(Protocol):
    """Source of provider credentials. Lookups may suspend."""

    async def get_api_key(self, provider_id: str) -> Optional[str]:
        ...


class EnvironmentKeyProvider:
    """
    Credentials from runtime overrides, the config file, then the environment.

    Args:
        config_keys: Keys from the gateway config, by provider id
        environ: Environment mapping (defaults to os.environ)
        allow_runtime_keys: Whether set/remove are permitted
    """

    def __init__(
        self,
        config_keys: Optional[Dict[str, str]] = None,
        environ: Optional[Mapping[str, str]] = None,
        allow_runtime_keys: bool = True,
    ):
        self._config_keys = {k: v for k, v in (config_keys or {}).items() if v}
        self._environ = environ if environ is not None else os.environ
        self._runtime_keys: Dict[str, str] = {}
        self.supports_runtime_keys = allow_runtime_keys

    async def get_api_key(self, provider_id: str) -> Optional[str]:
        return (
            self._runtime_keys.get(provider_id)
            or self._config_keys.get(provider_id)
            or self._environ.get(env_var_name(provider_id))
            or None
        )

    async def set_api_key(self, provider_id: str, api_key: str) -> None:
        self._runtime_keys[provider_id] = api_key
        logger.info(f"Runtime API key set for {provider_id}")

    async def remove_api_key(self, provider_id: str) -> None:
        self._runtime_keys.pop(provider_id, None)
        self._config_keys.pop(provider_id, None)
        logger.info(f"API key removed for {provider_id}")


class UnknownProviderError(GatewayError):
    status_code = 404
    error_type = "invalid_request_error"
    code = "provider_not_found"

    def __init__(self, provider_id: str):
        super().__init__(f"Unknown provider: {provider_id}", provider=provider_id)


class RuntimeKeysUnsupportedError(GatewayError):
    status_code = 501
    error_type = "invalid_request_error"
    code = "not_implemented"


def create_keys_router(
    registry: ProviderRegistry,
    key_provider: KeyProvider,
    http_client: httpx.AsyncClient,
    test_timeout: float = 8.0,
) -> APIRouter:
    """
    Build the `/api/keys` routes.

    Args:
        registry: Provider registry
        key_provider: Credential source
        http_client: Client used to test keys against the provider
        test_timeout: Bound on the test call, in seconds

    Returns:
        Router
    """
    router = APIRouter(prefix="/api/keys", tags=["keys"])

    def _adapter(provider_id: str):
        adapter = registry.get(provider_id)
        if adapter is None:
            raise UnknownProviderError(provider_id)
        return adapter

    async def _status(provider_id: str, name: str) -> Dict[str, Any]:
        return {
            "id": provider_id,
            "name": name,
            "has_key": bool(await key_provider.get_api_key(provider_id)),
            "env_var": env_var_name(provider_id),
        }

    def _runtime_capable(action: str):
        if not getattr(key_provider, "supports_runtime_keys", False):
            raise RuntimeKeysUnsupportedError(
                f"Runtime key management not enabled. {action} keys via environment variables."
            )

    @router.get("")
    async def list_keys():
        """Key status of every provider, enabled or not."""
        return {
            "providers": [await _status(p.id, p.name) for p in registry.list_all()]
        }

    @router.get("/{provider_id}")
    async def get_key(provider_id: str):
        adapter = _adapter(provider_id)
        return await _status(provider_id, adapter.config.name)

    @router.post("/{provider_id}")
    async def set_key(provider_id: str, request: Request):
        """Store a key and enable the provider."""
        adapter = _adapter(provider_id)
        _runtime_capable("Set")

        try:
            body = await request.json()
        except ValueError:
            body = None
        api_key = body.get("api_key") if isinstance(body, dict) else None
        if not api_key or not isinstance(api_key, str):
            raise InvalidRequestError("api_key is required and must be a string")

        await key_provider.set_api_key(provider_id, api_key)
        registry.set_provider_enabled(provider_id, True)
        return {"success": True, "message": f"API key for {adapter.config.name} has been set"}

    @router.delete("/{provider_id}")
    async def remove_key(provider_id: str):
        """Remove a key and disable the provider."""
        adapter = _adapter(provider_id)
        _runtime_capable("Remove")

        await key_provider.remove_api_key(provider_id)
        registry.set_provider_enabled(provider_id, False)
        return {"success": True, "message": f"API key for {adapter.config.name} has been removed"}

    @router.post("/{provider_id}/test")
    async def test_key(provider_id: str):
        """Call the provider's model listing with the stored key."""
        adapter = _adapter(provider_id)
        api_key = await key_provider.get_api_key(provider_id)
        if not api_key:
            raise InvalidRequestError(f"No API key configured for {adapter.config.name}")

        url = adapter.build_authenticated_url("models", api_key)
        headers = {"Accept": "application/json", **adapter.get_auth_headers(api_key)}

        try:
            response = await http_client.get(url, headers=headers, timeout=test_timeout)
        except httpx.HTTPError as e:
            logger.warning(f"Key test for {provider_id} failed: {e}")
            raise InvalidRequestError(f"API key test failed: {str(e) or e.__class__.__name__}")

        if not response.is_success:
            text = response.text or response.reason_phrase
            raise InvalidRequestError(f"Upstream test failed ({response.status_code}): {text}")

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        model_count = len(adapter.config.models)
        if isinstance(payload, dict):
            if isinstance(payload.get("data"), list):
                model_count = len(payload["data"])
            elif isinstance(payload.get("models"), list):
                model_count = len(payload["models"])

        return {
            "success": True,
            "message": f"API key for {adapter.config.name} is valid",
            "model_count": model_count,
        }

    return router
