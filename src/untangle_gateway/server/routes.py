"""
Model catalog and provider management routes.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel

from ..core.errors import GatewayError
from ..core.registry import ProviderRegistry
from ..models.provider import DiscoveredModel, ProviderConfig, to_model_config
from ..models.response import ModelCard
from .usage import UsageLog

logger = logging.getLogger(__name__)


class NotFoundError(GatewayError):
    status_code = 404
    error_type = "invalid_request_error"


class EnabledUpdate(BaseModel):
    enabled: bool


class DiscoveredModels(BaseModel):
    models: List[DiscoveredModel]


def provider_summary(provider: ProviderConfig) -> dict:
    return {
        "id": provider.id,
        "name": provider.name,
        "base_url": provider.base_url,
        "enabled": provider.enabled,
        "model_count": sum(1 for m in provider.models if m.enabled),
        "models": [m.model_dump(mode="json") for m in provider.models],
    }


def create_models_router(registry: ProviderRegistry) -> APIRouter:
    """OpenAI-compatible model catalog, backed by the enabled models."""
    router = APIRouter(prefix="/v1/models", tags=["models"])

    @router.get("")
    async def list_models():
        return {
            "object": "list",
            "data": [
                ModelCard(id=entry.model.public_id, owned_by=entry.provider.id).model_dump()
                for entry in registry.list_models()
            ],
        }

    @router.get("/{model_id:path}")
    async def get_model(model_id: str):
        for entry in registry.list_models():
            if entry.model.matches(model_id):
                return ModelCard(id=entry.model.public_id, owned_by=entry.provider.id).model_dump()
        raise NotFoundError(f"Model not found: {model_id}")

    return router


def create_management_router(
    registry: ProviderRegistry,
    usage_log: Optional[UsageLog] = None,
) -> APIRouter:
    """
    Provider and model management routes.

    Args:
        registry: Provider registry
        usage_log: In-memory usage log, when one backs the usage sink

    Returns:
        Router
    """
    router = APIRouter(prefix="/api", tags=["management"])

    @router.get("/providers")
    async def list_providers():
        """All providers, including disabled ones."""
        providers = [provider_summary(p) for p in registry.list_all()]
        return {
            "providers": providers,
            "enabled": sum(1 for p in providers if p["enabled"]),
            "total": len(providers),
        }

    @router.patch("/providers/{provider_id}")
    async def update_provider(provider_id: str, update: EnabledUpdate):
        if not registry.set_provider_enabled(provider_id, update.enabled):
            raise NotFoundError(f"Provider not found: {provider_id}")
        return {"provider_id": provider_id, "enabled": update.enabled}

    @router.post("/providers/{provider_id}/models")
    async def add_models(provider_id: str, payload: DiscoveredModels):
        """Append discovered models; new ones start disabled."""
        models = [to_model_config(m, enabled=False) for m in payload.models]
        if not registry.add_models(provider_id, models):
            raise NotFoundError(f"Provider not found: {provider_id}")
        return {"provider_id": provider_id, "added": len(models)}

    @router.put("/providers/{provider_id}/models")
    async def replace_models(provider_id: str, payload: DiscoveredModels):
        """Replace the model list with a discovery result, keeping known enable flags."""
        if not registry.apply_discovered(provider_id, payload.models):
            raise NotFoundError(f"Provider not found: {provider_id}")
        return {"provider_id": provider_id, "models": len(payload.models)}

    @router.patch("/providers/{provider_id}/models/{model_id:path}")
    async def update_model(provider_id: str, model_id: str, update: EnabledUpdate):
        if not registry.set_model_enabled(provider_id, model_id, update.enabled):
            raise NotFoundError(f"Model or provider not found: {provider_id}/{model_id}")
        return {"provider_id": provider_id, "model_id": model_id, "enabled": update.enabled}

    @router.get("/models/conflicts")
    async def model_conflicts():
        """Model ids served by more than one enabled provider; the first listed wins."""
        return {"conflicts": registry.conflicts()}

    if usage_log is not None:
        @router.get("/usage")
        async def usage_summary():
            return usage_log.summary()

        @router.get("/usage/records")
        async def usage_records(
            limit: int = Query(100, ge=1, le=1000),
            provider: Optional[str] = None,
            model: Optional[str] = None,
        ):
            records = usage_log.records(limit=limit, provider_id=provider, model_id=model)
            return {"records": [r.to_dict() for r in records]}

    return router
