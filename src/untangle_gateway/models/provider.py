"""
Provider and model configuration models.

These are the mutable pieces of state the registry toggles at runtime:
enable flags and model lists.
"""

import re
from typing import Optional, List, Literal
from enum import Enum
from pydantic import BaseModel, Field


class ModelCapability(str, Enum):
    """What a model supports. Informational only, never enforced."""
    CHAT = "chat"
    VISION = "vision"
    TOOLS = "tools"
    JSON_MODE = "json_mode"


class ModelConfig(BaseModel):
    """One model's identity, limits and pricing."""
    id: str
    alias: Optional[str] = None
    context_window: int = 8192
    max_output_tokens: int = 4096
    input_price_per_1m: Optional[float] = None
    output_price_per_1m: Optional[float] = None
    capabilities: List[ModelCapability] = Field(default_factory=lambda: [ModelCapability.CHAT])
    enabled: bool = True

    def matches(self, model_id: str) -> bool:
        """True when model_id is this model's native id or its alias."""
        return self.id == model_id or (self.alias is not None and self.alias == model_id)

    @property
    def public_id(self) -> str:
        """Identifier shown in the client-facing catalog."""
        return self.alias or self.id


class ProviderConfig(BaseModel):
    """One provider's identity and policy. Owned by its adapter."""
    id: str
    name: str
    base_url: str
    auth_header: str = "Authorization"
    auth_scheme: Optional[str] = None
    models: List[ModelConfig] = Field(default_factory=list)
    enabled: bool = True


class DiscoveredModel(BaseModel):
    """A model candidate produced by the discovery subsystem."""
    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    context_window: Optional[int] = None
    max_output_tokens: Optional[int] = None
    input_price_per_1m: Optional[float] = None
    output_price_per_1m: Optional[float] = None
    capabilities: Optional[List[ModelCapability]] = None
    source: Literal["api", "web-search", "openrouter", "hardcoded"] = "api"


def to_model_config(model: DiscoveredModel, enabled: bool = False) -> ModelConfig:
    """
    Convert a discovered model into a ModelConfig.

    A display name that differs from the id becomes a kebab-cased alias.
    Unset limits default to 8192 context / 4096 output tokens and unset
    capabilities to chat only.

    Args:
        model: Discovered model
        enabled: Enable flag for the resulting config

    Returns:
        ModelConfig
    """
    alias = None
    if model.name and model.name != model.id:
        alias = re.sub(r"\s+", "-", model.name).lower()

    return ModelConfig(
        id=model.id,
        alias=alias,
        context_window=model.context_window or 8192,
        max_output_tokens=model.max_output_tokens or 4096,
        input_price_per_1m=model.input_price_per_1m,
        output_price_per_1m=model.output_price_per_1m,
        capabilities=list(model.capabilities) if model.capabilities else [ModelCapability.CHAT],
        enabled=enabled,
    )
