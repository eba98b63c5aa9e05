"""
Configuration loading for the gateway.
"""

import os
import logging
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATHS = [
    Path("untangle.yaml"),
    Path("untangle.yml"),
    Path("config/untangle.yaml"),
]


@dataclass
class ServerConfig:
    """HTTP server settings."""
    host: str = "localhost"
    port: int = 3000


@dataclass
class ModelOverride:
    """Per-model override applied on top of an adapter's defaults."""
    id: str
    alias: Optional[str] = None
    enabled: bool = True


@dataclass
class ProviderSettings:
    """Configuration for one built-in provider."""
    enabled: bool = True
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    models: List[ModelOverride] = field(default_factory=list)


@dataclass
class GatewayConfig:
    """Complete gateway configuration."""
    server: ServerConfig = field(default_factory=ServerConfig)
    providers: Dict[str, ProviderSettings] = field(default_factory=dict)
    # Raw custom provider definitions, validated when the adapters are built
    custom_providers: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    upstream_timeout_seconds: Optional[float] = 60.0
    key_test_timeout_seconds: float = 8.0


def load_config(config_path: Optional[str] = None) -> GatewayConfig:
    """
    Load gateway configuration from a YAML file.

    Args:
        config_path: Path to config file. If None, UNTANGLE_CONFIG and the
            default locations are tried.

    Returns:
        Loaded configuration with environment overrides applied
    """
    config_path = config_path or os.environ.get("UNTANGLE_CONFIG")
    if config_path is None:
        for p in DEFAULT_CONFIG_PATHS:
            if p.exists():
                config_path = str(p)
                break

    if config_path is None or not Path(config_path).exists():
        logger.warning("No gateway config file found, using defaults")
        return apply_env_overrides(GatewayConfig())

    try:
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f) or {}

        config = parse_config(data)
        logger.info(f"Loaded gateway config from {config_path}")

    except Exception as e:
        logger.error(f"Failed to load config from {config_path}: {e}")
        config = GatewayConfig()

    return apply_env_overrides(config)


def parse_config(data: Dict[str, Any]) -> GatewayConfig:
    """Parse configuration dictionary."""
    server_data = data.get("server") or {}
    server = ServerConfig(
        host=server_data.get("host", "localhost"),
        port=int(server_data.get("port", 3000)),
    )

    providers = {}
    for provider_id, provider_data in (data.get("providers") or {}).items():
        provider_data = provider_data or {}
        providers[provider_id] = ProviderSettings(
            enabled=provider_data.get("enabled", True),
            api_key=_expand_env(provider_data.get("api_key")),
            base_url=provider_data.get("base_url"),
            models=[
                ModelOverride(
                    id=m["id"],
                    alias=m.get("alias"),
                    enabled=m.get("enabled", True),
                )
                for m in provider_data.get("models") or []
            ],
        )

    timeout = data.get("upstream_timeout_seconds", 60.0)

    return GatewayConfig(
        server=server,
        providers=providers,
        custom_providers=dict(data.get("custom_providers") or {}),
        upstream_timeout_seconds=float(timeout) if timeout is not None else None,
        key_test_timeout_seconds=float(data.get("key_test_timeout_seconds", 8.0)),
    )


def apply_env_overrides(config: GatewayConfig) -> GatewayConfig:
    """Apply UNTANGLE_* environment overrides in place."""
    if os.environ.get("UNTANGLE_HOST"):
        config.server.host = os.environ["UNTANGLE_HOST"]
    if os.environ.get("UNTANGLE_PORT"):
        config.server.port = int(os.environ["UNTANGLE_PORT"])
    if os.environ.get("UNTANGLE_UPSTREAM_TIMEOUT"):
        config.upstream_timeout_seconds = float(os.environ["UNTANGLE_UPSTREAM_TIMEOUT"])
    return config


def _expand_env(value: Optional[str]) -> Optional[str]:
    """Expand a `${VAR}` reference; other values pass through."""
    if value and value.startswith("${") and value.endswith("}"):
        env_var = value[2:-1]
        return os.environ.get(env_var) or None
    return value
