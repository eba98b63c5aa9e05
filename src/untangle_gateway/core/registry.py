"""
Provider registry for routing models to adapters.
"""

import logging
import threading
from typing import Dict, List, NamedTuple, Optional, Iterable

from .interface import ProviderAdapter
from ..models.provider import DiscoveredModel, ModelConfig, ProviderConfig, to_model_config

logger = logging.getLogger(__name__)


class ModelEntry(NamedTuple):
    """A routable model and the provider that owns it."""
    model: ModelConfig
    provider: ProviderConfig


class ProviderRegistry:
    """
    Registry of provider adapters keyed by provider id.

    Holds the enable/disable state of providers and their models. A model is
    routable only when both its own flag and its provider's flag are set.
    Every operation runs under one lock, so each is atomic; there are no
    transactions spanning several operations.

    Mutations return a success flag instead of raising; callers translate
    False into a not-found answer.
    """

    def __init__(self):
        """Initialize the registry."""
        # dict preserves registration order, which decides routing ties
        self._adapters: Dict[str, ProviderAdapter] = {}
        self._lock = threading.RLock()

    def register(self, adapter: ProviderAdapter) -> None:
        """
        Register an adapter, replacing any adapter with the same provider id.

        A replaced adapter keeps its original position in routing order.

        Args:
            adapter: Adapter to register
        """
        if not isinstance(adapter, ProviderAdapter):
            raise TypeError(f"Expected ProviderAdapter, got {type(adapter).__name__}")

        with self._lock:
            provider_id = adapter.config.id
            replaced = provider_id in self._adapters
            self._adapters[provider_id] = adapter
            overlaps = self._overlaps_with(adapter)

        action = "Replaced" if replaced else "Registered"
        logger.info(f"{action} provider adapter: {provider_id}")
        for model_id, other in overlaps:
            logger.warning(
                f"Model {model_id!r} is exposed by providers {provider_id!r} and {other!r}; "
                f"requests route to the first registered enabled provider"
            )

    def get(self, provider_id: str) -> Optional[ProviderAdapter]:
        """
        Get an adapter by provider id, regardless of enabled state.

        Args:
            provider_id: Provider id

        Returns:
            Adapter or None
        """
        with self._lock:
            return self._adapters.get(provider_id)

    def set_provider_enabled(self, provider_id: str, enabled: bool) -> bool:
        """
        Enable or disable a provider.

        Args:
            provider_id: Provider id
            enabled: New state

        Returns:
            False if the provider is unknown
        """
        with self._lock:
            adapter = self._adapters.get(provider_id)
            if adapter is None:
                return False
            adapter.config.enabled = enabled

        logger.info(f"Provider {provider_id} {'enabled' if enabled else 'disabled'}")
        return True

    def update_models(self, provider_id: str, models: List[ModelConfig]) -> bool:
        """
        Replace a provider's model list wholesale.

        Enable state of existing models is not carried over; callers that
        want to keep it must merge before calling (see apply_discovered).

        Args:
            provider_id: Provider id
            models: New model list

        Returns:
            False if the provider is unknown
        """
        with self._lock:
            adapter = self._adapters.get(provider_id)
            if adapter is None:
                return False
            adapter.config.models = list(models)

        logger.info(f"Updated models for {provider_id}: {len(models)} models")
        return True

    def add_models(self, provider_id: str, models: Iterable[ModelConfig]) -> bool:
        """
        Append models whose native id is not present yet.

        Existing models are left untouched. Deduplication is by id only.

        Args:
            provider_id: Provider id
            models: Candidate models

        Returns:
            False if the provider is unknown
        """
        with self._lock:
            adapter = self._adapters.get(provider_id)
            if adapter is None:
                return False

            existing = adapter.config.models
            known = {m.id for m in existing}
            added = 0
            for model in models:
                if model.id not in known:
                    existing.append(model)
                    known.add(model.id)
                    added += 1

        logger.info(f"Added {added} models to {provider_id}")
        return True

    def set_model_enabled(self, provider_id: str, model_id: str, enabled: bool) -> bool:
        """
        Enable or disable one model of a provider.

        Args:
            provider_id: Provider id
            model_id: Native id or alias
            enabled: New state

        Returns:
            False if the provider or the model is unknown
        """
        with self._lock:
            adapter = self._adapters.get(provider_id)
            if adapter is None:
                return False

            for model in adapter.config.models:
                if model.matches(model_id):
                    model.enabled = enabled
                    return True
            return False

    def apply_discovered(
        self,
        provider_id: str,
        discovered: Iterable[DiscoveredModel],
        preserve_enabled: bool = True,
    ) -> bool:
        """
        Replace a provider's models with a discovery result.

        Args:
            provider_id: Provider id
            discovered: Models produced by discovery
            preserve_enabled: Keep the enable flag of models already known;
                new models start disabled

        Returns:
            False if the provider is unknown
        """
        with self._lock:
            adapter = self._adapters.get(provider_id)
            if adapter is None:
                return False

            previous = {m.id: m.enabled for m in adapter.config.models}
            models = []
            for item in discovered:
                enabled = previous.get(item.id, False) if preserve_enabled else False
                models.append(to_model_config(item, enabled=enabled))
            return self.update_models(provider_id, models)

    def get_for_model(self, model_id: str) -> Optional[ProviderAdapter]:
        """
        Find the adapter that serves a model id or alias.

        Enabled providers are scanned in registration order and the first
        match wins, even when later providers expose the same model.

        Args:
            model_id: Model id or alias

        Returns:
            Adapter or None
        """
        with self._lock:
            for adapter in self._adapters.values():
                if adapter.config.enabled and adapter.supports_model(model_id):
                    return adapter
            return None

    def list(self) -> List[ProviderConfig]:
        """Configs of enabled providers, in registration order."""
        with self._lock:
            return [a.config for a in self._adapters.values() if a.config.enabled]

    def list_all(self) -> List[ProviderConfig]:
        """Configs of all providers, in registration order."""
        with self._lock:
            return [a.config for a in self._adapters.values()]

    def list_models(self) -> List[ModelEntry]:
        """
        Enabled models of enabled providers.

        Ordered by provider registration, then by each provider's model list.

        Returns:
            List of (model, provider) entries
        """
        with self._lock:
            return [
                ModelEntry(model, adapter.config)
                for adapter in self._adapters.values()
                if adapter.config.enabled
                for model in adapter.config.models
                if model.enabled
            ]

    def conflicts(self) -> Dict[str, List[str]]:
        """
        Model ids or aliases exposed by more than one enabled provider.

        Returns:
            Mapping of model id/alias to provider ids in routing order
        """
        owners: Dict[str, List[str]] = {}
        for entry in self.list_models():
            for name in {entry.model.id, entry.model.alias}:
                if name is None:
                    continue
                providers = owners.setdefault(name, [])
                if entry.provider.id not in providers:
                    providers.append(entry.provider.id)
        return {name: ids for name, ids in owners.items() if len(ids) > 1}

    def __len__(self) -> int:
        with self._lock:
            return len(self._adapters)

    def __contains__(self, provider_id: str) -> bool:
        with self._lock:
            return provider_id in self._adapters

    def _overlaps_with(self, adapter: ProviderAdapter) -> List[tuple]:
        """Enabled model names that adapter shares with other enabled providers."""
        if not adapter.config.enabled:
            return []

        names = set()
        for model in adapter.config.models:
            if model.enabled:
                names.add(model.id)
                if model.alias:
                    names.add(model.alias)

        overlaps = []
        for other in self._adapters.values():
            if other is adapter or not other.config.enabled:
                continue
            for name in sorted(names):
                if other.supports_model(name):
                    overlaps.append((name, other.config.id))
        return overlaps
