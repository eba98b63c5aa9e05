"""
Tests for the provider registry: routing, enable state and model lists.
"""

import logging
import threading

import pytest

from untangle_gateway.core.registry import ProviderRegistry
from untangle_gateway.models.provider import DiscoveredModel, ModelConfig

from conftest import make_provider


class TestRegistration:
    """Registering and looking up adapters."""

    def test_register_and_get(self):
        registry = ProviderRegistry()
        adapter = make_provider("alpha", [{"id": "m1"}])
        registry.register(adapter)

        assert registry.get("alpha") is adapter
        assert "alpha" in registry
        assert len(registry) == 1

    def test_get_unknown_provider(self):
        assert ProviderRegistry().get("missing") is None

    def test_second_registration_replaces_first(self):
        registry = ProviderRegistry()
        first = make_provider("p", [{"id": "m1"}])
        second = make_provider("p", [{"id": "m1"}])

        registry.register(first)
        registry.register(second)

        assert registry.get("p") is second
        assert len(registry) == 1

    def test_replacement_keeps_routing_position(self):
        registry = ProviderRegistry()
        registry.register(make_provider("a", [{"id": "x"}]))
        registry.register(make_provider("b", [{"id": "x"}]))
        replacement = make_provider("a", [{"id": "x"}])
        registry.register(replacement)

        assert registry.get_for_model("x") is replacement

    def test_register_rejects_non_adapters(self):
        with pytest.raises(TypeError):
            ProviderRegistry().register(object())

    def test_get_ignores_enabled_state(self):
        registry = ProviderRegistry()
        registry.register(make_provider("off", [{"id": "m1"}], enabled=False))
        assert registry.get("off") is not None

    def test_overlapping_registration_logs_warning(self, caplog):
        registry = ProviderRegistry()
        registry.register(make_provider("a", [{"id": "shared"}]))

        with caplog.at_level(logging.WARNING, logger="untangle_gateway.core.registry"):
            registry.register(make_provider("b", [{"id": "shared"}]))

        assert any("shared" in record.getMessage() for record in caplog.records)


class TestRouting:
    """get_for_model and its tie-break."""

    def test_routes_by_id_and_alias(self):
        registry = ProviderRegistry()
        adapter = make_provider("alpha", [{"id": "model-1", "alias": "m1"}])
        registry.register(adapter)

        assert registry.get_for_model("model-1") is adapter
        assert registry.get_for_model("m1") is adapter
        assert registry.get_for_model("unknown") is None

    def test_first_registered_enabled_provider_wins(self):
        registry = ProviderRegistry()
        a = make_provider("a", [{"id": "x"}])
        b = make_provider("b", [{"id": "x"}])
        registry.register(a)
        registry.register(b)

        assert registry.get_for_model("x") is a

    def test_disabled_provider_is_skipped(self):
        registry = ProviderRegistry()
        a = make_provider("a", [{"id": "x"}])
        b = make_provider("b", [{"id": "x"}])
        registry.register(a)
        registry.register(b)

        registry.set_provider_enabled("a", False)

        assert registry.get_for_model("x") is b

    def test_disabled_model_is_not_routable(self):
        registry = ProviderRegistry()
        registry.register(make_provider("a", [{"id": "x", "enabled": False}]))

        assert registry.get_for_model("x") is None


class TestEnableState:
    """Provider and model toggles."""

    def test_set_provider_enabled(self):
        registry = ProviderRegistry()
        registry.register(make_provider("a", [{"id": "m"}]))

        assert registry.set_provider_enabled("a", False) is True
        assert registry.get("a").config.enabled is False

    def test_set_provider_enabled_unknown(self):
        assert ProviderRegistry().set_provider_enabled("nope", True) is False

    def test_list_and_list_all_after_toggle(self):
        registry = ProviderRegistry()
        registry.register(make_provider("a", [{"id": "m"}]))
        registry.register(make_provider("b", [{"id": "n"}]))

        registry.set_provider_enabled("a", False)

        assert [p.id for p in registry.list()] == ["b"]
        assert [p.id for p in registry.list_all()] == ["a", "b"]

    def test_set_model_enabled_by_alias(self):
        registry = ProviderRegistry()
        registry.register(make_provider("a", [{"id": "model-1", "alias": "m1"}]))

        assert registry.set_model_enabled("a", "m1", False) is True
        assert registry.get("a").config.models[0].enabled is False

    def test_set_model_enabled_unknown_leaves_others_untouched(self):
        registry = ProviderRegistry()
        registry.register(make_provider("a", [{"id": "m1"}, {"id": "m2", "enabled": False}]))

        assert registry.set_model_enabled("a", "missing", True) is False
        assert registry.set_model_enabled("missing", "m1", False) is False
        assert [m.enabled for m in registry.get("a").config.models] == [True, False]


class TestModelLists:
    """list_models, update_models, add_models and discovery."""

    def test_list_models_only_enabled(self):
        registry = ProviderRegistry()
        registry.register(make_provider("p", [{"id": "m1"}, {"id": "m2", "enabled": False}]))

        entries = registry.list_models()

        assert [(e.model.id, e.provider.id) for e in entries] == [("m1", "p")]

    def test_list_models_order(self):
        registry = ProviderRegistry()
        registry.register(make_provider("a", [{"id": "a1"}, {"id": "a2"}]))
        registry.register(make_provider("b", [{"id": "b1"}]))
        registry.register(make_provider("c", [{"id": "c1"}], enabled=False))

        assert [e.model.id for e in registry.list_models()] == ["a1", "a2", "b1"]

    def test_update_models_replaces_wholesale(self):
        registry = ProviderRegistry()
        registry.register(make_provider("p", [{"id": "old"}]))

        assert registry.update_models("p", [ModelConfig(id="new")]) is True

        assert [m.id for m in registry.get("p").config.models] == ["new"]
        assert registry.get_for_model("old") is None
        assert registry.update_models("missing", []) is False

    def test_add_models_dedupes_by_id(self):
        registry = ProviderRegistry()
        registry.register(make_provider("p", [{"id": "m1", "enabled": False}]))

        added = registry.add_models("p", [
            ModelConfig(id="m1", enabled=True),
            ModelConfig(id="m2"),
            ModelConfig(id="m2", alias="dup"),
        ])

        models = registry.get("p").config.models
        assert added is True
        assert [m.id for m in models] == ["m1", "m2"]
        assert models[0].enabled is False
        assert models[1].alias is None

    def test_add_models_unknown_provider(self):
        assert ProviderRegistry().add_models("nope", [ModelConfig(id="m")]) is False

    def test_mutations_visible_without_restart(self):
        registry = ProviderRegistry()
        registry.register(make_provider("p", [{"id": "m1"}]))

        registry.add_models("p", [ModelConfig(id="m2")])

        assert registry.get_for_model("m2") is registry.get("p")

    def test_apply_discovered_preserves_enabled_flags(self):
        registry = ProviderRegistry()
        registry.register(make_provider("p", [{"id": "keep"}, {"id": "off", "enabled": False}]))

        registry.apply_discovered("p", [
            DiscoveredModel(id="keep"),
            DiscoveredModel(id="off"),
            DiscoveredModel(id="fresh", name="Fresh Model"),
        ])

        models = {m.id: m for m in registry.get("p").config.models}
        assert models["keep"].enabled is True
        assert models["off"].enabled is False
        assert models["fresh"].enabled is False
        assert models["fresh"].alias == "fresh-model"

    def test_conflicts(self):
        registry = ProviderRegistry()
        registry.register(make_provider("a", [{"id": "x", "alias": "shared"}, {"id": "only-a"}]))
        registry.register(make_provider("b", [{"id": "x"}]))
        registry.register(make_provider("c", [{"id": "y", "alias": "shared"}]))

        assert registry.conflicts() == {"x": ["a", "b"], "shared": ["a", "c"]}


class TestConcurrency:
    """Operations stay atomic when called from several threads."""

    def test_concurrent_toggles_and_lookups(self):
        registry = ProviderRegistry()
        registry.register(make_provider("a", [{"id": f"m{i}"} for i in range(50)]))
        errors = []

        def toggle():
            for i in range(200):
                registry.set_model_enabled("a", f"m{i % 50}", i % 2 == 0)

        def read():
            try:
                for _ in range(200):
                    assert len(registry.list_models()) <= 50
                    registry.get_for_model("m0")
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=toggle), threading.Thread(target=read)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
