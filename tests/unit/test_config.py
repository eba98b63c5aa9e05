"""
Tests for gateway configuration loading and registry bootstrap.
"""

import pytest

from untangle_gateway.core.config import GatewayConfig, load_config, parse_config
from untangle_gateway.server.keys import env_var_name
from untangle_gateway.server.main import build_registry, config_api_keys

CONFIG_YAML = """
server:
  host: 0.0.0.0
  port: 8080
upstream_timeout_seconds: 30
providers:
  openai:
    api_key: ${TEST_OPENAI_KEY}
  groq:
    enabled: false
  anthropic:
    base_url: https://anthropic-proxy.test/v1
    models:
      - id: claude-3-opus-20240229
        enabled: false
      - id: claude-experimental
        alias: claude-x
custom_providers:
  acme:
    name: Acme
    base_url: https://api.acme.test
    api_key: acme-secret
    models:
      - id: acme-1
    endpoints:
      chat:
        path: /chat
        request_template: '{"model": "{{ model }}"}'
        response_template: '{"choices": []}'
  broken:
    base_url: https://broken.test
    endpoints:
      chat:
        request_template: '{{ model '
        response_template: '{}'
"""


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.setenv("TEST_OPENAI_KEY", "sk-from-env")
    for name in ("UNTANGLE_HOST", "UNTANGLE_PORT", "UNTANGLE_UPSTREAM_TIMEOUT", "UNTANGLE_CONFIG"):
        monkeypatch.delenv(name, raising=False)
    path = tmp_path / "untangle.yaml"
    path.write_text(CONFIG_YAML)
    return path


class TestLoadConfig:

    def test_load_file(self, config_file):
        config = load_config(str(config_file))

        assert config.server.host == "0.0.0.0"
        assert config.server.port == 8080
        assert config.upstream_timeout_seconds == 30.0
        assert config.key_test_timeout_seconds == 8.0
        assert config.providers["openai"].api_key == "sk-from-env"
        assert config.providers["groq"].enabled is False
        assert set(config.custom_providers) == {"acme", "broken"}

    def test_unset_env_reference_becomes_none(self, config_file, monkeypatch):
        monkeypatch.delenv("TEST_OPENAI_KEY")

        assert load_config(str(config_file)).providers["openai"].api_key is None

    def test_missing_file_gives_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        for name in ("UNTANGLE_HOST", "UNTANGLE_PORT", "UNTANGLE_UPSTREAM_TIMEOUT", "UNTANGLE_CONFIG"):
            monkeypatch.delenv(name, raising=False)

        config = load_config()

        assert config.server.host == "localhost"
        assert config.server.port == 3000
        assert config.upstream_timeout_seconds == 60.0

    def test_default_location_and_env_path(self, config_file, monkeypatch):
        monkeypatch.chdir(config_file.parent)
        assert load_config().server.port == 8080

        monkeypatch.chdir("/")
        monkeypatch.setenv("UNTANGLE_CONFIG", str(config_file))
        assert load_config().server.port == 8080

    def test_broken_yaml_falls_back_to_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("UNTANGLE_PORT", raising=False)
        path = tmp_path / "bad.yaml"
        path.write_text("server: [unclosed")

        assert load_config(str(path)).server.port == 3000

    def test_env_overrides(self, config_file, monkeypatch):
        monkeypatch.setenv("UNTANGLE_HOST", "127.0.0.1")
        monkeypatch.setenv("UNTANGLE_PORT", "9999")
        monkeypatch.setenv("UNTANGLE_UPSTREAM_TIMEOUT", "5")

        config = load_config(str(config_file))

        assert config.server.host == "127.0.0.1"
        assert config.server.port == 9999
        assert config.upstream_timeout_seconds == 5.0

    def test_parse_empty(self):
        config = parse_config({})

        assert isinstance(config, GatewayConfig)
        assert config.providers == {}


class TestBuildRegistry:

    def test_builtin_and_custom_providers(self, config_file):
        registry = build_registry(load_config(str(config_file)))

        ids = [p.id for p in registry.list_all()]
        assert ids == ["openai", "anthropic", "google", "groq", "openrouter", "acme"]
        assert registry.get("groq").config.enabled is False
        assert "broken" not in registry

    def test_model_overrides(self, config_file):
        registry = build_registry(load_config(str(config_file)))
        anthropic = registry.get("anthropic")

        assert anthropic.config.base_url == "https://anthropic-proxy.test/v1"
        assert not anthropic.supports_model("claude-3-opus-20240229")
        assert anthropic.resolve_model_id("claude-x") == "claude-experimental"
        assert registry.get_for_model("claude-x") is anthropic

    def test_config_api_keys(self, config_file):
        keys = config_api_keys(load_config(str(config_file)))

        assert keys == {"openai": "sk-from-env", "acme": "acme-secret"}


class TestEnvVarNames:

    def test_builtin_names(self):
        assert env_var_name("openai") == "OPENAI_API_KEY"
        assert env_var_name("openrouter") == "OPENROUTER_API_KEY"

    def test_derived_names(self):
        assert env_var_name("my-llm.v2") == "MY_LLM_V2_API_KEY"
