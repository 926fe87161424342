"""
Tests for configuration resolution.
"""

import json

import pytest

from gemini_browser.config import (
    PROJECT_CONFIG_FILENAME,
    AgentConfig,
    apply_preset,
    load_schema,
    merge_configs,
    parse_positive_int,
    resolve_config,
)
from gemini_browser.errors import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("GEMINI_MODEL", "GEMINI_THINKING_BUDGET", "GEMINI_BROWSER_DEBUG"):
        monkeypatch.delenv(name, raising=False)


def write_rc(directory, data):
    (directory / PROJECT_CONFIG_FILENAME).write_text(json.dumps(data))


class TestResolveConfig:
    """Tests for layered configuration."""

    def test_defaults(self, tmp_path):
        config = resolve_config({}, project_dir=tmp_path)

        assert config.model == "gemini-2.5-flash"
        assert config.max_steps == 30
        assert config.thinking_budget == 1024
        assert config.temperature == 0.2
        assert config.request_delay_ms == 1000
        assert config.interactive is True
        assert config.mcp_command == "npx"
        assert config.mcp_args == ["chrome-devtools-mcp@latest"]
        assert config.response_schema is None

    def test_layer_precedence(self, tmp_path, monkeypatch):
        """rc file < environment < CLI."""
        write_rc(tmp_path, {"model": "rc-model", "max_steps": 10, "thinking_budget": 0})
        monkeypatch.setenv("GEMINI_MODEL", "env-model")

        config = resolve_config({"max_steps": 5, "model": None}, project_dir=tmp_path)

        assert config.model == "env-model"
        assert config.max_steps == 5
        assert config.thinking_budget == 0

    def test_preset_between_env_and_cli(self, tmp_path, monkeypatch):
        write_rc(tmp_path, {"presets": {"fast": {"max_steps": 8, "thinking_budget": 0, "model": "preset-model"}}})
        monkeypatch.setenv("GEMINI_THINKING_BUDGET", "2048")

        config = resolve_config({"max_steps": 3}, preset_name="fast", project_dir=tmp_path)

        assert config.thinking_budget == 0
        assert config.model == "preset-model"
        assert config.max_steps == 3

    def test_unknown_preset(self, tmp_path):
        write_rc(tmp_path, {"presets": {"fast": {}, "thorough": {}}})

        with pytest.raises(ConfigError, match="fast, thorough"):
            resolve_config({}, preset_name="slow", project_dir=tmp_path)

    def test_invalid_rc_file(self, tmp_path):
        (tmp_path / PROJECT_CONFIG_FILENAME).write_text("{not json")

        with pytest.raises(ConfigError, match="Failed to load config"):
            resolve_config({}, project_dir=tmp_path)

    def test_invalid_thinking_budget_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GEMINI_THINKING_BUDGET", "lots")

        with pytest.raises(ConfigError):
            resolve_config({}, project_dir=tmp_path)

    def test_schema_loaded(self, tmp_path):
        schema_path = tmp_path / "price.json"
        schema_path.write_text(json.dumps({"type": "OBJECT", "properties": {}}))

        config = resolve_config({"schema": str(schema_path)}, project_dir=tmp_path)

        assert config.response_schema == {"type": "OBJECT", "properties": {}}

    def test_debug_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GEMINI_BROWSER_DEBUG", "1")
        assert resolve_config({}, project_dir=tmp_path).debug is True


class TestMergeConfigs:
    """Tests for merge_configs and apply_preset."""

    def test_none_values_skipped(self):
        merged = merge_configs({"model": "a", "max_steps": 5}, None, {"model": None, "max_steps": 7})
        assert merged == {"model": "a", "max_steps": 7}

    def test_presets_merged_by_name(self):
        merged = merge_configs(
            {"presets": {"a": {"max_steps": 1}}},
            {"presets": {"b": {"max_steps": 2}}},
        )
        assert set(merged["presets"]) == {"a", "b"}

    def test_apply_preset(self):
        config = {"max_steps": 30, "presets": {"quick": {"max_steps": 5}}}
        assert apply_preset(config, "quick")["max_steps"] == 5


class TestLoadSchema:
    """Tests for load_schema."""

    def test_bare_schema(self, tmp_path):
        path = tmp_path / "s.json"
        path.write_text(json.dumps({"type": "ARRAY", "items": {"type": "STRING"}}))
        assert load_schema(path)["type"] == "ARRAY"

    def test_wrapped_schema(self, tmp_path):
        path = tmp_path / "s.json"
        path.write_text(json.dumps({"schema": {"type": "OBJECT"}}))
        assert load_schema(path) == {"type": "OBJECT"}

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Failed to load schema"):
            load_schema(tmp_path / "nope.json")

    def test_not_a_schema(self, tmp_path):
        path = tmp_path / "s.json"
        path.write_text("[1, 2]")
        with pytest.raises(ConfigError):
            load_schema(path)


class TestAgentConfig:
    """Tests for AgentConfig validation."""

    def test_missing_api_key(self):
        with pytest.raises(ConfigError, match="GEMINI_API_KEY"):
            AgentConfig(api_key="").validate()

    def test_api_key_present(self):
        AgentConfig(api_key="abc").validate()

    def test_non_positive_steps(self):
        with pytest.raises(ConfigError):
            AgentConfig(max_steps=0)

    @pytest.mark.parametrize("value", ["0", "-3", "abc", None])
    def test_parse_positive_int_rejects(self, value):
        with pytest.raises(ConfigError):
            parse_positive_int(value, "max-steps")

    def test_parse_positive_int(self):
        assert parse_positive_int("12") == 12
