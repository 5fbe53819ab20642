"""Tests for settings resolution and persistence."""

import json

import pytest

from policyascode.config import (
    DEFAULT_BASE_URL,
    DEFAULT_MODEL,
    Settings,
    get_config_path,
    load_settings,
    read_saved_config,
    save_settings,
)
from policyascode.exceptions import ConfigError


class TestSettings:
    def test_defaults(self):
        settings = load_settings()
        assert settings.api_key is None
        assert settings.model == DEFAULT_MODEL
        assert settings.base_url == DEFAULT_BASE_URL
        assert settings.llm_max_tokens == 8192

    def test_environment_variables(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-env")
        monkeypatch.setenv("ANTHROPIC_BASE_URL", "https://proxy.example.test/")
        monkeypatch.setenv("POLICYASCODE_MODEL", "claude-env")

        settings = load_settings()

        assert settings.api_key == "sk-env"
        assert settings.base_url == "https://proxy.example.test"
        assert settings.model == "claude-env"

    def test_explicit_override_beats_environment(self, monkeypatch):
        monkeypatch.setenv("POLICYASCODE_MODEL", "claude-env")
        assert load_settings(model="claude-cli").model == "claude-cli"

    def test_none_overrides_are_ignored(self, monkeypatch):
        monkeypatch.setenv("POLICYASCODE_MODEL", "claude-env")
        assert load_settings(model=None).model == "claude-env"

    def test_require_api_key(self):
        with pytest.raises(ConfigError):
            Settings().require_api_key()
        assert Settings(api_key="k").require_api_key() == "k"

    def test_log_level_is_normalized(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_invalid_values_are_config_errors(self):
        with pytest.raises(ConfigError):
            load_settings(base_url="ftp://nope")
        with pytest.raises(ConfigError):
            load_settings(log_level="LOUD")

    def test_masked_key(self):
        assert Settings(api_key="sk-ant-abcdef123456").masked_key() == "sk-a...3456"
        assert Settings().masked_key() == "<not set>"


class TestConfigFile:
    def test_config_path_follows_environment(self, isolated_env):
        assert get_config_path() == isolated_env

    def test_saved_values_are_loaded(self):
        save_settings({"api_key": "sk-saved", "model": "claude-saved"})

        settings = load_settings()

        assert settings.api_key == "sk-saved"
        assert settings.model == "claude-saved"

    def test_environment_beats_saved_values(self, monkeypatch):
        save_settings({"model": "claude-saved"})
        monkeypatch.setenv("POLICYASCODE_MODEL", "claude-env")
        assert load_settings().model == "claude-env"

    def test_save_merges_with_existing(self, isolated_env):
        save_settings({"api_key": "sk-first"})
        save_settings({"base_url": "https://other.example.test", "api_key": None})

        saved = read_saved_config()

        assert saved["ANTHROPIC_API_KEY"] == "sk-first"
        assert saved["ANTHROPIC_BASE_URL"] == "https://other.example.test"
        assert json.loads(isolated_env.read_text(encoding="utf-8")) == saved

    def test_unreadable_file_is_config_error(self, isolated_env):
        isolated_env.parent.mkdir(parents=True, exist_ok=True)
        isolated_env.write_text("{not json", encoding="utf-8")

        with pytest.raises(ConfigError):
            read_saved_config()
        with pytest.raises(ConfigError):
            load_settings()
