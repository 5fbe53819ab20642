"""
Centralized configuration management for the toolkit.

Settings are resolved from (highest priority first) explicit arguments,
environment variables, a local ``.env`` file and the JSON config file
written by ``policyascode config``.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Type

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from policyascode.exceptions import ConfigError

logger = logging.getLogger(__name__)


DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
DEFAULT_BASE_URL = "https://api.anthropic.com"

CONFIG_DIR = Path.home() / ".policyascode"
CONFIG_FILE = CONFIG_DIR / "config.json"

# Keys the ``config`` command is allowed to persist
PERSISTED_KEYS = ("api_key", "base_url", "model")


def get_config_path() -> Path:
    """Location of the JSON config file (``POLICYASCODE_CONFIG`` overrides)."""
    override = os.environ.get("POLICYASCODE_CONFIG")
    if override:
        return Path(override).expanduser()
    return CONFIG_FILE


class Settings(BaseSettings):
    """Toolkit settings loaded from the environment and the config file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ========================================================================
    # API Configuration
    # ========================================================================
    api_key: Optional[str] = Field(default=None, alias="ANTHROPIC_API_KEY")
    base_url: str = Field(default=DEFAULT_BASE_URL, alias="ANTHROPIC_BASE_URL")
    model: str = Field(default=DEFAULT_MODEL, alias="POLICYASCODE_MODEL")
    api_version: str = Field(default="2023-06-01", alias="ANTHROPIC_VERSION")

    # ========================================================================
    # LLM Request Configuration
    # ========================================================================
    llm_temperature: float = Field(default=0.0, alias="LLM_TEMPERATURE")
    llm_max_tokens: int = Field(default=8192, alias="LLM_MAX_TOKENS")
    llm_timeout: int = Field(default=300, alias="LLM_TIMEOUT")

    # ========================================================================
    # Application Configuration
    # ========================================================================
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: Optional[Path] = Field(default=None, alias="POLICYASCODE_LOG_FILE")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # The saved config file sits below everything else
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonConfigSettingsSource(settings_cls, json_file=get_config_path()),
        )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v):
        """Strip the trailing slash so endpoint paths can be appended."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("llm_temperature")
    @classmethod
    def validate_temperature(cls, v):
        """Ensure temperature is between 0 and 1."""
        if not 0 <= v <= 1:
            raise ValueError("llm_temperature must be between 0 and 1")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    def require_api_key(self) -> str:
        """
        Return the API key or fail before any network call is made.

        Raises:
            ConfigError: If no key is configured
        """
        if not self.api_key:
            raise ConfigError(
                "No API key configured. Set ANTHROPIC_API_KEY or run "
                "'policyascode config --api-key <key>'."
            )
        return self.api_key

    def masked_key(self) -> str:
        """API key suitable for display."""
        if not self.api_key:
            return "<not set>"
        if len(self.api_key) <= 8:
            return "*" * len(self.api_key)
        return f"{self.api_key[:4]}...{self.api_key[-4:]}"


def load_settings(**overrides: Any) -> Settings:
    """
    Build settings from all sources.

    Args:
        **overrides: Explicit values (by field name); ``None`` values are ignored

    Returns:
        Settings: Resolved configuration

    Raises:
        ConfigError: If the config file is unreadable or a value is invalid
    """
    values = {k: v for k, v in overrides.items() if v is not None}
    # Surface a broken config file as ConfigError before pydantic reads it
    read_saved_config()
    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def read_saved_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Read the raw values stored in the config file.

    Returns:
        Dictionary of saved values (empty if the file does not exist)
    """
    path = path or get_config_path()
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Could not read config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return data


def save_settings(values: Dict[str, Any], path: Optional[Path] = None) -> Path:
    """
    Persist API endpoint/key/model selection, merged with what is already saved.

    Args:
        values: Field-name keyed values; ``None`` values are left untouched
        path: Target file (defaults to ``get_config_path()``)

    Returns:
        Path the config was written to
    """
    path = path or get_config_path()
    saved = read_saved_config(path)

    for name in PERSISTED_KEYS:
        value = values.get(name)
        if value is None:
            continue
        alias = Settings.model_fields[name].alias
        # Drop a field-name spelling left by hand edits so the alias wins
        saved.pop(name, None)
        saved[alias] = value

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(saved, f, indent=2)
    try:
        os.chmod(path, 0o600)
    except OSError as e:
        logger.warning(f"Could not restrict permissions on {path}: {e}")
    return path
