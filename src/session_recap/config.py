"""Configuration management for Session Recap."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Literal, Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .events import EventChannel, Subscription

logger = logging.getLogger(__name__)

AIProvider = Literal["openai", "local", "disabled"]

DEFAULT_EXCLUDE_FILE_PATTERNS = ("*.log", "node_modules/**", ".git/**")
DEFAULT_EXCLUDE_COMMIT_PATTERNS = ("WIP:", "temp:", "debug:")

_FIELD_MESSAGES = {
    "enabled": "enabled must be a boolean",
    "maxCommitsToShow": "maxCommitsToShow must be an integer between 1 and 50",
    "enableAISummary": "enableAISummary must be a boolean",
    "aiProvider": "aiProvider must be one of: openai, local, disabled",
    "openaiApiKey": "openaiApiKey must be a string",
    "aiMaxTokens": "aiMaxTokens must be an integer between 50 and 1000",
    "aiTemperature": "aiTemperature must be a number between 0 and 2",
    "enableTeamDashboard": "enableTeamDashboard must be a boolean",
    "shareWithTeam": "shareWithTeam must be a boolean",
    "excludeFilePatterns": "excludeFilePatterns must be an array of non-empty strings",
    "excludeCommitPatterns": "excludeCommitPatterns must be an array of non-empty strings",
}


class ConfigurationError(ValueError):
    """Raised when configuration values fail validation."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors) or "Invalid configuration")
        self.errors = list(errors)


class PrivacySettings(BaseModel):
    """Privacy controls applied before anything is tracked or shared."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    share_with_team: bool = Field(default=False, alias="shareWithTeam")
    exclude_file_patterns: tuple[str, ...] = Field(
        default=DEFAULT_EXCLUDE_FILE_PATTERNS, alias="excludeFilePatterns"
    )
    exclude_commit_patterns: tuple[str, ...] = Field(
        default=DEFAULT_EXCLUDE_COMMIT_PATTERNS, alias="excludeCommitPatterns"
    )

    @field_validator("exclude_file_patterns", "exclude_commit_patterns", mode="before")
    @classmethod
    def _ensure_pattern_list(cls, value: Any):
        if value is None:
            return ()
        if not isinstance(value, (list, tuple)):
            raise ValueError("Patterns must be a list of strings")
        return tuple(value)

    @field_validator("exclude_file_patterns", "exclude_commit_patterns")
    @classmethod
    def _reject_blank_patterns(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if any(not pattern.strip() for pattern in value):
            raise ValueError("Patterns must not be empty")
        return value


class ExtensionConfig(BaseModel):
    """Validated extension configuration, replaced wholesale on every change."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    enabled: bool = True
    max_commits_to_show: int = Field(default=10, ge=1, le=50, alias="maxCommitsToShow")
    enable_ai_summary: bool = Field(default=True, alias="enableAISummary")
    ai_provider: AIProvider = Field(default="disabled", alias="aiProvider")
    openai_api_key: str = Field(default="", alias="openaiApiKey")
    ai_max_tokens: int = Field(default=150, ge=50, le=1000, alias="aiMaxTokens")
    ai_temperature: float = Field(default=0.7, ge=0, le=2, alias="aiTemperature")
    enable_team_dashboard: bool = Field(default=False, alias="enableTeamDashboard")
    privacy_settings: PrivacySettings = Field(
        default_factory=PrivacySettings, alias="privacySettings"
    )

    @model_validator(mode="after")
    def _require_openai_key(self) -> "ExtensionConfig":
        if self.ai_provider == "openai" and not self.openai_api_key.strip():
            raise ValueError("openaiApiKey is required when aiProvider is openai")
        return self

    @property
    def ai_summary_enabled(self) -> bool:
        return self.enable_ai_summary and self.ai_provider != "disabled"

    def to_mapping(self) -> dict[str, Any]:
        """Return the camelCase mapping used by host settings documents."""

        return self.model_dump(mode="json", by_alias=True)


@dataclass(slots=True)
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)


def _describe_errors(exc: ValidationError) -> list[str]:
    messages: list[str] = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if isinstance(part, str)]
        message = None
        for part in reversed(loc):
            if part in _FIELD_MESSAGES:
                message = _FIELD_MESSAGES[part]
                break
        if message is None:
            message = str(error.get("msg", "invalid value")).removeprefix("Value error, ")
        if message not in messages:
            messages.append(message)
    return messages


def _merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def parse_config(mapping: Mapping[str, Any] | None = None) -> ExtensionConfig:
    """Build an :class:`ExtensionConfig` from a (partial) host settings mapping.

    Missing keys take their defaults. Raises :class:`ConfigurationError`
    listing every invalid field.
    """

    document = _merge(ExtensionConfig().to_mapping(), mapping or {})
    try:
        return ExtensionConfig.model_validate(document)
    except ValidationError as exc:
        raise ConfigurationError(_describe_errors(exc)) from exc


def validate_configuration(partial: Mapping[str, Any]) -> ValidationResult:
    """Validate a partial configuration without raising."""

    try:
        parse_config(partial)
    except ConfigurationError as exc:
        return ValidationResult(is_valid=False, errors=exc.errors)
    return ValidationResult(is_valid=True)


def load_extension_config(path: Path | None) -> ExtensionConfig:
    """Load the extension configuration from a YAML settings document.

    The document may hold the keys at top level or nested under
    ``sessionRecap``. A missing file yields the defaults.
    """

    if path is None or not Path(path).exists():
        return ExtensionConfig()

    document = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(document, Mapping):
        raise ConfigurationError([f"Settings document {path} must be a mapping"])
    if isinstance(document.get("sessionRecap"), Mapping):
        document = document["sessionRecap"]
    return parse_config(document)


class ConfigurationService:
    """Holds the current configuration and fans out replacements."""

    def __init__(self, config: ExtensionConfig | None = None) -> None:
        self._config = config or ExtensionConfig()
        self._changes: EventChannel[ExtensionConfig] = EventChannel("configuration")

    @property
    def current(self) -> ExtensionConfig:
        return self._config

    def get_configuration(self) -> ExtensionConfig:
        return self._config

    def on_configuration_changed(self, callback: Callable[[ExtensionConfig], None]) -> Subscription:
        return self._changes.subscribe(callback)

    def replace(self, mapping: Mapping[str, Any]) -> ExtensionConfig:
        """Validate ``mapping`` and swap it in as the current configuration."""

        config = parse_config(mapping)
        self._config = config
        logger.debug("Configuration replaced", extra={"enabled": config.enabled})
        self._changes.publish(config)
        return config

    def update_configuration(self, key: str, value: Any) -> ExtensionConfig:
        """Replace a single dotted key, e.g. ``privacySettings.shareWithTeam``."""

        document = self._config.to_mapping()
        target = document
        parts = key.split(".")
        for part in parts[:-1]:
            nested = target.get(part)
            if not isinstance(nested, dict):
                raise ConfigurationError([f"Unknown configuration section '{part}'"])
            target = nested
        target[parts[-1]] = value
        return self.replace(document)


class RecapSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    storage_path: Path = Field(
        default=Path("~/.session-recap"), validation_alias="RECAP_STORAGE_PATH"
    )
    workspace_root: Path = Field(default=Path("."), validation_alias="RECAP_WORKSPACE_ROOT")
    config_path: Path | None = Field(default=None, validation_alias="RECAP_CONFIG_PATH")
    log_level: str = Field(default="INFO", validation_alias="RECAP_LOG_LEVEL")
    git_path: str | None = Field(default=None, validation_alias="GIT_PATH")
    git_poll_interval: float = Field(default=30.0, validation_alias="RECAP_GIT_POLL_INTERVAL")
    member_id: str = Field(default="local", validation_alias="RECAP_MEMBER_ID")
    team_roster_path: Path | None = Field(default=None, validation_alias="RECAP_TEAM_ROSTER_PATH")
    team_share_path: Path | None = Field(default=None, validation_alias="RECAP_TEAM_SHARE_PATH")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "RECAP_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("git_poll_interval")
    @classmethod
    def _validate_poll_interval(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("RECAP_GIT_POLL_INTERVAL must be > 0")
        return value

    @field_validator("member_id")
    @classmethod
    def _normalize_member_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("RECAP_MEMBER_ID must not be empty")
        return normalized


@lru_cache(maxsize=1)
def get_settings() -> RecapSettings:
    """Return cached settings instance."""

    settings = RecapSettings()
    settings.storage_path = settings.storage_path.expanduser().resolve()
    settings.workspace_root = settings.workspace_root.expanduser().resolve()
    if settings.config_path is not None:
        settings.config_path = settings.config_path.expanduser().resolve()
    return settings


__all__ = [
    "AIProvider",
    "ConfigurationError",
    "ConfigurationService",
    "ExtensionConfig",
    "PrivacySettings",
    "RecapSettings",
    "ValidationResult",
    "get_settings",
    "load_extension_config",
    "parse_config",
    "validate_configuration",
]
