# src/sinkhub/core/config.py
"""
Configuration schema and loading for sinkhub dispatchers.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction. Per-sink defaulting
against the sink kind catalog happens later, in SinkKindCatalog.normalize().
"""

import os
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

if TYPE_CHECKING:
    from sinkhub.contracts.config import SinkConfig
    from sinkhub.dispatch.catalog import SinkKindCatalog


class PrivacySettings(BaseModel):
    """Per-sink redaction flags."""

    model_config = {"frozen": True}

    obfuscation: bool = Field(default=False, description="Hash remote IP fields")
    pseudonymization: bool = Field(default=False, description="Hash user identifier fields")


class SinkSettings(BaseModel):
    """Raw settings for one sink, as persisted.

    Fields the kind defines defaults for (level, options, processors) may be
    left unset here; they are filled in by normalization.

    Example YAML:
        sinks:
          - id: intake
            kind: json_http
            level: info
            endpoint: https://logs.example.com/v1/intake
            headers:
              Authorization: "Bearer ${INTAKE_TOKEN}"
            privacy:
              obfuscation: true
            processors: [http, site]
            options:
              buffered: true
    """

    model_config = {"frozen": True}

    id: str = Field(description="Stable sink identifier")
    kind: str = Field(default="null", description="Sink kind name from the catalog")
    name: str = Field(default="", description="Human-readable sink name")
    enabled: bool = Field(default=True, description="Disabled sinks are never instantiated")
    level: str | int | None = Field(default=None, description="Minimal level (name or ordinal)")
    sampling: int = Field(default=1000, description="Election probability in per-mille (0..1000)")
    format: str = Field(default="", description="Encoder selector for multi-format kinds")
    endpoint: str = Field(default="", description="URL, host:port or storage engine")
    verb: str = Field(default="POST", description="HTTP verb (GET, POST or PUT)")
    headers: dict[str, str] = Field(default_factory=dict, description="Extra transport headers")
    privacy: PrivacySettings = Field(default_factory=PrivacySettings)
    processors: list[str] = Field(default_factory=list, description="Ordered processor inclusion list")
    options: dict[str, Any] = Field(default_factory=dict, description="Kind-specific options")

    @field_validator("id")
    @classmethod
    def validate_id_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("sink id cannot be empty")
        return v.strip()


class DispatchSettings(BaseModel):
    """Top-level dispatcher settings.

    Example YAML:
        respect_debug_flag: true
        debug_flag: false
        environment: production
        instance_name: web-01
        sinks:
          - id: local
            kind: storage
    """

    model_config = {"frozen": True}

    enabled: bool = Field(default=True, description="Master switch; disabled dispatchers log nothing")
    respect_debug_flag: bool = Field(
        default=False,
        description="When true, debug records are only delivered if debug_flag is set",
    )
    debug_flag: bool = Field(default=False, description="External debug flag")
    env_substitution: bool = Field(default=False, description="Expand {VAR} in sink option strings")
    environment: str = Field(default="production", description="Environment stage")
    instance_name: str = Field(default="", description="Name of this instance, for multi-host setups")
    namespace_prefix: str = Field(default="wordpress", description="Prometheus namespace prefix")
    privacy_key: str | None = Field(default=None, description="HMAC key for privacy hashing")
    sinks: list[SinkSettings] = Field(default_factory=list)

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        return v.strip().lower() or "production"

    @model_validator(mode="after")
    def validate_unique_sink_ids(self) -> "DispatchSettings":
        seen: set[str] = set()
        for sink in self.sinks:
            if sink.id in seen:
                raise ValueError(f"Duplicate sink id '{sink.id}'")
            seen.add(sink.id)
        return self


@runtime_checkable
class ConfigurationProvider(Protocol):
    """Where a Dispatcher gets its sink set and global flags."""

    def get_sink_configs(self) -> list["SinkConfig"]: ...

    def get_global_flag(self, name: str) -> bool: ...


class SettingsConfigurationProvider:
    """ConfigurationProvider backed by validated DispatchSettings.

    Sink settings are normalized against the catalog on each call, so a new
    Dispatcher always sees a fresh load.
    """

    _FLAGS = frozenset({"enabled", "respect_debug_flag", "debug_flag", "env_substitution"})

    def __init__(self, settings: DispatchSettings, catalog: "SinkKindCatalog") -> None:
        self._settings = settings
        self._catalog = catalog

    @property
    def settings(self) -> DispatchSettings:
        return self._settings

    def get_sink_configs(self) -> list["SinkConfig"]:
        from sinkhub.contracts.config import SinkConfig

        substitute = self._settings.env_substitution
        return [
            SinkConfig.from_settings(self._catalog.normalize(sink, env_substitution=substitute))
            for sink in self._settings.sinks
        ]

    def get_global_flag(self, name: str) -> bool:
        if name not in self._FLAGS:
            return False
        return bool(getattr(self._settings, name))


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Args:
        config: Configuration dict (may contain nested structures)

    Returns:
        New dict with environment variables expanded
    """

    def replacer(match: re.Match[str]) -> str:
        env_value = os.environ.get(match.group(1))
        if env_value is not None:
            return env_value
        if match.group(2) is not None:
            return match.group(2)
        # Unknown and no default: left as-is so validation can point at it
        return match.group(0)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _ENV_VAR_PATTERN.sub(replacer, value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def _lowercase_keys(value: Any) -> Any:
    """Lowercase dict keys Dynaconf upper-cased, keeping user option keys intact."""
    if isinstance(value, dict):
        return {str(k).lower(): v for k, v in value.items()}
    return value


class SinksFileError(Exception):
    """Raised when a referenced sinks file is missing or invalid."""


def _resolve_sinks_file(config: dict[str, Any], settings_path: Path) -> dict[str, Any]:
    """Replace ``sinks_file`` with the sink list it points to.

    Relative paths resolve against the settings file directory. The file
    holds either a bare list of sinks or a mapping with a ``sinks`` key.
    """
    if "sinks_file" not in config:
        return config
    result = dict(config)
    if "sinks" in result:
        raise SinksFileError("Cannot specify both 'sinks' and 'sinks_file'")
    sinks_path = Path(result.pop("sinks_file"))
    if not sinks_path.is_absolute():
        sinks_path = (settings_path.parent / sinks_path).resolve()
    if not sinks_path.exists():
        raise SinksFileError(f"Sinks file not found: {sinks_path}")

    try:
        loaded = yaml.safe_load(sinks_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise SinksFileError(f"Invalid YAML in sinks file: {e}") from e

    if isinstance(loaded, dict):
        loaded = loaded.get("sinks")
    if loaded is None:
        loaded = []
    if not isinstance(loaded, list):
        raise SinksFileError(f"Sinks file must hold a list of sinks, got {type(loaded).__name__}")
    result["sinks"] = loaded
    return result


def load_settings(config_path: Path) -> DispatchSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (SINKHUB_*) - highest priority
    2. Config file (settings.yaml)
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: SINKHUB_RESPECT_DEBUG_FLAG=true.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated DispatchSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
        SinksFileError: If a referenced sinks_file is missing or invalid
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="SINKHUB",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    raw_config = _resolve_sinks_file(raw_config, config_path)
    if isinstance(raw_config.get("sinks"), list):
        raw_config["sinks"] = [_lowercase_keys(sink) for sink in raw_config["sinks"]]

    raw_config = _expand_env_vars(raw_config)

    return DispatchSettings(**raw_config)
