"""Configuration loading for the Pushbullet CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for older interpreters
    import tomli as tomllib  # type: ignore


CONFIG_ENV_PREFIX = "PUSHBULLET_"
CONFIG_VERSION = 1
MIN_SUPPORTED_CONFIG_VERSION = 1
DEFAULT_BASE_URL = "https://api.pushbullet.com"
OUTPUT_FORMATS = ("raw", "json", "yaml")
LOG_FORMATS = ("plain", "json")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _default_token_path() -> Path:
    base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return base / "pbr" / "config"


@dataclass(frozen=True)
class Config:
    """CLI configuration."""

    base_url: str = DEFAULT_BASE_URL
    token_path: Path = field(default_factory=_default_token_path)
    output: str = "raw"
    log_level: str = "WARNING"
    log_format: str = "plain"
    config_version: int = CONFIG_VERSION

    def __post_init__(self) -> None:
        _validate_config(self)

    def logging_dict(self) -> Dict[str, Any]:
        """Return a mapping suitable for structured logging."""

        return {
            "config_version": self.config_version,
            "base_url": self.base_url,
            "token_path": str(self.token_path),
            "output": self.output,
            "log_level": self.log_level,
            "log_format": self.log_format,
        }

    @classmethod
    def from_sources(
        cls,
        cli_overrides: Optional[Mapping[str, Any]] = None,
        config_path: Optional[Path] = None,
    ) -> "Config":
        """Load configuration from defaults, file, env, and CLI (in that order)."""

        file_config = _load_file_config(
            config_path
            or _coerce_path_or_none(os.environ.get(f"{CONFIG_ENV_PREFIX}CONFIG"))
        )
        env_config = _load_env_config(CONFIG_ENV_PREFIX)

        config = cls()
        config = _apply_mapping(config, file_config)
        config = _apply_mapping(config, env_config)
        config = _apply_mapping(config, cli_overrides or {})
        return config


def _validate_config(config: Config) -> None:
    _validate_version(config.config_version)
    if not config.base_url.startswith(("http://", "https://")):
        raise ValueError(f"base_url must be an http(s) URL; got {config.base_url!r}.")
    _validate_choice("output", config.output, OUTPUT_FORMATS)
    _validate_choice("log_format", config.log_format, LOG_FORMATS)
    _validate_choice("log_level", config.log_level.upper(), LOG_LEVELS)


def _validate_version(version: int) -> None:
    if version < MIN_SUPPORTED_CONFIG_VERSION:
        raise ValueError(
            f"Config version {version} is too old; minimum supported is {MIN_SUPPORTED_CONFIG_VERSION}."
        )
    if version > CONFIG_VERSION:
        raise ValueError(
            f"Config version {version} is newer than supported ({CONFIG_VERSION}); please upgrade the CLI."
        )


def _validate_choice(name: str, value: str, allowed: tuple) -> None:
    if value not in allowed:
        raise ValueError(f"{name} must be one of {list(allowed)}; got {value}.")


def _load_file_config(path: Optional[Path]) -> Dict[str, Any]:
    if path is None:
        return {}
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open("rb") as f:
        parsed = tomllib.load(f)
    if not isinstance(parsed, Mapping):
        raise ValueError("Configuration file must contain a TOML table.")
    return {k.replace("-", "_"): v for k, v in parsed.items()}


def _load_env_config(prefix: str) -> Dict[str, Any]:
    mapping: Dict[str, Any] = {}
    for name in Config.__dataclass_fields__:
        env_key = f"{prefix}{name}".upper()
        if env_key in os.environ:
            mapping[name] = os.environ[env_key]
    return mapping


def _apply_mapping(config: Config, overrides: Mapping[str, Any]) -> Config:
    data: MutableMapping[str, Any] = {}
    for key, value in overrides.items():
        if value is None:
            continue
        if key not in Config.__dataclass_fields__:
            raise ValueError(f"Unknown configuration key: {key}")
        if key == "token_path":
            data[key] = _coerce_path(value)
        elif key == "config_version":
            data[key] = int(value)
        elif key == "log_level":
            data[key] = str(value).upper()
        elif key in {"log_format", "output"}:
            data[key] = str(value).lower()
        elif key == "base_url":
            data[key] = str(value).rstrip("/")
        else:
            data[key] = value
    return replace(config, **data)


def _coerce_path(value: Any) -> Path:
    return value if isinstance(value, Path) else Path(str(value)).expanduser()


def _coerce_path_or_none(value: Optional[str]) -> Optional[Path]:
    if not value:
        return None
    return _coerce_path(value)
