"""Conductor user configuration, as consumed by the health check."""
import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, SecretStr, ValidationError

from .workflow import load_yaml

logger = logging.getLogger("conductor.core.config")

CONFIG_ENV = "CONDUCTOR_CONFIG"
PROVIDER_ENV = "CONDUCTOR_PROVIDER"
TIER_PRIORITY = ("balanced", "fast", "strategic")


class ConfigError(Exception):
    """Raised when the config file exists but cannot be loaded."""


class ConfigNotFoundError(ConfigError):
    """Raised when there is no config file at the resolved path."""


class ProviderConfig(BaseModel):
    type: str
    api_key: Optional[SecretStr] = None
    base_url: Optional[str] = None
    model: Optional[str] = None


class ConductorConfig(BaseModel):
    version: Optional[int] = None
    default_provider: Optional[str] = None
    providers: dict[str, ProviderConfig] = Field(default_factory=dict)
    tiers: dict[str, str] = Field(default_factory=dict)

    def primary_provider(self) -> Optional[str]:
        """Name of the provider the CLI would use by default, or None."""
        override = os.getenv(PROVIDER_ENV)
        if override and override in self.providers:
            return override
        if self.default_provider and self.default_provider in self.providers:
            return self.default_provider
        for tier in TIER_PRIORITY:
            ref = self.tiers.get(tier, "")
            if "/" in ref and ref.index("/") > 0:
                return ref.split("/", 1)[0]
        if self.providers:
            return sorted(self.providers)[0]
        return None


def config_path() -> Path:
    """CONDUCTOR_CONFIG, else $XDG_CONFIG_HOME/conductor/config.yaml, else ~/.config/..."""
    explicit = os.getenv(CONFIG_ENV)
    if explicit:
        return Path(explicit).expanduser()
    base = os.getenv("XDG_CONFIG_HOME") or os.path.join(Path.home(), ".config")
    return Path(base) / "conductor" / "config.yaml"


def _describe_validation_error(error: ValidationError) -> str:
    # Field values may be credentials; report locations and messages only
    parts = []
    for item in error.errors(include_input=False, include_url=False):
        location = ".".join(str(p) for p in item["loc"])
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def load_config(path: Optional[Path] = None) -> ConductorConfig:
    """Load and validate the config file.

    Raises:
        ConfigNotFoundError: If the file does not exist
        ConfigError: If it cannot be read, parsed or validated
    """
    path = path or config_path()
    if not path.exists():
        raise ConfigNotFoundError(f"config file not found: {path}")

    try:
        raw = load_yaml(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        where = f" at line {mark.line + 1}" if mark is not None else ""
        problem = getattr(e, "problem", None) or "invalid YAML"
        raise ConfigError(f"invalid YAML{where}: {problem}") from None
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"cannot read config file: {e}") from None

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("config file must contain a YAML mapping")

    try:
        return ConductorConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(_describe_validation_error(e)) from None
