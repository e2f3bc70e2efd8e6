"""
Configuration management for ArbEdge.

Two layers:
- Settings: deployment values from environment variables / .env
  (secrets, database URL, which quote source to use)
- config/config.yaml: business rules (freshness window, store windows,
  retention, scheduler jobs, sports, request budgets), validated on load
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from arbedge.core.errors import ConfigurationError

QUOTE_SOURCES = {"sample", "odds_api"}
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseSettings):
    """Deployment settings read from the environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    arbedge_env: str = Field(default="local", description="local | aws")
    log_level: str = Field(default="INFO")
    timezone: str = Field(default="America/New_York", description="Display timezone")

    quote_source: str = Field(default="sample", description="sample | odds_api")
    odds_api_key: Optional[str] = Field(default=None, description="The Odds API key")
    odds_api_regions: str = Field(default="us,uk,eu")

    database_url: str = Field(default="sqlite:///data/arbedge.db")
    http_timeout: int = Field(default=30, description="HTTP timeout in seconds")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Must be one of {sorted(LOG_LEVELS)}")
        return v

    @field_validator("quote_source")
    @classmethod
    def validate_quote_source(cls, v: str) -> str:
        v = v.lower()
        if v not in QUOTE_SOURCES:
            raise ValueError(f"Invalid quote source: {v}. Must be one of {sorted(QUOTE_SOURCES)}")
        return v

    @property
    def is_local(self) -> bool:
        return self.arbedge_env == "local"

    @property
    def is_aws(self) -> bool:
        return self.arbedge_env == "aws"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# ==============================================
# config.yaml schema
# ==============================================

class RefreshSection(BaseModel):
    freshness_window_seconds: float = Field(default=1800, gt=0)
    max_wait_seconds: float = Field(default=60, gt=0)


class StoreSection(BaseModel):
    active_window_hours: float = Field(default=2, gt=0)
    opportunity_max_age_minutes: float = Field(default=60, gt=0)
    page_size: int = Field(default=50, gt=0)
    quote_retention_hours: float = Field(default=3, gt=0)
    opportunity_retention_hours: float = Field(default=24, gt=0)


class SportSection(BaseModel):
    name: str
    display_name: Optional[str] = None
    has_draw: bool = False
    odds_api_key: Optional[str] = None


class BusinessConfig(BaseModel):
    """Shape check for config.yaml; unknown sections pass through."""

    model_config = ConfigDict(extra="allow")

    refresh: RefreshSection = RefreshSection()
    store: StoreSection = StoreSection()
    sports: list[SportSection] = []
    scheduler: dict[str, dict[str, Any]] = {}
    usage: dict[str, Any] = {}

    @field_validator("sports")
    @classmethod
    def unique_sport_names(cls, v: list[SportSection]) -> list[SportSection]:
        names = [s.name for s in v]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate sports: {duplicates}")
        return v


def _project_root() -> Optional[Path]:
    for parent in Path(__file__).resolve().parents:
        if (parent / "pyproject.toml").exists():
            return parent
    return None


def default_config_path() -> Path:
    """$ARBEDGE_CONFIG, else config/config.yaml next to pyproject.toml."""
    env_path = os.getenv("ARBEDGE_CONFIG")
    if env_path:
        return Path(env_path)
    root = _project_root()
    return (root or Path(".")) / "config" / "config.yaml"


def validate_config(config: dict[str, Any], source: str = "<config>") -> dict[str, Any]:
    """
    Check a business config dict against the schema.

    Returns the dict unchanged; components read it with .get() defaults.

    Raises:
        ConfigurationError: On the first schema violation
    """
    try:
        BusinessConfig.model_validate(config)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ConfigurationError(
            f"Invalid config at {location}: {first['msg']}",
            path=source,
            details={"errors": e.error_count()},
        ) from e
    return config


def load_yaml_config(config_path: Optional[str] = None) -> dict[str, Any]:
    """
    Load and validate config.yaml.

    Args:
        config_path: Path to config file, default_config_path() if not given

    Raises:
        FileNotFoundError: No such file
        ConfigurationError: Unparseable YAML or schema violation
    """
    path = Path(config_path) if config_path else default_config_path()
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}", path=str(path)) from e

    if not isinstance(config, dict):
        raise ConfigurationError(f"Expected a mapping at the top of {path}", path=str(path))
    return validate_config(config, source=str(path))
