"""Configuration models and YAML loader for the query engine."""

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, model_validator

DEFAULT_CONFIG_PATH = "config/settings.yaml"


class EngineConfig(BaseModel):
    """Per-session engine behaviour."""

    page_size: int = Field(default=20, ge=1, le=100)
    fetch_timeout_seconds: float = Field(default=10.0, gt=0.0)
    saved_capacity: int = Field(default=10, ge=1)
    recent_capacity: int = Field(default=5, ge=1)


class CacheConfig(BaseModel):
    """Result cache TTL and size bound."""

    ttl_seconds: float = Field(default=300.0, gt=0.0)
    max_entries: int | None = Field(default=256, ge=1)


class SourceConfig(BaseModel):
    """Where candidate listings come from."""

    kind: Literal["sample", "file"] = "sample"
    path: str | None = None
    count: int = Field(default=50, ge=0)
    seed: int = 42

    @model_validator(mode="after")
    def path_required_for_file(self) -> "SourceConfig":
        if self.kind == "file" and not self.path:
            msg = "source.path is required when source.kind is 'file'"
            raise ValueError(msg)
        return self


class PersistenceConfig(BaseModel):
    """Where filters, saved searches and recent searches are stored."""

    backend: Literal["sqlite", "json", "memory"] = "sqlite"
    path: str = "data/search_state.db"


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    engine: EngineConfig = Field(default_factory=EngineConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    source: SourceConfig = Field(default_factory=SourceConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)

    @classmethod
    def load(cls, path: str | Path | None = None) -> "Settings":
        """Load an explicit config file, or the default one if it exists.

        An explicit path that does not exist is an error; a missing default
        file means built-in defaults.
        """
        if path is not None:
            return cls.from_yaml(path)
        if Path(DEFAULT_CONFIG_PATH).exists():
            return cls.from_yaml(DEFAULT_CONFIG_PATH)
        return cls()
