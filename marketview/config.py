from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

PAGE_SIZE_OPTIONS: tuple[int, ...] = (5, 10, 20, 50, 100)


class ConfigError(Exception):
    """Raised when configuration cannot be loaded or validated."""


class ApiConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    base_url: str = Field(default="https://api.coingecko.com")
    timeout_s: float = Field(default=10, gt=0)
    max_retries: int = Field(default=2, ge=0)
    backoff_base_s: float = Field(default=0.5, ge=0)
    backoff_max_s: float = Field(default=8, ge=0)
    max_rps: float = Field(default=0.5, gt=0)


class ViewConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    default_currency: Literal["USD", "EUR"] = Field(default="USD")
    default_sort_order: Literal["cap_desc", "cap_asc"] = Field(default="cap_desc")
    default_page_size: int = Field(default=10)
    # Upper bound shown by the pagination control; the API does not report real totals.
    total_rows_estimate: int = Field(default=10_000, ge=1)

    @field_validator("default_page_size")
    @classmethod
    def _validate_page_size(cls, value: int) -> int:
        if value not in PAGE_SIZE_OPTIONS:
            raise ValueError(f"default_page_size must be one of {list(PAGE_SIZE_OPTIONS)}")
        return value


class ObsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    log_jsonl: bool = Field(default=True)


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    api: ApiConfig = Field(default_factory=ApiConfig)
    view: ViewConfig = Field(default_factory=ViewConfig)
    obs: ObsConfig = Field(default_factory=ObsConfig)


@dataclass(frozen=True)
class LoadedConfig:
    config: AppConfig
    raw: dict[str, Any]


def load_config(path: Path) -> LoadedConfig:
    if not path.exists():
        raise ConfigError(f"Config not found: {path}")

    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML: {exc}") from exc

    if not isinstance(payload, dict):
        raise ConfigError("Config root must be a mapping")

    try:
        config = AppConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc

    return LoadedConfig(config=config, raw=payload)
