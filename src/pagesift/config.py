"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (PAGESIFT__PIPELINE__BATCH_SIZE=5)
  2. pagesift.yaml          (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; all fields have sensible defaults. Tier limits
are deliberately not configurable; see ``pagesift.models.tiers``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("pagesift")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "pagesift.db")


def _find_config_file() -> str | None:
    """Return the path of the first pagesift.yaml found, or None."""
    candidates = [
        Path("pagesift.yaml"),
        Path(platformdirs.user_config_dir("pagesift")) / "pagesift.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class StorageSettings(BaseModel):
    db_path: str = _DEFAULT_DB_PATH


class CacheSettings(BaseModel):
    sweep_interval_hours: int = Field(default=6, ge=1)


class FetcherSettings(BaseModel):
    head_timeout_seconds: float = Field(default=5.0, gt=0)
    fetch_timeout_seconds: float = Field(default=10.0, gt=0)
    user_agent: str = "pagesift/1.0 (+site analysis bot)"
    max_connections: int = Field(default=10, ge=1)
    block_private_ips: bool = True


class PipelineSettings(BaseModel):
    batch_size: int = Field(default=10, ge=1)
    batch_delay_seconds: float = Field(default=0.5, ge=0)
    page_timeout_seconds: float = Field(default=15.0, gt=0)
    run_timeout_seconds: float = Field(default=300.0, gt=0)
    prioritize_urls: bool = True


class QuotaSettings(BaseModel):
    # Allow analyses when the usage store cannot be read
    fail_open: bool = True


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: PAGESIFT__QUOTA__FAIL_OPEN=false
        env_prefix="PAGESIFT__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    storage: StorageSettings = StorageSettings()
    cache: CacheSettings = CacheSettings()
    fetcher: FetcherSettings = FetcherSettings()
    pipeline: PipelineSettings = PipelineSettings()
    quota: QuotaSettings = QuotaSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
