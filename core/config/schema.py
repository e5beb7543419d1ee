# ==============================
# Config Schemas (Pydantic)
# ==============================
"""
Pydantic settings models for csv2api.

Notes:
- Keep these schemas stable: dataset, gateway and CLI depend on them.
- No env reads here. No file IO here. Pure types + defaults.
- loader.py builds a single Settings object with precedence merging.

Precedence (implemented in loader.py):
env > .env > configs/*.yaml > defaults
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ==============================
# App Settings
# ==============================


class PathsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    repo_root: str = Field(default=".", description="Repo root (relative or absolute)")
    configs_dir: str = Field(default="configs", description="Configs directory")


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    env: str = Field(default="local", description="Environment name (local/stage/prod)")
    debug: bool = Field(default=False)
    host: str = Field(default="localhost")
    port: int = Field(default=3000, ge=0, le=65535)
    cors: bool = Field(default=True, description="Allow cross-origin requests from any origin")
    paths: PathsConfig = Field(default_factory=PathsConfig)


# ==============================
# Dataset Settings
# ==============================


class DatasetConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: Optional[str] = Field(default=None, description="CSV file served by the gateway")
    delimiter: str = Field(default=",", min_length=1, max_length=1)
    encoding: str = Field(default="utf-8-sig", description="utf-8-sig strips a leading BOM")
    require_csv_extension: bool = Field(default=True)
    watch: bool = Field(default=True, description="Reload when the source file changes")
    stability_window_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Quiet period after the last file event before a reload fires.",
    )


# ==============================
# Query Settings
# ==============================


class QueryConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    default_page: int = Field(default=1, ge=1)
    default_limit: int = Field(default=10, ge=1)
    sample_id_count: int = Field(
        default=10,
        ge=0,
        description="How many ids to list when a row lookup misses.",
    )


# ==============================
# Logging Settings
# ==============================


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    level: str = Field(default="INFO")
    console: bool = Field(default=True)
    json_lines: bool = Field(default=True, alias="json", description="JSON-line records instead of plain text")


# ==============================
# Top-Level Settings
# ==============================


class Settings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    app: AppConfig = Field(default_factory=AppConfig)
    dataset: DatasetConfig = Field(default_factory=DatasetConfig)
    query: QueryConfig = Field(default_factory=QueryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def repo_root_path(self) -> Path:
        return Path(self.app.paths.repo_root).expanduser().resolve()

    def dataset_path(self) -> Optional[Path]:
        if not self.dataset.path:
            return None
        path = Path(self.dataset.path).expanduser()
        return path if path.is_absolute() else (self.repo_root_path() / path)
