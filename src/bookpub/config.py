"""Application configuration: settings schema and config.yaml loader"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field


CONFIG_FILE = "config.yaml"


class Settings(BaseModel):
    app_name:          str = "bookpub"
    db_url:            str = "sqlite:///bookpub.db"
    output_dir:        str = Field(default="dist", description="Directory for assembled documents + sidecar JSON")
    output_format:     str = Field(default="adoc", pattern="^(adoc|md)$", description="adoc or md")
    body_markup:       str = Field(default="asciidoc", pattern="^(asciidoc|markdown)$", description="Markup of node bodies")
    title_map:         Optional[str] = Field(default=None, description="YAML title table; bundled Bible canon when unset")
    numeric_collection: str = Field(default="quran", description="Collection whose numeric titles are kept verbatim")
    numeric_title_max: int = Field(default=114, ge=1, description="Largest numeric title kept verbatim")
    index_kind:        int = Field(default=30040, description="Event kind of index (branch) nodes")
    leaf_kind:         int = Field(default=30041, description="Event kind of leaf (content) nodes")
    max_heading_depth: int = Field(default=6, ge=3, le=6, description="Deepest heading level emitted")
    preview_length:    int = Field(default=60, ge=8, description="Heading preview length for untitled leaves")
    default_version:   str = Field(default="", description="Version used when the root has none, e.g. 'first edition'")
    max_workers:       int = Field(default=1, ge=1, description="Concurrent store queries per node; 1 = sequential")
    log_level:         str = Field(default="WARNING", pattern="^(DEBUG|INFO|WARNING|ERROR)$")


def load_config(overrides: dict[str, Any] = None) -> Settings:
    """Load Settings from config.yaml, then BOOKPUB_<FIELD> env vars, then non-None CLI overrides."""
    data: dict[str, Any] = {}
    if Path(CONFIG_FILE).exists():
        try:
            data = yaml.safe_load(Path(CONFIG_FILE).read_text()) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid {CONFIG_FILE}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Invalid {CONFIG_FILE}: expected a mapping, got {type(data).__name__}")

    for name in Settings.model_fields:
        if val := os.getenv(f"BOOKPUB_{name.upper()}"):
            data[name] = val

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**data)
