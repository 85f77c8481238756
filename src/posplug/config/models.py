"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, posplug.toml only contains overrides.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class PluginsConfig(BaseModel):
    """[plugins] section."""

    model_config = {"frozen": True}

    local_dir: str = ".posplug/plugins"
    disabled: list[str] = Field(default_factory=list)
    entry_point_group: str = "posplug.plugins"


class DispatchConfig(BaseModel):
    """[dispatch] section."""

    model_config = {"frozen": True}

    freeze_after_load: bool = True
