"""Unified settings: CLI flags, env vars, and TOML config in one object.

Priority chain (highest to lowest):
  1. Init kwargs  (CLI flags passed by Click)
  2. Env vars     (``POSPLUG_*`` prefix, ``__`` for nested sections)
  3. TOML file    (``posplug.toml`` discovered via walk-up)
  4. Code defaults baked into the section models
"""

from __future__ import annotations

import threading
import tomllib
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from posplug.config.discovery import find_config
from posplug.config.models import DispatchConfig, PluginsConfig
from posplug.plugins.errors import PosplugError


class ConfigError(PosplugError, ValueError):
    """The configuration file could not be parsed."""


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Read settings from a ``posplug.toml`` file."""

    def __init__(self, settings_cls: type[BaseSettings], toml_path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}
        if toml_path and toml_path.is_file():
            raw = toml_path.read_text(encoding="utf-8")
            try:
                self._data = tomllib.loads(raw)
            except tomllib.TOMLDecodeError as exc:
                msg = f"Invalid TOML in {toml_path}: {exc}"
                raise ConfigError(msg) from exc

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Return ``(value, field_name, value_is_complex)``."""
        val = self._data.get(field_name)
        return val, field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        return self._data


# TOML path handed to settings_customise_sources during construction.
_tls = threading.local()


class PosplugSettings(BaseSettings):
    """Settings for the plugin host and the ``posplug`` CLI.

    Attributes:
        base_dir: Directory relative paths resolve against (parent of
            ``posplug.toml``, or CWD if no config found).
        config_path: The config file in use, if any.
        plugins_dir: Explicit local plugin directory, overriding
            ``plugins.local_dir``.
        meta: Per-plugin settings values, ``{plugin: {field: value}}``.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "POSPLUG_",
        "env_nested_delimiter": "__",
    }

    base_dir: Path = Field(default_factory=Path.cwd)
    config_path: Path | None = None

    # --- CLI flags ---
    json_output: bool = False
    verbose: bool = False
    log_json: bool = False
    plugins_dir: Path | None = None

    # --- TOML sections ---
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)
    meta: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @property
    def resolved_plugins_dir(self) -> Path:
        """Local plugin directory as an absolute path."""
        path = self.plugins_dir or Path(self.plugins.local_dir)
        return path if path.is_absolute() else self.base_dir / path

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Insert TOML source between env vars and defaults."""
        toml_path = getattr(_tls, "toml_path", None)
        return (
            init_settings,
            env_settings,
            TomlSettingsSource(settings_cls, toml_path),
        )

    @classmethod
    def from_cli(
        cls,
        *,
        config_path: str | None = None,
        base_dir: Path | None = None,
        **cli_flags: Any,
    ) -> PosplugSettings:
        """Construct settings from a CLI invocation.

        Discovers ``posplug.toml`` via walk-up (or explicit *config_path*),
        resolves *base_dir* from the config file's parent directory, and
        merges CLI flags as highest-priority overrides. Flags left as None
        fall through to lower-priority sources, so callers pass None for an
        unset boolean flag rather than False.
        """
        toml_path: Path | None = None
        if config_path:
            p = Path(config_path)
            if p.is_file():
                toml_path = p
        else:
            toml_path = find_config(base_dir)

        resolved_base = base_dir
        if resolved_base is None:
            resolved_base = toml_path.parent if toml_path else Path.cwd()

        overrides = {key: value for key, value in cli_flags.items() if value is not None}
        _tls.toml_path = toml_path
        try:
            return cls(base_dir=resolved_base, config_path=toml_path, **overrides)
        finally:
            _tls.toml_path = None
