"""Per-plugin settings lookup ("meta" values).

Plugins declare their settings fields through the ``metafields`` hook.
Values come from configuration (``[meta.<plugin>]`` tables) and are
coerced to the declared field type on lookup. Nothing here is persisted.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Literal, Protocol

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

FieldType = Literal["yesorno", "string", "number"]

_EMPTY: dict[str, Any] = {"yesorno": False, "string": "", "number": 0}
_TRUTHY = {"1", "true", "yes", "y", "on"}


class MetaField(BaseModel):
    """One settings field a plugin exposes."""

    model_config = {"frozen": True}

    name: str
    type: FieldType = "string"
    size: int = 20


class MetaLookup(Protocol):
    """Key-value settings lookup keyed by plugin and field name."""

    def get_meta(self, plugin: str, field: str) -> Any: ...


class MetaStore:
    """In-memory MetaLookup seeded from configuration values."""

    def __init__(self, values: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        self._values: dict[str, dict[str, Any]] = {
            plugin: dict(fields) for plugin, fields in (values or {}).items()
        }
        self._fields: dict[str, dict[str, MetaField]] = {}

    def declare(self, plugin: str, fields: Mapping[str, Any]) -> dict[str, MetaField]:
        """Record the fields *plugin* exposes.

        *fields* maps field keys to MetaField instances or plain dicts as
        returned by a plugin's ``metafields`` hook. Invalid entries raise
        ValueError.
        """
        declared: dict[str, MetaField] = {}
        for key, raw in fields.items():
            if isinstance(raw, MetaField):
                declared[key] = raw
                continue
            try:
                declared[key] = MetaField.model_validate({"name": key, **dict(raw)})
            except (TypeError, ValidationError) as exc:
                msg = f"Invalid metafield {key!r} for plugin {plugin!r}: {exc}"
                raise ValueError(msg) from exc
        configured = self._values.get(plugin, {})
        for key, field in declared.items():
            raw = configured.get(key)
            if raw is None:
                continue
            try:
                _coerce(field.type, raw)
            except ValueError as exc:
                msg = f"Invalid value for metafield {key!r} of plugin {plugin!r}: {exc}"
                raise ValueError(msg) from exc
        self._fields[plugin] = declared
        unknown = set(configured) - set(declared)
        if unknown:
            logger.warning(
                "Ignoring undeclared meta values for plugin %s: %s",
                plugin,
                ", ".join(sorted(unknown)),
            )
        return declared

    def forget(self, plugin: str) -> None:
        """Drop the field declarations of *plugin*, if any."""
        self._fields.pop(plugin, None)

    def fields(self, plugin: str) -> dict[str, MetaField]:
        return dict(self._fields.get(plugin, {}))

    def plugins(self) -> list[str]:
        return sorted(self._fields)

    def get_meta(self, plugin: str, field: str) -> Any:
        """Return the configured value of *field* for *plugin*.

        For declared plugins the value is coerced to the field type and
        unset fields yield the type's empty value; an undeclared field
        raises KeyError. Plugins without declarations get the raw value
        or None.
        """
        raw = self._values.get(plugin, {}).get(field)
        declared = self._fields.get(plugin)
        if declared is None:
            return raw
        if field not in declared:
            msg = f"Plugin {plugin!r} declares no metafield {field!r}"
            raise KeyError(msg)
        field_type = declared[field].type
        if raw is None:
            return _EMPTY[field_type]
        return _coerce(field_type, raw)


def _coerce(field_type: FieldType, raw: Any) -> Any:
    if field_type == "yesorno":
        if isinstance(raw, str):
            return raw.strip().lower() in _TRUTHY
        return bool(raw)
    if field_type == "number":
        if isinstance(raw, bool):
            msg = f"expected a number, got {raw!r}"
            raise ValueError(msg)
        if isinstance(raw, (int, float)):
            return raw
        text = str(raw).strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            msg = f"expected a number, got {raw!r}"
            raise ValueError(msg) from None
    return str(raw)
