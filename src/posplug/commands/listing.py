"""Commands: inspect loaded plugins and registered hooks."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from posplug.commands._base import PosplugCommand
from posplug.output.result import CommandResult
from posplug.plugins.registry import type_label

if TYPE_CHECKING:
    from posplug.commands._context import AppContext


@click.command(
    cls=PosplugCommand,
    examples="""\
  posplug plugins
  posplug --json plugins
  posplug --plugins-dir ./plugins plugins""",
)
@click.pass_obj
def plugins(app: AppContext) -> None:
    """List discovered plugins, their settings fields and registrations."""
    loaded = app.loaded
    counts: dict[str, int] = {}
    for row in loaded.registry.describe():
        if row["plugin"] is not None:
            counts[row["plugin"]] = counts.get(row["plugin"], 0) + 1

    rows = []
    for name in loaded.manager.list_plugin_names():
        fields = loaded.meta.fields(name)
        rows.append(
            {
                "name": name,
                "loaded": name in loaded.loaded,
                "registrations": counts.get(name, 0),
                "metafields": {key: field.type for key, field in fields.items()},
            }
        )

    warnings = [
        f"Plugin {row['name']} did not load" for row in rows if not row["loaded"]
    ]
    app.emit(
        CommandResult(
            ok=True,
            op="list_plugins",
            data={"count": len(rows), "plugins": rows},
            warnings=warnings,
        )
    )


@click.command(
    cls=PosplugCommand,
    examples="""\
  posplug hooks
  posplug hooks --hook after_invoice""",
)
@click.option("--hook", "hook_name", default=None, help="Only show this hook.")
@click.pass_obj
def hooks(app: AppContext, hook_name: str | None) -> None:
    """List registered filters and actions in dispatch order."""
    registry = app.loaded.registry
    rows = registry.describe()
    if hook_name is not None:
        rows = [row for row in rows if row["hook"] == hook_name]

    data: dict[str, object] = {"count": len(rows), "registrations": rows}
    contracts = [
        {
            "hook": name,
            "value_type": type_label(contract.value_type),
            "description": contract.description,
        }
        for name in registry.hook_names()
        if (contract := registry.contract(name)) is not None
        and (hook_name is None or name == hook_name)
    ]
    if contracts:
        data["contracts"] = contracts
    app.emit(CommandResult(ok=True, op="list_hooks", data=data))
