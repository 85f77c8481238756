"""Commands: fire a filter chain or an action sequence by hand."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import click

from posplug.commands._base import JsonObject, PosplugCommand
from posplug.output.result import CommandError, CommandResult
from posplug.plugins.errors import CallableFailure, PosplugError

if TYPE_CHECKING:
    from posplug.commands._context import AppContext


@click.command(
    cls=PosplugCommand,
    examples="""\
  posplug apply after_invoice "Total: 12.50" --params '{"model": {"id": 42}}'
  posplug --json apply after_mainmenu_common ''""",
)
@click.argument("hook_name")
@click.argument("value")
@click.option("--params", type=JsonObject(), default="{}", help="Dispatch params as a JSON object.")
@click.pass_obj
def apply(app: AppContext, hook_name: str, value: str, params: dict[str, Any]) -> None:
    """Run the filter chain of HOOK_NAME over VALUE and print the result."""
    registry = app.loaded.registry
    try:
        result = registry.apply_filters(hook_name, value, params)
    except PosplugError as exc:
        app.emit(_failure("apply_filters", exc))
        return
    app.emit(
        CommandResult(
            ok=True,
            op="apply_filters",
            data={
                "hook": hook_name,
                "filters": len(registry.filters(hook_name)),
                "value": _jsonable(result),
            },
        )
    )


@click.command(
    cls=PosplugCommand,
    examples="""\
  posplug fire after_invoice --params '{"model": {"id": 42}}'""",
)
@click.argument("hook_name")
@click.option("--params", type=JsonObject(), default="{}", help="Dispatch params as a JSON object.")
@click.pass_obj
def fire(app: AppContext, hook_name: str, params: dict[str, Any]) -> None:
    """Invoke every action registered on HOOK_NAME."""
    registry = app.loaded.registry
    try:
        registry.do_actions(hook_name, params)
    except PosplugError as exc:
        app.emit(_failure("do_actions", exc))
        return
    app.emit(
        CommandResult(
            ok=True,
            op="do_actions",
            data={"hook": hook_name, "actions": len(registry.actions(hook_name))},
        )
    )


def _failure(op: str, exc: PosplugError) -> CommandResult:
    detail: dict[str, Any] = {}
    message = str(exc)
    if isinstance(exc, CallableFailure):
        detail = {
            "hook": exc.hook_name,
            "kind": exc.kind,
            "index": exc.index,
            "plugin": exc.registration.plugin,
            "callback": exc.registration.callback_name,
        }
        if exc.__cause__ is not None:
            message = f"{message}: {exc.__cause__}"
    return CommandResult(
        ok=False,
        op=op,
        error=CommandError(code=type(exc).__name__, message=message, detail=detail),
    )


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return repr(value)
    return value
