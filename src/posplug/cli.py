"""Root CLI group for posplug with global flags and command registration."""

from __future__ import annotations

from pathlib import Path

import click

from posplug import __version__
from posplug.commands import register_commands
from posplug.commands._context import AppContext
from posplug.config.settings import ConfigError, PosplugSettings


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="posplug")
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output.")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging.")
@click.option("--log-json", is_flag=True, help="Structured JSON log output to stderr.")
@click.option("-c", "--config", "config_path", default=None, help="Override config file path.")
@click.option(
    "--plugins-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory of single-file plugins.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    json_output: bool,
    verbose: bool,
    log_json: bool,
    config_path: str | None,
    plugins_dir: Path | None,
) -> None:
    """posplug: inspect and exercise point-of-sale plugin hooks."""
    ctx.ensure_object(dict)
    try:
        settings = PosplugSettings.from_cli(
            config_path=config_path,
            json_output=json_output or None,
            verbose=verbose or None,
            log_json=log_json or None,
            plugins_dir=plugins_dir,
        )
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    ctx.obj = AppContext(settings)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)
