"""AppContext: shared Click context for all commands.

Created once by the root CLI group and flows to all subcommands via
``@click.pass_obj``. Plugins are loaded lazily so ``--help`` and
``--version`` never import plugin code.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from posplug.output.formatters import format_result

if TYPE_CHECKING:
    from posplug.config.settings import PosplugSettings
    from posplug.output.result import CommandResult
    from posplug.plugins.manager import LoadedPlugins


class AppContext:
    """Shared context flowing through Click's command hierarchy."""

    def __init__(self, settings: PosplugSettings) -> None:
        self.settings = settings
        self._loaded: LoadedPlugins | None = None

        from posplug.config.logging import configure_logging

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)

    @property
    def loaded(self) -> LoadedPlugins:
        """Registry populated from the configured plugins (loaded on first use)."""
        if self._loaded is None:
            from posplug.plugins.manager import bootstrap

            self._loaded = bootstrap(self.settings)
        return self._loaded

    def emit(self, result: CommandResult) -> None:
        """Format and output a CommandResult with correct exit semantics.

        * Success: writes to stdout. Warnings go to stderr in human mode.
        * Failure: writes to stderr, exits with code 1.
        """
        output = format_result(result, json_output=self.settings.json_output)
        if result.ok:
            click.echo(output)
            if not self.settings.json_output:
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)
