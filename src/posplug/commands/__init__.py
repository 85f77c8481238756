"""Subcommand modules for posplug.

Provides register_commands() which uses deferred imports to keep
``posplug --help`` fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all standalone commands on the root CLI group."""
    from posplug.commands.dispatch import apply, fire
    from posplug.commands.listing import hooks, plugins

    cli.add_command(plugins)
    cli.add_command(hooks)
    cli.add_command(apply)
    cli.add_command(fire)
