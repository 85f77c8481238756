"""Pluggy hook specifications for posplug plugins.

Both hooks run once, during the load phase. Request-time extension points
are not pluggy hooks: plugins attach plain callables to them through the
registrar passed to ``register_extensions``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pluggy

if TYPE_CHECKING:
    from posplug.plugins.manager import PluginRegistrar

hookspec = pluggy.HookspecMarker("posplug")
hookimpl = pluggy.HookimplMarker("posplug")


class PosplugHookSpec:
    """Hook specifications for the posplug plugin system."""

    @hookspec
    def metafields(self) -> dict[str, dict[str, Any]] | None:
        """Return the settings fields this plugin exposes, keyed by field name.

        Each entry has a ``type`` (``yesorno``, ``string`` or ``number``)
        and an optional display ``size``.
        """

    @hookspec
    def register_extensions(self, registrar: PluginRegistrar) -> None:
        """Attach filters and actions to named hooks."""
