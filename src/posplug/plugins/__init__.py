"""Extension layer: hook registry, filter/action dispatch, plugin loading.

Discovery: entry_points (pip-installed) via pluggy setuptools entrypoints.
INVARIANT: Dispatch failures propagate; plugin load failures are warnings.
"""

from posplug.plugins.errors import (
    CallableFailure,
    ContractViolation,
    PosplugError,
    RegistrationError,
)
from posplug.plugins.hookspecs import hookimpl
from posplug.plugins.manager import LoadedPlugins, PluginManager, PluginRegistrar, bootstrap
from posplug.plugins.meta import MetaField, MetaLookup, MetaStore
from posplug.plugins.registry import ExtensionRegistry, HookContract, Registration

__all__ = [
    "CallableFailure",
    "ContractViolation",
    "ExtensionRegistry",
    "HookContract",
    "LoadedPlugins",
    "MetaField",
    "MetaLookup",
    "MetaStore",
    "PluginManager",
    "PluginRegistrar",
    "PosplugError",
    "RegistrationError",
    "Registration",
    "bootstrap",
    "hookimpl",
]
