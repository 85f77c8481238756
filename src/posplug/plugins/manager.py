"""Plugin discovery and loading.

Discovery: entry_points (pip-installed) via pluggy setuptools entrypoints,
plus local directory discovery of single-file plugins.
Loading: each plugin declares its metafields, then attaches filters and
actions to the registry through a PluginRegistrar scoped to that plugin.

INVARIANT: Plugin failures during discovery and loading are warnings,
never errors. A plugin that fails mid-load leaves no registrations or metafields behind.
"""

from __future__ import annotations

import importlib.util
import inspect
import logging
import sys
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pluggy
import structlog

from posplug.plugins.hookspecs import PosplugHookSpec
from posplug.plugins.meta import MetaStore
from posplug.plugins.registry import ActionFn, ExtensionRegistry, FilterFn, Registration

if TYPE_CHECKING:
    from posplug.config.settings import PosplugSettings

PROJECT_NAME = "posplug"
ENTRY_POINT_GROUP = "posplug.plugins"

logger = logging.getLogger(__name__)


class PluginRegistrar:
    """Registration handle given to one plugin during loading.

    Everything registered through it is tagged with the plugin name, and
    settings lookups are limited to that plugin's own fields.
    """

    def __init__(self, registry: ExtensionRegistry, plugin_name: str, meta: MetaStore) -> None:
        self._registry = registry
        self._name = plugin_name
        self._meta = meta
        self._registrations: list[Registration] = []

    @property
    def plugin_name(self) -> str:
        return self._name

    @property
    def registrations(self) -> tuple[Registration, ...]:
        return tuple(self._registrations)

    def register_filter(self, hook_name: str, fn: FilterFn) -> Registration:
        registration = self._registry.register_filter(hook_name, fn, plugin=self._name)
        self._registrations.append(registration)
        return registration

    def register_action(self, hook_name: str, fn: ActionFn) -> Registration:
        registration = self._registry.register_action(hook_name, fn, plugin=self._name)
        self._registrations.append(registration)
        return registration

    def get_meta(self, field: str) -> Any:
        """Look up one of this plugin's settings values."""
        return self._meta.get_meta(self._name, field)

    def rollback(self) -> None:
        """Remove every registration made through this registrar."""
        for registration in reversed(self._registrations):
            self._registry.unregister(registration)
        self._registrations.clear()


class PluginManager:
    """Manages plugin discovery and loading into an ExtensionRegistry."""

    def __init__(self, entry_point_group: str = ENTRY_POINT_GROUP) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(PosplugHookSpec)
        self._entry_point_group = entry_point_group
        self._discovered: bool = False
        self._loaded: bool = False

    def discover(self, *, local_dir: Path | None = None) -> list[str]:
        """Discover plugins from entry points and an optional local directory.

        Returns the names of all registered plugins.
        """
        self._pm.load_setuptools_entrypoints(self._entry_point_group)
        self._normalize_plugin_instances()
        if local_dir is not None:
            self._discover_local(local_dir)
        self._discovered = True
        return self.list_plugin_names()

    def register_plugin(self, plugin: object, name: str | None = None) -> None:
        """Register a plugin instance directly."""
        resolved_name = name or plugin.__class__.__name__
        self._pm.register(plugin, name=resolved_name)
        logger.debug("Registered plugin: %s", resolved_name)

    def unregister(self, plugin: object) -> None:
        """Unregister a plugin instance."""
        self._pm.unregister(plugin)

    @property
    def is_discovered(self) -> bool:
        """Whether discover() has been called."""
        return self._discovered

    @property
    def is_loaded(self) -> bool:
        """Whether load() has been called."""
        return self._loaded

    @property
    def hook(self) -> pluggy.HookRelay:
        """Access the pluggy hook relay."""
        return self._pm.hook

    def get_plugins(self) -> list[object]:
        """Return all registered plugins, in registration order."""
        return [plugin for _name, plugin in self._named_plugins()]

    def list_plugin_names(self) -> list[str]:
        """Return names of all registered plugins, in registration order."""
        return [name for name, _plugin in self._named_plugins()]

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(
        self,
        registry: ExtensionRegistry,
        meta: MetaStore,
        *,
        disabled: Iterable[str] = (),
    ) -> list[str]:
        """Run the load phase for every registered plugin, in registration order.

        Returns the names of plugins that loaded successfully.
        """
        skip = set(disabled)
        loaded: list[str] = []
        for name, plugin in self._named_plugins():
            if name in skip:
                logger.debug("Skipping disabled plugin: %s", name)
                continue
            with structlog.contextvars.bound_contextvars(plugin=name):
                ok = self._load_plugin(registry, meta, name, plugin)
            if ok:
                loaded.append(name)
        self._loaded = True
        return loaded

    def _load_plugin(
        self,
        registry: ExtensionRegistry,
        meta: MetaStore,
        name: str,
        plugin: object,
    ) -> bool:
        fields_hook = getattr(plugin, "metafields", None)
        if fields_hook is not None:
            try:
                fields = fields_hook()
                if fields is not None:
                    if not isinstance(fields, dict):
                        msg = f"metafields() returned {type(fields).__name__}, expected dict"
                        raise TypeError(msg)
                    meta.declare(name, fields)
            except Exception:
                logger.warning("Failed to collect metafields from plugin %s", name, exc_info=True)
                return False

        extensions_hook = getattr(plugin, "register_extensions", None)
        if extensions_hook is None:
            return True

        registrar = PluginRegistrar(registry, name, meta)
        try:
            extensions_hook(registrar=registrar)
        except Exception:
            logger.warning("Failed to load extensions from plugin %s", name, exc_info=True)
            registrar.rollback()
            meta.forget(name)
            return False

        logger.debug(
            "Loaded plugin %s with %d registrations", name, len(registrar.registrations)
        )
        return True

    # ------------------------------------------------------------------
    # Local directory discovery
    # ------------------------------------------------------------------

    def _discover_local(self, local_dir: Path) -> None:
        """Scan *local_dir* for single-file Python plugins.

        Each ``*.py`` file (excluding ``_``-prefixed names) is loaded as a
        module. Classes inside the module that carry hookimpl-decorated
        methods are instantiated and registered.
        """
        if not local_dir.is_dir():
            return

        for py_file in sorted(local_dir.glob("*.py")):
            if py_file.name.startswith("_"):
                continue
            module_name = f"posplug_local_plugin_{py_file.stem}"
            try:
                spec = importlib.util.spec_from_file_location(module_name, py_file)
                if spec is None or spec.loader is None:
                    logger.warning("Could not create module spec for %s", py_file)
                    continue
                module = importlib.util.module_from_spec(spec)
                sys.modules[module_name] = module
                spec.loader.exec_module(module)
            except Exception:
                logger.warning("Failed to load local plugin %s", py_file, exc_info=True)
                sys.modules.pop(module_name, None)
                continue

            for _attr_name, obj in inspect.getmembers(module, inspect.isclass):
                if obj.__module__ != module_name:
                    continue  # imported
                if not self._has_hook_impls(obj):
                    continue
                try:
                    instance = obj()
                    self.register_plugin(instance, name=py_file.stem)
                    logger.debug("Loaded local plugin %s from %s", obj.__name__, py_file)
                except Exception:
                    logger.warning(
                        "Failed to instantiate plugin class %s from %s",
                        obj.__name__,
                        py_file,
                        exc_info=True,
                    )

    def _normalize_plugin_instances(self) -> None:
        """Replace registered plugin classes with instantiated objects.

        Entry-point loading may register a plugin class directly, which
        would leave ``self`` unbound in its hook methods.
        """
        for name, plugin in self._named_plugins():
            if not inspect.isclass(plugin):
                continue
            if not self._has_hook_impls(plugin):
                continue

            self._pm.unregister(plugin)
            try:
                instance = plugin()
            except Exception:
                logger.warning("Failed to instantiate entry-point plugin %s", name, exc_info=True)
                continue

            self._pm.register(instance, name=name)
            logger.debug("Instantiated entry-point plugin: %s", name)

    def _named_plugins(self) -> list[tuple[str, Any]]:
        return [
            (name, plugin) for name, plugin in self._pm.list_name_plugin() if plugin is not None
        ]

    @staticmethod
    def _has_hook_impls(cls: type) -> bool:
        """Check whether *cls* has any methods decorated with ``@hookimpl``.

        Pluggy's ``HookimplMarker("posplug")`` sets a ``posplug_impl``
        attribute on decorated methods.
        """
        for name in dir(cls):
            if name.startswith("_"):
                continue
            method = getattr(cls, name, None)
            if callable(method) and getattr(method, "posplug_impl", None):
                return True
        return False


@dataclass
class LoadedPlugins:
    """Result of :func:`bootstrap`: the populated registry and its collaborators."""

    registry: ExtensionRegistry
    meta: MetaStore
    manager: PluginManager
    loaded: list[str]


def bootstrap(
    settings: PosplugSettings,
    *,
    plugins: Iterable[object] = (),
    discover: bool = True,
) -> LoadedPlugins:
    """Create a registry and populate it from the configured plugins.

    *plugins* are registered before discovery, in the given order, so they
    load ahead of discovered plugins. The registry is frozen afterwards
    when ``dispatch.freeze_after_load`` is set.
    """
    manager = PluginManager(settings.plugins.entry_point_group)
    for plugin in plugins:
        manager.register_plugin(plugin)
    if discover:
        manager.discover(local_dir=settings.resolved_plugins_dir)

    registry = ExtensionRegistry()
    meta = MetaStore(settings.meta)
    loaded = manager.load(registry, meta, disabled=settings.plugins.disabled)
    if settings.dispatch.freeze_after_load:
        registry.freeze()
    return LoadedPlugins(registry=registry, meta=meta, manager=manager, loaded=loaded)
