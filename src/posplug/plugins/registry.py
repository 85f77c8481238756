"""Extension registry and filter/action dispatch.

Hooks are named extension points. Callables are registered against a hook
either as filters (``fn(value, params) -> value``, applied as a left fold)
or as actions (``fn(params)``, return value ignored). Filters and actions
of the same name are kept in separate sequences.

INVARIANT: Callables run in registration order. A failing callable stops
the chain and the failure propagates as CallableFailure.
"""

from __future__ import annotations

import inspect
import itertools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Literal

from posplug.plugins.errors import CallableFailure, ContractViolation, RegistrationError

logger = logging.getLogger(__name__)

HookKind = Literal["filter", "action"]
FilterFn = Callable[[Any, Any], Any]
ActionFn = Callable[[Any], Any]

# Stands in for an omitted params argument; an explicit None is passed through.
_NO_PARAMS: Any = object()


@dataclass(frozen=True, eq=False)
class Registration:
    """One callable attached to one hook.

    ``order`` increases with every registration. Registrations compare by
    identity, so unregistering one issued by another registry fails.
    """

    hook_name: str
    kind: HookKind
    callback: Callable[..., Any]
    order: int
    plugin: str | None = None

    @property
    def callback_name(self) -> str:
        return getattr(self.callback, "__qualname__", None) or repr(self.callback)


@dataclass(frozen=True)
class HookContract:
    """Declared value type for the filter chain of one hook."""

    hook_name: str
    value_type: type | tuple[type, ...]
    description: str = ""


class ExtensionRegistry:
    """Maps hook names to ordered filter and action registrations.

    Created once by the host, populated during plugin loading, then
    optionally frozen so request-time dispatch sees a read-only registry.
    """

    def __init__(self) -> None:
        self._filters: dict[str, list[Registration]] = {}
        self._actions: dict[str, list[Registration]] = {}
        self._contracts: dict[str, HookContract] = {}
        self._sequence = itertools.count()
        self._frozen = False

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_filter(
        self, hook_name: str, fn: FilterFn, *, plugin: str | None = None
    ) -> Registration:
        """Append *fn* to the filter chain of *hook_name*."""
        return self._register(self._filters, "filter", hook_name, fn, plugin)

    def register_action(
        self, hook_name: str, fn: ActionFn, *, plugin: str | None = None
    ) -> Registration:
        """Append *fn* to the action sequence of *hook_name*."""
        return self._register(self._actions, "action", hook_name, fn, plugin)

    def unregister(self, registration: Registration) -> None:
        """Remove one registration, leaving the order of the rest intact.

        Raises KeyError if the registration is not present.
        """
        self._check_mutable(f"unregister from hook {registration.hook_name!r}")
        table = self._filters if registration.kind == "filter" else self._actions
        entries = table.get(registration.hook_name, [])
        if registration not in entries:
            msg = f"Not registered: {registration.kind} {registration.callback_name}"
            raise KeyError(msg)
        entries.remove(registration)
        if not entries:
            del table[registration.hook_name]
        logger.debug(
            "Unregistered %s %s from %s",
            registration.kind,
            registration.callback_name,
            registration.hook_name,
        )

    def declare(
        self,
        hook_name: str,
        value_type: type | tuple[type, ...],
        description: str = "",
    ) -> HookContract:
        """Declare the type every filter on *hook_name* must return."""
        self._check_mutable(f"declare hook {hook_name!r}")
        contract = HookContract(hook_name, value_type, description)
        self._contracts[hook_name] = contract
        return contract

    def freeze(self) -> None:
        """End the registration phase. Later mutations raise RegistrationError."""
        self._frozen = True
        logger.debug("Registry frozen with %d hooks", len(self.hook_names()))

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def apply_filters(self, hook_name: str, value: Any, params: Any = _NO_PARAMS) -> Any:
        """Thread *value* through every filter on *hook_name*, in order.

        Returns *value* unchanged when no filters are registered.
        """
        params = {} if params is _NO_PARAMS else params
        for index, registration in enumerate(self.filters(hook_name)):
            result = self._invoke(registration, index, value, params)
            if inspect.isawaitable(result):
                self._reject_awaitable(registration, index, result)
            value = self._check_contract(hook_name, index, result)
        return value

    def do_actions(self, hook_name: str, params: Any = _NO_PARAMS) -> None:
        """Invoke every action on *hook_name*, in order."""
        params = {} if params is _NO_PARAMS else params
        for index, registration in enumerate(self.actions(hook_name)):
            result = self._invoke(registration, index, params)
            if inspect.isawaitable(result):
                self._reject_awaitable(registration, index, result)

    async def apply_filters_async(
        self, hook_name: str, value: Any, params: Any = _NO_PARAMS
    ) -> Any:
        """Like :meth:`apply_filters`, awaiting each filter before the next."""
        params = {} if params is _NO_PARAMS else params
        for index, registration in enumerate(self.filters(hook_name)):
            result = self._invoke(registration, index, value, params)
            if inspect.isawaitable(result):
                result = await self._await(registration, index, result)
            value = self._check_contract(hook_name, index, result)
        return value

    async def do_actions_async(self, hook_name: str, params: Any = _NO_PARAMS) -> None:
        """Like :meth:`do_actions`, awaiting each action before the next."""
        params = {} if params is _NO_PARAMS else params
        for index, registration in enumerate(self.actions(hook_name)):
            result = self._invoke(registration, index, params)
            if inspect.isawaitable(result):
                await self._await(registration, index, result)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def filters(self, hook_name: str) -> tuple[Registration, ...]:
        """Snapshot of the filter chain for *hook_name*."""
        return tuple(self._filters.get(hook_name, ()))

    def actions(self, hook_name: str) -> tuple[Registration, ...]:
        """Snapshot of the action sequence for *hook_name*."""
        return tuple(self._actions.get(hook_name, ()))

    def has_filters(self, hook_name: str) -> bool:
        return bool(self._filters.get(hook_name))

    def has_actions(self, hook_name: str) -> bool:
        return bool(self._actions.get(hook_name))

    def contract(self, hook_name: str) -> HookContract | None:
        return self._contracts.get(hook_name)

    def hook_names(self) -> list[str]:
        """Sorted names of all hooks with registrations or a contract."""
        return sorted({*self._filters, *self._actions, *self._contracts})

    def describe(self) -> list[dict[str, Any]]:
        """Registrations as plain dicts, grouped by hook name."""
        rows: list[dict[str, Any]] = []
        for hook_name in self.hook_names():
            for registration in (*self.filters(hook_name), *self.actions(hook_name)):
                rows.append(
                    {
                        "hook": hook_name,
                        "kind": registration.kind,
                        "order": registration.order,
                        "plugin": registration.plugin,
                        "callback": registration.callback_name,
                    }
                )
        return rows

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _register(
        self,
        table: dict[str, list[Registration]],
        kind: HookKind,
        hook_name: str,
        fn: Callable[..., Any],
        plugin: str | None,
    ) -> Registration:
        if not callable(fn):
            msg = f"Cannot register non-callable {type(fn).__name__} as {kind} on {hook_name!r}"
            raise RegistrationError(msg)
        self._check_mutable(f"register {kind} on {hook_name!r}")
        registration = Registration(
            hook_name=hook_name,
            kind=kind,
            callback=fn,
            order=next(self._sequence),
            plugin=plugin,
        )
        table.setdefault(hook_name, []).append(registration)
        logger.debug("Registered %s %s on %s", kind, registration.callback_name, hook_name)
        return registration

    def _check_mutable(self, what: str) -> None:
        if self._frozen:
            msg = f"Registry is frozen; cannot {what}"
            raise RegistrationError(msg)

    @staticmethod
    def _invoke(registration: Registration, index: int, *args: Any) -> Any:
        try:
            return registration.callback(*args)
        except Exception as exc:
            logger.debug(
                "%s %s on %s raised: %s",
                registration.kind,
                registration.callback_name,
                registration.hook_name,
                exc,
            )
            raise CallableFailure(
                registration.hook_name, registration.kind, index, registration
            ) from exc

    @staticmethod
    async def _await(registration: Registration, index: int, awaitable: Awaitable[Any]) -> Any:
        try:
            return await awaitable
        except Exception as exc:
            logger.debug(
                "%s %s on %s raised: %s",
                registration.kind,
                registration.callback_name,
                registration.hook_name,
                exc,
            )
            raise CallableFailure(
                registration.hook_name, registration.kind, index, registration
            ) from exc

    @staticmethod
    def _reject_awaitable(
        registration: Registration, index: int, awaitable: Awaitable[Any]
    ) -> None:
        if inspect.iscoroutine(awaitable):
            awaitable.close()
        msg = (
            f"{registration.callback_name} returned an awaitable; "
            f"use the async dispatch variant"
        )
        raise ContractViolation(registration.hook_name, index, msg)

    def _check_contract(self, hook_name: str, index: int, value: Any) -> Any:
        contract = self._contracts.get(hook_name)
        if contract is not None and not isinstance(value, contract.value_type):
            expected = type_label(contract.value_type)
            msg = f"filter returned {type(value).__name__}, expected {expected}"
            raise ContractViolation(hook_name, index, msg)
        return value


def type_label(value_type: type | tuple[type, ...]) -> str:
    if isinstance(value_type, tuple):
        return " | ".join(t.__name__ for t in value_type)
    return value_type.__name__
