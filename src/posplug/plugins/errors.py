"""Exception hierarchy for registration and dispatch.

INVARIANT: Dispatch failures propagate. The registry never swallows them;
the host decides whether to abort the request or isolate the plugin.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from posplug.plugins.registry import Registration


class PosplugError(Exception):
    """Base class for all posplug errors."""


class RegistrationError(PosplugError, TypeError):
    """A registration was rejected (non-callable target or frozen registry)."""


class CallableFailure(PosplugError):
    """A registered callable raised during dispatch.

    The original exception is chained as ``__cause__``.

    Attributes:
        hook_name: Hook being dispatched.
        kind: ``"filter"`` or ``"action"``.
        index: Position of the failing callable in the dispatched sequence.
        registration: The failing registration.
    """

    def __init__(self, hook_name: str, kind: str, index: int, registration: Registration) -> None:
        self.hook_name = hook_name
        self.kind = kind
        self.index = index
        self.registration = registration
        owner = f" (plugin {registration.plugin})" if registration.plugin else ""
        super().__init__(f"{kind} #{index} on hook {hook_name!r} failed{owner}")


class ContractViolation(PosplugError, TypeError):
    """A callable broke the shape contract of the hook it is registered on."""

    def __init__(self, hook_name: str, index: int, message: str) -> None:
        self.hook_name = hook_name
        self.index = index
        super().__init__(f"hook {hook_name!r} #{index}: {message}")
