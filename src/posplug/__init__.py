"""posplug: filter/action extension points for point-of-sale plugins."""

from posplug.plugins import (
    CallableFailure,
    ContractViolation,
    ExtensionRegistry,
    PosplugError,
    RegistrationError,
)

__version__ = "0.1.0"

__all__ = [
    "CallableFailure",
    "ContractViolation",
    "ExtensionRegistry",
    "PosplugError",
    "RegistrationError",
    "__version__",
]
