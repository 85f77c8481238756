"""CommandResult and CommandError: what every CLI command emits.

The formatter layer renders a CommandResult for humans (Rich tables) or
machines (--json).
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class CommandError(BaseModel):
    """Structured error payload within a CommandResult."""

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)


class CommandResult(BaseModel):
    """Return type of every CLI command.

    Attributes:
        ok: Whether the command succeeded.
        op: Name of the operation (e.g. ``"apply_filters"``).
        data: Operation-specific payload on success.
        warnings: Non-fatal issues encountered during the operation.
        error: Structured error if ``ok`` is False.
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: CommandError | None = None
