"""Shared data types for skill-knife operations."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

__all__ = [
    "BatchReport",
    "CancellationToken",
    "InstallMode",
    "OperationResult",
    "ProgressEvent",
    "Scope",
]


class Scope(str, Enum):
    """Installation locality of a skill."""

    GLOBAL = "global"
    PROJECT = "project"


class InstallMode(str, Enum):
    """How install/update/uninstall operations are executed."""

    DIRECT = "direct"
    DELEGATED = "delegated"


@dataclass
class OperationResult:
    """Result of a single install or uninstall operation.

    Attributes:
        success: True if the operation succeeded.
        name: Skill name.
        target: Reader id or other target label the operation applied to.
        path: Path that was written or removed (None on failure).
        error: Error message (None on success).
    """

    success: bool
    name: str
    target: str
    path: Path | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        """Validate invariants."""
        if self.success and self.error is not None:
            raise ValueError("success=True but error is set")
        if not self.success and self.error is None:
            raise ValueError("success=False requires error message")
        if not self.name:
            raise ValueError("name cannot be empty")


@dataclass
class ProgressEvent:
    """Progress notification emitted before each batch item."""

    index: int
    total: int
    name: str
    message: str


@dataclass
class BatchReport:
    """Summary of a sequential batch operation."""

    total: int = 0
    succeeded: int = 0
    failed: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)
    updated_names: list[str] = field(default_factory=list)
    cancelled: bool = False

    def record_success(self, name: str) -> None:
        self.succeeded += 1
        self.updated_names.append(name)

    def record_failure(self, name: str, error: str) -> None:
        self.failed.append(name)
        self.errors[name] = error

    @property
    def ok(self) -> bool:
        """True when every item succeeded and the batch was not cancelled."""
        return not self.failed and not self.cancelled

    def summary(self) -> str:
        text = f"{self.succeeded}/{self.total} succeeded"
        if self.failed:
            text += f", failed: {', '.join(self.failed)}"
        if self.cancelled:
            text += " (cancelled)"
        return text


class CancellationToken:
    """Cooperative cancellation flag checked between batch items."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
