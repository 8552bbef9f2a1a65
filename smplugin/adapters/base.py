"""
Backend base — the protocol contract between the sequencer and a package manager.

This defines the abstract interface every backend must implement.
The sequencer only talks to backends through this protocol, never
directly to package-manager tools.

A backend reports a batch run as one of four result variants instead
of free text, so callers branch on type rather than sniffing strings:

    BatchSucceeded    every action in the batch was applied
    BatchFailed       the batch failed; nothing in the diagnostic names a module
    BatchPartial      the batch failed; the diagnostic names failing modules
    BatchUnavailable  the backend could not run at all (missing, locked, crashed)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Literal

from pydantic import BaseModel, Field

from smplugin.core.models.action import ModuleAction
from smplugin.core.models.state import CurrentState


class BatchSucceeded(BaseModel):
    kind: Literal["succeeded"] = "succeeded"
    diagnostic: str = ""


class BatchFailed(BaseModel):
    kind: Literal["failed"] = "failed"
    reason: str
    diagnostic: str = ""


class BatchPartial(BaseModel):
    """Failure whose diagnostic attributes errors to specific modules.

    ``failures`` maps a diagnostic key (module name or source file path)
    to a one-line reason.
    """

    kind: Literal["partial"] = "partial"
    failures: dict[str, str] = Field(default_factory=dict)
    diagnostic: str = ""


class BatchUnavailable(BaseModel):
    kind: Literal["unavailable"] = "unavailable"
    reason: str
    diagnostic: str = ""


BackendBatchResult = BatchSucceeded | BatchFailed | BatchPartial | BatchUnavailable


class Backend(ABC):
    """Abstract base class for all package backends.

    ``apply``, ``dry_run`` and the hooks NEVER raise: failures are
    captured in the returned result. Only ``list_installed`` raises,
    with ``BackendUnavailable``, because it has no per-action result to
    carry the failure.

    To create a new backend:
        1. Subclass Backend
        2. Implement name, is_available, list_installed, apply, dry_run
        3. Register a factory in the BackendRegistry
    """

    # True: one apply() call may cover many actions (one transaction).
    # False: the sequencer calls apply() with one action at a time.
    supports_batch: bool = True

    @property
    @abstractmethod
    def name(self) -> str:
        """The backend identifier (e.g., 'apt', 'pip')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the underlying tool is installed. Fast, never raises."""

    @abstractmethod
    def list_installed(self) -> CurrentState:
        """Query the installed modules.

        Raises:
            BackendUnavailable: If the backend cannot be queried.
        """

    @abstractmethod
    def apply(self, actions: list[ModuleAction]) -> BackendBatchResult:
        """Apply a batch of actions in one best-effort attempt."""

    @abstractmethod
    def dry_run(self, actions: list[ModuleAction]) -> BackendBatchResult:
        """Validate a batch without changing anything."""

    def prepare(self) -> BackendBatchResult:
        """Pre-transaction hook (e.g. refresh package indices). Idempotent."""
        return BatchSucceeded()

    def finalize(self) -> BackendBatchResult:
        """Post-transaction hook (e.g. cleanup). Safe with nothing applied."""
        return BatchSucceeded()

    def version(self) -> str | None:
        """Version of the underlying tool, if it can be determined."""
        return None

    def canonical_name(self, name: str) -> str:
        """The key under which this backend considers ``name`` installed.

        Two names with the same key designate the same package. The
        default compares names exactly.
        """
        return name

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
