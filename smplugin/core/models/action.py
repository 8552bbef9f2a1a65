"""
Action and ActionResult models — the reconciliation contract.

Actions are requested package operations. ActionResults are their
outcomes. Exactly one result is produced per requested action, in the
order the actions were requested, even when the backend ran several of
them in a single transaction.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel

from smplugin.core.models.module import SoftwareModule


class ActionKind(StrEnum):
    """What to do with a module."""

    INSTALL = "install"
    REMOVE = "remove"


class FailureReason(StrEnum):
    """Why an action failed."""

    BACKEND_UNAVAILABLE = "backend-unavailable"
    ACTION_REJECTED = "action-rejected"


class ModuleAction(BaseModel):
    """A single requested Install or Remove of one module identity."""

    kind: ActionKind
    module: SoftwareModule

    @classmethod
    def install(
        cls,
        name: str,
        version: str | None = None,
        file: str | None = None,
    ) -> ModuleAction:
        return cls(
            kind=ActionKind.INSTALL,
            module=SoftwareModule(name=name, version=version, file=file),
        )

    @classmethod
    def remove(cls, name: str, version: str | None = None) -> ModuleAction:
        return cls(
            kind=ActionKind.REMOVE,
            module=SoftwareModule(name=name, version=version),
        )

    @property
    def name(self) -> str:
        return self.module.name

    @property
    def is_install(self) -> bool:
        return self.kind == ActionKind.INSTALL

    @property
    def is_remove(self) -> bool:
        return self.kind == ActionKind.REMOVE

    def __str__(self) -> str:
        return f"{self.kind.value} {self.module.label}"


class ActionResult(BaseModel):
    """Outcome of one requested action."""

    action: ModuleAction
    status: Literal["ok", "failed"] = "ok"
    reason: FailureReason | None = None
    diagnostic: str | None = None

    already_satisfied: bool = False  # no backend call was needed
    attempts: int = 0                # backend calls this action took part in

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def success(
        cls,
        action: ModuleAction,
        diagnostic: str | None = None,
        **kwargs: Any,
    ) -> ActionResult:
        """Create a success result."""
        return cls(action=action, status="ok", diagnostic=diagnostic or None, **kwargs)

    @classmethod
    def failure(
        cls,
        action: ModuleAction,
        reason: FailureReason,
        diagnostic: str | None = None,
        **kwargs: Any,
    ) -> ActionResult:
        """Create a failure result."""
        return cls(
            action=action,
            status="failed",
            reason=reason,
            diagnostic=diagnostic or None,
            **kwargs,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.action.kind.value,
            "name": self.action.module.name,
            "version": self.action.module.version,
            "file": self.action.module.file,
            "status": self.status,
            "reason": self.reason.value if self.reason else None,
            "diagnostic": self.diagnostic,
            "already_satisfied": self.already_satisfied,
            "attempts": self.attempts,
        }
