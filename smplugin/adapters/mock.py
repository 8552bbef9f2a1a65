"""
Mock backend — in-memory package store for tests and ``--mock`` runs.

Simulates a transactional package manager without touching the
system. A batch is all-or-nothing: if any action in it is rejected,
nothing in it is applied. Configurable per module (rejections), per
store (lock held, diagnostic attribution) and per execution mode
(batch or one-action-per-call).
"""

from __future__ import annotations

from smplugin.adapters.base import (
    Backend,
    BackendBatchResult,
    BatchFailed,
    BatchPartial,
    BatchSucceeded,
    BatchUnavailable,
)
from smplugin.core.errors import BackendUnavailable
from smplugin.core.models.action import ModuleAction
from smplugin.core.models.state import CurrentState


class MockBackend(Backend):
    """Universal mock backend for testing.

    By default every action succeeds and mutates the in-memory store.
    """

    def __init__(
        self,
        backend_name: str = "mock",
        installed: dict[str, str] | None = None,
        available: bool = True,
        supports_batch: bool = True,
        attribute_diagnostics: bool = True,
    ):
        self._name = backend_name
        self._installed: dict[str, str] = dict(installed or {})
        self._available = available
        self.supports_batch = supports_batch
        self.attribute_diagnostics = attribute_diagnostics
        self.locked = False
        self._rejections: dict[str, str] = {}
        self._call_log: list[list[ModuleAction]] = []
        self._dry_run_log: list[list[ModuleAction]] = []
        self.hook_log: list[str] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[list[ModuleAction]]:
        """Every batch ``apply`` has received, in order."""
        return self._call_log

    @property
    def call_count(self) -> int:
        """Number of times apply has been called."""
        return len(self._call_log)

    @property
    def dry_run_log(self) -> list[list[ModuleAction]]:
        return self._dry_run_log

    @property
    def installed(self) -> dict[str, str]:
        return dict(self._installed)

    def is_available(self) -> bool:
        return self._available

    def reject(self, name: str, reason: str = "Mock rejection") -> None:
        """Configure every action on ``name`` to be refused."""
        self._rejections[name] = reason

    def list_installed(self) -> CurrentState:
        if not self._available:
            raise BackendUnavailable(f"{self._name} backend not available")
        return CurrentState.from_pairs(self._installed.items())

    def apply(self, actions: list[ModuleAction]) -> BackendBatchResult:
        self._call_log.append(list(actions))
        result = self._evaluate(actions)
        if isinstance(result, BatchSucceeded):
            for action in actions:
                if action.is_install:
                    self._installed[action.name] = action.module.version or "latest"
                else:
                    self._installed.pop(action.name, None)
        return result

    def dry_run(self, actions: list[ModuleAction]) -> BackendBatchResult:
        self._dry_run_log.append(list(actions))
        return self._evaluate(actions)

    def prepare(self) -> BackendBatchResult:
        self.hook_log.append("prepare")
        if self.locked:
            return BatchUnavailable(reason="mock lock held")
        return BatchSucceeded()

    def finalize(self) -> BackendBatchResult:
        self.hook_log.append("finalize")
        return BatchSucceeded()

    def version(self) -> str | None:
        return "mock"

    def _evaluate(self, actions: list[ModuleAction]) -> BackendBatchResult:
        if not self._available:
            return BatchUnavailable(reason=f"{self._name} backend not available")
        if self.locked:
            return BatchUnavailable(reason="mock lock held", diagnostic="E: Could not get lock")

        rejected = {a.name: self._rejections[a.name] for a in actions if a.name in self._rejections}
        if not rejected:
            return BatchSucceeded()

        diagnostic = "\n".join(f"E: {name}: {reason}" for name, reason in rejected.items())
        if self.attribute_diagnostics:
            return BatchPartial(failures=rejected, diagnostic=diagnostic)
        return BatchFailed(reason="mock transaction failed", diagnostic=diagnostic)

    def reset(self) -> None:
        """Clear call logs and rejections."""
        self._call_log.clear()
        self._dry_run_log.clear()
        self._rejections.clear()
        self.hook_log.clear()
