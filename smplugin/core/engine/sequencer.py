"""
Batch sequencer — run a batch against a backend, report per action.

A package manager answers a batch with one aggregate verdict and some
free text. The sequencer turns that into exactly one ActionResult per
requested action, in request order:

    1. actions already satisfied by the installed state → Success, no call
    2. everything else → one backend call (or one per action if the
       backend cannot batch)
    3. aggregate success → every submitted action Success
    4. aggregate failure → attribute failures named in the diagnostic
    5. whatever is still ambiguous → re-run alone, one at a time

Worst case is ``1 + |ambiguous|`` backend calls; the success path pays
for one. A backend that cannot run at all fails the whole remainder of
the batch and stops all further calls.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from smplugin.adapters.base import (
    Backend,
    BackendBatchResult,
    BatchFailed,
    BatchPartial,
    BatchSucceeded,
    BatchUnavailable,
)
from smplugin.core.models.action import ActionResult, FailureReason, ModuleAction
from smplugin.core.models.state import CurrentState

logger = logging.getLogger(__name__)

# Simulated state: name → installed versions, or None when installed
# at a version the sequencer cannot know (unversioned install).
_SimState = dict[str, set[str] | None]


@dataclass
class BatchReport:
    """Result of executing a batch."""

    results: list[ActionResult] = field(default_factory=list)
    backend_calls: int = 0
    dry_run: bool = False

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.failed)

    @property
    def all_ok(self) -> bool:
        return self.failed == 0

    @property
    def status(self) -> str:
        if self.failed == 0:
            return "ok"
        if self.succeeded > 0:
            return "partial"
        return "failed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "dry_run": self.dry_run,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "backend_calls": self.backend_calls,
            "results": [r.to_dict() for r in self.results],
        }


class BatchSequencer:
    """Executes one batch against one backend.

    Args:
        backend: The package backend.
        dry_run: Validate through ``backend.dry_run`` instead of applying.
    """

    def __init__(self, backend: Backend, *, dry_run: bool = False):
        self._backend = backend
        self._key = backend.canonical_name
        self._dry_run = dry_run
        self._run: Callable[[list[ModuleAction]], BackendBatchResult] = (
            backend.dry_run if dry_run else backend.apply
        )
        self._actions: list[ModuleAction] = []
        self._slots: list[ActionResult | None] = []
        self._attempts: list[int] = []
        self._calls = 0

    def execute(
        self,
        actions: list[ModuleAction],
        current: CurrentState | None = None,
    ) -> BatchReport:
        """Execute ``actions`` and return one result per action.

        Args:
            actions: The batch, in the order it must be reported.
            current: Installed state; when given, actions it already
                satisfies succeed without a backend call.
        """
        self._actions = actions
        self._slots = [None] * len(actions)
        self._attempts = [0] * len(actions)
        self._calls = 0

        pending = list(range(len(actions)))
        if current is not None:
            pending = self._resolve_trivial(current)

        if pending:
            if self._backend.supports_batch and len(pending) > 1:
                self._run_batched(pending)
            else:
                self._run_one_by_one(pending)

        results: list[ActionResult] = []
        for index, slot in enumerate(self._slots):
            if slot is None:  # pragma: no cover - every branch fills its slots
                raise RuntimeError(f"no result for action #{index} ({actions[index]})")
            slot.attempts = self._attempts[index]
            results.append(slot)
            _log_result(slot)

        report = BatchReport(results=results, backend_calls=self._calls, dry_run=self._dry_run)
        logger.info(
            "Batch %s: %d/%d succeeded, %d backend call(s)",
            report.status,
            report.succeeded,
            report.total,
            report.backend_calls,
        )
        return report

    # ── Step 1: trivially satisfied actions ──────────────────────

    def _resolve_trivial(self, current: CurrentState) -> list[int]:
        state: _SimState = {}
        for name, versions in current.modules.items():
            state.setdefault(self._key(name), set()).update(versions)
        pending: list[int] = []

        for index, action in enumerate(self._actions):
            module = action.module
            key = self._key(module.name)
            installed = state.get(key, set())
            present = key in state

            if action.is_remove:
                if not present or (
                    module.version is not None
                    and installed is not None
                    and module.version not in installed
                ):
                    self._slots[index] = ActionResult.success(
                        action, diagnostic="not installed", already_satisfied=True
                    )
                    continue
                state.pop(key, None)
            else:
                if (
                    present
                    and module.version is not None
                    and module.file is None
                    and installed is not None
                    and module.version in installed
                ):
                    self._slots[index] = ActionResult.success(
                        action, diagnostic="already installed", already_satisfied=True
                    )
                    continue
                state[key] = {module.version} if module.version else None

            pending.append(index)

        skipped = len(self._actions) - len(pending)
        if skipped:
            logger.info("%d action(s) already satisfied, %d to run", skipped, len(pending))
        return pending

    # ── Step 2-4: one call for the whole batch ───────────────────

    def _call(self, indices: list[int]) -> BackendBatchResult:
        self._calls += 1
        for index in indices:
            self._attempts[index] += 1
        return self._run([self._actions[i] for i in indices])

    def _run_batched(self, pending: list[int]) -> None:
        result = self._call(pending)

        if isinstance(result, BatchSucceeded):
            for index in pending:
                self._slots[index] = ActionResult.success(self._actions[index])
            return

        if isinstance(result, BatchUnavailable):
            logger.error("Backend unavailable: %s", result.reason)
            self._fail_unavailable(pending, result)
            return

        attributed = self._attribute(pending, result)
        ambiguous: list[int] = []
        for index in pending:
            if index in attributed:
                self._slots[index] = ActionResult.failure(
                    self._actions[index],
                    FailureReason.ACTION_REJECTED,
                    attributed[index],
                )
            else:
                ambiguous.append(index)

        if ambiguous:
            logger.info(
                "Batch failed: %d attributed, %d ambiguous → individual re-run",
                len(attributed),
                len(ambiguous),
            )
            self._run_one_by_one(ambiguous)

    def _attribute(self, pending: list[int], result: BackendBatchResult) -> dict[int, str]:
        """Map action index → reason for failures the diagnostic names.

        A key matching more than one submitted action (the same name
        removed and installed in one batch) stays ambiguous.
        """
        if not isinstance(result, BatchPartial):
            return {}
        attributed: dict[int, str] = {}
        for key, reason in result.failures.items():
            matches = [i for i in pending if self._actions[i].module.matches_key(key, self._key)]
            if len(matches) == 1 and matches[0] not in attributed:
                attributed[matches[0]] = reason
            elif len(matches) > 1:
                logger.debug("Diagnostic key %r matches %d actions, ambiguous", key, len(matches))
        return attributed

    # ── Step 5: one call per action ──────────────────────────────

    def _run_one_by_one(self, indices: list[int]) -> None:
        for position, index in enumerate(indices):
            action = self._actions[index]
            result = self._call([index])

            if isinstance(result, BatchSucceeded):
                self._slots[index] = ActionResult.success(action)
            elif isinstance(result, BatchUnavailable):
                logger.error("Backend unavailable during %s: %s", action, result.reason)
                self._fail_unavailable(indices[position:], result)
                return
            else:
                self._slots[index] = ActionResult.failure(
                    action,
                    FailureReason.ACTION_REJECTED,
                    _single_reason(action, result, self._key),
                )

    def _fail_unavailable(self, indices: list[int], result: BatchUnavailable) -> None:
        for index in indices:
            self._slots[index] = ActionResult.failure(
                self._actions[index],
                FailureReason.BACKEND_UNAVAILABLE,
                result.reason,
            )


def _single_reason(
    action: ModuleAction,
    result: BatchFailed | BatchPartial,
    canonical: Callable[[str], str],
) -> str:
    """Best one-line reason for a failed single-action call."""
    if isinstance(result, BatchPartial):
        for key, reason in result.failures.items():
            if action.module.matches_key(key, canonical):
                return reason
        if result.failures:
            return "; ".join(f"{key}: {reason}" for key, reason in result.failures.items())
        return result.diagnostic
    return result.reason


def _log_result(result: ActionResult) -> None:
    marker = "⊘" if result.already_satisfied else "✓" if result.ok else "✗"
    logger.info("%s %s → %s", marker, result.action, result.status)


def execute_batch(
    actions: list[ModuleAction],
    backend: Backend,
    *,
    current: CurrentState | None = None,
    dry_run: bool = False,
) -> BatchReport:
    """Execute a batch through a fresh sequencer.

    Args:
        actions: The batch.
        backend: The package backend.
        current: Installed state for trivial-satisfaction checks.
        dry_run: Validate instead of applying.

    Returns:
        BatchReport with one result per action, in input order.
    """
    return BatchSequencer(backend, dry_run=dry_run).execute(actions, current)
