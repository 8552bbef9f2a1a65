"""
Update use case — apply an explicit action batch.

Backs ``update-list`` (batch read from stdin) as well as the
single-action ``install`` and ``remove`` commands. The flow is:

    parse → query installed state → sequence → report

Parsing happens entirely before the backend is touched, so malformed
input never causes a partial update.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from smplugin.adapters.base import Backend
from smplugin.core.engine.sequencer import BatchReport, execute_batch
from smplugin.core.errors import BackendUnavailable, MalformedInput
from smplugin.core.models.action import ActionResult, FailureReason, ModuleAction
from smplugin.core.protocol.batch_input import parse_action_lines
from smplugin.core.protocol.report import EXIT_NOT_ATTEMPTED, exit_code_for

logger = logging.getLogger(__name__)


@dataclass
class UpdateResult:
    """Result of an update or reconcile run."""

    backend: str = ""
    report: BatchReport | None = None
    error: str | None = None
    error_exit: int = EXIT_NOT_ATTEMPTED

    @property
    def attempted(self) -> bool:
        return self.report is not None

    @property
    def exit_code(self) -> int:
        if self.report is None:
            return self.error_exit
        return exit_code_for(self.report)

    def to_dict(self) -> dict:
        result: dict = {"backend": self.backend}
        if self.error:
            result["error"] = self.error
        if self.report is not None:
            result["report"] = self.report.to_dict()
        return result


def apply_actions(
    backend: Backend,
    actions: list[ModuleAction],
    *,
    dry_run: bool = False,
) -> UpdateResult:
    """Apply an already-parsed batch.

    If the installed state cannot be queried, the backend cannot run
    either: every action is reported as backend-unavailable and no
    backend call is attempted.
    """
    if not actions:
        return UpdateResult(backend=backend.name, report=BatchReport(dry_run=dry_run))

    try:
        current = backend.list_installed()
    except BackendUnavailable as e:
        logger.error("Backend unavailable: %s", e)
        report = BatchReport(
            results=[
                ActionResult.failure(a, FailureReason.BACKEND_UNAVAILABLE, str(e))
                for a in actions
            ],
            dry_run=dry_run,
        )
        return UpdateResult(backend=backend.name, report=report)

    report = execute_batch(actions, backend, current=current, dry_run=dry_run)
    return UpdateResult(backend=backend.name, report=report)


def run_update_list(
    backend: Backend,
    lines: Iterable[str | bytes],
    *,
    dry_run: bool = False,
) -> UpdateResult:
    """Parse an action batch and apply it.

    Args:
        backend: The package backend.
        lines: Batch input lines (typically stdin).
        dry_run: Validate instead of applying.
    """
    try:
        actions = parse_action_lines(lines, backend=backend.name)
    except MalformedInput as e:
        logger.error("Malformed batch input: %s", e)
        return UpdateResult(backend=backend.name, error=f"Malformed input: {e}")

    logger.info("update-list: %d action(s) on %s", len(actions), backend.name)
    return apply_actions(backend, actions, dry_run=dry_run)
