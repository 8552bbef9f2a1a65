"""
Reconcile use case — converge on a full desired-state snapshot.

The snapshot lists every module that should be installed; anything
else the backend reports is removed. The differ computes the actions,
then they run through the same sequencer as ``update-list``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from smplugin.adapters.base import Backend
from smplugin.core.engine.differ import compute_actions
from smplugin.core.engine.sequencer import execute_batch
from smplugin.core.errors import BackendUnavailable, MalformedInput
from smplugin.core.protocol.batch_input import parse_desired_lines
from smplugin.core.protocol.report import EXIT_FAILED
from smplugin.core.use_cases.update import UpdateResult

logger = logging.getLogger(__name__)


def run_reconcile(
    backend: Backend,
    lines: Iterable[str | bytes],
    *,
    dry_run: bool = False,
) -> UpdateResult:
    """Parse a desired-state snapshot and converge on it."""
    try:
        target = parse_desired_lines(lines, backend=backend.name)
    except MalformedInput as e:
        logger.error("Malformed desired state: %s", e)
        return UpdateResult(backend=backend.name, error=f"Malformed input: {e}")

    try:
        current = backend.list_installed()
    except BackendUnavailable as e:
        logger.error("Backend unavailable: %s", e)
        return UpdateResult(
            backend=backend.name,
            error=f"Backend unavailable: {e}",
            error_exit=EXIT_FAILED,
        )

    actions = compute_actions(current, target, backend.canonical_name)
    report = execute_batch(actions, backend, current=current, dry_run=dry_run)
    return UpdateResult(backend=backend.name, report=report)
