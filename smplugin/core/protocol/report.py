"""
Result reporter — what the invoking agent reads back.

stdout carries machine-parseable lines only; logs go to stderr.

``list``::

    name<TAB>version

``update-list`` / ``install`` / ``remove`` / ``reconcile``, one line per
requested action, in request order::

    status<TAB>kind<TAB>name<TAB>version<TAB>reason<TAB>message

Exit codes:
    0  every action succeeded (or the query/hook succeeded)
    1  nothing attempted: malformed input or configuration error
    2  command-line usage error (raised by click)
    3  failure: every action failed, or the backend/hook failed
    4  partial: some actions succeeded, some failed
"""

from __future__ import annotations

import re

from smplugin.adapters.base import BackendBatchResult, BatchSucceeded
from smplugin.core.engine.sequencer import BatchReport
from smplugin.core.models.action import ActionResult
from smplugin.core.models.state import CurrentState

EXIT_OK = 0
EXIT_NOT_ATTEMPTED = 1
EXIT_FAILED = 3
EXIT_PARTIAL = 4

_MAX_MESSAGE = 240
_WHITESPACE = re.compile(r"\s+")


def one_line(text: str | None, limit: int = _MAX_MESSAGE) -> str:
    """Collapse ``text`` to one tab-free line of at most ``limit`` chars."""
    if not text:
        return ""
    line = _WHITESPACE.sub(" ", text).strip()
    if len(line) > limit:
        line = line[: limit - 1] + "…"
    return line


def format_state_lines(state: CurrentState) -> list[str]:
    """``name<TAB>version`` per installed module, in backend order."""
    return [f"{name}\t{version}" for name, version in state.entries()]


def format_result_line(result: ActionResult) -> str:
    module = result.action.module
    return "\t".join(
        [
            result.status,
            result.action.kind.value,
            module.name,
            module.version or "",
            result.reason.value if result.reason else "",
            one_line(result.diagnostic),
        ]
    )


def format_result_lines(report: BatchReport) -> list[str]:
    return [format_result_line(r) for r in report.results]


def exit_code_for(report: BatchReport) -> int:
    """Exit status for an attempted batch."""
    return {
        "ok": EXIT_OK,
        "partial": EXIT_PARTIAL,
        "failed": EXIT_FAILED,
    }[report.status]


def exit_code_for_hook(result: BackendBatchResult) -> int:
    return EXIT_OK if isinstance(result, BatchSucceeded) else EXIT_FAILED
