"""
Transaction hooks — ``prepare`` before and ``finalize`` after an update.

Both are idempotent: the agent may call them with no pending
transaction, or several times in a row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from smplugin.adapters.base import Backend, BackendBatchResult, BatchSucceeded
from smplugin.core.protocol.report import exit_code_for_hook

logger = logging.getLogger(__name__)


@dataclass
class HookResult:
    """Outcome of a backend hook."""

    hook: str
    backend: str
    result: BackendBatchResult

    @property
    def ok(self) -> bool:
        return isinstance(self.result, BatchSucceeded)

    @property
    def exit_code(self) -> int:
        return exit_code_for_hook(self.result)

    @property
    def message(self) -> str:
        return "" if self.ok else getattr(self.result, "reason", "")

    def to_dict(self) -> dict:
        return {
            "hook": self.hook,
            "backend": self.backend,
            "ok": self.ok,
            "result": self.result.model_dump(mode="json"),
        }


def _run_hook(backend: Backend, hook: str) -> HookResult:
    logger.info("Running %s hook on %s", hook, backend.name)
    result = backend.prepare() if hook == "prepare" else backend.finalize()
    outcome = HookResult(hook=hook, backend=backend.name, result=result)
    if not outcome.ok:
        logger.error("%s failed: %s", hook, outcome.message)
    return outcome


def run_prepare(backend: Backend) -> HookResult:
    """Pre-transaction hook (e.g. refresh package indices)."""
    return _run_hook(backend, "prepare")


def run_finalize(backend: Backend) -> HookResult:
    """Post-transaction hook (e.g. remove orphaned dependencies)."""
    return _run_hook(backend, "finalize")
