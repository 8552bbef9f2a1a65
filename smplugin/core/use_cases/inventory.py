"""
Inventory use case — report the installed modules.

Always queries the backend: installed state is never cached, so two
consecutive calls see the system as it is at each call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from smplugin.adapters.base import Backend
from smplugin.core.errors import BackendUnavailable
from smplugin.core.models.state import CurrentState
from smplugin.core.protocol.report import EXIT_FAILED, EXIT_OK

logger = logging.getLogger(__name__)


@dataclass
class ListResult:
    """Result of listing installed modules."""

    backend: str = ""
    state: CurrentState | None = None
    error: str | None = None

    @property
    def exit_code(self) -> int:
        return EXIT_FAILED if self.error else EXIT_OK

    def to_dict(self) -> dict:
        if self.error:
            return {"backend": self.backend, "error": self.error}
        assert self.state is not None
        return {
            "backend": self.backend,
            "total": self.state.total,
            "modules": [
                {"name": name, "version": version} for name, version in self.state.entries()
            ],
        }


def list_modules(backend: Backend) -> ListResult:
    """Query the backend for its installed modules."""
    try:
        state = backend.list_installed()
    except BackendUnavailable as e:
        logger.error("Cannot list installed modules: %s", e)
        return ListResult(backend=backend.name, error=str(e))
    return ListResult(backend=backend.name, state=state)
