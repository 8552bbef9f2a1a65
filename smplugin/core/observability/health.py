"""
Health checker — can this plugin do its job on this device?

Reports the backend tool's availability and version and where the
configuration came from. Used by the CLI ``health`` command.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from smplugin.adapters.base import Backend

logger = logging.getLogger(__name__)

# worst status first
_SEVERITY = ("unhealthy", "degraded", "unknown", "healthy")


@dataclass
class ComponentHealth:
    """Health of one checked component (``status``: one of ``_SEVERITY``)."""

    name: str
    status: str = "unknown"
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SystemHealth:
    """Aggregate health: the worst status among its components."""

    components: list[ComponentHealth] = field(default_factory=list)
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    @property
    def status(self) -> str:
        if not self.components:
            return "healthy"
        return min((c.status for c in self.components), key=_rank)

    def add(self, component: ComponentHealth) -> None:
        self.components.append(component)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "components": [c.to_dict() for c in self.components],
        }


def _rank(status: str) -> int:
    return _SEVERITY.index(status) if status in _SEVERITY else _SEVERITY.index("unknown")


def check_backend(backend: Backend) -> ComponentHealth:
    """Check that the backend's tool is installed and answers."""
    try:
        available = backend.is_available()
    except Exception as e:
        logger.debug("is_available raised for %s", backend.name, exc_info=True)
        return ComponentHealth(
            name=f"backend:{backend.name}",
            status="unhealthy",
            message=f"Availability check failed: {e}",
        )

    if not available:
        return ComponentHealth(
            name=f"backend:{backend.name}",
            status="unhealthy",
            message=f"{backend.name} tooling not found",
            details={"supports_batch": backend.supports_batch},
        )

    version = backend.version()
    return ComponentHealth(
        name=f"backend:{backend.name}",
        status="healthy" if version else "degraded",
        message=f"{backend.name} {version}" if version else f"{backend.name} (version unknown)",
        details={"version": version, "supports_batch": backend.supports_batch},
    )


def check_config(source: Path | None, error: str | None = None) -> ComponentHealth:
    """Report where configuration came from, or why it failed to load."""
    if error:
        return ComponentHealth(name="config", status="unhealthy", message=error)
    if source is None:
        return ComponentHealth(name="config", status="healthy", message="Built-in defaults")
    return ComponentHealth(
        name="config",
        status="healthy",
        message=f"Loaded from {source}",
        details={"path": str(source)},
    )


def check_plugin_health(
    backend: Backend | None,
    config_source: Path | None = None,
    config_error: str | None = None,
) -> SystemHealth:
    """Run all health checks and return aggregate status."""
    health = SystemHealth()
    health.add(check_config(config_source, config_error))
    if backend is not None:
        health.add(check_backend(backend))
    return health
