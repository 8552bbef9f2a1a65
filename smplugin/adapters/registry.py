"""
Backend registry — maps backend names to factories.

The registry is the single point where a configured backend name
becomes a Backend instance. Factories receive the whole plugin
configuration and pick the settings they need.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from smplugin.adapters.base import Backend
from smplugin.core.config.loader import ConfigError
from smplugin.core.models.config import PluginConfig

logger = logging.getLogger(__name__)

BackendFactory = Callable[[PluginConfig], Backend]


def _apt_factory(config: PluginConfig) -> Backend:
    from smplugin.adapters.packages.apt import AptBackend
    from smplugin.core.reliability.lock_retry import LockRetryPolicy

    return AptBackend(
        elevate=config.elevate,
        timeout=config.command_timeout,
        lock_policy=LockRetryPolicy.from_settings(config.lock_retry),
        auto_remove=config.apt.auto_remove,
        extra_args=config.apt.extra_args,
    )


def _pip_factory(config: PluginConfig) -> Backend:
    from smplugin.adapters.packages.pip import PipBackend

    return PipBackend(
        python=config.pip.python,
        elevate=config.elevate,
        timeout=config.command_timeout,
    )


def _mock_factory(config: PluginConfig) -> Backend:
    from smplugin.adapters.mock import MockBackend

    return MockBackend()


class BackendRegistry:
    """Central registry of backend factories."""

    def __init__(self) -> None:
        self._factories: dict[str, BackendFactory] = {}

    def register(self, name: str, factory: BackendFactory) -> None:
        """Register a backend factory under ``name``."""
        if name in self._factories:
            logger.warning("Overwriting existing backend: %s", name)
        self._factories[name] = factory
        logger.debug("Registered backend: %s", name)

    def unregister(self, name: str) -> None:
        self._factories.pop(name, None)

    def list_backends(self) -> list[str]:
        return sorted(self._factories)

    def create(self, name: str, config: PluginConfig) -> Backend:
        """Instantiate the backend called ``name``.

        Raises:
            ConfigError: If no backend is registered under that name.
        """
        factory = self._factories.get(name)
        if factory is None:
            raise ConfigError(
                f"Unknown backend '{name}' (available: {', '.join(self.list_backends())})"
            )
        backend = factory(config)
        logger.debug("Using backend %r", backend)
        return backend


def default_registry() -> BackendRegistry:
    """Registry with the built-in backends."""
    registry = BackendRegistry()
    registry.register("apt", _apt_factory)
    registry.register("pip", _pip_factory)
    registry.register("mock", _mock_factory)
    return registry
