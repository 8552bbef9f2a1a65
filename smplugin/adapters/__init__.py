"""Adapters — package-manager backends.

Public re-exports for convenient access.
"""

from smplugin.adapters.base import (
    Backend,
    BackendBatchResult,
    BatchFailed,
    BatchPartial,
    BatchSucceeded,
    BatchUnavailable,
)
from smplugin.adapters.mock import MockBackend
from smplugin.adapters.registry import BackendRegistry, default_registry

__all__ = [
    "Backend",
    "BackendBatchResult",
    "BackendRegistry",
    "BatchFailed",
    "BatchPartial",
    "BatchSucceeded",
    "BatchUnavailable",
    "MockBackend",
    "default_registry",
]
