"""
Domain models — Pydantic types for the plugin.

All models are re-exported here for convenient access:

    from smplugin.core.models import ModuleAction, ActionResult, CurrentState
"""

from smplugin.core.models.action import (
    ActionKind,
    ActionResult,
    FailureReason,
    ModuleAction,
)
from smplugin.core.models.config import (
    AptSettings,
    LockRetrySettings,
    PipSettings,
    PluginConfig,
)
from smplugin.core.models.module import SoftwareModule
from smplugin.core.models.state import CurrentState

__all__ = [
    # action.py
    "ActionKind",
    "ActionResult",
    # config.py
    "AptSettings",
    # state.py
    "CurrentState",
    "FailureReason",
    "LockRetrySettings",
    "ModuleAction",
    "PipSettings",
    "PluginConfig",
    # module.py
    "SoftwareModule",
]
