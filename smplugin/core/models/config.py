"""
Plugin configuration model — the validated form of plugin.yml.

Every field has a default so that a device without a configuration
file still gets a working plugin (apt backend, no elevation).
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class LockRetrySettings(BaseModel):
    """How long to wait for another package-manager run to release its lock."""

    model_config = ConfigDict(extra="forbid")

    attempts: int = Field(default=5, ge=1)
    base_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=30.0, ge=0)


class AptSettings(BaseModel):
    """apt backend options."""

    model_config = ConfigDict(extra="forbid")

    auto_remove: bool = True          # finalize runs apt-get auto-remove
    extra_args: list[str] = Field(default_factory=list)


class PipSettings(BaseModel):
    """pip backend options."""

    model_config = ConfigDict(extra="forbid")

    python: str | None = None  # None = the running interpreter


class PluginConfig(BaseModel):
    """Root configuration model."""

    model_config = ConfigDict(extra="forbid")

    backend: str = "apt"
    elevate: bool = False
    command_timeout: int = Field(default=600, gt=0)
    lock_retry: LockRetrySettings = Field(default_factory=LockRetrySettings)
    apt: AptSettings = Field(default_factory=AptSettings)
    pip: PipSettings = Field(default_factory=PipSettings)
