"""
CurrentState — what the backend reports as installed right now.

Built fresh from the backend on every query and never cached: package
state can change out-of-band between two invocations (or during one).
"""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel, Field


class CurrentState(BaseModel):
    """Installed modules, name → installed versions (backend order)."""

    modules: dict[str, list[str]] = Field(default_factory=dict)

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, str]]) -> CurrentState:
        """Build a state from ``(name, version)`` pairs."""
        modules: dict[str, list[str]] = {}
        for name, version in pairs:
            versions = modules.setdefault(name, [])
            if version not in versions:
                versions.append(version)
        return cls(modules=modules)

    def versions(self, name: str) -> list[str]:
        return list(self.modules.get(name, []))

    def has(self, name: str, version: str | None = None) -> bool:
        """Whether ``name`` is installed (at ``version``, if given)."""
        versions = self.modules.get(name)
        if not versions:
            return False
        return version is None or version in versions

    def entries(self) -> list[tuple[str, str]]:
        """Flat ``(name, version)`` list, in backend order."""
        return [(name, version) for name, versions in self.modules.items() for version in versions]

    @property
    def total(self) -> int:
        return len(self.entries())
