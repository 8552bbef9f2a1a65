"""
Software module model — one package identity known to a backend.

A module is identified by its name alone ("any version") or by the
pair (name, version). An optional source file points at a local
package archive to install from instead of the backend's index.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import PurePath

from pydantic import BaseModel, field_validator


class SoftwareModule(BaseModel):
    """A package as named by the orchestrating agent."""

    name: str
    version: str | None = None
    file: str | None = None

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not value:
            raise ValueError("module name must not be empty")
        if any(ch.isspace() for ch in value):
            raise ValueError(f"module name contains whitespace: {value!r}")
        return value

    @field_validator("version", "file")
    @classmethod
    def _empty_to_none(cls, value: str | None) -> str | None:
        return value or None

    @property
    def label(self) -> str:
        """Short form used in logs: ``name`` or ``name=version``."""
        if self.version:
            return f"{self.name}={self.version}"
        return self.name

    def matches_key(self, key: str, canonical: Callable[[str], str] | None = None) -> bool:
        """Whether a diagnostic key designates this module.

        Keys come from backend error output and may be a bare package
        name, an architecture-qualified name (``foo:amd64``), a
        ``name=version`` requirement, or the path of a source file.
        ``canonical`` maps names to the backend's comparison key.
        """
        if not key:
            return False
        if self.file:
            if key == self.file or PurePath(key).name == PurePath(self.file).name:
                return True
        norm = canonical or str
        if key.endswith(".deb"):
            # archive names follow <name>_<version>_<arch>.deb
            bare = PurePath(key).name.split("_", 1)[0]
        else:
            bare = key.split("=", 1)[0].split(":", 1)[0]
        return norm(bare) == norm(self.name)
