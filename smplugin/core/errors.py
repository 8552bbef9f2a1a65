"""
Error taxonomy — exceptions that abort an invocation.

Only failures that stop a command before (or instead of) producing
per-module results are exceptions. Per-action outcomes such as a
rejected install are values on ``ActionResult``, never raised.
"""

from __future__ import annotations


class PluginError(Exception):
    """Base class for all plugin errors."""


class MalformedInput(PluginError):
    """Raised when batch or desired-state input cannot be parsed.

    Always raised before the backend is touched, so a malformed
    invocation has no side effects.
    """

    def __init__(self, message: str, line_no: int | None = None):
        self.line_no = line_no
        if line_no is not None:
            message = f"line {line_no}: {message}"
        super().__init__(message)


class BackendUnavailable(PluginError):
    """Raised when the backend cannot run at all.

    Binary missing, exclusive lock held past the retry budget, or the
    tool crashed before producing a usable answer.
    """
