"""
pip backend — Python distributions in one interpreter's environment.

Uses ``<python> -m pip`` so pip always runs against the configured
interpreter, regardless of PATH. pip has no system lock, so runs are
never retried.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from collections.abc import Callable
from pathlib import Path

from smplugin.adapters.base import (
    Backend,
    BackendBatchResult,
    BatchFailed,
    BatchPartial,
    BatchSucceeded,
    BatchUnavailable,
)
from smplugin.adapters.shell.runner import CommandResult, run_command
from smplugin.core.errors import BackendUnavailable
from smplugin.core.models.action import ModuleAction
from smplugin.core.models.module import SoftwareModule
from smplugin.core.models.state import CurrentState

logger = logging.getLogger(__name__)

_PIP_FLAGS = ["--disable-pip-version-check", "--no-input"]

_FAILURE_HANDLERS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"No matching distribution found for (?P<key>\S+)"), "no matching distribution"),
    (
        re.compile(r"Could not find a version that satisfies the requirement (?P<key>\S+)"),
        "no version satisfies the requirement",
    ),
    (re.compile(r"(?P<key>\S+\.whl) is not a valid wheel filename"), "invalid wheel filename"),
    (re.compile(r"Invalid requirement: '(?P<key>[^']+)'"), "invalid requirement"),
    (
        re.compile(r"Requirement '(?P<key>[^']+)' looks like a filename, but the file does not exist"),
        "package file not found",
    ),
]

_REQUIREMENT_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*")
_NAME_SEPARATORS = re.compile(r"[-_.]+")

Runner = Callable[..., CommandResult]


def canonicalize(name: str) -> str:
    """PEP 503 normalized project name (``typing_extensions`` → ``typing-extensions``)."""
    return _NAME_SEPARATORS.sub("-", name).lower()


def parse_failures(text: str) -> dict[str, str]:
    """Extract ``{module key → reason}`` from pip output."""
    failures: dict[str, str] = {}
    for pattern, reason in _FAILURE_HANDLERS:
        for match in pattern.finditer(text):
            key = match.group("key").strip("'\"")
            if not key.endswith(".whl") and "/" not in key:
                m = _REQUIREMENT_NAME.match(key)
                key = m.group(0) if m else key
            failures.setdefault(key, reason)
    return failures


def _last_error_line(text: str) -> str:
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    for line in lines:
        if line.startswith("ERROR:"):
            return line
    return lines[-1] if lines else ""


class PipBackend(Backend):
    """Package backend over pip."""

    supports_batch = True

    def __init__(
        self,
        *,
        python: str | None = None,
        elevate: bool = False,
        timeout: int = 600,
        runner: Runner = run_command,
    ):
        self._python = python or sys.executable
        self._elevate = elevate
        self._timeout = timeout
        self._run = runner

    @property
    def name(self) -> str:
        return "pip"

    def _pip(self, *args: str) -> CommandResult:
        return self._run(
            [self._python, "-m", "pip", *args],
            elevate=self._elevate,
            timeout=self._timeout,
        )

    def is_available(self) -> bool:
        return Path(self._python).is_file()

    def canonical_name(self, name: str) -> str:
        return canonicalize(name)

    def version(self) -> str | None:
        r = self._pip("--version")
        if not r.ok:
            return None
        # "pip 24.0 from /usr/lib/... (python 3.12)" → "24.0"
        parts = r.stdout.split()
        return parts[1] if len(parts) > 1 else None

    def list_installed(self) -> CurrentState:
        r = self._pip("list", "--format", "json", *_PIP_FLAGS)
        if r.error:
            raise BackendUnavailable(r.error)
        if r.returncode != 0:
            raise BackendUnavailable(
                f"pip list exited with code {r.returncode}: {_last_error_line(r.output)}"
            )
        try:
            packages = json.loads(r.stdout or "[]")
        except json.JSONDecodeError as e:
            raise BackendUnavailable(f"pip list returned invalid JSON: {e}") from e

        # pip matches names case-insensitively and treats - _ . alike
        return CurrentState.from_pairs(
            (canonicalize(p["name"]), p.get("version", "")) for p in packages if p.get("name")
        )

    def apply(self, actions: list[ModuleAction]) -> BackendBatchResult:
        return self._run_batch(actions, simulate=False)

    def dry_run(self, actions: list[ModuleAction]) -> BackendBatchResult:
        return self._run_batch(actions, simulate=True)

    def _run_batch(self, actions: list[ModuleAction], *, simulate: bool) -> BackendBatchResult:
        if not actions:
            return BatchSucceeded()

        removes = list(dict.fromkeys(canonicalize(a.name) for a in actions if a.is_remove))
        installs = list(dict.fromkeys(_requirement(a.module) for a in actions if a.is_install))

        phases: list[list[str]] = []
        # pip uninstall has no simulation mode; removals validate trivially
        if removes and not simulate:
            phases.append(["uninstall", "--yes", *_PIP_FLAGS, *removes])
        if installs:
            extra = ["--dry-run"] if simulate else []
            phases.append(["install", *_PIP_FLAGS, *extra, *installs])

        failures: dict[str, str] = {}
        diagnostics: list[str] = []
        failed_reason: str | None = None

        for args in phases:
            r = self._pip(*args)
            if r.output:
                diagnostics.append(r.output)
            if r.error:
                return BatchUnavailable(reason=r.error, diagnostic="\n".join(diagnostics))
            if r.returncode != 0:
                for key, reason in parse_failures(r.output).items():
                    failures.setdefault(key, reason)
                failed_reason = (
                    f"pip {args[0]} exited with code {r.returncode}: {_last_error_line(r.output)}"
                )

        diagnostic = "\n".join(diagnostics)
        if failures:
            return BatchPartial(failures=failures, diagnostic=diagnostic)
        if failed_reason:
            return BatchFailed(reason=failed_reason, diagnostic=diagnostic)
        return BatchSucceeded(diagnostic=diagnostic)


def _requirement(module: SoftwareModule) -> str:
    if module.file:
        return module.file
    if module.version:
        return f"{module.name}=={module.version}"
    return module.name
