"""
apt backend — Debian/Ubuntu packages through apt-get and dpkg.

One ``apply`` call runs at most two apt-get transactions: all removals
first, then all installs, so a superseded version is gone before its
replacement is unpacked. Installs from a local ``.deb`` are checked
against the declared module with ``dpkg-deb`` before apt sees them.
"""

from __future__ import annotations

import logging
import re
import time
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
from smplugin.adapters.packages import apt_diagnostics
from smplugin.adapters.shell.runner import CommandResult, run_command, which
from smplugin.core.errors import BackendUnavailable
from smplugin.core.models.action import ModuleAction
from smplugin.core.models.module import SoftwareModule
from smplugin.core.models.state import CurrentState
from smplugin.core.reliability.lock_retry import LockRetryPolicy, retry_while_locked

logger = logging.getLogger(__name__)

APT_GET = "apt-get"
DPKG_QUERY = "dpkg-query"
DPKG_DEB = "dpkg-deb"

_LIST_FORMAT = "${Package}\t${Version}\t${db:Status-Status}\n"
_APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}
_SUDO_REFUSED = re.compile(r"^sudo: .*(password is required|not allowed|may not run)", re.M)

Runner = Callable[..., CommandResult]


class AptBackend(Backend):
    """Package backend over apt-get.

    Args:
        elevate: Prefix commands with ``sudo -n`` when not root.
        timeout: Seconds allowed per apt-get run.
        lock_policy: Backoff while the dpkg lock is held.
        auto_remove: Whether ``finalize`` runs ``apt-get auto-remove``.
        extra_args: Appended to every apt-get invocation (e.g. ``-o`` options).
        runner: Command runner; replaced in tests.
        sleep: Sleep function used between lock retries; replaced in tests.
    """

    supports_batch = True

    def __init__(
        self,
        *,
        elevate: bool = False,
        timeout: int = 600,
        lock_policy: LockRetryPolicy | None = None,
        auto_remove: bool = True,
        extra_args: list[str] | None = None,
        runner: Runner = run_command,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._elevate = elevate
        self._timeout = timeout
        self._lock_policy = lock_policy or LockRetryPolicy()
        self._auto_remove = auto_remove
        self._extra_args = list(extra_args or [])
        self._run = runner
        self._sleep = sleep

    @property
    def name(self) -> str:
        return "apt"

    def is_available(self) -> bool:
        return which(APT_GET) and which(DPKG_QUERY)

    def version(self) -> str | None:
        r = self._run([APT_GET, "--version"], timeout=10)
        if not r.ok:
            return None
        # "apt 2.4.11 (amd64)" → "2.4.11"
        m = re.match(r"apt\s+(\S+)", r.stdout.strip())
        return m.group(1) if m else None

    # ── Query ──────────────────────────────────────────────────

    def list_installed(self) -> CurrentState:
        r = self._run(
            [DPKG_QUERY, "--show", f"--showformat={_LIST_FORMAT}"],
            timeout=self._timeout,
        )
        if r.error:
            raise BackendUnavailable(r.error)
        if r.returncode != 0:
            detail = apt_diagnostics.first_error_line(r.output)
            raise BackendUnavailable(
                f"{DPKG_QUERY} exited with code {r.returncode}: {detail}"
            )

        pairs: list[tuple[str, str]] = []
        for line in r.stdout.splitlines():
            parts = line.split("\t")
            if len(parts) < 3 or parts[2].strip() != "installed":
                continue
            pairs.append((parts[0], parts[1]))
        logger.debug("dpkg reports %d installed packages", len(pairs))
        return CurrentState.from_pairs(pairs)

    # ── Batch ──────────────────────────────────────────────────

    def apply(self, actions: list[ModuleAction]) -> BackendBatchResult:
        return self._run_batch(actions, simulate=False)

    def dry_run(self, actions: list[ModuleAction]) -> BackendBatchResult:
        return self._run_batch(actions, simulate=True)

    def _run_batch(self, actions: list[ModuleAction], *, simulate: bool) -> BackendBatchResult:
        if not actions:
            return BatchSucceeded()

        failures: dict[str, str] = {}
        remove_names: list[str] = []
        install_args: list[str] = []

        for action in actions:
            if action.is_remove:
                if action.name not in remove_names:
                    remove_names.append(action.name)
                continue
            arg, problem = self._install_arg(action.module)
            if problem:
                failures[action.module.file or action.name] = problem
                continue
            if arg not in install_args:
                install_args.append(arg)

        phases: list[list[str]] = []
        if remove_names:
            phases.append(["remove", *remove_names])
        if install_args:
            phases.append(["install", "--allow-downgrades", *install_args])

        diagnostics: list[str] = []
        failed_reason: str | None = None

        for args in phases:
            r, unavailable = self._apt_get(args, simulate=simulate)
            if r.output:
                diagnostics.append(r.output)
            if unavailable:
                return BatchUnavailable(reason=unavailable, diagnostic="\n".join(diagnostics))
            if r.returncode != 0:
                failures.update(
                    {
                        key: reason
                        for key, reason in apt_diagnostics.parse_failures(r.output).items()
                        if key not in failures
                    }
                )
                failed_reason = (
                    f"apt-get {args[0]} exited with code {r.returncode}: "
                    f"{apt_diagnostics.first_error_line(r.output)}"
                )

        diagnostic = "\n".join(diagnostics)
        if failures:
            return BatchPartial(failures=failures, diagnostic=diagnostic)
        if failed_reason:
            return BatchFailed(reason=failed_reason, diagnostic=diagnostic)
        return BatchSucceeded(diagnostic=diagnostic)

    def _install_arg(self, module: SoftwareModule) -> tuple[str, str | None]:
        """apt-get argument for one install, or a reason it cannot be installed."""
        if not module.file:
            if module.version:
                return f"{module.name}={module.version}", None
            return module.name, None

        path = Path(module.file)
        if not path.is_file():
            return "", f"package file not found: {module.file}"

        r = self._run([DPKG_DEB, "--field", str(path), "Package", "Version"], timeout=30)
        if not r.ok:
            detail = r.error or apt_diagnostics.first_error_line(r.output)
            return "", f"cannot read package file: {detail}"

        fields = _parse_control_fields(r.stdout)
        package = fields.get("Package", "")
        if package != module.name:
            return "", f"package file contains {package or '?'}, not {module.name}"
        if module.version and fields.get("Version") != module.version:
            return "", (
                f"package file has version {fields.get('Version', '?')}, "
                f"not {module.version}"
            )

        # apt-get only treats an argument as a file when it looks like a path
        return (str(path) if path.is_absolute() else f"./{path}"), None

    # ── Hooks ──────────────────────────────────────────────────

    def prepare(self) -> BackendBatchResult:
        return self._hook(["update"])

    def finalize(self) -> BackendBatchResult:
        if not self._auto_remove:
            return BatchSucceeded()
        return self._hook(["auto-remove"])

    def _hook(self, args: list[str]) -> BackendBatchResult:
        r, unavailable = self._apt_get(args, simulate=False)
        if unavailable:
            return BatchUnavailable(reason=unavailable, diagnostic=r.output)
        if r.returncode != 0:
            return BatchFailed(
                reason=f"apt-get {args[0]} exited with code {r.returncode}: "
                f"{apt_diagnostics.first_error_line(r.output)}",
                diagnostic=r.output,
            )
        return BatchSucceeded(diagnostic=r.output)

    # ── Execution ──────────────────────────────────────────────

    def _apt_get(self, args: list[str], *, simulate: bool) -> tuple[CommandResult, str | None]:
        """Run apt-get with lock retry.

        Returns:
            ``(result, unavailable_reason)``; the reason is None when apt
            actually ran (successfully or not).
        """
        cmd = [APT_GET, "--quiet", "--yes", *self._extra_args]
        if simulate:
            cmd.append("--simulate")
        cmd.extend(args)

        def attempt() -> CommandResult:
            return self._run(
                cmd,
                elevate=self._elevate,
                timeout=self._timeout,
                env_overrides=_APT_ENV,
            )

        r, still_locked = retry_while_locked(
            attempt,
            lambda res: res.returncode != 0 and apt_diagnostics.is_lock_contention(res.output),
            self._lock_policy,
            label=f"apt-get {args[0]}",
            sleep=self._sleep,
        )

        if r.error:
            return r, r.error
        if still_locked:
            return r, "package manager lock held by another process"
        if r.returncode != 0 and apt_diagnostics.is_interrupted(r.output):
            return r, "dpkg was interrupted; run 'dpkg --configure -a'"
        if r.returncode != 0 and self._elevate and _SUDO_REFUSED.search(r.stderr):
            return r, "elevation refused: " + r.stderr.strip().splitlines()[0]
        return r, None


def _parse_control_fields(text: str) -> dict[str, str]:
    """Parse ``Field: value`` lines printed by ``dpkg-deb --field``."""
    fields: dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if sep and key and not key.startswith(" "):
            fields[key.strip()] = value.strip()
    return fields
