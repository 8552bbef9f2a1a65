"""
Subprocess runner — the single place backends run external commands.

All elevation, environment, timeout and spawn-error handling is
centralised here. The runner never raises: a missing binary or a
timeout comes back as a ``CommandResult`` with ``error`` set.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Output kept per stream; package managers can be very chatty.
_MAX_OUTPUT = 20_000


@dataclass
class CommandResult:
    """Outcome of one external command."""

    cmd: list[str]
    returncode: int | None = None
    stdout: str = ""
    stderr: str = ""
    elapsed_ms: int = 0
    error: str | None = None          # spawn failure or timeout
    not_found: bool = False           # executable missing
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and self.returncode == 0

    @property
    def output(self) -> str:
        """stdout and stderr joined, for diagnostic parsing."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


def elevation_prefix(elevate: bool) -> list[str]:
    """``sudo -n`` when elevation is requested and we are not root."""
    if not elevate or os.geteuid() == 0:
        return []
    # -n: fail instead of prompting; the sudoers policy is provisioned externally
    return ["sudo", "-n"]


def run_command(
    cmd: list[str],
    *,
    elevate: bool = False,
    timeout: int = 600,
    env_overrides: dict[str, str] | None = None,
    cwd: str | None = None,
) -> CommandResult:
    """Run a command and capture its output.

    Args:
        cmd: Command list for ``subprocess.run()``.
        elevate: Prefix with ``sudo -n`` unless already root.
        timeout: Seconds before the command is killed.
        env_overrides: Extra environment variables.
        cwd: Working directory for the command.

    Returns:
        CommandResult. Never raises.
    """
    full_cmd = elevation_prefix(elevate) + list(cmd)

    env = os.environ.copy()
    if env_overrides:
        env.update(env_overrides)

    logger.debug("Executing: %s", " ".join(full_cmd))
    start = time.monotonic()
    try:
        proc = subprocess.run(
            full_cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=env,
            cwd=cwd,
        )
    except FileNotFoundError:
        return CommandResult(
            cmd=full_cmd,
            returncode=127,
            error=f"command not found: {full_cmd[0]}",
            not_found=True,
        )
    except subprocess.TimeoutExpired:
        return CommandResult(
            cmd=full_cmd,
            error=f"command timed out after {timeout}s",
            timed_out=True,
            elapsed_ms=int((time.monotonic() - start) * 1000),
        )
    except OSError as e:
        logger.debug("Subprocess error: %s", full_cmd, exc_info=True)
        return CommandResult(cmd=full_cmd, error=f"cannot execute {full_cmd[0]}: {e}")

    elapsed_ms = int((time.monotonic() - start) * 1000)
    result = CommandResult(
        cmd=full_cmd,
        returncode=proc.returncode,
        stdout=(proc.stdout or "")[-_MAX_OUTPUT:],
        stderr=(proc.stderr or "")[-_MAX_OUTPUT:],
        elapsed_ms=elapsed_ms,
    )
    logger.debug("%s exited %s in %dms", full_cmd[0], proc.returncode, elapsed_ms)
    return result


def which(executable: str) -> bool:
    """Whether ``executable`` is on PATH."""
    return shutil.which(executable) is not None
