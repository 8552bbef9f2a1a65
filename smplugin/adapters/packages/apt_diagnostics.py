"""
apt/dpkg diagnostics — attribute free-text errors to modules.

apt reports a failed transaction as a non-zero exit plus human-readable
lines on stdout/stderr. This module turns the lines it recognises into
``{module key → reason}`` so the sequencer can attribute failures
without re-running everything.

The text format is not a stable interface. Attribution is best-effort:
anything not matched here is left to the sequencer's individual
re-execution fallback.
"""

from __future__ import annotations

import re

# ── Lock contention ─────────────────────────────────────────────

LOCK_PATTERN = re.compile(
    r"Could not get lock"
    r"|Unable to acquire the dpkg frontend lock"
    r"|Unable to lock the administration directory"
    r"|Unable to lock directory /var/lib/apt/lists"
    r"|dpkg status database is locked by another process",
    re.IGNORECASE,
)

# dpkg refuses every run until "dpkg --configure -a" is executed
INTERRUPTED_PATTERN = re.compile(r"dpkg was interrupted", re.IGNORECASE)

# ── Per-module failures ─────────────────────────────────────────
#
# Each handler: regex with a ``key`` group naming the module (or the
# source file), and the reason reported for it.

FAILURE_HANDLERS: list[dict] = [
    {
        "pattern": re.compile(r"^E: Unable to locate package (?P<key>\S+)", re.M),
        "reason": "package not found",
    },
    {
        "pattern": re.compile(
            r"^E: Version '(?P<version>[^']+)' for '(?P<key>[^']+)' was not found", re.M
        ),
        "reason": "version {version} not found",
    },
    {
        "pattern": re.compile(r"^E: Package '(?P<key>[^']+)' has no installation candidate", re.M),
        "reason": "no installation candidate",
    },
    {
        "pattern": re.compile(r"^E: Unsupported file (?P<key>\S+) given on commandline", re.M),
        "reason": "unsupported package file",
    },
    {
        "pattern": re.compile(r"^dpkg: error processing archive (?P<key>\S+?)(?: \(--\w+\))?:?$", re.M),
        "reason": "dpkg could not unpack archive",
    },
    {
        "pattern": re.compile(r"^dpkg: error processing package (?P<key>[^\s:]+)", re.M),
        "reason": "dpkg failed to configure package",
    },
    {
        "pattern": re.compile(
            r"^\s+(?P<key>[^\s:]+)(?::\w+)? : (?:Pre)?Depends: (?P<dep>.+?)\s*$", re.M
        ),
        "reason": "unmet dependency: {dep}",
    },
    {
        "pattern": re.compile(r"^E: Could not open file (?P<key>\S+?) - ", re.M),
        "reason": "package file not readable",
    },
]


def is_lock_contention(text: str) -> bool:
    """Whether apt/dpkg output says another process holds the lock."""
    return bool(LOCK_PATTERN.search(text))


def is_interrupted(text: str) -> bool:
    """Whether dpkg refuses to run until an interrupted run is repaired."""
    return bool(INTERRUPTED_PATTERN.search(text))


def parse_failures(text: str) -> dict[str, str]:
    """Extract ``{module key → reason}`` from apt/dpkg output.

    The first reason found for a key wins. Keys are stripped of
    ``=version`` and ``:arch`` qualifiers when they are package names;
    file paths are kept as written.
    """
    failures: dict[str, str] = {}
    for handler in FAILURE_HANDLERS:
        for match in handler["pattern"].finditer(text):
            groups = match.groupdict()
            key = _normalize_key(groups.pop("key"))
            if not key or key in failures:
                continue
            failures[key] = handler["reason"].format(**groups)
    return failures


def first_error_line(text: str) -> str:
    """The first ``E:`` line, or the last non-empty line, for summaries."""
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    for line in lines:
        if line.startswith("E:"):
            return line
    return lines[-1] if lines else ""


def _normalize_key(key: str) -> str:
    key = key.strip().strip("'\"")
    if "/" in key or key.endswith(".deb"):
        return key
    return key.split("=", 1)[0].split(":", 1)[0]
