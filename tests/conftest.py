"""
Shared test fixtures and configuration.
"""

from collections.abc import Callable
from pathlib import Path

import pytest

from smplugin.adapters.mock import MockBackend
from smplugin.adapters.shell.runner import CommandResult


class FakeRunner:
    """Scripted stand-in for ``run_command``.

    Handlers are tried in registration order; unmatched commands
    succeed with no output.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.kwargs: list[dict] = []
        self._handlers: list[tuple[Callable[[list[str]], bool], list[CommandResult]]] = []

    def on(self, predicate: Callable[[list[str]], bool], *results: CommandResult) -> None:
        """Answer commands matching ``predicate`` with ``results`` in turn.

        The last result repeats once the others are used up.
        """
        self._handlers.append((predicate, list(results)))

    def on_args(self, *words: str, results: list[CommandResult]) -> None:
        """Answer commands containing every one of ``words``."""
        self.on(lambda cmd: all(w in cmd for w in words), *results)

    def __call__(self, cmd: list[str], **kwargs) -> CommandResult:
        self.calls.append(list(cmd))
        self.kwargs.append(kwargs)
        for predicate, results in self._handlers:
            if predicate(cmd):
                result = results.pop(0) if len(results) > 1 else results[0]
                return CommandResult(
                    cmd=list(cmd),
                    returncode=result.returncode,
                    stdout=result.stdout,
                    stderr=result.stderr,
                    error=result.error,
                    not_found=result.not_found,
                    timed_out=result.timed_out,
                )
        return CommandResult(cmd=list(cmd), returncode=0)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def mock_backend() -> MockBackend:
    """A mock store with two installed packages."""
    return MockBackend(installed={"curl": "7.88.1", "vim": "9.0"})


@pytest.fixture
def config_file(tmp_path: Path) -> Callable[[str], Path]:
    """Write a plugin.yml with the given content and return its path."""

    def _write(content: str) -> Path:
        path = tmp_path / "plugin.yml"
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch, tmp_path: Path):
    """Keep tests away from a real SMP_CONFIG or /etc/sm-plugin/plugin.yml."""
    monkeypatch.delenv("SMP_CONFIG", raising=False)
    monkeypatch.delenv("SMP_LOG_FILE", raising=False)
    monkeypatch.delenv("SMP_LOG_LEVEL", raising=False)
    monkeypatch.setattr(
        "smplugin.core.config.loader.SYSTEM_CONFIG_FILE",
        tmp_path / "no-such-dir" / "plugin.yml",
    )
