"""
Tests for the pip backend.
"""

import json

import pytest

from smplugin.adapters.base import BatchFailed, BatchPartial, BatchSucceeded, BatchUnavailable
from smplugin.adapters.packages.pip import PipBackend, canonicalize, parse_failures
from smplugin.adapters.shell.runner import CommandResult
from smplugin.core.errors import BackendUnavailable
from smplugin.core.models.action import ModuleAction
from smplugin.core.use_cases.reconcile import run_reconcile
from smplugin.core.use_cases.update import apply_actions

PY = "/opt/venv/bin/python"


def _result(returncode: int = 0, stdout: str = "", stderr: str = "", **kw) -> CommandResult:
    return CommandResult(cmd=[], returncode=returncode, stdout=stdout, stderr=stderr, **kw)


@pytest.fixture
def pip(fake_runner) -> PipBackend:
    return PipBackend(python=PY, runner=fake_runner)


class TestPipQuery:
    def test_list_installed(self, pip, fake_runner):
        packages = [{"name": "requests", "version": "2.31.0"}, {"name": "idna", "version": "3.6"}]
        fake_runner.on_args("list", results=[_result(stdout=json.dumps(packages))])
        state = pip.list_installed()
        assert state.entries() == [("requests", "2.31.0"), ("idna", "3.6")]
        assert fake_runner.calls[0][:5] == [PY, "-m", "pip", "list", "--format"]

    def test_list_invalid_json(self, pip, fake_runner):
        fake_runner.on_args("list", results=[_result(stdout="not json")])
        with pytest.raises(BackendUnavailable, match="invalid JSON"):
            pip.list_installed()

    def test_list_interpreter_missing(self, pip, fake_runner):
        fake_runner.on_args(
            "list", results=[_result(returncode=127, error=f"command not found: {PY}", not_found=True)]
        )
        with pytest.raises(BackendUnavailable):
            pip.list_installed()

    def test_version(self, pip, fake_runner):
        fake_runner.on_args(
            "--version", results=[_result(stdout="pip 24.0 from /opt/venv/lib/pip (python 3.12)\n")]
        )
        assert pip.version() == "24.0"


class TestPipBatch:
    def test_uninstall_then_install(self, pip, fake_runner):
        result = pip.apply(
            [
                ModuleAction.install("requests", "2.31.0"),
                ModuleAction.remove("idna"),
                ModuleAction.install("tool", file="./dist/tool-1.0-py3-none-any.whl"),
            ]
        )
        assert isinstance(result, BatchSucceeded)
        uninstall, install = fake_runner.calls
        assert uninstall[3:5] == ["uninstall", "--yes"]
        assert uninstall[-1] == "idna"
        assert install[3] == "install"
        assert install[-2:] == ["requests==2.31.0", "./dist/tool-1.0-py3-none-any.whl"]

    def test_dry_run_skips_uninstall(self, pip, fake_runner):
        pip.dry_run([ModuleAction.remove("idna"), ModuleAction.install("requests")])
        assert len(fake_runner.calls) == 1
        assert "--dry-run" in fake_runner.calls[0]

    def test_attributed_failure(self, pip, fake_runner):
        fake_runner.on_args(
            "install",
            results=[
                _result(
                    returncode=1,
                    stderr="ERROR: Could not find a version that satisfies the requirement "
                    "nosuch==1.0 (from versions: none)\n"
                    "ERROR: No matching distribution found for nosuch==1.0\n",
                )
            ],
        )
        result = pip.apply([ModuleAction.install("nosuch", "1.0"), ModuleAction.install("requests")])
        assert isinstance(result, BatchPartial)
        assert result.failures == {"nosuch": "no matching distribution"}

    def test_unattributed_failure(self, pip, fake_runner):
        fake_runner.on_args("install", results=[_result(returncode=1, stderr="ERROR: disk full")])
        result = pip.apply([ModuleAction.install("requests")])
        assert isinstance(result, BatchFailed)
        assert result.reason == "pip install exited with code 1: ERROR: disk full"

    def test_spawn_error_is_unavailable(self, pip, fake_runner):
        fake_runner.on_args("install", results=[_result(error="command timed out after 600s", timed_out=True)])
        result = pip.apply([ModuleAction.install("requests")])
        assert isinstance(result, BatchUnavailable)


class TestPipDiagnostics:
    def test_requirement_key_reduced_to_name(self):
        text = "ERROR: No matching distribution found for foo>=2.0"
        assert parse_failures(text) == {"foo": "no matching distribution"}

    def test_wheel_key_kept(self):
        text = "ERROR: bad.whl is not a valid wheel filename."
        assert parse_failures(text) == {"bad.whl": "invalid wheel filename"}


class TestPipNames:
    """pip treats ``PyYAML``, ``pyyaml`` and ``py_yaml`` alike; so must the plugin."""

    @pytest.fixture
    def installed(self, fake_runner):
        packages = [
            {"name": "PyYAML", "version": "6.0.1"},
            {"name": "typing_extensions", "version": "4.9.0"},
        ]
        fake_runner.on_args("list", results=[_result(stdout=json.dumps(packages))])

    def test_canonicalize(self):
        assert canonicalize("PyYAML") == "pyyaml"
        assert canonicalize("typing_extensions") == "typing-extensions"
        assert canonicalize("zope.Interface") == "zope-interface"
        assert canonicalize("a-_.b") == "a-b"

    def test_list_uses_canonical_names(self, pip, installed):
        assert pip.list_installed().entries() == [
            ("pyyaml", "6.0.1"),
            ("typing-extensions", "4.9.0"),
        ]

    def test_remove_differently_cased_name_runs_uninstall(self, pip, installed, fake_runner):
        result = apply_actions(pip, [ModuleAction.remove("pyyaml")])
        assert result.report.all_ok
        assert not result.report.results[0].already_satisfied
        uninstall = [c for c in fake_runner.calls if "uninstall" in c]
        assert len(uninstall) == 1
        assert uninstall[0][-1] == "pyyaml"

    def test_install_present_under_other_spelling_is_trivial(self, pip, installed, fake_runner):
        result = apply_actions(pip, [ModuleAction.install("Typing.Extensions", "4.9.0")])
        assert result.report.results[0].already_satisfied
        assert [c[3] for c in fake_runner.calls] == ["list"]

    def test_reconcile_keeps_differently_cased_package(self, pip, installed, fake_runner):
        result = run_reconcile(pip, ["pyyaml\t6.0.1\n", "typing-extensions\n"])
        assert result.report.total == 0
        assert [c[3] for c in fake_runner.calls] == ["list"]

    def test_failure_key_attributed_across_spellings(self, pip, installed, fake_runner):
        fake_runner.on_args(
            "install",
            results=[
                _result(
                    returncode=1,
                    stderr="ERROR: No matching distribution found for Py_YAML==99\n",
                )
            ],
        )
        result = apply_actions(
            pip, [ModuleAction.install("py-yaml", "99"), ModuleAction.install("requests")]
        )
        bad, other = result.report.results
        assert bad.failed
        assert bad.diagnostic == "no matching distribution"
        assert other.failed and other.attempts == 2
