"""
Tests for observability — health checks and logging setup.
"""

import logging
from pathlib import Path

import pytest

from smplugin.adapters.mock import MockBackend
from smplugin.core.observability.health import (
    ComponentHealth,
    SystemHealth,
    check_backend,
    check_config,
    check_plugin_health,
)
from smplugin.core.observability.logging_config import resolve_level, setup_logging

# ── Health Check Tests ───────────────────────────────────────────────


class TestComponentHealth:
    def test_defaults(self):
        c = ComponentHealth(name="test")
        assert c.status == "unknown"

    def test_to_dict(self):
        d = ComponentHealth(name="test", status="healthy", message="ok").to_dict()
        assert d["name"] == "test"
        assert d["status"] == "healthy"


class TestSystemHealth:
    def test_all_healthy(self):
        h = SystemHealth()
        h.add(ComponentHealth(name="a", status="healthy"))
        h.add(ComponentHealth(name="b", status="healthy"))
        assert h.status == "healthy"

    def test_degraded_if_any_degraded(self):
        h = SystemHealth()
        h.add(ComponentHealth(name="a", status="healthy"))
        h.add(ComponentHealth(name="b", status="degraded"))
        assert h.status == "degraded"

    def test_unhealthy_wins(self):
        h = SystemHealth()
        h.add(ComponentHealth(name="a", status="degraded"))
        h.add(ComponentHealth(name="b", status="unhealthy"))
        assert h.status == "unhealthy"

    def test_timestamp_set(self):
        assert SystemHealth().timestamp


class _NoVersionBackend(MockBackend):
    def version(self):
        return None


class _BrokenBackend(MockBackend):
    def is_available(self):
        raise RuntimeError("probe crashed")


class TestBackendHealth:
    def test_healthy(self):
        c = check_backend(MockBackend())
        assert c.status == "healthy"
        assert c.name == "backend:mock"
        assert c.details["version"] == "mock"

    def test_unavailable(self):
        c = check_backend(MockBackend(available=False))
        assert c.status == "unhealthy"
        assert "not found" in c.message

    def test_unknown_version_degraded(self):
        assert check_backend(_NoVersionBackend()).status == "degraded"

    def test_probe_exception(self):
        c = check_backend(_BrokenBackend())
        assert c.status == "unhealthy"
        assert "probe crashed" in c.message


class TestConfigHealth:
    def test_defaults(self):
        assert check_config(None).message == "Built-in defaults"

    def test_loaded(self):
        c = check_config(Path("/etc/sm-plugin/plugin.yml"))
        assert c.status == "healthy"
        assert c.details["path"] == "/etc/sm-plugin/plugin.yml"

    def test_error(self):
        assert check_config(None, "Invalid YAML").status == "unhealthy"


class TestPluginHealth:
    def test_combines_components(self):
        h = check_plugin_health(MockBackend())
        assert [c.name for c in h.components] == ["config", "backend:mock"]
        assert h.status == "healthy"

    def test_no_backend_when_config_broken(self):
        h = check_plugin_health(None, config_error="bad")
        assert h.status == "unhealthy"
        assert len(h.components) == 1


# ── Logging ──────────────────────────────────────────────────────────


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    level = root.level
    yield root
    # drop what setup_logging installed; pytest's own handlers are subclasses
    for handler in list(root.handlers):
        if type(handler) in (logging.StreamHandler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


class TestResolveLevel:
    def test_flag_precedence(self, monkeypatch):
        monkeypatch.setenv("SMP_LOG_LEVEL", "ERROR")
        assert resolve_level(debug=True, verbose=True) == "DEBUG"
        assert resolve_level(verbose=True, quiet=True) == "INFO"
        assert resolve_level(quiet=True) == "ERROR"

    def test_env_then_default(self, monkeypatch):
        monkeypatch.setenv("SMP_LOG_LEVEL", "INFO")
        assert resolve_level() == "INFO"
        monkeypatch.delenv("SMP_LOG_LEVEL")
        assert resolve_level() == "WARNING"


class TestSetupLogging:
    def test_console_level(self, restore_root_logger):
        setup_logging("INFO")
        root = restore_root_logger
        assert root.level == logging.INFO
        assert len(root.handlers) == 1

    def test_unknown_level_falls_back_to_warning(self, restore_root_logger):
        setup_logging("LOUD")
        assert restore_root_logger.level == logging.WARNING

    def test_file_handler(self, restore_root_logger, tmp_path):
        log_file = tmp_path / "plugin.log"
        setup_logging("ERROR", log_file=str(log_file), log_file_level="DEBUG")
        root = restore_root_logger
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2
        logging.getLogger("smplugin.test").debug("to the file only")
        for handler in root.handlers:
            handler.flush()
        assert "to the file only" in log_file.read_text()
