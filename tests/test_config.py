"""
Tests for the config loader — plugin.yml resolution and validation.
"""

import pytest

from smplugin.core.config import loader
from smplugin.core.config.loader import ConfigError, find_config_file, load_config


class TestFindConfigFile:
    def test_explicit_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SMP_CONFIG", str(tmp_path / "env.yml"))
        path, required = find_config_file(tmp_path / "cli.yml")
        assert path == tmp_path / "cli.yml"
        assert required

    def test_env_var(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SMP_CONFIG", str(tmp_path / "env.yml"))
        path, required = find_config_file()
        assert path == tmp_path / "env.yml"
        assert required

    def test_system_file_optional(self, tmp_path, monkeypatch):
        system = tmp_path / "plugin.yml"
        system.write_text("backend: pip\n")
        monkeypatch.setattr(loader, "SYSTEM_CONFIG_FILE", system)
        assert find_config_file() == (system, False)

    def test_nothing(self):
        assert find_config_file() == (None, False)


class TestLoadConfig:
    def test_defaults_without_file(self):
        cfg = load_config()
        assert cfg.backend == "apt"

    def test_full_file(self, config_file):
        path = config_file(
            "backend: pip\n"
            "elevate: true\n"
            "command_timeout: 120\n"
            "lock_retry:\n"
            "  attempts: 2\n"
            "  base_delay: 0.5\n"
            "apt:\n"
            "  auto_remove: false\n"
            "  extra_args: ['-o', 'Acquire::Retries=3']\n"
            "pip:\n"
            "  python: /opt/venv/bin/python\n"
        )
        cfg = load_config(path)
        assert cfg.backend == "pip"
        assert cfg.elevate is True
        assert cfg.command_timeout == 120
        assert cfg.lock_retry.attempts == 2
        assert cfg.lock_retry.max_delay == 30.0
        assert cfg.apt.auto_remove is False
        assert cfg.apt.extra_args == ["-o", "Acquire::Retries=3"]
        assert cfg.pip.python == "/opt/venv/bin/python"

    def test_empty_file_is_defaults(self, config_file):
        assert load_config(config_file("")).backend == "apt"

    def test_env_var_file(self, config_file, monkeypatch):
        monkeypatch.setenv("SMP_CONFIG", str(config_file("backend: mock\n")))
        assert load_config().backend == "mock"

    def test_explicit_missing(self, tmp_path):
        with pytest.raises(ConfigError, match="Config file not found"):
            load_config(tmp_path / "missing.yml")

    def test_invalid_yaml(self, config_file):
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(config_file("backend: [unclosed\n"))

    def test_not_a_mapping(self, config_file):
        with pytest.raises(ConfigError, match="Expected a YAML mapping"):
            load_config(config_file("- apt\n- pip\n"))

    def test_unknown_key(self, config_file):
        with pytest.raises(ConfigError, match="Invalid plugin configuration"):
            load_config(config_file("backnd: apt\n"))

    def test_bad_type(self, config_file):
        with pytest.raises(ConfigError):
            load_config(config_file("command_timeout: soon\n"))
