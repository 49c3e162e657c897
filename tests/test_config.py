"""
Tests for Config loading (YAML file, defaults, environment overrides).
"""
import textwrap

import pytest

from pkg.lists.config import Config, ConfigError


def test_defaults_when_file_missing(monkeypatch, tmp_path):
    monkeypatch.delenv("LISTGROUPS_DB", raising=False)
    monkeypatch.setattr("pkg.lists.config.CONFIG_PATH", tmp_path / "absent.yaml")
    cfg = Config.load()
    assert cfg.port == 3000
    assert cfg.host == "127.0.0.1"
    assert cfg.db_path.endswith("listgroups.db")
    assert "~" not in cfg.db_path


def test_load_yaml_ignores_unknown_keys(monkeypatch, tmp_path):
    monkeypatch.delenv("LISTGROUPS_DB", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(textwrap.dedent("""
        port: 8080
        db_path: /data/groups.db
        log_level: debug
        colour_scheme: dark
    """))
    cfg = Config.load(str(path))
    assert cfg.port == 8080
    assert cfg.db_path == "/data/groups.db"
    assert cfg.log_level == "DEBUG"
    assert not hasattr(cfg, "colour_scheme")


def test_env_overrides_db(monkeypatch, tmp_path):
    monkeypatch.setenv("LISTGROUPS_DB", str(tmp_path / "env.db"))
    path = tmp_path / "config.yaml"
    path.write_text("db_path: /data/groups.db\n")
    assert Config.load(str(path)).db_path == str(tmp_path / "env.db")


def test_api_secret_from_env(monkeypatch):
    monkeypatch.setenv("MY_SECRET", "abc")
    assert Config(api_secret_env="MY_SECRET").api_secret == "abc"
    monkeypatch.delenv("MY_SECRET")
    assert Config(api_secret_env="MY_SECRET").api_secret == ""


class TestConfigErrors:

    def test_explicit_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            Config.load(str(tmp_path / "nope.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("port: [unclosed\n")
        with pytest.raises(ConfigError):
            Config.load(str(path))

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError, match="mapping"):
            Config.load(str(path))
