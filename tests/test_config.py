"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from gitcontext.config import Config, ConfigError, load_config


class TestConfig:
    def test_defaults_when_missing(self, tmp_path: Path):
        config = load_config(tmp_path / "nope.toml")
        assert config == Config()
        assert config.credentials.backend == "keyring"
        assert config.accounts_path == Path.home() / ".gitcontext" / "accounts.json"

    def test_search_prefers_working_directory(self, tmp_path: Path, monkeypatch):
        (tmp_path / "gitcontext.toml").write_text(
            '[credentials]\nservice_name = "from-cwd"\n'
        )
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        assert load_config().credentials.service_name == "from-cwd"

    def test_search_falls_back_to_home(self, tmp_path: Path, monkeypatch):
        home = tmp_path / "home"
        (home / ".gitcontext").mkdir(parents=True)
        (home / ".gitcontext" / "gitcontext.toml").write_text(
            '[logging]\nlevel = "debug"\n'
        )
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(home))
        assert load_config().logging.level == "DEBUG"

    def test_full_file(self, tmp_path: Path):
        path = tmp_path / "gitcontext.toml"
        path.write_text(
            "[storage]\n"
            f'accounts_path = "{tmp_path}/a.json"\n'
            f'profiles_path = "{tmp_path}/p.json"\n'
            "[credentials]\n"
            'backend = "memory"\n'
            'service_name = "svc"\n'
            "[logging]\n"
            'level = "WARNING"\n'
        )
        config = load_config(path)
        assert config.accounts_path == tmp_path / "a.json"
        assert config.profiles_path == tmp_path / "p.json"
        assert config.credentials.backend == "memory"
        assert config.credentials.service_name == "svc"
        assert config.logging.level == "WARNING"

    def test_invalid_toml(self, tmp_path: Path):
        path = tmp_path / "gitcontext.toml"
        path.write_text("[storage\n")
        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(path)

    def test_unknown_backend(self, tmp_path: Path):
        path = tmp_path / "gitcontext.toml"
        path.write_text('[credentials]\nbackend = "vault"\n')
        with pytest.raises(ConfigError, match="vault"):
            load_config(path)

    def test_unknown_log_level(self, tmp_path: Path):
        path = tmp_path / "gitcontext.toml"
        path.write_text('[logging]\nlevel = "LOUD"\n')
        with pytest.raises(ConfigError, match="LOUD"):
            load_config(path)
