"""Tests for config loading -- file sections, env overrides, secret handling."""

import json
import os
import pytest
from unittest.mock import patch


class TestDefaults:
    def test_section_defaults(self):
        from notegrid.common.config import NoteGridConfig
        cfg = NoteGridConfig()
        assert cfg.llm.provider == "openai"
        assert cfg.server.port == 3001
        assert cfg.email.smtp_host == "smtp.gmail.com"
        assert cfg.email.smtp_port == 465
        assert cfg.trello.base_url == "https://api.trello.com/1"
        assert cfg.addon.backend_url == "http://localhost:3001"
        assert cfg.addon.poll_interval == 1.2

    def test_missing_file_gives_defaults(self, tmp_path):
        from notegrid.common.config import load_config
        with patch("notegrid.common.config.CONFIG_PATH", tmp_path / "absent.json"), \
             patch.dict(os.environ, {}, clear=True):
            cfg = load_config()
        assert cfg.llm.openai_api_key == ""
        assert cfg.trello.max_tasks_per_section == 30


class TestLoadConfig:
    def test_file_sections_are_read(self, tmp_path):
        from notegrid.common.config import load_config
        config_data = {
            "llm": {"provider": "anthropic", "anthropic_api_key": "sk-ant"},
            "server": {"port": 4000},
            "email": {"user": "bot@example.com", "password": "pw"},
            "trello": {"list_id": "list-1", "cache_ttl": 60},
            "addon": {"backend_url": "http://backend:4000"},
        }
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps(config_data))

        with patch("notegrid.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, {}, clear=True):
            cfg = load_config()

        assert cfg.llm.provider == "anthropic"
        assert cfg.llm.anthropic_api_key == "sk-ant"
        assert cfg.server.port == 4000
        assert cfg.email.user == "bot@example.com"
        assert cfg.trello.list_id == "list-1"
        assert cfg.trello.cache_ttl == 60
        assert cfg.addon.backend_url == "http://backend:4000"

    def test_corrupt_file_falls_back_to_defaults(self, tmp_path, caplog):
        from notegrid.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text("{not json")

        with patch("notegrid.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, {}, clear=True):
            cfg = load_config()

        assert cfg.server.port == 3001
        assert "Failed to load config file" in caplog.text

    def test_env_overrides_file(self, tmp_path):
        from notegrid.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"email": {"user": "file@example.com"}}))

        env = {
            "EMAIL_USER": "env@example.com",
            "EMAIL_PASS": "secret",
            "NOTEGRID_PORT": "5000",
            "TRELLO_TOKEN": "tok",
        }
        with patch("notegrid.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, env, clear=True):
            cfg = load_config()

        assert cfg.email.user == "env@example.com"
        assert cfg.email.password == "secret"
        assert cfg.server.port == 5000
        assert cfg.trello.token == "tok"
        assert ("email", "password") in cfg._env_sourced_keys

    def test_invalid_int_env_is_ignored(self, tmp_path, caplog):
        from notegrid.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text("{}")

        with patch("notegrid.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, {"NOTEGRID_PORT": "abc"}, clear=True):
            cfg = load_config()

        assert cfg.server.port == 3001
        assert ("server", "port") not in cfg._env_sourced_keys
        assert "NOTEGRID_PORT" in caplog.text


class TestSaveConfig:
    def test_env_sourced_secrets_are_not_written(self, tmp_path):
        from notegrid.common.config import load_config, save_config
        config_file = tmp_path / "config.json"
        config_file.write_text("{}")

        env = {"OPENAI_API_KEY": "sk-env", "TRELLO_API_KEY": "trello-env"}
        with patch("notegrid.common.config.CONFIG_PATH", config_file), \
             patch("notegrid.common.config.CONFIG_DIR", tmp_path), \
             patch.dict(os.environ, env, clear=True):
            cfg = load_config()
            cfg.email.password = "typed-in"
            save_config(cfg)

        saved = json.loads(config_file.read_text())
        assert saved["llm"]["openai_api_key"] == ""
        assert saved["trello"]["api_key"] == ""
        assert saved["email"]["password"] == "typed-in"

    def test_save_then_load_round_trip(self, tmp_path):
        from notegrid.common.config import NoteGridConfig, load_config, save_config
        config_file = tmp_path / "config.json"
        cfg = NoteGridConfig()
        cfg.trello.list_id = "abc"
        cfg.addon.retry_delay = 3.0

        with patch("notegrid.common.config.CONFIG_PATH", config_file), \
             patch("notegrid.common.config.CONFIG_DIR", tmp_path), \
             patch.dict(os.environ, {}, clear=True):
            save_config(cfg)
            loaded = load_config()

        assert loaded.trello.list_id == "abc"
        assert loaded.addon.retry_delay == 3.0
        assert oct(config_file.stat().st_mode & 0o777) == oct(0o600)


class TestEnsureDirectories:
    def test_creates_config_dir(self, tmp_path):
        from notegrid.common.config import ensure_directories
        config_dir = tmp_path / "nested" / ".notegrid"
        with patch("notegrid.common.config.CONFIG_DIR", config_dir):
            ensure_directories()
        assert config_dir.is_dir()
        assert list(config_dir.iterdir()) == []
