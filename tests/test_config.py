"""Tests de la configuration (environnement, .env)."""

from __future__ import annotations

import os

import pytest

from deadlock_sync.config import (
    DEFAULT_API_BASE,
    DEFAULT_BATCH_SIZE,
    DEFAULT_DB_PATH,
    SyncConfig,
    _load_dotenv_if_present,
)
from deadlock_sync.errors import ConfigError


class TestFromEnv:
    def test_defaults(self):
        config = SyncConfig.from_env({})

        assert config.api_base == DEFAULT_API_BASE
        assert config.api_key is None
        assert config.db_path == DEFAULT_DB_PATH
        assert config.batch_size == DEFAULT_BATCH_SIZE

    def test_values_read(self):
        config = SyncConfig.from_env(
            {
                "DEADLOCK_API_BASE": "https://mirror.test/",
                "DEADLOCK_API_KEY": " secret ",
                "DEADLOCK_DB_PATH": "/tmp/x.duckdb",
                "DEADLOCK_HTTP_TIMEOUT": "2.5",
                "DEADLOCK_BATCH_SIZE": "25",
                "DEADLOCK_SYNC_LIMIT": "10",
                "STEAM_WEB_API_KEY": "k",
            }
        )

        assert config.api_base == "https://mirror.test"
        assert config.api_key == "secret"
        assert config.db_path == "/tmp/x.duckdb"
        assert config.http_timeout == 2.5
        assert config.batch_size == 25
        assert config.sync_limit == 10
        assert config.steam_web_api_key == "k"

    def test_blank_key_is_absent(self):
        assert SyncConfig.from_env({"DEADLOCK_API_KEY": "   "}).api_key is None

    @pytest.mark.parametrize(
        "key, value",
        [
            ("DEADLOCK_BATCH_SIZE", "0"),
            ("DEADLOCK_BATCH_SIZE", "many"),
            ("DEADLOCK_HTTP_TIMEOUT", "-1"),
            ("DEADLOCK_SYNC_LIMIT", "1.5"),
        ],
    )
    def test_invalid_values(self, key, value):
        with pytest.raises(ConfigError, match=key):
            SyncConfig.from_env({key: value})

    def test_frozen(self):
        config = SyncConfig()
        with pytest.raises(AttributeError):
            config.batch_size = 3


class TestDotenv:
    def test_loaded_without_overriding(self, tmp_path, monkeypatch):
        (tmp_path / ".env").write_text(
            "# commentaire\nDLS_TEST_A='from-file'\nDLS_TEST_B=from-file\nnot-a-pair\n",
            encoding="utf-8",
        )
        monkeypatch.delenv("DLS_TEST_A", raising=False)
        monkeypatch.setenv("DLS_TEST_B", "from-env")

        _load_dotenv_if_present(tmp_path)

        assert os.environ["DLS_TEST_A"] == "from-file"
        assert os.environ["DLS_TEST_B"] == "from-env"
        monkeypatch.delenv("DLS_TEST_A")

    def test_env_local_has_priority(self, tmp_path, monkeypatch):
        (tmp_path / ".env.local").write_text("DLS_TEST_C=local\n", encoding="utf-8")
        (tmp_path / ".env").write_text("DLS_TEST_C=shared\n", encoding="utf-8")
        monkeypatch.delenv("DLS_TEST_C", raising=False)

        _load_dotenv_if_present(tmp_path)

        assert os.environ["DLS_TEST_C"] == "local"
        monkeypatch.delenv("DLS_TEST_C")
