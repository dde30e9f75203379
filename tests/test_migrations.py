"""Tests des migrations de schéma et des connexions DuckDB."""

from __future__ import annotations

import duckdb
import pytest

from deadlock_sync.db.connection import get_connection, open_connection
from deadlock_sync.db.migrations import (
    MIGRATIONS,
    Migration,
    _split_statements,
    applied_versions,
    apply_migrations,
    table_exists,
)

EXPECTED_TABLES = (
    "players",
    "latest_mmr",
    "mmr_history",
    "hero_stats_current",
    "hero_stats_history",
    "matches",
    "match_players",
)


@pytest.fixture
def conn():
    con = duckdb.connect(":memory:")
    yield con
    con.close()


class TestApplyMigrations:
    def test_creates_all_tables(self, conn):
        applied = apply_migrations(conn)

        assert applied == [m.version for m in MIGRATIONS]
        for table in EXPECTED_TABLES:
            assert table_exists(conn, table), table

    def test_idempotent(self, conn):
        apply_migrations(conn)

        assert apply_migrations(conn) == []
        assert applied_versions(conn) == {1, 2}

    def test_only_missing_applied(self, conn):
        apply_migrations(conn, MIGRATIONS[:1])
        assert not table_exists(conn, "matches")

        assert apply_migrations(conn) == [2]
        assert table_exists(conn, "matches")

    def test_failed_migration_rolled_back(self, conn):
        broken = Migration(99, "broken", "CREATE TABLE ok_table (a INTEGER); SELECT * FROM missing;")

        with pytest.raises(duckdb.Error):
            apply_migrations(conn, (*MIGRATIONS, broken))

        assert not table_exists(conn, "ok_table")
        assert 99 not in applied_versions(conn)
        assert applied_versions(conn) == {1, 2}

    def test_primary_keys_only(self, conn):
        """Pas de clés étrangères : un participant peut précéder son joueur."""
        apply_migrations(conn)
        conn.execute("INSERT INTO match_players (match_id, account_id) VALUES (1, 2)")

        assert table_exists(conn, "match_players")
        with pytest.raises(duckdb.ConstraintException):
            conn.execute("INSERT INTO match_players (match_id, account_id) VALUES (1, 2)")


def test_split_statements_strips_comments():
    ddl = "-- header\nCREATE TABLE a (x INTEGER);\n\n-- note\nCREATE TABLE b (y INTEGER);\n"
    assert _split_statements(ddl) == ["CREATE TABLE a (x INTEGER)", "CREATE TABLE b (y INTEGER)"]


def test_applied_versions_without_table(conn):
    assert applied_versions(conn) == set()


class TestConnection:
    def test_sqlite_path_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="SQLite"):
            open_connection(str(tmp_path / "legacy.db"))

    def test_empty_path_rejected(self):
        with pytest.raises(ValueError):
            open_connection("")

    def test_parent_directory_created(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "deadlock.duckdb"

        with get_connection(str(path)) as con:
            assert con.execute("SELECT 1").fetchone() == (1,)

        assert path.exists()
