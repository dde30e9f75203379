"""Migrations de schéma DuckDB versionnées.

Chaque migration est numérotée et enregistrée dans `schema_migrations` ;
elle n'est appliquée qu'une fois. Les colonnes JSON sont stockées en texte
(VARCHAR) et fusionnées côté Python (voir data/sync/merge.py).

Les tables n'ont que des clés primaires : pas de clés étrangères, l'intégrité
joueur ↔ participant est assurée par la création de stubs à l'ingestion.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import duckdb

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    version: int
    name: str
    ddl: str


PLAYERS_DDL = """
CREATE TABLE IF NOT EXISTS players (
    account_id BIGINT PRIMARY KEY,
    steamid64 VARCHAR NOT NULL,
    personaname VARCHAR,
    profileurl VARCHAR,
    avatar VARCHAR,
    avatarmedium VARCHAR,
    avatarfull VARCHAR,
    countrycode VARCHAR,
    realname VARCHAR,
    profile_extra VARCHAR NOT NULL DEFAULT '{}',
    profile_updated_at TIMESTAMP,
    profile_domain VARCHAR
);

CREATE TABLE IF NOT EXISTS latest_mmr (
    account_id BIGINT PRIMARY KEY,
    match_id BIGINT,
    start_time TIMESTAMP,
    player_score DOUBLE,
    rank INTEGER,
    division INTEGER,
    division_tier INTEGER,
    extra VARCHAR NOT NULL DEFAULT '{}'
);

-- Append-only
CREATE TABLE IF NOT EXISTS mmr_history (
    account_id BIGINT NOT NULL,
    start_time TIMESTAMP NOT NULL,
    match_id BIGINT,
    player_score DOUBLE,
    rank INTEGER,
    division INTEGER,
    division_tier INTEGER,
    extra VARCHAR NOT NULL DEFAULT '{}',
    PRIMARY KEY (account_id, start_time)
);

CREATE TABLE IF NOT EXISTS hero_stats_current (
    account_id BIGINT NOT NULL,
    hero_id INTEGER NOT NULL,
    matches_played INTEGER,
    wins INTEGER,
    last_played TIMESTAMP,
    time_played INTEGER,
    ending_level DOUBLE,
    kills INTEGER,
    deaths INTEGER,
    assists INTEGER,
    kills_per_min DOUBLE,
    deaths_per_min DOUBLE,
    assists_per_min DOUBLE,
    networth_per_min DOUBLE,
    last_hits_per_min DOUBLE,
    damage_per_min DOUBLE,
    damage_taken_per_min DOUBLE,
    obj_damage_per_min DOUBLE,
    accuracy DOUBLE,
    crit_shot_rate DOUBLE,
    win_rate DOUBLE,
    extra VARCHAR NOT NULL DEFAULT '{}',
    PRIMARY KEY (account_id, hero_id)
);

-- Append-only
CREATE TABLE IF NOT EXISTS hero_stats_history (
    account_id BIGINT NOT NULL,
    hero_id INTEGER NOT NULL,
    last_played TIMESTAMP NOT NULL,
    snapshot_json VARCHAR NOT NULL,
    PRIMARY KEY (account_id, hero_id, last_played)
);
"""

MATCHES_DDL = """
CREATE TABLE IF NOT EXISTS matches (
    match_id BIGINT PRIMARY KEY,
    start_time TIMESTAMP,
    duration_s INTEGER,
    winner_team VARCHAR,
    average_badge INTEGER,
    region VARCHAR,
    patch_version VARCHAR,
    info_json VARCHAR NOT NULL DEFAULT '{}',
    fetched_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS match_players (
    match_id BIGINT NOT NULL,
    account_id BIGINT NOT NULL,
    hero_id INTEGER,
    team VARCHAR,
    party_id BIGINT,
    lane VARCHAR,
    is_victory BOOLEAN,
    kills INTEGER,
    deaths INTEGER,
    assists INTEGER,
    networth BIGINT,
    damage BIGINT,
    damage_taken BIGINT,
    obj_damage BIGINT,
    last_hits INTEGER,
    accuracy DOUBLE,
    crit_shot_rate DOUBLE,
    extra_json VARCHAR NOT NULL DEFAULT '{}',
    PRIMARY KEY (match_id, account_id)
);
"""

MIGRATIONS: tuple[Migration, ...] = (
    Migration(1, "init_players", PLAYERS_DDL),
    Migration(2, "matches", MATCHES_DDL),
)


def table_exists(conn: duckdb.DuckDBPyConnection, table_name: str) -> bool:
    """Vérifie si une table existe dans le schéma main."""
    result = conn.execute(
        "SELECT COUNT(*) FROM information_schema.tables "
        "WHERE table_schema = 'main' AND table_name = ?",
        [table_name],
    ).fetchone()
    return bool(result and result[0] > 0)


def _split_statements(ddl: str) -> list[str]:
    statements = []
    for stmt in ddl.split(";"):
        lines = [line for line in stmt.splitlines() if not line.strip().startswith("--")]
        stmt = "\n".join(lines).strip()
        if stmt:
            statements.append(stmt)
    return statements


def applied_versions(conn: duckdb.DuckDBPyConnection) -> set[int]:
    if not table_exists(conn, "schema_migrations"):
        return set()
    rows = conn.execute("SELECT version FROM schema_migrations").fetchall()
    return {int(r[0]) for r in rows}


def apply_migrations(
    conn: duckdb.DuckDBPyConnection,
    migrations: tuple[Migration, ...] = MIGRATIONS,
) -> list[int]:
    """Applique les migrations manquantes, chacune dans sa transaction.

    Returns:
        Les versions appliquées lors de cet appel (vide si déjà à jour).
    """
    conn.execute(
        """CREATE TABLE IF NOT EXISTS schema_migrations (
               version INTEGER PRIMARY KEY,
               name VARCHAR NOT NULL,
               applied_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
           )"""
    )
    done = applied_versions(conn)
    applied: list[int] = []

    for migration in sorted(migrations, key=lambda m: m.version):
        if migration.version in done:
            continue
        conn.begin()
        try:
            for stmt in _split_statements(migration.ddl):
                conn.execute(stmt)
            conn.execute(
                "INSERT INTO schema_migrations (version, name) VALUES (?, ?)",
                [migration.version, migration.name],
            )
            conn.commit()
        except duckdb.Error:
            conn.rollback()
            logger.error(f"Migration {migration.version} ({migration.name}) échouée")
            raise
        logger.info(f"Migration {migration.version} appliquée: {migration.name}")
        applied.append(migration.version)

    return applied
