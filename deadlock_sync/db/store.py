"""Stockage DuckDB du pipeline de synchronisation.

DuckDBStore expose le contrat utilisé par le moteur :
- connect() / migrate() / close()
- transaction() : une transaction DuckDB, annulée sur erreur
- max_match_id() / existing_match_ids() : lectures pour la résolution et le dédoublonnage
- upsert_match_batch() / upsert_player_bundle() : ingestion atomique
- primitives ligne à ligne (upsert_match, ensure_player_stub, ...) appelées
  à l'intérieur d'une transaction ouverte

Règles de fusion :
- matches : scalaires COALESCE (une valeur absente garde l'ancienne), info_json union
- match_players / players / latest_mmr / hero_stats_current : écrasement complet,
  maps d'extension en union
- players.profile_updated_at : le plus récent des deux
- mmr_history / hero_stats_history : insertion seule, doublon ignoré
"""

from __future__ import annotations

import logging
from collections.abc import Generator, Iterable, Sequence
from contextlib import contextmanager
from typing import Any

import duckdb

from deadlock_sync.data.domain.models import (
    HeroStats,
    MatchMeta,
    MMRHistory,
    PlayerBundle,
    PlayerInMatch,
    SteamProfile,
)
from deadlock_sync.data.sync.ingest import IngestionTransaction, PlayerBundleTransaction
from deadlock_sync.data.sync.merge import coalesce_scalars, dump_blob, load_blob, shallow_union
from deadlock_sync.data.sync.models import IngestCounts, PlayerIngestCounts
from deadlock_sync.data.sync.transformers import (
    HERO_SCALAR_COLUMNS,
    MATCH_PLAYER_SCALAR_COLUMNS,
    MATCH_SCALAR_COLUMNS,
    MMR_SCALAR_COLUMNS,
    PLAYER_PROFILE_COLUMNS,
    hero_snapshot,
    hero_stats_row,
    match_player_row,
    match_row,
    mmr_row,
    player_row,
)
from deadlock_sync.db.connection import open_connection
from deadlock_sync.db.migrations import apply_migrations
from deadlock_sync.errors import StorageError
from deadlock_sync.utils.steamid import account_id_to_steamid64

logger = logging.getLogger(__name__)

KNOWN_TABLES = frozenset(
    {
        "players",
        "latest_mmr",
        "mmr_history",
        "hero_stats_current",
        "hero_stats_history",
        "matches",
        "match_players",
        "schema_migrations",
    }
)

# Taille max d'une clause IN (...)
_IN_CHUNK = 500


def _placeholders(n: int) -> str:
    return ", ".join("?" for _ in range(n))


def _set_clause(columns: Iterable[str]) -> str:
    return ", ".join(f"{c} = ?" for c in columns)


class DuckDBStore:
    """Stockage DuckDB (fichier ou mémoire).

    Usage:
        store = DuckDBStore(config.db_path)
        store.migrate()
        counts = store.upsert_match_batch(metas)
        store.close()
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._connection: duckdb.DuckDBPyConnection | None = None

    def __enter__(self) -> DuckDBStore:
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def db_path(self) -> str:
        return self._db_path

    def connect(self) -> duckdb.DuckDBPyConnection:
        """Ouvre la connexion (idempotent)."""
        if self._connection is None:
            self._connection = open_connection(self._db_path)
            logger.debug(f"Connexion DuckDB ouverte: {self._db_path}")
        return self._connection

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        return self.connect()

    def migrate(self) -> list[int]:
        """Applique les migrations manquantes."""
        return apply_migrations(self.connection)

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    @contextmanager
    def transaction(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """Transaction DuckDB : commit en sortie, rollback sur toute erreur.

        Raises:
            StorageError: Si DuckDB échoue (la transaction est déjà annulée).
        """
        conn = self.connection
        conn.begin()
        try:
            yield conn
        except duckdb.Error as e:
            conn.rollback()
            raise StorageError(f"Transaction annulée: {e}") from e
        except BaseException:
            conn.rollback()
            raise
        try:
            conn.commit()
        except duckdb.Error as e:
            raise StorageError(f"Commit échoué: {e}") from e

    # =========================================================================
    # Lectures
    # =========================================================================

    def max_match_id(self) -> int:
        """Plus grand match_id stocké (0 si aucun)."""
        row = self.connection.execute("SELECT COALESCE(MAX(match_id), 0) FROM matches").fetchone()
        return int(row[0]) if row else 0

    def existing_match_ids(self, match_ids: Sequence[int]) -> set[int]:
        """Sous-ensemble des IDs déjà présents dans matches."""
        ids = list(dict.fromkeys(int(i) for i in match_ids))
        found: set[int] = set()
        for start in range(0, len(ids), _IN_CHUNK):
            part = ids[start : start + _IN_CHUNK]
            rows = self.connection.execute(
                f"SELECT match_id FROM matches WHERE match_id IN ({_placeholders(len(part))})",
                part,
            ).fetchall()
            found.update(int(r[0]) for r in rows)
        return found

    def count_rows(self, table: str) -> int:
        if table not in KNOWN_TABLES:
            raise ValueError(f"Table inconnue: {table}")
        row = self.connection.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
        return int(row[0]) if row else 0

    def _fetch_dict(self, sql: str, params: list[Any]) -> dict[str, Any] | None:
        cursor = self.connection.execute(sql, params)
        row = cursor.fetchone()
        if row is None:
            return None
        columns = [d[0] for d in cursor.description]
        return dict(zip(columns, row))

    def get_match(self, match_id: int) -> dict[str, Any] | None:
        """Ligne matches (info_json décodé) ou None."""
        row = self._fetch_dict("SELECT * FROM matches WHERE match_id = ?", [match_id])
        if row is not None:
            row["info_json"] = load_blob(row["info_json"]) or {}
        return row

    def get_match_player(self, match_id: int, account_id: int) -> dict[str, Any] | None:
        row = self._fetch_dict(
            "SELECT * FROM match_players WHERE match_id = ? AND account_id = ?",
            [match_id, account_id],
        )
        if row is not None:
            row["extra_json"] = load_blob(row["extra_json"]) or {}
        return row

    def get_player(self, account_id: int) -> dict[str, Any] | None:
        row = self._fetch_dict("SELECT * FROM players WHERE account_id = ?", [account_id])
        if row is not None:
            row["profile_extra"] = load_blob(row["profile_extra"]) or {}
        return row

    # =========================================================================
    # Ingestion atomique
    # =========================================================================

    def upsert_match_batch(self, metas: Sequence[MatchMeta]) -> IngestCounts:
        """Ingère un chunk de matchs dans une seule transaction."""
        return IngestionTransaction(self).apply(metas)

    def upsert_player_bundle(self, bundle: PlayerBundle) -> PlayerIngestCounts:
        """Ingère profil + MMR + héros d'un joueur dans une seule transaction."""
        return PlayerBundleTransaction(self).apply(bundle)

    # =========================================================================
    # Primitives (transaction ouverte par l'appelant)
    # =========================================================================

    def upsert_match(self, meta: MatchMeta) -> None:
        conn = self.connection
        row = match_row(meta)
        existing = conn.execute(
            f"SELECT {', '.join(MATCH_SCALAR_COLUMNS)}, info_json FROM matches WHERE match_id = ?",
            [meta.match_id],
        ).fetchone()

        if existing is None:
            columns = ("match_id", *MATCH_SCALAR_COLUMNS, "info_json")
            conn.execute(
                f"INSERT INTO matches ({', '.join(columns)}) VALUES ({_placeholders(len(columns))})",
                [meta.match_id, *row.values(), dump_blob(meta.info or {})],
            )
            return

        merged = coalesce_scalars(dict(zip(MATCH_SCALAR_COLUMNS, existing[:-1])), row)
        info = shallow_union(load_blob(existing[-1]), meta.info) or {}
        conn.execute(
            f"UPDATE matches SET {_set_clause(MATCH_SCALAR_COLUMNS)}, info_json = ? "
            "WHERE match_id = ?",
            [*(merged[c] for c in MATCH_SCALAR_COLUMNS), dump_blob(info), meta.match_id],
        )

    def ensure_player_stub(self, account_id: int) -> bool:
        """Crée la ligne players minimale si absente.

        Returns:
            True si le stub a été créé.
        """
        conn = self.connection
        exists = conn.execute(
            "SELECT 1 FROM players WHERE account_id = ?", [account_id]
        ).fetchone()
        if exists is not None:
            return False
        conn.execute(
            "INSERT INTO players (account_id, steamid64) VALUES (?, ?)",
            [account_id, account_id_to_steamid64(account_id)],
        )
        return True

    def upsert_match_player(self, match_id: int, player: PlayerInMatch) -> None:
        conn = self.connection
        row = match_player_row(player)
        existing = conn.execute(
            "SELECT extra_json FROM match_players WHERE match_id = ? AND account_id = ?",
            [match_id, player.account_id],
        ).fetchone()

        if existing is None:
            columns = ("match_id", "account_id", *MATCH_PLAYER_SCALAR_COLUMNS, "extra_json")
            conn.execute(
                f"INSERT INTO match_players ({', '.join(columns)}) "
                f"VALUES ({_placeholders(len(columns))})",
                [match_id, player.account_id, *row.values(), dump_blob(player.extra or {})],
            )
            return

        extra = shallow_union(load_blob(existing[0]), player.extra) or {}
        conn.execute(
            f"UPDATE match_players SET {_set_clause(MATCH_PLAYER_SCALAR_COLUMNS)}, extra_json = ? "
            "WHERE match_id = ? AND account_id = ?",
            [*row.values(), dump_blob(extra), match_id, player.account_id],
        )

    def upsert_player(self, account_id: int, steamid64: str, profile: SteamProfile) -> None:
        conn = self.connection
        row = player_row(profile)
        existing = conn.execute(
            "SELECT profile_extra, profile_updated_at FROM players WHERE account_id = ?",
            [account_id],
        ).fetchone()

        columns = (*PLAYER_PROFILE_COLUMNS, "profile_domain")
        values = [row[c] for c in columns]

        if existing is None:
            all_columns = ("account_id", "steamid64", *columns, "profile_extra", "profile_updated_at")
            conn.execute(
                f"INSERT INTO players ({', '.join(all_columns)}) "
                f"VALUES ({_placeholders(len(all_columns))})",
                [
                    account_id,
                    steamid64,
                    *values,
                    dump_blob(profile.extension_fields()),
                    row["profile_updated_at"],
                ],
            )
            return

        extra = shallow_union(load_blob(existing[0]), profile.extension_fields()) or {}
        candidates = [t for t in (existing[1], row["profile_updated_at"]) if t is not None]
        updated_at = max(candidates) if candidates else None
        conn.execute(
            f"UPDATE players SET steamid64 = ?, {_set_clause(columns)}, "
            "profile_extra = ?, profile_updated_at = ? WHERE account_id = ?",
            [steamid64, *values, dump_blob(extra), updated_at, account_id],
        )

    def upsert_latest_mmr(self, account_id: int, entry: MMRHistory) -> None:
        conn = self.connection
        row = mmr_row(entry)
        existing = conn.execute(
            "SELECT extra FROM latest_mmr WHERE account_id = ?", [account_id]
        ).fetchone()

        if existing is None:
            columns = ("account_id", *MMR_SCALAR_COLUMNS, "extra")
            conn.execute(
                f"INSERT INTO latest_mmr ({', '.join(columns)}) VALUES ({_placeholders(len(columns))})",
                [account_id, *(row[c] for c in MMR_SCALAR_COLUMNS), dump_blob(entry.extension_fields())],
            )
            return

        extra = shallow_union(load_blob(existing[0]), entry.extension_fields()) or {}
        conn.execute(
            f"UPDATE latest_mmr SET {_set_clause(MMR_SCALAR_COLUMNS)}, extra = ? WHERE account_id = ?",
            [*(row[c] for c in MMR_SCALAR_COLUMNS), dump_blob(extra), account_id],
        )

    def insert_mmr_history(self, account_id: int, entry: MMRHistory) -> bool:
        """Ajoute une entrée d'historique MMR ; no-op si (compte, start_time) existe.

        Returns:
            True si une ligne a été insérée.
        """
        conn = self.connection
        row = mmr_row(entry)
        exists = conn.execute(
            "SELECT 1 FROM mmr_history WHERE account_id = ? AND start_time = ?",
            [account_id, row["start_time"]],
        ).fetchone()
        if exists is not None:
            return False
        columns = ("account_id", *MMR_SCALAR_COLUMNS, "extra")
        conn.execute(
            f"INSERT INTO mmr_history ({', '.join(columns)}) VALUES ({_placeholders(len(columns))})",
            [account_id, *(row[c] for c in MMR_SCALAR_COLUMNS), dump_blob(entry.extension_fields())],
        )
        return True

    def upsert_hero_stats(self, account_id: int, stats: HeroStats) -> None:
        conn = self.connection
        row = hero_stats_row(stats)
        columns = (*HERO_SCALAR_COLUMNS, "win_rate")
        existing = conn.execute(
            "SELECT extra FROM hero_stats_current WHERE account_id = ? AND hero_id = ?",
            [account_id, stats.hero_id],
        ).fetchone()

        if existing is None:
            all_columns = ("account_id", "hero_id", *columns, "extra")
            conn.execute(
                f"INSERT INTO hero_stats_current ({', '.join(all_columns)}) "
                f"VALUES ({_placeholders(len(all_columns))})",
                [account_id, stats.hero_id, *(row[c] for c in columns), dump_blob(stats.extension_fields())],
            )
            return

        extra = shallow_union(load_blob(existing[0]), stats.extension_fields()) or {}
        conn.execute(
            f"UPDATE hero_stats_current SET {_set_clause(columns)}, extra = ? "
            "WHERE account_id = ? AND hero_id = ?",
            [*(row[c] for c in columns), dump_blob(extra), account_id, stats.hero_id],
        )

    def insert_hero_snapshot(self, account_id: int, stats: HeroStats) -> bool:
        """Ajoute un snapshot héros ; no-op sans last_played ou si la clé existe."""
        last_played = hero_stats_row(stats)["last_played"]
        if last_played is None:
            return False
        conn = self.connection
        exists = conn.execute(
            "SELECT 1 FROM hero_stats_history "
            "WHERE account_id = ? AND hero_id = ? AND last_played = ?",
            [account_id, stats.hero_id, last_played],
        ).fetchone()
        if exists is not None:
            return False
        conn.execute(
            "INSERT INTO hero_stats_history (account_id, hero_id, last_played, snapshot_json) "
            "VALUES (?, ?, ?, ?)",
            [account_id, stats.hero_id, last_played, dump_blob(hero_snapshot(stats))],
        )
        return True
