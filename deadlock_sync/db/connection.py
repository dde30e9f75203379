"""Gestion des connexions DuckDB.

Seuls les fichiers DuckDB (.duckdb) et la base mémoire (":memory:") sont
acceptés ; les chemins SQLite (.db) sont refusés.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

import duckdb

MEMORY_DB = ":memory:"


def _ensure_duckdb_path(db_path: str) -> None:
    """Vérifie que le chemin est une base DuckDB, pas SQLite."""
    if not db_path or not isinstance(db_path, str):
        raise ValueError("db_path doit être un chemin non vide")
    if db_path.strip().lower().endswith(".db"):
        raise ValueError(f"SQLite (.db) non supporté, utiliser un fichier .duckdb: {db_path}")


def open_connection(db_path: str, *, read_only: bool = False) -> duckdb.DuckDBPyConnection:
    """Ouvre une connexion DuckDB (crée le dossier parent si nécessaire).

    Args:
        db_path: Chemin vers le fichier .duckdb ou ":memory:".
        read_only: Ouverture en lecture seule.
    """
    _ensure_duckdb_path(db_path)
    if db_path != MEMORY_DB:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(db_path, read_only=read_only)


@contextmanager
def get_connection(
    db_path: str, *, read_only: bool = False
) -> Generator[duckdb.DuckDBPyConnection, None, None]:
    """Context manager pour obtenir une connexion DuckDB.

    Exemple:
        with get_connection("data/deadlock.duckdb") as con:
            con.execute("SELECT COUNT(*) FROM matches")
    """
    con = open_connection(db_path, read_only=read_only)
    try:
        yield con
    finally:
        con.close()
