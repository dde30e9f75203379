"""Couche de stockage DuckDB.

Ce package contient :
- connection.py : Ouverture des connexions DuckDB
- migrations.py : Migrations de schéma versionnées
- store.py : DuckDBStore (contrat de stockage du pipeline)
"""

from deadlock_sync.db.connection import get_connection
from deadlock_sync.db.migrations import MIGRATIONS, apply_migrations
from deadlock_sync.db.store import DuckDBStore

__all__ = [
    "DuckDBStore",
    "MIGRATIONS",
    "apply_migrations",
    "get_connection",
]
