"""deadlock-sync : synchronisation API Deadlock → DuckDB.

Pipeline :
    CandidateResolver → DedupFilter → (BatchFetcher → IngestionTransaction)*

Usage:
    from deadlock_sync.config import SyncConfig
    from deadlock_sync.data.sync import SyncOrchestrator, MatchSyncRequest

Voir `deadlock_sync.cli` pour le point d'entrée en ligne de commande.
"""

__version__ = "0.1.0"
