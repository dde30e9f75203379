"""Module de synchronisation API Deadlock → DuckDB.

Architecture:
- api_client.py : Client aiohttp des endpoints Deadlock (retry 429 / réseau)
- retry.py : Machine à états du retry
- candidates.py / dedup.py / fetcher.py / ingest.py : étapes du pipeline
- engine.py : Orchestrateur SyncOrchestrator
- merge.py : Règles de fusion (COALESCE, union des maps d'extension)
- models.py : Requêtes, compteurs et rapport (SyncReport)

Usage:
    from deadlock_sync.data.sync import DeadlockAPIClient, MatchSyncRequest, SyncOrchestrator

    async with DeadlockAPIClient(config) as client:
        report = await SyncOrchestrator(client, store).sync_matches(MatchSyncRequest())
    print(report.to_message())
"""

from deadlock_sync.data.sync.api_client import DeadlockAPIClient
from deadlock_sync.data.sync.engine import SyncOrchestrator
from deadlock_sync.data.sync.models import (
    HistorySyncRequest,
    IngestCounts,
    MatchSyncRequest,
    PlayerIngestCounts,
    SyncPhase,
    SyncReport,
    SyncStatus,
)
from deadlock_sync.data.sync.retry import RetryPolicy

__all__ = [
    # Models
    "MatchSyncRequest",
    "HistorySyncRequest",
    "IngestCounts",
    "PlayerIngestCounts",
    "SyncPhase",
    "SyncReport",
    "SyncStatus",
    # Engine
    "SyncOrchestrator",
    # API Client
    "DeadlockAPIClient",
    "RetryPolicy",
]
