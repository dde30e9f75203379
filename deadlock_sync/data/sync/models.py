"""Modèles de données pour le module de synchronisation.

Contient les dataclasses pour :
- Requêtes de synchronisation (MatchSyncRequest, HistorySyncRequest)
- Compteurs d'ingestion (IngestCounts, PlayerIngestCounts)
- États d'un run (SyncPhase) et statut final (SyncStatus)
- Rapport de synchronisation (SyncReport)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from deadlock_sync.errors import InputConflictError

# =============================================================================
# Requêtes
# =============================================================================


@dataclass
class MatchSyncRequest:
    """Paramètres d'une synchronisation de matchs.

    Attributes:
        match_ids: IDs explicites (amorcent toujours l'ensemble candidat).
        account_id: Joueur dont l'historique MMR fournit des candidats.
        since: Premier ID de la fenêtre séquentielle (inclus).
        until: Dernier ID de la fenêtre séquentielle (inclus).
        limit: Nombre maximum de candidats.
        batch_size: Taille des chunks envoyés à l'API (>= 1).
        include_info: Demander le détail étendu (info_json).
        include_players: Demander la liste des participants.
        dry_run: Fetch sans écriture.
    """

    match_ids: list[int] = field(default_factory=list)
    account_id: int | None = None
    since: int | None = None
    until: int | None = None
    limit: int = 500
    batch_size: int = 100
    include_info: bool = True
    include_players: bool = True
    dry_run: bool = False

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise ValueError("limit doit être >= 1")
        if self.batch_size < 1:
            raise ValueError("batch_size doit être >= 1")


@dataclass
class HistorySyncRequest:
    """Paramètres d'une synchronisation d'historique joueur."""

    account_id: int
    force_refetch: bool = False
    only_stored_history: bool = False
    dry_run: bool = False

    def validate(self) -> None:
        """Rejette les flags exclusifs avant toute I/O.

        Raises:
            InputConflictError: force_refetch et only_stored_history ensemble.
        """
        if self.force_refetch and self.only_stored_history:
            raise InputConflictError(
                "--force-refetch et --only-stored-history sont mutuellement exclusifs"
            )


# =============================================================================
# Compteurs d'ingestion
# =============================================================================


@dataclass
class IngestCounts:
    """Compteurs d'un chunk de records (ou agrégés sur un run)."""

    records: int = 0
    sub_records: int = 0
    participants: int = 0

    def __add__(self, other: IngestCounts) -> IngestCounts:
        return IngestCounts(
            records=self.records + other.records,
            sub_records=self.sub_records + other.sub_records,
            participants=self.participants + other.participants,
        )


@dataclass
class PlayerIngestCounts:
    """Compteurs d'ingestion d'un bundle joueur."""

    players: int = 0
    latest_mmr: int = 0
    mmr_history: int = 0
    hero_stats: int = 0
    hero_stats_history: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "players": self.players,
            "latest_mmr": self.latest_mmr,
            "mmr_history": self.mmr_history,
            "hero_stats": self.hero_stats,
            "hero_stats_history": self.hero_stats_history,
        }


# =============================================================================
# États et rapport
# =============================================================================


class SyncPhase(str, Enum):
    """États d'un run de synchronisation.

    Idle → ResolvingCandidates → Deduping → FetchingChunk(i)
    → IngestingChunk(i) | SkippingChunk(i) → ... → Done | Failed
    """

    IDLE = "idle"
    RESOLVING_CANDIDATES = "resolving_candidates"
    DEDUPING = "deduping"
    FETCHING_CHUNK = "fetching_chunk"
    INGESTING_CHUNK = "ingesting_chunk"
    SKIPPING_CHUNK = "skipping_chunk"
    DONE = "done"
    FAILED = "failed"


class SyncStatus(str, Enum):
    """Statut terminal d'un run."""

    NO_CANDIDATES = "no_candidates"
    UP_TO_DATE = "up_to_date"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class SyncReport:
    """Résultat d'une synchronisation.

    Contient les compteurs agrégés, l'état final et les avertissements.
    """

    kind: str = "matches"
    status: SyncStatus = SyncStatus.SUCCESS
    phase: SyncPhase = SyncPhase.IDLE
    dry_run: bool = False
    candidates: int = 0
    pending: int = 0
    chunks_total: int = 0
    chunks_ingested: int = 0
    chunks_skipped: int = 0
    totals: IngestCounts = field(default_factory=IngestCounts)
    player: PlayerIngestCounts | None = None
    account_id: int | None = None
    error: str | None = None
    warnings: list[str] = field(default_factory=list)
    started_at: datetime | None = None
    finished_at: datetime | None = None
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        """True sauf en cas d'échec (les terminaisons informatives comptent)."""
        return self.status is not SyncStatus.FAILED

    def transition(self, phase: SyncPhase) -> None:
        self.phase = phase

    def finish(self, status: SyncStatus) -> None:
        self.status = status
        self.phase = SyncPhase.FAILED if status is SyncStatus.FAILED else SyncPhase.DONE

    def to_message(self) -> str:
        """Message de résumé pour la CLI."""
        prefix = "[dry-run] " if self.dry_run else ""
        if self.status is SyncStatus.FAILED:
            return f"{prefix}❌ Sync échouée: {self.error or 'erreur inconnue'}"
        if self.status is SyncStatus.NO_CANDIDATES:
            return f"{prefix}Aucun match candidat"
        if self.status is SyncStatus.UP_TO_DATE:
            return f"{prefix}Déjà à jour ({self.candidates} candidats déjà stockés)"

        parts = []
        if self.player is not None:
            parts.append(f"joueur {self.account_id}")
            if self.player.mmr_history:
                parts.append(f"{self.player.mmr_history} MMR")
            if self.player.hero_stats:
                parts.append(f"{self.player.hero_stats} héros")
        parts.append(f"{self.totals.records} matchs")
        parts.append(f"{self.totals.sub_records} participants")
        if self.chunks_skipped:
            parts.append(f"{self.chunks_skipped} chunks 404")

        duration_str = ""
        if self.duration_seconds > 0:
            duration_str = f" ({self.duration_seconds:.1f}s)"

        return f"{prefix}✅ {', '.join(parts)}{duration_str}"

    def to_dict(self) -> dict[str, Any]:
        """Convertit en dict pour sérialisation JSON."""
        return {
            "kind": self.kind,
            "status": self.status.value,
            "success": self.success,
            "dry_run": self.dry_run,
            "account_id": self.account_id,
            "candidates": self.candidates,
            "pending": self.pending,
            "chunks_total": self.chunks_total,
            "chunks_ingested": self.chunks_ingested,
            "chunks_skipped": self.chunks_skipped,
            "records": self.totals.records,
            "sub_records": self.totals.sub_records,
            "participants": self.totals.participants,
            "player": self.player.to_dict() if self.player else None,
            "error": self.error,
            "warnings": self.warnings,
            "duration_seconds": self.duration_seconds,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }
