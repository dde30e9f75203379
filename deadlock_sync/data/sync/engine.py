"""Moteur de synchronisation API Deadlock → DuckDB.

Ce module contient le SyncOrchestrator qui enchaîne le pipeline :
CandidateResolver → DedupFilter → (BatchFetcher → IngestionTransaction)*

Les chunks sont traités strictement en séquence. Un chunk en échec (hors
404) interrompt les suivants ; les chunks déjà commités restent en base.

Usage:
    async with DeadlockAPIClient(config) as client:
        engine = SyncOrchestrator(client, store)
        report = await engine.sync_matches(MatchSyncRequest(limit=50))
        print(report.to_message())
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from deadlock_sync.data.domain.models import (
    HeroStats,
    MatchMeta,
    MMRHistory,
    PlayerBundle,
    SteamProfile,
)
from deadlock_sync.data.sync.api_client import DeadlockAPIClient
from deadlock_sync.data.sync.candidates import CandidateResolver
from deadlock_sync.data.sync.dedup import DedupFilter
from deadlock_sync.data.sync.fetcher import BatchFetcher
from deadlock_sync.data.sync.ingest import preview_counts
from deadlock_sync.data.sync.models import (
    HistorySyncRequest,
    IngestCounts,
    MatchSyncRequest,
    PlayerIngestCounts,
    SyncPhase,
    SyncReport,
    SyncStatus,
)
from deadlock_sync.data.sync.transformers import group_history_entries, latest_mmr_for
from deadlock_sync.errors import PlayerNotFoundError, UpstreamError, UpstreamHTTPError
from deadlock_sync.utils.steamid import account_id_to_steamid64

if TYPE_CHECKING:
    from deadlock_sync.db.store import DuckDBStore

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """Orchestration des synchronisations (matchs, historique joueur, bundle joueur).

    Le dernier rapport (succès ou échec) reste accessible via `last_report`,
    y compris quand l'exception d'origine est propagée.
    """

    def __init__(self, client: DeadlockAPIClient, store: DuckDBStore) -> None:
        self._client = client
        self._store = store
        self.last_report: SyncReport | None = None

    # =========================================================================
    # Cycle de vie d'un rapport
    # =========================================================================

    def _start(self, kind: str, *, dry_run: bool, account_id: int | None = None) -> SyncReport:
        report = SyncReport(kind=kind, dry_run=dry_run, account_id=account_id)
        report.started_at = datetime.now(timezone.utc)
        self.last_report = report
        return report

    def _close(self, report: SyncReport, started: float) -> None:
        report.finished_at = datetime.now(timezone.utc)
        report.duration_seconds = time.time() - started

    def _fail(self, report: SyncReport, error: BaseException) -> None:
        phase = report.phase
        report.error = str(error) or type(error).__name__
        report.finish(SyncStatus.FAILED)
        logger.error(
            f"Sync {report.kind} interrompue ({phase.value}): {report.error}; "
            f"déjà commités: {report.chunks_ingested} chunks, {report.totals.records} matchs, "
            f"{report.totals.sub_records} participants"
        )

    def _ingest(self, metas: list[MatchMeta], *, dry_run: bool) -> IngestCounts:
        if dry_run:
            return preview_counts(metas)
        return self._store.upsert_match_batch(metas)

    # =========================================================================
    # Synchronisation de matchs
    # =========================================================================

    async def sync_matches(self, request: MatchSyncRequest) -> SyncReport:
        """Synchronise les métadonnées d'un ensemble de matchs.

        Args:
            request: Candidats explicites / joueur / fenêtre, limit, batch, flags.

        Returns:
            SyncReport (NO_CANDIDATES, UP_TO_DATE ou SUCCESS).

        Raises:
            UpstreamError: Erreur amont fatale ou budget de retry épuisé.
            StorageError: Échec d'une transaction de chunk.
        """
        report = self._start("matches", dry_run=request.dry_run, account_id=request.account_id)
        started = time.time()

        try:
            report.transition(SyncPhase.RESOLVING_CANDIDATES)
            resolver = CandidateResolver(self._client, self._store)
            candidates = await resolver.resolve(request)
            report.warnings.extend(resolver.warnings)
            report.candidates = len(candidates)
            if not candidates:
                logger.info("Aucun match candidat")
                report.finish(SyncStatus.NO_CANDIDATES)
                return report

            report.transition(SyncPhase.DEDUPING)
            pending = DedupFilter(self._store).filter(candidates)
            report.pending = len(pending)
            if not pending:
                logger.info("Tous les candidats sont déjà stockés")
                report.finish(SyncStatus.UP_TO_DATE)
                return report

            fetcher = BatchFetcher(
                self._client,
                batch_size=request.batch_size,
                include_info=request.include_info,
                include_players=request.include_players,
            )
            plan = fetcher.plan(pending)
            report.chunks_total = len(plan)

            for index, match_ids in enumerate(plan):
                report.transition(SyncPhase.FETCHING_CHUNK)
                chunk = await fetcher.fetch(index, match_ids)
                if chunk.skipped:
                    report.transition(SyncPhase.SKIPPING_CHUNK)
                    report.chunks_skipped += 1
                    continue

                report.transition(SyncPhase.INGESTING_CHUNK)
                counts = self._ingest(chunk.metas, dry_run=request.dry_run)
                report.totals = report.totals + counts
                report.chunks_ingested += 1
                logger.info(
                    f"Chunk {index + 1}/{len(plan)}: {counts.records} matchs, "
                    f"{counts.sub_records} participants, {counts.participants} joueurs"
                    + (" (dry-run)" if request.dry_run else "")
                )

            report.finish(SyncStatus.SUCCESS)
            logger.info(
                f"Sync terminée: {report.totals.records} matchs, "
                f"{report.totals.sub_records} participants, {report.chunks_skipped} chunks 404"
            )
            return report
        except Exception as e:
            self._fail(report, e)
            raise
        finally:
            self._close(report, started)

    # =========================================================================
    # Historique d'un joueur
    # =========================================================================

    async def sync_history(self, request: HistorySyncRequest) -> SyncReport:
        """Ingère l'historique de matchs d'un joueur (regroupé par match).

        Raises:
            InputConflictError: force_refetch et only_stored_history ensemble
                (levée avant toute I/O).
        """
        request.validate()
        report = self._start("history", dry_run=request.dry_run, account_id=request.account_id)
        started = time.time()

        try:
            report.transition(SyncPhase.RESOLVING_CANDIDATES)
            entries = await self._client.get_player_match_history(
                request.account_id,
                force_refetch=request.force_refetch,
                only_stored_history=request.only_stored_history,
            )
            metas = group_history_entries(entries)
            report.candidates = report.pending = len(metas)
            if not metas:
                logger.info(f"Aucun historique pour le joueur {request.account_id}")
                report.finish(SyncStatus.NO_CANDIDATES)
                return report

            report.chunks_total = 1
            report.transition(SyncPhase.INGESTING_CHUNK)
            report.totals = self._ingest(metas, dry_run=request.dry_run)
            report.chunks_ingested = 1
            report.finish(SyncStatus.SUCCESS)
            logger.info(
                f"Historique {request.account_id}: {report.totals.records} matchs, "
                f"{report.totals.sub_records} participants"
                + (" (dry-run)" if request.dry_run else "")
            )
            return report
        except Exception as e:
            self._fail(report, e)
            raise
        finally:
            self._close(report, started)

    # =========================================================================
    # Bundle joueur (profil + MMR + héros)
    # =========================================================================

    async def _fetch_player(
        self, account_id: int, report: SyncReport
    ) -> tuple[SteamProfile, list[MMRHistory], list[HeroStats]]:
        """Lookups indépendants lancés en parallèle."""
        ids = [account_id]
        profiles_res, mmr_res, heroes_res = await asyncio.gather(
            self._client.get_steam_profiles(ids),
            self._client.get_mmr(ids),
            self._client.get_player_hero_stats(ids),
            return_exceptions=True,
        )

        if isinstance(profiles_res, UpstreamHTTPError) and profiles_res.is_not_found:
            raise PlayerNotFoundError(f"Joueur {account_id} introuvable")
        if isinstance(profiles_res, BaseException):
            raise profiles_res
        if not profiles_res:
            raise PlayerNotFoundError(f"Joueur {account_id} introuvable (aucun profil Steam)")
        profile = next((p for p in profiles_res if p.account_id == account_id), profiles_res[0])

        results: list[list] = []
        for label, res in (("MMR", mmr_res), ("stats héros", heroes_res)):
            if isinstance(res, UpstreamError):
                message = f"Échec récupération {label} pour {account_id}: {res}"
                logger.warning(message)
                report.warnings.append(message)
                results.append([])
            elif isinstance(res, BaseException):
                raise res
            else:
                results.append(res)

        return profile, results[0], results[1]

    async def sync_player(
        self,
        account_id: int,
        *,
        include_history: bool = True,
        dry_run: bool = False,
    ) -> SyncReport:
        """Synchronise le profil, le MMR et les stats héros d'un joueur.

        L'historique stocké côté API (only_stored_history) est ensuite ingéré
        comme un lot de matchs ; un échec à cette étape reste un avertissement.

        Raises:
            PlayerNotFoundError: Aucun profil Steam pour ce compte.
        """
        report = self._start("player", dry_run=dry_run, account_id=account_id)
        started = time.time()

        try:
            report.transition(SyncPhase.FETCHING_CHUNK)
            profile, mmr, heroes = await self._fetch_player(account_id, report)
            bundle = PlayerBundle(
                account_id=account_id,
                steamid64=account_id_to_steamid64(account_id),
                profile=profile,
                latest_mmr=latest_mmr_for(mmr, account_id),
                mmr_history=[m for m in mmr if m.account_id == account_id],
                hero_stats=heroes,
            )

            report.transition(SyncPhase.INGESTING_CHUNK)
            if dry_run:
                report.player = PlayerIngestCounts(
                    players=1,
                    latest_mmr=int(bundle.latest_mmr is not None),
                    mmr_history=len(bundle.mmr_history),
                    hero_stats=len(bundle.hero_stats),
                    hero_stats_history=sum(1 for h in bundle.hero_stats if h.last_played is not None),
                )
            else:
                report.player = self._store.upsert_player_bundle(bundle)
            logger.info(
                f"Joueur {account_id}: {report.player.hero_stats} héros, "
                f"{report.player.mmr_history} entrées MMR ajoutées"
            )

            if include_history:
                await self._ingest_stored_history(account_id, report, dry_run=dry_run)

            report.finish(SyncStatus.SUCCESS)
            return report
        except Exception as e:
            self._fail(report, e)
            raise
        finally:
            self._close(report, started)

    async def _ingest_stored_history(
        self, account_id: int, report: SyncReport, *, dry_run: bool
    ) -> None:
        try:
            entries = await self._client.get_player_match_history(
                account_id, only_stored_history=True
            )
        except UpstreamError as e:
            message = f"Historique stocké indisponible pour {account_id}: {e}"
            logger.warning(message)
            report.warnings.append(message)
            return

        metas = group_history_entries(entries)
        if not metas:
            logger.info(f"Aucun historique stocké pour le joueur {account_id}")
            return
        report.candidates = report.pending = len(metas)
        report.chunks_total = 1
        report.totals = self._ingest(metas, dry_run=dry_run)
        report.chunks_ingested = 1
