"""Ingestion atomique d'un chunk de matchs ou d'un bundle joueur.

Un chunk (tous ses matchs et leurs participants) est commité en une seule
transaction : toute erreur annule le chunk entier et remonte au moteur.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from deadlock_sync.data.domain.models import MatchMeta, PlayerBundle
from deadlock_sync.data.sync.models import IngestCounts, PlayerIngestCounts

if TYPE_CHECKING:
    from deadlock_sync.db.store import DuckDBStore

logger = logging.getLogger(__name__)


def preview_counts(metas: Sequence[MatchMeta]) -> IngestCounts:
    """Compteurs qu'aurait produits l'ingestion (mode dry-run)."""
    participants: set[int] = set()
    sub_records = 0
    for meta in metas:
        for player in meta.players or []:
            sub_records += 1
            participants.add(player.account_id)
    return IngestCounts(records=len(metas), sub_records=sub_records, participants=len(participants))


class IngestionTransaction:
    """Upsert d'un chunk de matchs (records + participants) en une transaction."""

    def __init__(self, store: DuckDBStore) -> None:
        self._store = store

    def apply(self, metas: Sequence[MatchMeta]) -> IngestCounts:
        """Ingère le chunk.

        Pour chaque participant : stub joueur créé si absent, puis upsert
        du participant (écrasement des scalaires, union de extra).

        Returns:
            Matchs upsertés, participants upsertés, joueurs distincts référencés.

        Raises:
            StorageError: Échec DuckDB (chunk entier annulé).
        """
        counts = IngestCounts()
        participants: set[int] = set()
        stubs = 0

        with self._store.transaction():
            for meta in metas:
                self._store.upsert_match(meta)
                counts.records += 1
                for player in meta.players or []:
                    if self._store.ensure_player_stub(player.account_id):
                        stubs += 1
                    self._store.upsert_match_player(meta.match_id, player)
                    counts.sub_records += 1
                    participants.add(player.account_id)

        counts.participants = len(participants)
        logger.debug(
            f"Chunk ingéré: {counts.records} matchs, {counts.sub_records} participants, "
            f"{stubs} nouveaux joueurs"
        )
        return counts


class PlayerBundleTransaction:
    """Upsert profil + MMR + stats héros d'un joueur en une transaction."""

    def __init__(self, store: DuckDBStore) -> None:
        self._store = store

    def apply(self, bundle: PlayerBundle) -> PlayerIngestCounts:
        counts = PlayerIngestCounts()
        account_id = bundle.account_id

        with self._store.transaction():
            self._store.upsert_player(account_id, bundle.steamid64, bundle.profile)
            counts.players = 1

            if bundle.latest_mmr is not None:
                self._store.upsert_latest_mmr(account_id, bundle.latest_mmr)
                counts.latest_mmr = 1

            for entry in bundle.mmr_history:
                if entry.account_id != account_id:
                    continue
                if self._store.insert_mmr_history(account_id, entry):
                    counts.mmr_history += 1

            for stats in bundle.hero_stats:
                self._store.upsert_hero_stats(account_id, stats)
                counts.hero_stats += 1
                if self._store.insert_hero_snapshot(account_id, stats):
                    counts.hero_stats_history += 1

        return counts
