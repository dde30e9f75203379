"""Récupération des métadonnées de matchs par chunks.

Chaque chunk donne lieu à un seul appel amont (retry géré par le client).
Un 404 sur un chunk n'est pas fatal : le chunk est traité comme vide et
la synchronisation continue avec le suivant.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

from deadlock_sync.data.domain.models import MatchMeta
from deadlock_sync.errors import UpstreamHTTPError

logger = logging.getLogger(__name__)


class MetadataSource(Protocol):
    async def get_matches_metadata(
        self,
        match_ids: list[int],
        *,
        include_info: bool = True,
        include_players: bool = True,
    ) -> list[MatchMeta]: ...


@dataclass
class FetchedChunk:
    """Résultat d'un chunk : `skipped` si l'API a répondu 404."""

    index: int
    match_ids: list[int]
    metas: list[MatchMeta] = field(default_factory=list)
    skipped: bool = False


def split_chunks(ids: Sequence[int], size: int) -> list[list[int]]:
    """Découpe en chunks de taille `size` (le dernier peut être plus court)."""
    if size < 1:
        raise ValueError("La taille de chunk doit être >= 1")
    return [list(ids[i : i + size]) for i in range(0, len(ids), size)]


class BatchFetcher:
    """Fetch séquentiel des chunks de métadonnées."""

    def __init__(
        self,
        client: MetadataSource,
        *,
        batch_size: int,
        include_info: bool = True,
        include_players: bool = True,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size doit être >= 1")
        self._client = client
        self._batch_size = batch_size
        self._include_info = include_info
        self._include_players = include_players

    def plan(self, ids: Sequence[int]) -> list[list[int]]:
        return split_chunks(ids, self._batch_size)

    async def fetch(self, index: int, match_ids: list[int]) -> FetchedChunk:
        """Récupère un chunk.

        Raises:
            UpstreamError: Toute erreur amont autre qu'un 404.
        """
        try:
            metas = await self._client.get_matches_metadata(
                match_ids,
                include_info=self._include_info,
                include_players=self._include_players,
            )
        except UpstreamHTTPError as e:
            if not e.is_not_found:
                raise
            logger.warning(
                f"Chunk {index} ({match_ids[0]}..{match_ids[-1]}): aucun match trouvé (404)"
            )
            return FetchedChunk(index=index, match_ids=match_ids, skipped=True)
        return FetchedChunk(index=index, match_ids=match_ids, metas=metas)

