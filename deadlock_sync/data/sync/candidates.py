"""Résolution des matchs candidats à synchroniser.

Ordre de résolution (les IDs explicites amorcent toujours l'ensemble) :
1. IDs explicites
2. Si un joueur est fourni : tous les match_id de son historique MMR
3. Si toujours vide : fenêtre séquentielle à partir de `since` (inclus),
   ou de max(match_id stocké) + 1, jusqu'à `limit` ou au-delà de `until`

Résultat : union dédoublonnée, triée, tronquée à `limit`.
"""

from __future__ import annotations

import logging
from typing import Protocol

from deadlock_sync.data.domain.models import MMRHistory
from deadlock_sync.data.sync.models import MatchSyncRequest
from deadlock_sync.errors import UpstreamError

logger = logging.getLogger(__name__)


class MMRSource(Protocol):
    async def get_mmr(self, account_ids: list[int]) -> list[MMRHistory]: ...


class MaxIdSource(Protocol):
    def max_match_id(self) -> int: ...


class CandidateResolver:
    """Produit la liste des match_id candidats d'une synchronisation."""

    def __init__(self, client: MMRSource, store: MaxIdSource) -> None:
        self._client = client
        self._store = store
        self.warnings: list[str] = []

    async def resolve(self, request: MatchSyncRequest) -> list[int]:
        """Résout les candidats (liste vide = aucun candidat).

        Un échec du lookup MMR est consigné dans `warnings` sans interrompre
        la résolution.
        """
        limit = request.limit
        candidates: set[int] = {int(i) for i in request.match_ids}
        if candidates:
            logger.info(f"Candidats explicites: {len(candidates)}")

        if request.account_id is not None:
            from_history = await self._from_mmr_history(request.account_id)
            candidates.update(from_history)
            logger.info(
                f"Candidats depuis l'historique MMR de {request.account_id}: {len(from_history)}"
            )

        if not candidates:
            candidates.update(self._sequential_window(request))

        resolved = sorted(candidates)[:limit]
        logger.info(f"Candidats résolus: {len(resolved)} (limit={limit})")
        return resolved

    async def _from_mmr_history(self, account_id: int) -> set[int]:
        """IDs de l'historique MMR ; un échec amont dégrade en avertissement."""
        try:
            entries = await self._client.get_mmr([account_id])
        except UpstreamError as e:
            message = f"Historique MMR indisponible pour {account_id}: {e}"
            logger.warning(message)
            self.warnings.append(message)
            return set()
        return {e.match_id for e in entries}

    def _sequential_window(self, request: MatchSyncRequest) -> list[int]:
        if request.since is not None:
            start = request.since
        else:
            start = self._store.max_match_id() + 1
        stop = request.until

        window: list[int] = []
        current = start
        while len(window) < request.limit:
            if stop is not None and current > stop:
                break
            window.append(current)
            current += 1

        logger.info(
            f"Fenêtre séquentielle: départ={start}, fin={stop if stop is not None else '∞'}, "
            f"{len(window)} candidats"
        )
        return window
