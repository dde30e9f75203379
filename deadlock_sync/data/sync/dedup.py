"""Filtrage des candidats déjà présents en base."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

logger = logging.getLogger(__name__)


class ExistingIdSource(Protocol):
    def existing_match_ids(self, match_ids: Sequence[int]) -> set[int]: ...


class DedupFilter:
    """Retire les match_id déjà stockés (l'ordre des candidats est conservé)."""

    def __init__(self, store: ExistingIdSource) -> None:
        self._store = store

    def filter(self, candidates: Sequence[int]) -> list[int]:
        """Candidats restant à synchroniser (liste vide = déjà à jour)."""
        if not candidates:
            return []
        existing = self._store.existing_match_ids(candidates)
        residual = [c for c in candidates if c not in existing]
        logger.info(
            f"Dédoublonnage: {len(existing)} déjà stockés, {len(residual)} à synchroniser"
        )
        return residual
