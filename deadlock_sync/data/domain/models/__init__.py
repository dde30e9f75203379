"""
Modèles de domaine avec validation Pydantic v2.
(Domain models with Pydantic v2 validation)
"""

from deadlock_sync.data.domain.models.match import (
    MatchMeta,
    PlayerInMatch,
    PlayerMatchHistoryEntry,
)
from deadlock_sync.data.domain.models.player import (
    HeroStats,
    MMRHistory,
    PlayerBundle,
    SteamProfile,
)

__all__ = [
    "MatchMeta",
    "PlayerInMatch",
    "PlayerMatchHistoryEntry",
    "SteamProfile",
    "MMRHistory",
    "HeroStats",
    "PlayerBundle",
]
