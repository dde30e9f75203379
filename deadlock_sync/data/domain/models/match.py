"""
Modèles de données pour les matchs Deadlock.
(Data models for Deadlock matches)

HOW IT WORKS:
- MatchMeta : Métadonnées d'un match (/v1/matches/metadata), joueurs optionnels
- PlayerInMatch : Participant d'un match (sous-enregistrement)
- PlayerMatchHistoryEntry : Ligne de /v1/players/{id}/match-history

Les champs optionnels absents restent None : l'ingestion s'en sert pour
conserver la valeur déjà stockée (COALESCE côté matches).
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_optional_str(v: Any) -> str | None:
    if v is None:
        return None
    return str(v)


class PlayerInMatch(BaseModel):
    """
    Participant d'un match.
    (Player entry inside a match)
    """

    model_config = ConfigDict(extra="ignore")

    account_id: int
    hero_id: int | None = None
    team: str | None = None
    party_id: int | None = None
    lane: str | None = None
    is_victory: bool | None = None
    kills: int | None = None
    deaths: int | None = None
    assists: int | None = None
    networth: int | None = None
    damage: int | None = None
    damage_taken: int | None = None
    obj_damage: int | None = None
    last_hits: int | None = None
    accuracy: float | None = None
    crit_shot_rate: float | None = None
    extra: dict[str, Any] | None = None

    @field_validator("team", "lane", mode="before")
    @classmethod
    def coerce_str(cls, v: Any) -> str | None:
        """L'API renvoie parfois team/lane en entier."""
        return _as_optional_str(v)


class MatchMeta(BaseModel):
    """
    Métadonnées d'un match.
    (Match metadata)
    """

    model_config = ConfigDict(extra="ignore")

    match_id: int
    start_time: int | None = Field(default=None, description="Epoch secondes")
    duration_s: int | None = None
    winner_team: str | None = None
    average_badge: int | None = None
    region: str | None = None
    patch_version: str | None = None
    info: dict[str, Any] | None = None
    players: list[PlayerInMatch] | None = None

    @field_validator("winner_team", "region", "patch_version", mode="before")
    @classmethod
    def coerce_str(cls, v: Any) -> str | None:
        return _as_optional_str(v)


class PlayerMatchHistoryEntry(BaseModel):
    """Entrée de l'historique de matchs d'un joueur."""

    model_config = ConfigDict(extra="ignore")

    account_id: int
    match_id: int
    start_time: int
    hero_id: int = 0
    hero_level: int = 0
    game_mode: int = 0
    match_mode: int = 0
    player_team: int = 0
    player_kills: int = 0
    player_deaths: int = 0
    player_assists: int = 0
    denies: int = 0
    net_worth: int = 0
    last_hits: int = 0
    match_duration_s: int | None = None
    match_result: int = 0
    objectives_mask_team0: int = 0
    objectives_mask_team1: int = 0
