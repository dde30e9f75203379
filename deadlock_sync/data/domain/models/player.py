"""
Modèles de données pour les joueurs Deadlock.
(Data models for Deadlock players)

HOW IT WORKS:
- SteamProfile : Profil Steam renvoyé par /v1/players/steam
- MMRHistory : Entrée d'historique MMR (/v1/players/mmr)
- HeroStats : Stats agrégées par héros (/v1/players/hero-stats)
- PlayerBundle : Regroupement profil + MMR + héros pour une ingestion atomique

Les champs inconnus de l'API sont conservés (extra="allow") et deviennent la
map d'extension de l'entité (colonnes *_extra / extra en base).
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _ExtensibleModel(BaseModel):
    """Base des modèles dont les champs non déclarés sont conservés."""

    model_config = ConfigDict(extra="allow")

    def extension_fields(self) -> dict[str, Any]:
        """Champs non déclarés reçus de l'API (map d'extension)."""
        return dict(self.model_extra or {})


class SteamProfile(_ExtensibleModel):
    """
    Profil Steam d'un joueur.
    (Steam profile of a player)
    """

    account_id: int
    personaname: str | None = None
    profileurl: str | None = None
    avatar: str | None = None
    avatarmedium: str | None = None
    avatarfull: str | None = None
    countrycode: str | None = None
    realname: str | None = None
    last_updated: str | None = Field(default=None, description="Epoch secondes (str ou int)")

    @field_validator("last_updated", mode="before")
    @classmethod
    def parse_last_updated(cls, v: Any) -> str | None:
        """Accepte une chaîne ou un entier."""
        if v is None:
            return None
        if isinstance(v, bool):
            raise ValueError(f"Invalid last_updated: {v}")
        if isinstance(v, int | float):
            return str(int(v))
        return str(v)


class MMRHistory(_ExtensibleModel):
    """Entrée d'historique MMR (score / rang après un match)."""

    account_id: int
    match_id: int
    start_time: int
    player_score: float | None = None
    rank: int | None = None
    division: int | None = None
    division_tier: int | None = None


class HeroStats(_ExtensibleModel):
    """Stats agrégées d'un joueur sur un héros."""

    account_id: int
    hero_id: int
    matches_played: int | None = None
    wins: int | None = None
    last_played: int | None = None
    time_played: int | None = None
    ending_level: float | None = None
    kills: int | None = None
    deaths: int | None = None
    assists: int | None = None
    kills_per_min: float | None = None
    deaths_per_min: float | None = None
    assists_per_min: float | None = None
    networth_per_min: float | None = None
    last_hits_per_min: float | None = None
    damage_per_min: float | None = None
    damage_taken_per_min: float | None = None
    obj_damage_per_min: float | None = None
    accuracy: float | None = None
    crit_shot_rate: float | None = None

    @property
    def win_rate(self) -> float | None:
        """Ratio victoires / matchs (None si aucun match)."""
        if not self.matches_played or self.wins is None:
            return None
        return self.wins / self.matches_played


class PlayerBundle(BaseModel):
    """Profil + MMR + héros d'un joueur, ingérés dans une seule transaction."""

    account_id: int
    steamid64: str
    profile: SteamProfile
    latest_mmr: MMRHistory | None = None
    mmr_history: list[MMRHistory] = Field(default_factory=list)
    hero_stats: list[HeroStats] = Field(default_factory=list)
