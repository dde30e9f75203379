"""Transformateurs modèles API → lignes DuckDB.

Architecture:
- epoch_to_datetime() : epoch secondes → TIMESTAMP naïf UTC
- match_row() / match_player_row() : MatchMeta → colonnes matches / match_players
- player_row() / mmr_row() / hero_stats_row() : bundle joueur → colonnes
- group_history_entries() : historique joueur → [MatchMeta]
- latest_mmr_for() : entrée MMR la plus récente d'un compte
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlsplit

from deadlock_sync.data.domain.models import (
    HeroStats,
    MatchMeta,
    MMRHistory,
    PlayerInMatch,
    PlayerMatchHistoryEntry,
    SteamProfile,
)

logger = logging.getLogger(__name__)

MATCH_SCALAR_COLUMNS = (
    "start_time",
    "duration_s",
    "winner_team",
    "average_badge",
    "region",
    "patch_version",
)

MATCH_PLAYER_SCALAR_COLUMNS = (
    "hero_id",
    "team",
    "party_id",
    "lane",
    "is_victory",
    "kills",
    "deaths",
    "assists",
    "networth",
    "damage",
    "damage_taken",
    "obj_damage",
    "last_hits",
    "accuracy",
    "crit_shot_rate",
)

PLAYER_PROFILE_COLUMNS = (
    "personaname",
    "profileurl",
    "avatar",
    "avatarmedium",
    "avatarfull",
    "countrycode",
    "realname",
)

MMR_SCALAR_COLUMNS = ("match_id", "start_time", "player_score", "rank", "division", "division_tier")

HERO_SCALAR_COLUMNS = (
    "matches_played",
    "wins",
    "last_played",
    "time_played",
    "ending_level",
    "kills",
    "deaths",
    "assists",
    "kills_per_min",
    "deaths_per_min",
    "assists_per_min",
    "networth_per_min",
    "last_hits_per_min",
    "damage_per_min",
    "damage_taken_per_min",
    "obj_damage_per_min",
    "accuracy",
    "crit_shot_rate",
)

HISTORY_EXTRA_FIELDS = (
    "denies",
    "game_mode",
    "match_mode",
    "match_result",
    "objectives_mask_team0",
    "objectives_mask_team1",
    "hero_level",
)


# =============================================================================
# Helpers
# =============================================================================


def epoch_to_datetime(seconds: int | float | None) -> datetime | None:
    """Epoch secondes → datetime naïf UTC (les valeurs négatives valent l'epoch)."""
    if seconds is None:
        return None
    seconds = max(int(seconds), 0)
    return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)


def _parse_epoch_str(value: str | None) -> datetime | None:
    if value is None:
        return None
    try:
        return epoch_to_datetime(int(value.strip()))
    except ValueError:
        return None


def profile_domain(url: str | None) -> str | None:
    """Domaine d'une URL de profil (colonne dérivée players.profile_domain)."""
    if not url:
        return None
    return urlsplit(url).netloc or None


def win_rate(matches_played: int | None, wins: int | None) -> float | None:
    if not matches_played or matches_played <= 0 or wins is None:
        return None
    return wins / matches_played


# =============================================================================
# Records (matches / match_players)
# =============================================================================


def match_row(meta: MatchMeta) -> dict[str, Any]:
    """Scalaires d'un match (None = absent, conservé à la fusion)."""
    return {
        "start_time": epoch_to_datetime(meta.start_time),
        "duration_s": meta.duration_s,
        "winner_team": meta.winner_team,
        "average_badge": meta.average_badge,
        "region": meta.region,
        "patch_version": meta.patch_version,
    }


def match_player_row(player: PlayerInMatch) -> dict[str, Any]:
    """Scalaires d'un participant (écrasement complet à la fusion)."""
    return {column: getattr(player, column) for column in MATCH_PLAYER_SCALAR_COLUMNS}


# =============================================================================
# Bundle joueur
# =============================================================================


def player_row(profile: SteamProfile) -> dict[str, Any]:
    row = {column: getattr(profile, column) for column in PLAYER_PROFILE_COLUMNS}
    row["profile_updated_at"] = _parse_epoch_str(profile.last_updated)
    row["profile_domain"] = profile_domain(profile.profileurl)
    return row


def mmr_row(entry: MMRHistory) -> dict[str, Any]:
    return {
        "match_id": entry.match_id,
        "start_time": epoch_to_datetime(entry.start_time),
        "player_score": entry.player_score,
        "rank": entry.rank,
        "division": entry.division,
        "division_tier": entry.division_tier,
    }


def hero_stats_row(stats: HeroStats) -> dict[str, Any]:
    row = {column: getattr(stats, column) for column in HERO_SCALAR_COLUMNS}
    row["last_played"] = epoch_to_datetime(stats.last_played)
    row["win_rate"] = win_rate(stats.matches_played, stats.wins)
    return row


def hero_snapshot(stats: HeroStats) -> dict[str, Any]:
    """Snapshot JSON complet (champs déclarés + extensions) pour l'historique."""
    return stats.model_dump(mode="json")


def latest_mmr_for(entries: Iterable[MMRHistory], account_id: int) -> MMRHistory | None:
    """Entrée MMR la plus récente du compte, départagée par match_id."""
    own = [e for e in entries if e.account_id == account_id]
    if not own:
        return None
    return max(own, key=lambda e: (e.start_time, e.match_id))


# =============================================================================
# Historique joueur → records
# =============================================================================


def history_entry_to_player(entry: PlayerMatchHistoryEntry) -> PlayerInMatch:
    """Entrée d'historique → participant (team "team{n}", champs annexes en extra)."""
    return PlayerInMatch(
        account_id=entry.account_id,
        hero_id=entry.hero_id,
        team=f"team{entry.player_team}",
        kills=entry.player_kills,
        deaths=entry.player_deaths,
        assists=entry.player_assists,
        networth=entry.net_worth,
        last_hits=entry.last_hits,
        extra={name: getattr(entry, name) for name in HISTORY_EXTRA_FIELDS},
    )


def group_history_entries(entries: Iterable[PlayerMatchHistoryEntry]) -> list[MatchMeta]:
    """Regroupe les entrées par match_id (ordre croissant).

    Le premier start_time / duration non nul rencontré l'emporte pour le match.
    """
    grouped: dict[int, dict[str, Any]] = {}
    for entry in entries:
        slot = grouped.setdefault(
            entry.match_id, {"start_time": None, "duration_s": None, "players": []}
        )
        if slot["start_time"] is None:
            slot["start_time"] = entry.start_time
        if slot["duration_s"] is None:
            slot["duration_s"] = entry.match_duration_s
        slot["players"].append(history_entry_to_player(entry))

    return [
        MatchMeta(
            match_id=match_id,
            start_time=slot["start_time"],
            duration_s=slot["duration_s"],
            players=slot["players"],
        )
        for match_id, slot in sorted(grouped.items())
    ]
