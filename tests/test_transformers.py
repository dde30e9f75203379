"""Tests des transformateurs modèles → lignes DuckDB."""

from __future__ import annotations

from datetime import datetime

from deadlock_sync.data.domain.models import (
    HeroStats,
    MatchMeta,
    MMRHistory,
    PlayerMatchHistoryEntry,
    SteamProfile,
)
from deadlock_sync.data.sync.transformers import (
    epoch_to_datetime,
    group_history_entries,
    hero_stats_row,
    latest_mmr_for,
    match_row,
    player_row,
    profile_domain,
)


def _entry(match_id: int, account_id: int = 1, **fields) -> PlayerMatchHistoryEntry:
    base = {"account_id": account_id, "match_id": match_id, "start_time": 1700000000 + match_id}
    base.update(fields)
    return PlayerMatchHistoryEntry(**base)


class TestEpochToDatetime:
    def test_naive_utc(self):
        assert epoch_to_datetime(0) == datetime(1970, 1, 1)
        assert epoch_to_datetime(86400) == datetime(1970, 1, 2)

    def test_negative_clamped(self):
        assert epoch_to_datetime(-50) == datetime(1970, 1, 1)

    def test_none(self):
        assert epoch_to_datetime(None) is None


class TestRows:
    def test_match_row_keeps_absent_as_none(self):
        row = match_row(MatchMeta(match_id=1, region="eu"))
        assert row["region"] == "eu"
        assert row["start_time"] is None
        assert row["patch_version"] is None

    def test_player_row_derived_fields(self):
        profile = SteamProfile(
            account_id=1,
            profileurl="https://steamcommunity.com/id/someone/",
            last_updated="86400",
        )
        row = player_row(profile)
        assert row["profile_domain"] == "steamcommunity.com"
        assert row["profile_updated_at"] == datetime(1970, 1, 2)

    def test_player_row_unparseable_last_updated(self):
        row = player_row(SteamProfile(account_id=1, last_updated="yesterday"))
        assert row["profile_updated_at"] is None

    def test_profile_domain(self):
        assert profile_domain(None) is None
        assert profile_domain("") is None
        assert profile_domain("not a url") is None

    def test_hero_win_rate(self):
        assert hero_stats_row(HeroStats(account_id=1, hero_id=2, matches_played=10, wins=4))[
            "win_rate"
        ] == 0.4
        assert hero_stats_row(HeroStats(account_id=1, hero_id=2, matches_played=0, wins=0))[
            "win_rate"
        ] is None


class TestLatestMMR:
    def test_newest_by_start_time_then_match_id(self):
        entries = [
            MMRHistory(account_id=1, match_id=5, start_time=100, rank=1),
            MMRHistory(account_id=1, match_id=9, start_time=200, rank=2),
            MMRHistory(account_id=1, match_id=7, start_time=200, rank=3),
            MMRHistory(account_id=2, match_id=99, start_time=999, rank=4),
        ]
        latest = latest_mmr_for(entries, 1)
        assert latest.match_id == 9
        assert latest.rank == 2

    def test_no_entry_for_account(self):
        assert latest_mmr_for([MMRHistory(account_id=2, match_id=1, start_time=1)], 1) is None


class TestGroupHistoryEntries:
    def test_grouped_and_sorted(self):
        entries = [
            _entry(30, account_id=1, player_team=1, denies=4),
            _entry(10, account_id=1),
            _entry(30, account_id=2, player_team=0),
        ]
        metas = group_history_entries(entries)

        assert [m.match_id for m in metas] == [10, 30]
        assert len(metas[1].players) == 2
        first = metas[1].players[0]
        assert first.team == "team1"
        assert first.extra["denies"] == 4
        assert set(first.extra) == {
            "denies",
            "game_mode",
            "match_mode",
            "match_result",
            "objectives_mask_team0",
            "objectives_mask_team1",
            "hero_level",
        }

    def test_first_non_null_duration_wins(self):
        entries = [
            _entry(1, account_id=1, match_duration_s=None),
            _entry(1, account_id=2, match_duration_s=1500),
            _entry(1, account_id=3, match_duration_s=1600),
        ]
        [meta] = group_history_entries(entries)
        assert meta.duration_s == 1500
        assert meta.start_time == 1700000001

    def test_empty(self):
        assert group_history_entries([]) == []
