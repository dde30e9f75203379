"""Tests des modèles de domaine (pydantic) et des modèles de synchronisation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from deadlock_sync.data.domain.models import (
    HeroStats,
    MatchMeta,
    PlayerInMatch,
    SteamProfile,
)
from deadlock_sync.data.sync.models import (
    HistorySyncRequest,
    IngestCounts,
    MatchSyncRequest,
    PlayerIngestCounts,
    SyncPhase,
    SyncReport,
    SyncStatus,
)
from deadlock_sync.errors import InputConflictError


class TestDomainModels:
    def test_team_and_lane_coerced_to_str(self):
        player = PlayerInMatch(account_id=1, team=0, lane=3)
        assert player.team == "0"
        assert player.lane == "3"

    def test_match_players_optional(self):
        meta = MatchMeta(match_id=5)
        assert meta.players is None
        assert meta.info is None

    def test_match_unknown_fields_ignored(self):
        meta = MatchMeta(match_id=5, something_new=1)
        assert not hasattr(meta, "something_new")

    def test_profile_last_updated_accepts_int(self):
        assert SteamProfile(account_id=1, last_updated=1700000000).last_updated == "1700000000"
        assert SteamProfile(account_id=1, last_updated="42").last_updated == "42"

    def test_profile_last_updated_rejects_bool(self):
        with pytest.raises(ValidationError):
            SteamProfile(account_id=1, last_updated=True)

    def test_extension_fields(self):
        stats = HeroStats(account_id=1, hero_id=2, new_metric=1.5)
        assert stats.extension_fields() == {"new_metric": 1.5}
        assert HeroStats(account_id=1, hero_id=2).extension_fields() == {}

    def test_hero_win_rate(self):
        assert HeroStats(account_id=1, hero_id=2, matches_played=4, wins=1).win_rate == 0.25
        assert HeroStats(account_id=1, hero_id=2, matches_played=0, wins=0).win_rate is None


class TestRequests:
    def test_match_request_defaults(self):
        request = MatchSyncRequest()
        assert request.limit == 500
        assert request.batch_size == 100
        assert request.include_info and request.include_players
        assert not request.dry_run

    @pytest.mark.parametrize("field", ["limit", "batch_size"])
    def test_match_request_rejects_non_positive(self, field):
        with pytest.raises(ValueError):
            MatchSyncRequest(**{field: 0})

    def test_history_request_conflict(self):
        request = HistorySyncRequest(account_id=1, force_refetch=True, only_stored_history=True)
        with pytest.raises(InputConflictError):
            request.validate()

    def test_history_request_single_flag_ok(self):
        HistorySyncRequest(account_id=1, force_refetch=True).validate()


class TestCounts:
    def test_ingest_counts_add(self):
        total = IngestCounts(2, 10, 5) + IngestCounts(1, 3, 2)
        assert (total.records, total.sub_records, total.participants) == (3, 13, 7)

    def test_player_counts_dict(self):
        counts = PlayerIngestCounts(players=1, mmr_history=3)
        assert counts.to_dict() == {
            "players": 1,
            "latest_mmr": 0,
            "mmr_history": 3,
            "hero_stats": 0,
            "hero_stats_history": 0,
        }


class TestSyncReport:
    def test_success_lifecycle(self):
        report = SyncReport(kind="matches")
        report.transition(SyncPhase.FETCHING_CHUNK)
        assert report.phase is SyncPhase.FETCHING_CHUNK

        report.finish(SyncStatus.SUCCESS)

        assert report.success
        assert report.phase is SyncPhase.DONE

    def test_informative_statuses_are_success(self):
        report = SyncReport()
        report.finish(SyncStatus.UP_TO_DATE)
        assert report.success
        assert "Déjà à jour" in report.to_message()

    def test_failed_report(self):
        report = SyncReport(kind="matches", dry_run=True)
        report.error = "boom"
        report.finish(SyncStatus.FAILED)

        assert not report.success
        assert report.phase is SyncPhase.FAILED
        assert report.to_message().startswith("[dry-run]")
        data = report.to_dict()
        assert data["status"] == "failed"
        assert data["error"] == "boom"
        assert data["started_at"] is None
