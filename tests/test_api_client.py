"""Tests du client API Deadlock (session aiohttp mockée, horloge simulée)."""

from __future__ import annotations

import dataclasses
from unittest.mock import MagicMock

import aiohttp
import pytest

from deadlock_sync.data.sync.api_client import DeadlockAPIClient, join_ids
from deadlock_sync.errors import (
    RateLimitedError,
    UpstreamHTTPError,
    UpstreamNetworkError,
    UpstreamPayloadError,
)


@pytest.fixture
def session() -> MagicMock:
    return MagicMock()


@pytest.fixture
def make_client(config, session, sleep_recorder):
    _, fake_sleep = sleep_recorder

    def _make(cfg=None) -> DeadlockAPIClient:
        return DeadlockAPIClient(cfg or config, session=session, sleep=fake_sleep)

    return _make


META_PAYLOAD = [
    {
        "match_id": 1,
        "start_time": 1700000000,
        "duration_s": 1800,
        "winner_team": 0,
        "region": "eu",
        "info": {"objectives": 3},
        "players": [
            {"account_id": 10, "hero_id": 7, "team": 1, "kills": 4, "unknown": True},
        ],
    }
]


class TestRetryBehaviour:
    """Politique de retry appliquée aux requêtes."""

    @pytest.mark.asyncio
    async def test_three_network_failures_then_success(
        self, make_client, session, response_factory, sleep_recorder
    ):
        """3 échecs réseau puis succès : résultat retourné, aucune erreur."""
        sleeps, _ = sleep_recorder
        session.get = MagicMock(
            side_effect=[
                aiohttp.ClientConnectionError("reset"),
                aiohttp.ClientConnectionError("reset"),
                aiohttp.ClientConnectionError("reset"),
                response_factory(200, META_PAYLOAD),
            ]
        )

        metas = await make_client().get_matches_metadata([1])

        assert [m.match_id for m in metas] == [1]
        assert session.get.call_count == 4
        assert sleeps == pytest.approx([0.4, 0.8, 1.6])

    @pytest.mark.asyncio
    async def test_retry_after_hint_is_exact(
        self, make_client, session, response_factory, sleep_recorder
    ):
        """Un 429 avec Retry-After: 2 attend exactement 2 secondes."""
        sleeps, _ = sleep_recorder
        session.get = MagicMock(
            side_effect=[
                response_factory(429, headers={"Retry-After": "2"}, text="slow down"),
                response_factory(200, META_PAYLOAD),
            ]
        )

        metas = await make_client().get_matches_metadata([1])

        assert len(metas) == 1
        assert sleeps == [2.0]

    @pytest.mark.asyncio
    async def test_rate_limit_without_hint_uses_backoff(
        self, make_client, session, response_factory, sleep_recorder
    ):
        sleeps, _ = sleep_recorder
        session.get = MagicMock(
            side_effect=[
                response_factory(429, headers={"Retry-After": "3"}),
                response_factory(429),
                response_factory(200, []),
            ]
        )

        await make_client().get_mmr([1])

        assert sleeps == pytest.approx([3.0, 0.4])

    @pytest.mark.asyncio
    async def test_rate_limit_exhausted(self, make_client, session, response_factory, sleep_recorder):
        """4 réponses 429 : RateLimitedError, pas de sommeil après la dernière tentative."""
        sleeps, _ = sleep_recorder
        session.get = MagicMock(side_effect=[response_factory(429, text="quota") for _ in range(4)])

        with pytest.raises(RateLimitedError):
            await make_client().get_mmr([1])

        assert session.get.call_count == 4
        assert len(sleeps) == 3

    @pytest.mark.asyncio
    async def test_network_exhausted(self, make_client, session):
        session.get = MagicMock(side_effect=aiohttp.ClientConnectionError("down"))

        with pytest.raises(UpstreamNetworkError):
            await make_client().get_mmr([1])

        assert session.get.call_count == 4

    @pytest.mark.asyncio
    async def test_server_error_is_fatal(self, make_client, session, response_factory, sleep_recorder):
        """Un 500 est propagé immédiatement, sans retry."""
        sleeps, _ = sleep_recorder
        session.get = MagicMock(side_effect=[response_factory(500, text="boom")])

        with pytest.raises(UpstreamHTTPError) as exc_info:
            await make_client().get_matches_metadata([1])

        assert exc_info.value.status == 500
        assert not exc_info.value.is_not_found
        assert session.get.call_count == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_not_found(self, make_client, session, response_factory):
        session.get = MagicMock(side_effect=[response_factory(404, text="not found")])

        with pytest.raises(UpstreamHTTPError) as exc_info:
            await make_client().get_matches_metadata([1])

        assert exc_info.value.is_not_found


class TestRequests:
    """URL, paramètres, headers et décodage des réponses."""

    @pytest.mark.asyncio
    async def test_metadata_request_shape(self, make_client, session, response_factory):
        session.get = MagicMock(side_effect=[response_factory(200, META_PAYLOAD)])

        await make_client().get_matches_metadata([1, 2, 3])

        args, kwargs = session.get.call_args
        assert args[0] == "https://api.test/v1/matches/metadata"
        assert kwargs["params"] == {
            "match_ids": "1,2,3",
            "include_info": "true",
            "include_players": "true",
        }
        assert kwargs["headers"]["X-API-KEY"] == "test-key"

    @pytest.mark.asyncio
    async def test_flags_omitted_when_disabled(self, make_client, session, response_factory):
        session.get = MagicMock(side_effect=[response_factory(200, [])])

        await make_client().get_matches_metadata([1], include_info=False, include_players=False)

        assert session.get.call_args.kwargs["params"] == {"match_ids": "1"}

    @pytest.mark.asyncio
    async def test_no_api_key_header(self, make_client, config, session, response_factory):
        session.get = MagicMock(side_effect=[response_factory(200, [])])

        await make_client(dataclasses.replace(config, api_key=None)).get_steam_profiles([1])

        assert "X-API-KEY" not in session.get.call_args.kwargs["headers"]

    @pytest.mark.asyncio
    async def test_history_flags(self, make_client, session, response_factory):
        session.get = MagicMock(side_effect=[response_factory(200, [])])

        await make_client().get_player_match_history(42, only_stored_history=True)

        args, kwargs = session.get.call_args
        assert args[0] == "https://api.test/v1/players/42/match-history"
        assert kwargs["params"] == {"only_stored_history": "true"}

    @pytest.mark.asyncio
    async def test_metadata_parsing(self, make_client, session, response_factory):
        """Les participants sont validés, team entier converti en chaîne."""
        session.get = MagicMock(side_effect=[response_factory(200, META_PAYLOAD)])

        [meta] = await make_client().get_matches_metadata([1])

        assert meta.winner_team == "0"
        assert meta.info == {"objectives": 3}
        assert meta.players[0].team == "1"
        assert meta.players[0].kills == 4

    @pytest.mark.asyncio
    async def test_invalid_json(self, make_client, session, response_factory):
        session.get = MagicMock(side_effect=[response_factory(200, text="<html>")])

        with pytest.raises(UpstreamPayloadError):
            await make_client().get_mmr([1])

    @pytest.mark.asyncio
    async def test_payload_not_a_list(self, make_client, session, response_factory):
        session.get = MagicMock(side_effect=[response_factory(200, {"error": "x"})])

        with pytest.raises(UpstreamPayloadError):
            await make_client().get_player_hero_stats([1])

    @pytest.mark.asyncio
    async def test_invalid_model(self, make_client, session, response_factory):
        session.get = MagicMock(side_effect=[response_factory(200, [{"hero_id": 1}])])

        with pytest.raises(UpstreamPayloadError):
            await make_client().get_player_hero_stats([1])

    @pytest.mark.asyncio
    async def test_unknown_profile_fields_kept(self, make_client, session, response_factory):
        payload = [{"account_id": 5, "personaname": "p", "last_updated": 1700000000, "badge": 9}]
        session.get = MagicMock(side_effect=[response_factory(200, payload)])

        [profile] = await make_client().get_steam_profiles([5])

        assert profile.last_updated == "1700000000"
        assert profile.extension_fields() == {"badge": 9}


class TestSessionLifecycle:
    @pytest.mark.asyncio
    async def test_owned_session_closed(self, config):
        async with DeadlockAPIClient(config) as client:
            session = client.session
            assert isinstance(session, aiohttp.ClientSession)
        assert session.closed

    def test_session_required(self, config):
        with pytest.raises(RuntimeError):
            _ = DeadlockAPIClient(config).session


def test_join_ids():
    assert join_ids([3, 1, 2]) == "3,1,2"
