"""Fixtures communes pour les tests.

- Configuration immuable pointant vers une API factice
- DuckDBStore en mémoire, migré
- Fabriques de réponses aiohttp mockées et de modèles de matchs
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from deadlock_sync.config import SyncConfig
from deadlock_sync.data.domain.models import MatchMeta, PlayerInMatch
from deadlock_sync.db.store import DuckDBStore


@pytest.fixture
def config() -> SyncConfig:
    """Configuration de test (aucune lecture d'environnement)."""
    return SyncConfig(
        api_base="https://api.test",
        api_key="test-key",
        db_path=":memory:",
        steam_web_api_key="steam-key",
        steam_web_api_base="https://steam.test",
    )


@pytest.fixture
def store() -> Iterator[DuckDBStore]:
    """Store DuckDB en mémoire avec le schéma appliqué."""
    s = DuckDBStore(":memory:")
    s.migrate()
    yield s
    s.close()


def make_response(
    status: int = 200,
    payload: Any = None,
    *,
    headers: dict[str, str] | None = None,
    text: str | None = None,
) -> MagicMock:
    """Context manager imitant `session.get(...)` d'aiohttp."""
    resp = MagicMock()
    resp.status = status
    resp.headers = headers or {}
    if text is None:
        text = json.dumps(payload) if payload is not None else ""
    resp.text = AsyncMock(return_value=text)
    resp.json = AsyncMock(return_value=payload)

    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=resp)
    ctx.__aexit__ = AsyncMock(return_value=False)
    return ctx


@pytest.fixture
def response_factory() -> Callable[..., MagicMock]:
    return make_response


@pytest.fixture
def sleep_recorder() -> tuple[list[float], Callable[[float], Any]]:
    """Horloge simulée : enregistre les durées demandées sans dormir."""
    sleeps: list[float] = []

    async def fake_sleep(duration: float) -> None:
        sleeps.append(duration)

    return sleeps, fake_sleep


def make_meta(match_id: int, *, players: list[int] | None = None, **fields: Any) -> MatchMeta:
    """MatchMeta minimal, avec des participants si demandé."""
    return MatchMeta(
        match_id=match_id,
        players=[
            PlayerInMatch(account_id=a, hero_id=1, team="team0", kills=5) for a in players
        ]
        if players is not None
        else None,
        **fields,
    )


@pytest.fixture
def meta_factory() -> Callable[..., MatchMeta]:
    return make_meta
