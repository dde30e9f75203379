"""Client API Deadlock asynchrone.

Ce module encapsule les endpoints de l'API Deadlock avec :
- Header X-API-KEY optionnel
- Timeout fixe par appel
- Retry 429 / réseau (voir retry.py), 4 tentatives au total
- Validation Pydantic des réponses

Usage:
    async with DeadlockAPIClient(config) as client:
        metas = await client.get_matches_metadata([1, 2, 3])
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

import aiohttp
from pydantic import BaseModel, ValidationError

from deadlock_sync.config import SyncConfig
from deadlock_sync.data.domain.models import (
    HeroStats,
    MatchMeta,
    MMRHistory,
    PlayerMatchHistoryEntry,
    SteamProfile,
)
from deadlock_sync.data.sync.retry import Exhausted, RetryPolicy, parse_retry_after
from deadlock_sync.errors import (
    RateLimitedError,
    UpstreamHTTPError,
    UpstreamNetworkError,
    UpstreamPayloadError,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

Sleep = Callable[[float], Awaitable[Any]]


def join_ids(ids: Iterable[int]) -> str:
    """Joint des IDs numériques par des virgules (format des endpoints batch)."""
    return ",".join(str(int(i)) for i in ids)


def _flag(value: bool) -> str:
    return "true" if value else "false"


def _parse_list(payload: Any, model: type[ModelT], endpoint: str) -> list[ModelT]:
    """Valide une réponse JSON liste en modèles Pydantic."""
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise UpstreamPayloadError(f"{endpoint}: liste attendue, reçu {type(payload).__name__}")
    try:
        return [model.model_validate(item) for item in payload]
    except ValidationError as e:
        raise UpstreamPayloadError(f"{endpoint}: payload invalide ({e.error_count()} erreurs)") from e


class DeadlockAPIClient:
    """Client API Deadlock asynchrone.

    La session aiohttp est créée dans `__aenter__` sauf si elle est fournie
    (tests, session partagée). `sleep` est injectable pour simuler l'horloge.

    Usage:
        async with DeadlockAPIClient(config) as client:
            history = await client.get_player_match_history(388674065)
    """

    def __init__(
        self,
        config: SyncConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._config = config
        self._session = session
        self._owns_session = session is None
        self._retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

    async def __aenter__(self) -> DeadlockAPIClient:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._config.http_timeout),
                headers={"User-Agent": self._config.user_agent},
            )
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Ferme la session si elle a été créée ici."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError("Client non initialisé. Utiliser 'async with'.")
        return self._session

    # =========================================================================
    # Endpoints
    # =========================================================================

    async def get_steam_profiles(self, account_ids: list[int]) -> list[SteamProfile]:
        payload = await self._get_json(
            "/v1/players/steam", {"account_ids": join_ids(account_ids)}
        )
        return _parse_list(payload, SteamProfile, "players/steam")

    async def get_mmr(self, account_ids: list[int]) -> list[MMRHistory]:
        payload = await self._get_json("/v1/players/mmr", {"account_ids": join_ids(account_ids)})
        return _parse_list(payload, MMRHistory, "players/mmr")

    async def get_player_hero_stats(self, account_ids: list[int]) -> list[HeroStats]:
        payload = await self._get_json(
            "/v1/players/hero-stats", {"account_ids": join_ids(account_ids)}
        )
        return _parse_list(payload, HeroStats, "players/hero-stats")

    async def get_matches_metadata(
        self,
        match_ids: list[int],
        *,
        include_info: bool = True,
        include_players: bool = True,
    ) -> list[MatchMeta]:
        """Récupère les métadonnées d'un lot de matchs.

        Args:
            match_ids: IDs des matchs (un seul appel pour tout le lot).
            include_info: Inclure le détail étendu (info_json).
            include_players: Inclure la liste des participants.
        """
        params = {"match_ids": join_ids(match_ids)}
        if include_info:
            params["include_info"] = _flag(True)
        if include_players:
            params["include_players"] = _flag(True)
        payload = await self._get_json("/v1/matches/metadata", params)
        return _parse_list(payload, MatchMeta, "matches/metadata")

    async def get_player_match_history(
        self,
        account_id: int,
        *,
        force_refetch: bool = False,
        only_stored_history: bool = False,
    ) -> list[PlayerMatchHistoryEntry]:
        params: dict[str, str] = {}
        if force_refetch:
            params["force_refetch"] = _flag(True)
        if only_stored_history:
            params["only_stored_history"] = _flag(True)
        payload = await self._get_json(f"/v1/players/{int(account_id)}/match-history", params)
        return _parse_list(payload, PlayerMatchHistoryEntry, "players/match-history")

    # =========================================================================
    # Transport
    # =========================================================================

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._config.api_key:
            headers["X-API-KEY"] = self._config.api_key
        return headers

    async def _get_json(self, path: str, params: dict[str, str]) -> Any:
        """GET JSON avec la politique de retry.

        Raises:
            RateLimitedError: 429 sur toutes les tentatives.
            UpstreamNetworkError: Échec réseau sur toutes les tentatives.
            UpstreamHTTPError: Statut non-succès (fatal, sans retry).
            UpstreamPayloadError: Corps JSON illisible.
        """
        url = f"{self._config.api_base}{path}"
        state = self._retry_policy.start()

        while True:
            try:
                async with self.session.get(url, params=params, headers=self._headers()) as resp:
                    if resp.status == 429:
                        body = await resp.text()
                        retry_after = parse_retry_after(resp.headers.get("Retry-After"))
                        step = state.on_rate_limited(
                            RateLimitedError(body, attempts=state.attempt), retry_after
                        )
                    elif resp.status >= 300:
                        body = await resp.text()
                        raise UpstreamHTTPError(resp.status, body)
                    else:
                        raw = await resp.text()
                        try:
                            return json.loads(raw) if raw else None
                        except ValueError as e:
                            raise UpstreamPayloadError(f"{path}: JSON invalide") from e
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                step = state.on_network_failure(UpstreamNetworkError(f"{path}: {e!r}"))

            if isinstance(step, Exhausted):
                logger.warning(f"{path}: abandon après {step.attempts} tentatives ({step.error})")
                raise step.error

            logger.info(
                f"{path}: attente {step.duration:.2f}s ({step.reason}) "
                f"avant tentative {step.next_attempt}/{self._retry_policy.max_attempts}"
            )
            await self._sleep(step.duration)
