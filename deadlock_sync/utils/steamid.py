"""Utilitaires pour la manipulation des identifiants Steam.

Ce module convertit les différentes représentations d'un joueur vers
l'account_id 32 bits utilisé par l'API Deadlock :
- SteamID64 ("76561198348939793")
- SteamID3 ("[U:1:388674065]")
- Steam2 ("STEAM_0:1:194337032")
- account_id brut ("388674065")
- URL de profil communautaire (/profiles/<id64> ou /id/<vanity>)
- Nom vanity (résolu via la Steam Web API)
"""

from __future__ import annotations

import asyncio
import logging
import re
from urllib.parse import urlsplit

import aiohttp

from deadlock_sync.config import SyncConfig
from deadlock_sync.errors import IdentityError

logger = logging.getLogger(__name__)

__all__ = [
    "STEAMID64_BASE",
    "account_id_to_steamid64",
    "is_steamid64",
    "parse_account_id",
    "resolve_vanity",
    "steamid64_to_account_id",
    "to_steamid64",
    "validate_steamid64",
]

STEAMID64_BASE = 76561197960265728
ACCOUNT_ID_MAX = 2**32 - 1

STEAMID64_RE = re.compile(r"^\d{17}$")
STEAMID3_RE = re.compile(r"^\[[a-z]:\d+:(\d+)\]$", re.IGNORECASE)
STEAM2_RE = re.compile(r"^STEAM_\d+:(\d+):(\d+)$", re.IGNORECASE)

STEAM_COMMUNITY_HOSTS = ("steamcommunity.com", "www.steamcommunity.com")


def is_steamid64(s: str) -> bool:
    return bool(STEAMID64_RE.match(s))


def validate_steamid64(s: str) -> str:
    """Valide un SteamID64 (17 chiffres, >= base individuelle).

    Raises:
        IdentityError: Si le format ou la valeur est invalide.
    """
    if not is_steamid64(s) or int(s) < STEAMID64_BASE:
        raise IdentityError(f"SteamID64 invalide: {s!r}")
    return s


def steamid64_to_account_id(s: str) -> int:
    validate_steamid64(s)
    return (int(s) - STEAMID64_BASE) & ACCOUNT_ID_MAX


def account_id_to_steamid64(account_id: int) -> str:
    """account_id 32 bits → SteamID64 (chaîne)."""
    return str(STEAMID64_BASE + int(account_id))


def parse_account_id(s: str) -> int:
    """Parse un SteamID3, un Steam2 ou un account_id brut.

    Args:
        s: Entrée utilisateur.

    Returns:
        L'account_id 32 bits.

    Raises:
        IdentityError: Si l'entrée n'est dans aucun format reconnu.
    """
    s = (s or "").strip()

    m = STEAMID3_RE.match(s)
    if m:
        value = int(m.group(1))
        if value > ACCOUNT_ID_MAX:
            raise IdentityError(f"SteamID3 hors bornes: {s!r}")
        return value

    m = STEAM2_RE.match(s)
    if m:
        y, z = int(m.group(1)), int(m.group(2))
        if y > 1:
            raise IdentityError(f"Steam2 invalide (Y doit valoir 0 ou 1): {s!r}")
        value = z * 2 + y
        if value > ACCOUNT_ID_MAX:
            raise IdentityError(f"Steam2 hors bornes: {s!r}")
        return value

    if s.isdigit() and int(s) <= ACCOUNT_ID_MAX:
        return int(s)

    raise IdentityError(f"Identifiant Steam non reconnu: {s!r}")


# =============================================================================
# Résolution réseau (URL / vanity)
# =============================================================================


async def resolve_vanity(
    vanity: str, *, config: SyncConfig, session: aiohttp.ClientSession
) -> str:
    """Résout un nom vanity en SteamID64 via ISteamUser/ResolveVanityURL.

    Raises:
        IdentityError: Clé manquante, HTTP non-succès ou vanity inconnu.
    """
    if not config.steam_web_api_key:
        raise IdentityError("STEAM_WEB_API_KEY est requis pour résoudre un nom vanity")

    url = f"{config.steam_web_api_base}/ISteamUser/ResolveVanityURL/v1/"
    params = {"key": config.steam_web_api_key, "vanityurl": vanity}
    try:
        async with session.get(url, params=params) as resp:
            if resp.status >= 300:
                raise IdentityError(f"Résolution vanity échouée: HTTP {resp.status}")
            payload = await resp.json(content_type=None)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise IdentityError(f"Résolution vanity échouée: {e}") from e

    response = (payload or {}).get("response") or {}
    if response.get("success") == 1 and response.get("steamid"):
        logger.debug(f"Vanity {vanity!r} → {response['steamid']}")
        return validate_steamid64(str(response["steamid"]))
    raise IdentityError(response.get("message") or "Vanity not found")


async def to_steamid64(
    value: str, *, config: SyncConfig, session: aiohttp.ClientSession
) -> str:
    """Normalise un SteamID64, une URL de profil ou un nom vanity en SteamID64.

    Raises:
        IdentityError: Entrée invalide ou non résolue.
    """
    s = (value or "").strip()
    if is_steamid64(s):
        return validate_steamid64(s)

    if s.lower().startswith(("http://", "https://")):
        parts = urlsplit(s)
        if (parts.hostname or "").lower() not in STEAM_COMMUNITY_HOSTS:
            raise IdentityError(f"URL Steam community invalide: {s!r}")
        segments = [seg for seg in parts.path.split("/") if seg]
        if len(segments) >= 2 and segments[0] == "profiles":
            return validate_steamid64(segments[1])
        if len(segments) >= 2 and segments[0] == "id":
            return await resolve_vanity(segments[1], config=config, session=session)
        raise IdentityError(f"URL Steam community invalide: {s!r}")

    if not s or "/" in s or ":" in s:
        raise IdentityError(f"URL Steam community invalide: {s!r}")
    return await resolve_vanity(s, config=config, session=session)
