"""Configuration centralisée (construite une seule fois au démarrage).

Usage:
    config = SyncConfig.from_env()
    async with DeadlockAPIClient(config) as client:
        ...

Variables d'environnement lues (après chargement de .env.local / .env) :
- DEADLOCK_API_BASE, DEADLOCK_API_KEY
- DEADLOCK_DB_PATH
- DEADLOCK_HTTP_TIMEOUT, DEADLOCK_BATCH_SIZE, DEADLOCK_SYNC_LIMIT
- STEAM_WEB_API_KEY, STEAM_WEB_API_BASE
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from deadlock_sync.errors import ConfigError

REPO_ROOT = Path(__file__).resolve().parent.parent

# =============================================================================
# Valeurs par défaut
# =============================================================================

DEFAULT_API_BASE = "https://api.deadlock-api.com"
DEFAULT_STEAM_WEB_API_BASE = "https://api.steampowered.com"
DEFAULT_DB_PATH = "data/deadlock.duckdb"
DEFAULT_HTTP_TIMEOUT = 15.0
DEFAULT_BATCH_SIZE = 100
DEFAULT_SYNC_LIMIT = 500
USER_AGENT = "deadlock-sync/0.1"


def _load_dotenv_if_present(root: Path = REPO_ROOT) -> None:
    """Charge les fichiers .env.local et .env si présents.

    Les variables déjà définies dans l'environnement ne sont jamais écrasées.
    """
    for name in (".env.local", ".env"):
        dotenv_path = root / name
        if not dotenv_path.exists():
            continue
        try:
            content = dotenv_path.read_text(encoding="utf-8")
        except OSError:
            continue

        for raw_line in content.splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if not key:
                continue
            if os.environ.get(key) is None:
                os.environ[key] = value


def _env_str(env: Mapping[str, str], key: str) -> str | None:
    value = env.get(key)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = _env_str(env, key)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigError(f"{key} doit être un nombre (reçu: {raw!r})") from e
    if value <= 0:
        raise ConfigError(f"{key} doit être > 0 (reçu: {raw!r})")
    return value


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = _env_str(env, key)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigError(f"{key} doit être un entier (reçu: {raw!r})") from e
    if value < 1:
        raise ConfigError(f"{key} doit être >= 1 (reçu: {raw!r})")
    return value


@dataclass(frozen=True)
class SyncConfig:
    """Configuration immuable du pipeline.

    Attributes:
        api_base: URL de base de l'API Deadlock.
        api_key: Clé API optionnelle (header X-API-KEY).
        db_path: Chemin du fichier DuckDB (":memory:" accepté).
        http_timeout: Timeout fixe par appel réseau (secondes).
        batch_size: Taille de chunk par défaut pour les métadonnées de matchs.
        sync_limit: Nombre maximum de candidats par défaut.
        steam_web_api_key: Clé Steam Web API (résolution des vanity URLs).
        steam_web_api_base: URL de base de la Steam Web API.
        user_agent: User-Agent envoyé à l'API.
    """

    api_base: str = DEFAULT_API_BASE
    api_key: str | None = None
    db_path: str = DEFAULT_DB_PATH
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    batch_size: int = DEFAULT_BATCH_SIZE
    sync_limit: int = DEFAULT_SYNC_LIMIT
    steam_web_api_key: str | None = None
    steam_web_api_base: str = DEFAULT_STEAM_WEB_API_BASE
    user_agent: str = USER_AGENT

    @classmethod
    def from_env(
        cls,
        env: Mapping[str, str] | None = None,
        *,
        load_dotenv: bool = True,
    ) -> SyncConfig:
        """Construit la configuration depuis l'environnement.

        Args:
            env: Mapping à lire (défaut: os.environ).
            load_dotenv: Charger .env.local / .env avant lecture.

        Raises:
            ConfigError: Si une valeur numérique est invalide.
        """
        if env is None:
            if load_dotenv:
                _load_dotenv_if_present()
            env = os.environ

        return cls(
            api_base=(_env_str(env, "DEADLOCK_API_BASE") or DEFAULT_API_BASE).rstrip("/"),
            api_key=_env_str(env, "DEADLOCK_API_KEY"),
            db_path=_env_str(env, "DEADLOCK_DB_PATH") or DEFAULT_DB_PATH,
            http_timeout=_env_float(env, "DEADLOCK_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
            batch_size=_env_int(env, "DEADLOCK_BATCH_SIZE", DEFAULT_BATCH_SIZE),
            sync_limit=_env_int(env, "DEADLOCK_SYNC_LIMIT", DEFAULT_SYNC_LIMIT),
            steam_web_api_key=_env_str(env, "STEAM_WEB_API_KEY"),
            steam_web_api_base=(
                _env_str(env, "STEAM_WEB_API_BASE") or DEFAULT_STEAM_WEB_API_BASE
            ).rstrip("/"),
        )
