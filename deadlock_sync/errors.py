"""Hiérarchie d'exceptions du projet.

- Erreurs amont (API) : transitoires résolues par le retry, fatales propagées.
- Erreurs de stockage : transaction annulée puis propagée.
- Erreurs d'entrée : rejetées avant toute activité réseau ou base.

Les terminaisons informatives (aucun candidat, déjà à jour) ne sont PAS des
exceptions : voir `SyncStatus` dans `deadlock_sync.data.sync.models`.
"""

from __future__ import annotations


class DeadlockSyncError(Exception):
    """Base de toutes les erreurs du projet."""


class ConfigError(DeadlockSyncError):
    """Configuration invalide (variable d'environnement mal formée)."""


class InputConflictError(DeadlockSyncError):
    """Options incompatibles fournies ensemble (ex: deux flags exclusifs)."""


class IdentityError(DeadlockSyncError):
    """Identifiant joueur invalide ou non résolu (SteamID, URL, vanity)."""


class PlayerNotFoundError(DeadlockSyncError):
    """Le profil du joueur est introuvable côté API."""


# =============================================================================
# Erreurs amont
# =============================================================================


class UpstreamError(DeadlockSyncError):
    """Base des erreurs de l'API amont."""


class RateLimitedError(UpstreamError):
    """HTTP 429 persistant : budget de tentatives épuisé."""

    def __init__(self, message: str = "", *, attempts: int = 0) -> None:
        self.attempts = attempts
        super().__init__(f"Rate limited: {message}" if message else "Rate limited")


class UpstreamNetworkError(UpstreamError):
    """Échec réseau (connexion, timeout) après épuisement des tentatives."""


class UpstreamHTTPError(UpstreamError):
    """Statut HTTP non-succès autre que 429 (fatal, pas de retry)."""

    def __init__(self, status: int, message: str = "") -> None:
        self.status = status
        self.message = message
        super().__init__(f"HTTP {status}: {message}")

    @property
    def is_not_found(self) -> bool:
        return self.status == 404


class UpstreamPayloadError(UpstreamError):
    """Réponse 2xx mais corps illisible ou non conforme aux modèles."""


class StorageError(DeadlockSyncError):
    """Échec d'une transaction DuckDB (déjà annulée)."""
