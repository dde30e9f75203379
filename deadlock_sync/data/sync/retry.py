"""Politique de retry pour l'API amont (machine à états explicite).

    Attempt ──429 + Retry-After──▶ Waiting(retry_after, durée indiquée)
    Attempt ──429 sans hint─────▶ Waiting(rate_limited, backoff)
    Attempt ──échec réseau──────▶ Waiting(network, backoff)
    Waiting ─────────────────────▶ Attempt suivante
    Attempt ──2xx────────────────▶ Success (le client retourne directement)
    Budget épuisé ───────────────▶ Exhausted(dernière erreur)

Le backoff exponentiel démarre à 0.4s et double à chaque utilisation ; une
attente Retry-After ne consomme PAS le backoff. Aucun sommeil n'est fait
après la dernière tentative.

Usage:
    state = RetryPolicy().start()
    step = state.on_network_failure(err)
    if isinstance(step, Exhausted):
        raise step.error
    await sleep(step.duration)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 4
DEFAULT_BASE_DELAY = 0.4

REASON_RETRY_AFTER = "retry_after"
REASON_RATE_LIMITED = "rate_limited"
REASON_NETWORK = "network"


@dataclass(frozen=True)
class Waiting:
    """Attente avant la prochaine tentative."""

    reason: str
    duration: float
    next_attempt: int


@dataclass(frozen=True)
class Exhausted:
    """Budget de tentatives épuisé : `error` est la dernière erreur observée."""

    error: Exception
    attempts: int


@dataclass(frozen=True)
class RetryPolicy:
    """Paramètres du retry (budget total, backoff initial)."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts doit être >= 1")
        if self.base_delay < 0:
            raise ValueError("base_delay doit être >= 0")

    def start(self) -> RetryState:
        return RetryState(self)


class RetryState:
    """État courant d'une requête soumise au retry."""

    def __init__(self, policy: RetryPolicy) -> None:
        self.policy = policy
        self.attempt = 1
        self._next_backoff = policy.base_delay

    @property
    def can_retry(self) -> bool:
        return self.attempt < self.policy.max_attempts

    def on_rate_limited(
        self, error: Exception, retry_after: float | None = None
    ) -> Waiting | Exhausted:
        """Transition après un HTTP 429."""
        if not self.can_retry:
            return Exhausted(error, self.attempt)
        self.attempt += 1
        if retry_after is not None:
            return Waiting(REASON_RETRY_AFTER, retry_after, self.attempt)
        return self._backoff(REASON_RATE_LIMITED)

    def on_network_failure(self, error: Exception) -> Waiting | Exhausted:
        """Transition après un échec réseau (connexion, timeout)."""
        if not self.can_retry:
            return Exhausted(error, self.attempt)
        self.attempt += 1
        return self._backoff(REASON_NETWORK)

    def _backoff(self, reason: str) -> Waiting:
        delay = self._next_backoff
        self._next_backoff *= 2
        return Waiting(reason, delay, self.attempt)


def parse_retry_after(value: str | None, *, now: datetime | None = None) -> float | None:
    """Parse un header Retry-After (secondes ou date HTTP).

    Args:
        value: Valeur brute du header.
        now: Instant de référence pour une date HTTP (défaut: maintenant UTC).

    Returns:
        Durée d'attente en secondes, ou None si absente / illisible / passée.
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if s.isdigit():
        return float(int(s))

    try:
        when = parsedate_to_datetime(s)
    except (TypeError, ValueError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)

    reference = now or datetime.now(timezone.utc)
    wait = (when - reference).total_seconds()
    if wait < 0:
        return None
    return wait
