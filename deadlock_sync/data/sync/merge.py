"""Fonctions de fusion déterministes pour l'ingestion.

Deux règles coexistent et ne doivent pas être unifiées :
- Tables "record" (matches) : les scalaires absents conservent la valeur
  stockée (`coalesce_scalars`).
- Tables "current" (players, latest_mmr, hero_stats_current, match_players) :
  écrasement complet des scalaires.

Les maps d'extension (colonnes JSON) sont toujours fusionnées par union
superficielle : les clés entrantes l'emportent, aucune clé n'est perdue.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

logger = logging.getLogger(__name__)


def shallow_union(
    existing: Mapping[str, Any] | None, incoming: Mapping[str, Any] | None
) -> dict[str, Any] | None:
    """Union superficielle de deux maps, `incoming` prioritaire.

    Returns:
        None si les deux côtés sont absents, sinon la map fusionnée.

    Example:
        >>> shallow_union({"a": 1, "b": 1}, {"b": 2, "c": 3})
        {'a': 1, 'b': 2, 'c': 3}
    """
    if existing is None and incoming is None:
        return None
    merged: dict[str, Any] = dict(existing or {})
    merged.update(incoming or {})
    return merged


def coalesce_scalars(
    existing: Mapping[str, Any] | None, incoming: Mapping[str, Any]
) -> dict[str, Any]:
    """Fusion des scalaires d'un record : une valeur None entrante garde l'ancienne."""
    if not existing:
        return dict(incoming)
    return {
        key: (value if value is not None else existing.get(key))
        for key, value in incoming.items()
    }


def load_blob(raw: str | None) -> dict[str, Any] | None:
    """Décode une colonne JSON stockée en texte."""
    if raw is None or raw == "":
        return None
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning(f"Blob JSON illisible ignoré: {raw[:80]!r}")
        return None
    return value if isinstance(value, dict) else None


def dump_blob(value: Mapping[str, Any] | None) -> str | None:
    """Encode une map en texte JSON (clés triées, sortie stable)."""
    if value is None:
        return None
    return json.dumps(dict(value), sort_keys=True, ensure_ascii=False, default=str)
