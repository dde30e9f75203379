"""CLI deadlock-sync.

Commandes :
- migrate : applique les migrations DuckDB
- player : synchronise profil + MMR + stats héros (+ historique stocké)
- matches sync : synchronise les métadonnées de matchs
- matches history : ingère l'historique de matchs d'un joueur

Codes de sortie : 0 succès (y compris "aucun candidat" / "déjà à jour"),
29 limite de débit épuisée, 1 toute autre erreur.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from typing import Any

from deadlock_sync import __version__
from deadlock_sync.config import SyncConfig
from deadlock_sync.data.sync import (
    DeadlockAPIClient,
    HistorySyncRequest,
    MatchSyncRequest,
    SyncOrchestrator,
    SyncReport,
)
from deadlock_sync.db.store import DuckDBStore
from deadlock_sync.errors import DeadlockSyncError, InputConflictError, RateLimitedError
from deadlock_sync.utils.steamid import (
    parse_account_id,
    resolve_vanity,
    steamid64_to_account_id,
    to_steamid64,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_RATE_LIMITED = 29


# =============================================================================
# Parsing
# =============================================================================


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"entier attendu: {raw!r}") from e
    if value < 1:
        raise argparse.ArgumentTypeError(f"doit être >= 1: {raw!r}")
    return value


def _id_list(raw: str) -> list[int]:
    """Parse "1,2,3" en liste d'entiers."""
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"liste d'IDs invalide: {raw!r}") from e


def _add_player_selectors(
    parser: argparse.ArgumentParser, *, prefix: str = "", required: bool, vanity: bool = False
) -> None:
    group = parser.add_mutually_exclusive_group(required=required)
    group.add_argument(
        f"--{prefix}account-id", dest="account_id", type=int, help="Account ID 32 bits"
    )
    group.add_argument(f"--{prefix}steamid", dest="steamid", help="SteamID64 (17 chiffres)")
    group.add_argument(
        f"--{prefix}id3", dest="id3", help="SteamID3 [U:1:n], Steam2 STEAM_X:Y:Z ou account ID"
    )
    if vanity:
        group.add_argument("--vanity", dest="vanity", help="Nom vanity Steam (STEAM_WEB_API_KEY)")
        group.add_argument("--url", dest="url", help="URL de profil steamcommunity.com")


def create_argument_parser() -> argparse.ArgumentParser:
    """Crée le parser d'arguments de la CLI.

    Returns:
        Parser configuré avec toutes les sous-commandes.
    """
    parser = argparse.ArgumentParser(
        prog="deadlock-sync",
        description="Synchronisation des données Deadlock vers DuckDB",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exemples:
  deadlock-sync migrate
  deadlock-sync player --steamid 76561198348939793
  deadlock-sync matches sync --id 123,456 --dry-run
  deadlock-sync matches sync --from-account-id 388674065 --limit 50
  deadlock-sync matches sync --since-id 40000000 --until-id 40000100
  deadlock-sync matches history --id3 "[U:1:388674065]" --only-stored-history
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--json", action="store_true", help="Sortie JSON du rapport")
    parser.add_argument("-v", "--verbose", action="store_true", help="Logs DEBUG")
    parser.add_argument("--db", default=None, help="Chemin DuckDB (défaut: DEADLOCK_DB_PATH)")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("migrate", help="Applique les migrations du schéma")

    player = sub.add_parser("player", help="Synchronise un joueur (profil, MMR, héros)")
    _add_player_selectors(player, required=True, vanity=True)
    player.add_argument(
        "--no-history",
        action="store_true",
        help="Ne pas ingérer l'historique de matchs stocké",
    )
    player.add_argument("--dry-run", action="store_true", help="Fetch sans écriture")

    matches = sub.add_parser("matches", help="Synchronisation des matchs")
    matches_sub = matches.add_subparsers(dest="matches_command", required=True)

    sync = matches_sub.add_parser("sync", help="Synchronise les métadonnées de matchs")
    sync.add_argument(
        "--id",
        dest="ids",
        type=_id_list,
        action="extend",
        default=[],
        help="IDs de matchs explicites (séparés par des virgules, répétable)",
    )
    _add_player_selectors(sync, prefix="from-", required=False)
    sync.add_argument("--since-id", type=int, default=None, help="Premier ID de la fenêtre (inclus)")
    sync.add_argument("--until-id", type=int, default=None, help="Dernier ID de la fenêtre (inclus)")
    sync.add_argument(
        "--limit", type=_positive_int, default=None, help="Candidats max (défaut: 500)"
    )
    sync.add_argument(
        "--batch-size", type=_positive_int, default=None, help="Taille des chunks (défaut: 100)"
    )
    sync.add_argument(
        "--include-info",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Inclure le détail étendu",
    )
    sync.add_argument(
        "--include-players",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Inclure les participants",
    )
    sync.add_argument("--dry-run", action="store_true", help="Fetch sans écriture")

    history = matches_sub.add_parser("history", help="Ingère l'historique d'un joueur")
    _add_player_selectors(history, required=True)
    history.add_argument("--force-refetch", action="store_true", help="Forcer le refetch amont")
    history.add_argument(
        "--only-stored-history",
        action="store_true",
        help="Uniquement l'historique déjà stocké côté API",
    )
    history.add_argument("--dry-run", action="store_true", help="Fetch sans écriture")

    return parser


# =============================================================================
# Exécution
# =============================================================================


async def resolve_account_id(
    args: argparse.Namespace, config: SyncConfig, client: DeadlockAPIClient
) -> int | None:
    """Résout le sélecteur joueur fourni en account_id (None si aucun)."""
    if getattr(args, "account_id", None) is not None:
        return int(args.account_id)
    if getattr(args, "steamid", None):
        steamid64 = await to_steamid64(args.steamid, config=config, session=client.session)
        return steamid64_to_account_id(steamid64)
    if getattr(args, "id3", None):
        return parse_account_id(args.id3)
    if getattr(args, "vanity", None):
        steamid64 = await resolve_vanity(args.vanity, config=config, session=client.session)
        return steamid64_to_account_id(steamid64)
    if getattr(args, "url", None):
        steamid64 = await to_steamid64(args.url, config=config, session=client.session)
        return steamid64_to_account_id(steamid64)
    return None


def _emit(payload: Any, *, as_json: bool) -> None:
    if isinstance(payload, SyncReport):
        text = (
            json.dumps(payload.to_dict(), ensure_ascii=False, indent=2)
            if as_json
            else payload.to_message()
        )
    else:
        text = json.dumps(payload, ensure_ascii=False, indent=2) if as_json else str(payload)
    print(text)


async def _run_sync(args: argparse.Namespace, config: SyncConfig, store: DuckDBStore) -> SyncReport:
    async with DeadlockAPIClient(config) as client:
        engine = SyncOrchestrator(client, store)
        try:
            account_id = await resolve_account_id(args, config, client)

            if args.command == "player":
                return await engine.sync_player(
                    account_id, include_history=not args.no_history, dry_run=args.dry_run
                )

            if args.matches_command == "history":
                return await engine.sync_history(
                    HistorySyncRequest(
                        account_id=account_id,
                        force_refetch=args.force_refetch,
                        only_stored_history=args.only_stored_history,
                        dry_run=args.dry_run,
                    )
                )

            return await engine.sync_matches(
                MatchSyncRequest(
                    match_ids=args.ids,
                    account_id=account_id,
                    since=args.since_id,
                    until=args.until_id,
                    limit=args.limit or config.sync_limit,
                    batch_size=args.batch_size or config.batch_size,
                    include_info=args.include_info,
                    include_players=args.include_players,
                    dry_run=args.dry_run,
                )
            )
        except DeadlockSyncError:
            if args.json and engine.last_report is not None:
                _emit(engine.last_report, as_json=True)
            raise


def run(args: argparse.Namespace, config: SyncConfig) -> None:
    """Exécute la commande demandée.

    Raises:
        InputConflictError: Flags exclusifs (avant toute I/O).
        DeadlockSyncError: Toute autre erreur métier.
    """
    if args.command == "matches" and args.matches_command == "history":
        if args.force_refetch and args.only_stored_history:
            raise InputConflictError(
                "--force-refetch et --only-stored-history sont mutuellement exclusifs"
            )

    with DuckDBStore(config.db_path) as store:
        applied = store.migrate()
        if args.command == "migrate":
            _emit(
                {"db_path": config.db_path, "applied": applied}
                if args.json
                else f"Migrations appliquées: {applied or 'aucune (schéma à jour)'}",
                as_json=args.json,
            )
            return

        report = asyncio.run(_run_sync(args, config, store))
        _emit(report, as_json=args.json)
        for warning in report.warnings:
            logger.warning(warning)


def main(argv: list[str] | None = None) -> int:
    """Point d'entrée principal."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        config = SyncConfig.from_env()
        if args.db:
            config = dataclasses.replace(config, db_path=args.db)
        run(args, config)
    except RateLimitedError as e:
        print(f"Erreur: {e}", file=sys.stderr)
        return EXIT_RATE_LIMITED
    except DeadlockSyncError as e:
        print(f"Erreur: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except Exception as e:
        logger.exception(f"Erreur inattendue: {e}")
        print(f"Erreur: {e}", file=sys.stderr)
        return EXIT_FAILURE
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
