"""
Rocafe command-line interface.

Command-line access to the database, cost and backup services.
No UI required - designed for scripted and maintenance use.

Usage Examples:
    # Create the database and tables
    rocafe init-db

    # Automatic backup (pruned to the retention count)
    rocafe backup

    # Manual backup to a chosen file (never pruned)
    rocafe backup --manual -o ~/rocafe-before-upgrade.sqlite

    # Check a backup file
    rocafe verify ~/Documents/Rocafe/Backups/rocafe-backup-2025-01-31-18-04-59-123456.sqlite

    # Restore a backup (the current database is kept in Backups/pre_restore)
    rocafe restore ~/Documents/Rocafe/Backups/rocafe-backup-2025-01-31-18-04-59-123456.sqlite

    # Recompute one recipe's cost, or all of them
    rocafe recalculate 12
    rocafe recalculate-all
"""

import argparse
import logging
import sys
from typing import List, Optional

from rocafe.services.backup_service import BackupKind, BackupService
from rocafe.services.cost_service import CostAggregationService
from rocafe.services.database import initialize_app_database
from rocafe.services.exceptions import RestoreRollbackFailed, ServiceError
from rocafe.utils.config import Config, get_config
from rocafe.utils.dto_utils import cost_to_string


def init_db_cmd(config: Config) -> int:
    """Create the database file and tables."""
    print(f"Initializing database at {config.database_path}...")
    database = initialize_app_database(config)
    database.dispose()
    print("Database ready")
    return 0


def backup_cmd(config: Config, output: Optional[str] = None, manual: bool = False) -> int:
    """Create a backup of the live database."""
    kind = BackupKind.MANUAL if manual else BackupKind.AUTOMATIC
    try:
        backup_path = BackupService.from_config(config).backup(output, kind=kind)
    except ServiceError as e:
        print(f"ERROR: {e}")
        return 1

    print(f"Backup created: {backup_path}")
    return 0


def verify_cmd(config: Config, backup_path: str) -> int:
    """Run the integrity check on a backup file."""
    try:
        BackupService.from_config(config).verify(backup_path)
    except ServiceError as e:
        print(f"ERROR: {e}")
        return 1

    print(f"OK: {backup_path}")
    return 0


def restore_cmd(config: Config, backup_path: str) -> int:
    """Replace the live database with a backup."""
    try:
        safety_path = BackupService.from_config(config).restore(backup_path)
    except RestoreRollbackFailed as e:
        print(f"ERROR: {e}")
        print(f"Move {e.safety_path} to {config.database_path} before starting Rocafe again.")
        return 1
    except ServiceError as e:
        print(f"ERROR: {e}")
        return 1

    print(f"Restored {backup_path}")
    if safety_path is not None:
        print(f"Previous database saved to {safety_path}")
    return 0


def list_backups_cmd(config: Config) -> int:
    """Print all backups, newest first."""
    backups = BackupService.from_config(config).list_backups()
    if not backups:
        print(f"No backups in {config.backup_dir}")
        return 0

    for info in backups:
        created = info.created.strftime("%Y-%m-%d %H:%M:%S")
        print(f"{created}  {info.kind.value:<12} {info.size:>10}  {info.path}")
    return 0


def recalculate_cmd(config: Config, recipe_id: int) -> int:
    """Recompute one recipe's cost and its sub-recipes'."""
    database = initialize_app_database(config)
    try:
        total = CostAggregationService(database, config.max_recipe_depth).resolve_cost(recipe_id)
    except ServiceError as e:
        print(f"ERROR: {e}")
        return 1
    finally:
        database.dispose()

    print(f"Recipe {recipe_id}: {cost_to_string(total)}")
    return 0


def recalculate_all_cmd(config: Config) -> int:
    """Recompute every recipe's cost in one transaction."""
    database = initialize_app_database(config)
    try:
        results = CostAggregationService(database, config.max_recipe_depth).resolve_all()
    except ServiceError as e:
        print(f"ERROR: {e}")
        return 1
    finally:
        database.dispose()

    for recipe_id, total in sorted(results.items()):
        print(f"Recipe {recipe_id}: {cost_to_string(total)}")
    print(f"{len(results)} recipe(s) updated")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rocafe",
        description="Database, cost and backup maintenance for Rocafe",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  rocafe init-db
  rocafe backup
  rocafe backup --manual -o ./before-upgrade.sqlite
  rocafe verify ./before-upgrade.sqlite
  rocafe restore ./before-upgrade.sqlite
  rocafe list-backups
  rocafe recalculate 12
  rocafe recalculate-all
""",
    )
    parser.add_argument(
        "--env",
        choices=["production", "development"],
        default=None,
        help="Configuration environment (default: ROCAFE_ENV or production)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("init-db", help="Create the database and tables")

    backup_parser = subparsers.add_parser("backup", help="Back up the live database")
    backup_parser.add_argument(
        "-o", "--output", dest="output", help="Backup file or directory (default: backup dir)"
    )
    backup_parser.add_argument(
        "--manual",
        action="store_true",
        help="Create a manual backup (never pruned)",
    )

    verify_parser = subparsers.add_parser("verify", help="Check a backup file's integrity")
    verify_parser.add_argument("backup_path", help="Backup file")

    restore_parser = subparsers.add_parser("restore", help="Restore the database from a backup")
    restore_parser.add_argument("backup_path", help="Backup file")

    subparsers.add_parser("list-backups", help="List backups, newest first")

    recalculate_parser = subparsers.add_parser(
        "recalculate", help="Recompute a recipe's cost and its sub-recipes'"
    )
    recalculate_parser.add_argument("recipe_id", type=int, help="Recipe ID")

    subparsers.add_parser("recalculate-all", help="Recompute every recipe's cost")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = get_config(args.env)

    if args.command == "init-db":
        return init_db_cmd(config)
    elif args.command == "backup":
        return backup_cmd(config, args.output, manual=args.manual)
    elif args.command == "verify":
        return verify_cmd(config, args.backup_path)
    elif args.command == "restore":
        return restore_cmd(config, args.backup_path)
    elif args.command == "list-backups":
        return list_backups_cmd(config)
    elif args.command == "recalculate":
        return recalculate_cmd(config, args.recipe_id)
    elif args.command == "recalculate-all":
        return recalculate_all_cmd(config)
    else:
        print(f"Unknown command: {args.command}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
