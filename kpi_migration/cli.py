#!/usr/bin/env python3
"""
Command line entry point for the multi-tenant migration.

Usage:
    # Preview the migration (no writes)
    kpi-migrate run --dry-run

    # Migrate legacy data from (default) into the "tenants" database
    kpi-migrate run --project my-project --target-database tenants --by "admin@example.com"

    # Fail instead of orphaning records whose references cannot be remapped
    kpi-migrate run --on-missing-reference fail

    # Check the result, write a JSON report
    kpi-migrate validate --organization ORG_ID --out validation_report.json

    # Abandon the migration (empties the target collections)
    kpi-migrate rollback

    # Ledger / registry
    kpi-migrate status
    kpi-migrate info
"""

import argparse
import sys
from typing import List, Optional

from . import ledger
from .config import (
    MIGRATION_ID,
    DEFAULT_LOG_LEVEL,
    MigrationSettings,
    get_migration_info,
    parse_batch_size,
    parse_policy,
    settings_from_env,
)
from .errors import ConfigurationError
from .gateway import FirestoreStore
from .log import configure_logging
from .orchestrator import MigrationResult, run_migration
from .progress import LoggingProgressReporter, TqdmProgressReporter
from .remap import MissingReferencePolicy
from .rollback import RollbackCoordinator
from .validation import validate_migration


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kpi-migrate",
        description="Migrate single-tenant KPI data into organization scoped collections",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    defaults = argparse.ArgumentParser(add_help=False)
    defaults.add_argument("--project", help="GCP Project ID (default: GOOGLE_CLOUD_PROJECT)")
    defaults.add_argument("--source-database", help="Firestore database holding the legacy data")
    defaults.add_argument("--target-database", help="Firestore database receiving the migrated data")
    defaults.add_argument("--log-level", default=DEFAULT_LOG_LEVEL, help="Logging level (default: %(default)s)")

    sub = parser.add_subparsers(dest="command", help="Command to run")

    p_run = sub.add_parser("run", parents=[defaults], help="Run the migration")
    p_run.add_argument("--dry-run", action="store_true", help="Preview changes without writing to database")
    p_run.add_argument("--on-missing-reference", choices=[p.value for p in MissingReferencePolicy],
                       help="What to do with records whose references cannot be remapped")
    p_run.add_argument("--batch-size", type=int, help="Operations per Firestore commit (max 500)")
    p_run.add_argument("--force", action="store_true", help="Run even if the ledger says it was applied (a failed run still needs a rollback)")
    p_run.add_argument("--by", default="unknown", help="Who ran the migration")
    p_run.add_argument("--no-progress", action="store_true", help="Log progress instead of drawing a bar")

    p_rb = sub.add_parser("rollback", parents=[defaults], help="Delete everything in the target collections")
    p_rb.add_argument("--dry-run", action="store_true", help="Count documents without deleting")
    p_rb.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    p_rb.add_argument("--by", default="unknown", help="Who rolled back")

    p_val = sub.add_parser("validate", parents=[defaults], help="Check a migrated organization")
    p_val.add_argument("--organization", required=True, help="Organization ID created by the migration")
    p_val.add_argument("--out", help="Write the report as JSON to this file")

    sub.add_parser("status", parents=[defaults], help="List ledger entries for the target database")
    sub.add_parser("info", parents=[defaults], help="Show the migration registry entry")
    return parser


def settings_from_args(args: argparse.Namespace) -> MigrationSettings:
    settings = settings_from_env().with_overrides(
        project=args.project,
        source_database=args.source_database,
        target_database=args.target_database,
        dry_run=getattr(args, "dry_run", None),
    )
    if getattr(args, "on_missing_reference", None):
        settings = settings.with_overrides(missing_reference_policy=parse_policy(args.on_missing_reference))
    if getattr(args, "batch_size", None) is not None:
        settings = settings.with_overrides(batch_size=parse_batch_size(args.batch_size))
    return settings


def print_result(result: MigrationResult) -> None:
    stats = result.stats
    print("\n" + "=" * 60)
    print("Migration Summary")
    print("=" * 60)
    print(f"Result: {result.message}")
    if result.organization_id:
        print(f"Organization ID: {result.organization_id}")
    if result.failed_stage:
        print(f"Failed during: {result.failed_stage}")
    print(f"Organizations created: {stats.organizationsCreated}")
    print(f"Departments migrated:  {stats.departmentsMigrated}")
    print(f"Employees migrated:    {stats.employeesMigrated}")
    print(f"KPIs migrated:         {stats.kpisMigrated}")
    print(f"KPI records migrated:  {stats.recordsMigrated}")
    print(f"Reward programs:       {stats.programsCreated}")
    if result.dry_run:
        print("\n[DRY RUN] No changes were written to the database")


def cmd_run(args: argparse.Namespace, settings: MigrationSettings) -> int:
    source = FirestoreStore.connect(settings.project, settings.source_database)
    target = FirestoreStore.connect(settings.project, settings.target_database)

    blocking = None if settings.dry_run else ledger.blocking_status(target, MIGRATION_ID, settings.target_database)
    if blocking == ledger.APPLIED and not args.force:
        print(f"❌ Migration {MIGRATION_ID} is already applied in {settings.target_database}.", file=sys.stderr)
        print("Roll it back first (kpi-migrate rollback), or pass --force to create a second copy.", file=sys.stderr)
        return 1
    if blocking == ledger.FAILED:
        print(f"❌ Last run of {MIGRATION_ID} in {settings.target_database} failed and left partial data.", file=sys.stderr)
        print("Run kpi-migrate rollback before migrating again.", file=sys.stderr)
        return 1

    reporter = LoggingProgressReporter() if args.no_progress else TqdmProgressReporter()
    result = run_migration(source, target, settings, on_progress=reporter)
    if not settings.dry_run:
        ledger.record_run(target, MIGRATION_ID, settings.target_database, result, applied_by=args.by)
    print_result(result)
    return 0 if result.success else 1


def cmd_rollback(args: argparse.Namespace, settings: MigrationSettings) -> int:
    target = FirestoreStore.connect(settings.project, settings.target_database)
    collections = settings.layout.target_collections()

    if not settings.dry_run and not args.yes:
        print(f"This deletes every document in {', '.join(collections)} "
              f"(database {settings.target_database}).")
        response = input("Continue? (yes/no): ")
        if response.strip().lower() != "yes":
            print("Cancelled.")
            return 1

    coordinator = RollbackCoordinator(target, settings)
    ok = coordinator.rollback_migration()
    for collection, count in coordinator.last_counts.items():
        print(f"  {collection}: {count} {'would be deleted' if settings.dry_run else 'deleted'}")
    if not ok:
        print("❌ Rollback failed, see log for details", file=sys.stderr)
        return 1
    if not settings.dry_run:
        ledger.record_rollback(target, MIGRATION_ID, settings.target_database,
                               coordinator.last_counts, applied_by=args.by)
    print("✅ Rollback finished" if not settings.dry_run else "[DRY RUN] Nothing was deleted")
    return 0


def cmd_validate(args: argparse.Namespace, settings: MigrationSettings) -> int:
    target = FirestoreStore.connect(settings.project, settings.target_database)
    report = validate_migration(target, args.organization, settings)

    print(f"\nOrganization {args.organization}: {'found' if report.organization_found else 'NOT FOUND'}")
    for collection, count in report.counts.items():
        print(f"  {collection}: {count}")
    print(f"Documents scoped to another organization: {len(report.misscoped)}")
    print(f"Orphaned references: {len(report.orphaned)}")
    for item in report.orphaned[:20]:
        print(f"  - {item['collection']}/{item['id']}.{item['field']} -> {item['value']}")
    if len(report.orphaned) > 20:
        print(f"  ... and {len(report.orphaned) - 20} more")
    blanks = {k: v for k, v in report.unresolved.items() if v}
    if blanks:
        print("Empty references: " + ", ".join(f"{k}={v}" for k, v in blanks.items()))

    if args.out:
        report.write_json(args.out)
        print(f"[ok] wrote report to {args.out}")
    print("✅ Validation passed" if report.is_valid else "❌ Validation failed")
    return 0 if report.is_valid else 1


def cmd_status(args: argparse.Namespace, settings: MigrationSettings) -> int:
    target = FirestoreStore.connect(settings.project, settings.target_database)
    runs = ledger.list_runs(target, settings.target_database)
    if not runs:
        print(f"No migrations recorded for {settings.target_database}")
        return 0
    print(f"\nFound {len(runs)} migrations in {settings.target_database}:\n")
    for run in runs:
        print(f"  {run.get('migration_id')}: {run.get('status')}")
        print(f"    Organization: {run.get('organization_id')}")
        print(f"    Recorded: {run.get('recorded_at')}")
        print(f"    By: {run.get('applied_by')}")
        print()
    return 0


def cmd_info(args: argparse.Namespace, settings: MigrationSettings) -> int:
    info = get_migration_info(MIGRATION_ID)
    if not info:
        print(f"Migration {MIGRATION_ID} not found in migrations.yaml")
        return 1
    print(f"\nMigration: {info.get('name')}")
    print(f"ID: {info.get('id')}")
    print(f"Description: {info.get('description')}")
    deps = info.get("dependencies", [])
    if deps:
        print(f"Dependencies: {', '.join(deps)}")
    print(f"Reversible: {info.get('reversible', False)}")
    return 0


COMMANDS = {
    "run": cmd_run,
    "rollback": cmd_rollback,
    "validate": cmd_validate,
    "status": cmd_status,
    "info": cmd_info,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    configure_logging(args.log_level)
    try:
        settings = settings_from_args(args)
    except ConfigurationError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 2
    return COMMANDS[args.command](args, settings)


if __name__ == "__main__":
    sys.exit(main())
