"""
Migration ledger kept in the ``_migrations`` collection of the target database.

One document per (migration, database). The ledger is not a target
collection, so rollback leaves it in place.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .config import MIGRATIONS_COLLECTION
from .gateway import DocumentStore
from .orchestrator import MigrationResult

logger = logging.getLogger(__name__)

APPLIED = "applied"
FAILED = "failed"
ROLLED_BACK = "rolled_back"


def _doc_id(migration_id: str, database: str) -> str:
    return f"{migration_id}_{database}"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def record_run(store: DocumentStore, migration_id: str, database: str, result: MigrationResult,
               applied_by: str = "unknown") -> Dict[str, Any]:
    entry = {
        "migration_id": migration_id,
        "environment": database,
        "status": APPLIED if result.success else FAILED,
        "message": result.message,
        "stats": result.stats.to_dict(),
        "failed_stage": result.failed_stage,
        "organization_id": result.organization_id,
        "started_at": result.started_at,
        "finished_at": result.finished_at,
        "applied_by": applied_by,
        "recorded_at": _now(),
    }
    store.set_document(MIGRATIONS_COLLECTION, _doc_id(migration_id, database), entry, merge=True)
    logger.info("Recorded migration %s as %s in %s", migration_id, entry["status"], database)
    return entry


def record_rollback(store: DocumentStore, migration_id: str, database: str, deleted: Dict[str, int],
                    applied_by: str = "unknown") -> None:
    store.set_document(MIGRATIONS_COLLECTION, _doc_id(migration_id, database), {
        "migration_id": migration_id,
        "environment": database,
        "status": ROLLED_BACK,
        "deleted": dict(deleted),
        "rolled_back_by": applied_by,
        "rolled_back_at": _now(),
        "recorded_at": _now(),
    }, merge=True)
    logger.info("Recorded rollback of %s in %s", migration_id, database)


def get_status(store: DocumentStore, migration_id: str, database: str) -> Optional[Dict[str, Any]]:
    return store.get_document(MIGRATIONS_COLLECTION, _doc_id(migration_id, database))


def is_applied(store: DocumentStore, migration_id: str, database: str) -> bool:
    status = get_status(store, migration_id, database)
    return bool(status) and status.get("status") == APPLIED


def blocking_status(store: DocumentStore, migration_id: str, database: str) -> Optional[str]:
    """Status that forbids a fresh run: applied, or failed with partial writes left behind."""
    status = get_status(store, migration_id, database)
    if status and status.get("status") in (APPLIED, FAILED):
        return status["status"]
    return None


def list_runs(store: DocumentStore, database: Optional[str] = None) -> List[Dict[str, Any]]:
    runs = [d.fields for d in store.read_all(MIGRATIONS_COLLECTION)]
    if database:
        runs = [r for r in runs if r.get("environment") == database]
    return sorted(runs, key=lambda r: r.get("recorded_at") or "", reverse=True)
