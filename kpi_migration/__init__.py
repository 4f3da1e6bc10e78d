"""Single-tenant to multi-tenant migration engine for the KPI application's Firestore data."""

from .config import CollectionLayout, MigrationSettings
from .errors import (
    BatchCommitError,
    ConfigurationError,
    MigrationError,
    MissingReferenceError,
    StoreError,
)
from .gateway import Document, DocumentStore, FirestoreStore, InMemoryStore
from .orchestrator import MigrationOrchestrator, MigrationResult, MigrationStats, run_migration
from .progress import MigrationProgress, ProgressStatus
from .remap import MissingReferencePolicy, RemapTable
from .rollback import RollbackCoordinator, rollback_migration
from .validation import ValidationReport, validate_migration

__all__ = [
    "BatchCommitError",
    "CollectionLayout",
    "ConfigurationError",
    "Document",
    "DocumentStore",
    "FirestoreStore",
    "InMemoryStore",
    "MigrationError",
    "MigrationOrchestrator",
    "MigrationProgress",
    "MigrationResult",
    "MigrationSettings",
    "MigrationStats",
    "MissingReferenceError",
    "MissingReferencePolicy",
    "ProgressStatus",
    "RemapTable",
    "RollbackCoordinator",
    "StoreError",
    "ValidationReport",
    "rollback_migration",
    "run_migration",
    "validate_migration",
]
