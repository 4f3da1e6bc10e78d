"""Exception types raised by the migration engine."""

from typing import Optional


class MigrationError(Exception):
    """Base class for every error raised by kpi_migration."""


class ConfigurationError(MigrationError):
    pass


class StoreError(MigrationError):
    """A read or commit against the document store failed."""

    def __init__(self, message: str, collection: Optional[str] = None):
        super().__init__(message)
        self.collection = collection


class BatchCommitError(StoreError):
    """One chunk of a stage's write failed; earlier chunks were compensated."""

    def __init__(self, message: str, collection: Optional[str] = None,
                 committed: int = 0, compensated: int = 0):
        super().__init__(message, collection)
        self.committed = committed
        self.compensated = compensated


class MissingReferenceError(MigrationError):
    """A foreign key has no entry in its remap table (``fail`` policy)."""

    def __init__(self, entity: str, field: str, legacy_id: str, reference: str):
        super().__init__(
            f"{entity} {legacy_id}: {field}={reference!r} has no migrated counterpart"
        )
        self.entity = entity
        self.field = field
        self.legacy_id = legacy_id
        self.reference = reference
