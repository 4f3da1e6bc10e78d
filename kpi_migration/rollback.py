"""Compensating rollback: empty every multi-tenant target collection."""

import logging
from typing import Dict, Optional

from .batch_writer import BatchWriter
from .config import MigrationSettings
from .gateway import DocumentStore

logger = logging.getLogger(__name__)


class RollbackCoordinator:
    """
    Deletes every document in the eight target collections, dependents first.

    Only the target store is touched; legacy collections were never written.
    Nothing checks that a migration actually ran before deleting.
    """

    def __init__(self, target: DocumentStore, settings: Optional[MigrationSettings] = None):
        self.target = target
        self.settings = settings or MigrationSettings()
        self.last_counts: Dict[str, int] = {}

    def rollback_migration(self) -> bool:
        self.last_counts = {}
        try:
            for collection in reversed(self.settings.layout.target_collections()):
                self.last_counts[collection] = self._empty(collection)
        except Exception:
            logger.exception("Rollback failed after %s", ", ".join(self.last_counts) or "no collections")
            return False
        logger.info("Rollback %s: %s", "preview" if self.settings.dry_run else "finished", self.last_counts)
        return True

    def _empty(self, collection: str) -> int:
        writer = BatchWriter(self.target, self.settings.batch_size, dry_run=self.settings.dry_run)
        for doc_id in self.target.iter_ids(collection):
            writer.delete(collection, doc_id)
        deleted = writer.commit()
        logger.info("%s %d documents from %s", "Would delete" if self.settings.dry_run else "Deleted",
                    deleted, collection)
        return deleted


def rollback_migration(target: DocumentStore, settings: Optional[MigrationSettings] = None) -> bool:
    return RollbackCoordinator(target, settings).rollback_migration()
