"""
Accumulate-then-flush writer over a store's bounded atomic batch.

A stage queues all of its creates, then commits once. The operations are
split into chunks of at most ``batch_size``; if a later chunk fails the
documents created by the earlier chunks are deleted again so the stage
leaves nothing behind.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import BatchCommitError

logger = logging.getLogger(__name__)

CREATE = "create"
DELETE = "delete"


@dataclass(frozen=True)
class WriteOperation:
    kind: str
    collection: str
    doc_id: str
    data: Optional[Dict[str, Any]] = field(default=None, compare=False)


class BatchWriter:
    def __init__(self, store, batch_size: Optional[int] = None, dry_run: bool = False):
        self.store = store
        self.batch_size = min(batch_size or store.max_batch_size, store.max_batch_size)
        self.dry_run = dry_run
        self._pending: List[WriteOperation] = []
        self.committed_ops = 0
        self.chunks_committed = 0

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def pending(self) -> List[WriteOperation]:
        return list(self._pending)

    def create(self, collection: str, data: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        """Queue a document creation and return its (pre-allocated) id."""
        doc_id = doc_id or self.store.allocate_id(collection)
        self._pending.append(WriteOperation(CREATE, collection, doc_id, data))
        return doc_id

    def delete(self, collection: str, doc_id: str) -> None:
        self._pending.append(WriteOperation(DELETE, collection, doc_id))

    def _chunks(self, ops: List[WriteOperation]) -> List[List[WriteOperation]]:
        return [ops[i:i + self.batch_size] for i in range(0, len(ops), self.batch_size)]

    def commit(self) -> int:
        """Commit all pending operations. Returns the number of operations written."""
        ops = self._pending
        self._pending = []
        if not ops:
            return 0

        if self.dry_run:
            logger.info("DRY RUN: would commit %d operations", len(ops))
            return len(ops)

        chunks = self._chunks(ops)
        done: List[WriteOperation] = []
        for index, chunk in enumerate(chunks, start=1):
            try:
                self.store.commit(chunk)
            except Exception as e:
                collection = chunk[0].collection
                logger.error("Chunk %d/%d for %s failed: %s", index, len(chunks), collection, e)
                compensated = self._compensate(done)
                raise BatchCommitError(
                    f"Commit of {collection} failed at chunk {index}/{len(chunks)}: {e}",
                    collection=collection,
                    committed=len(done),
                    compensated=compensated,
                ) from e
            done.extend(chunk)
            self.chunks_committed += 1
            logger.debug("Committed chunk %d/%d (%d ops)", index, len(chunks), len(chunk))

        self.committed_ops += len(done)
        return len(done)

    def _compensate(self, done: List[WriteOperation]) -> int:
        """Delete what earlier chunks created. Returns how many were removed."""
        creates = [op for op in done if op.kind == CREATE]
        if not creates:
            return 0
        logger.warning("Compensating %d documents from committed chunks", len(creates))
        undo = [WriteOperation(DELETE, op.collection, op.doc_id) for op in creates]
        removed = 0
        for i in range(0, len(undo), self.batch_size):
            chunk = undo[i:i + self.batch_size]
            try:
                self.store.commit(chunk)
            except Exception:
                logger.exception("Compensating delete failed; %d documents remain", len(undo) - removed)
                return removed
            removed += len(chunk)
        return removed
