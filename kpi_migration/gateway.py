"""
Document store gateway.

The engine only needs: read a whole collection, mint a document id, and
commit a bounded list of create/delete operations atomically. FirestoreStore
backs this with google-cloud-firestore; InMemoryStore is a dict-backed
stand-in with the same contract.
"""

import copy
import logging
import uuid
from typing import Any, Callable, Dict, Iterable, Iterator, List, NamedTuple, Optional, Sequence

from google.api_core.exceptions import GoogleAPICallError
from google.cloud import firestore

from .batch_writer import CREATE, DELETE, BatchWriter, WriteOperation
from .errors import StoreError

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000      # how many doc snapshots to fetch per page
MAX_BATCH_SIZE = 500  # Firestore max per commit is 500


class Document(NamedTuple):
    id: str
    fields: Dict[str, Any]


class DocumentStore:
    """Minimal document-store contract used by the migration engine."""

    name = "store"
    max_batch_size = MAX_BATCH_SIZE

    def read_all(self, collection: str) -> List[Document]:
        raise NotImplementedError

    def allocate_id(self, collection: str) -> str:
        raise NotImplementedError

    def commit(self, operations: Sequence[WriteOperation]) -> None:
        """Apply all operations or none of them."""
        raise NotImplementedError

    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def set_document(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        raise NotImplementedError

    def iter_ids(self, collection: str) -> Iterator[str]:
        for doc in self.read_all(collection):
            yield doc.id

    def count(self, collection: str) -> int:
        return sum(1 for _ in self.iter_ids(collection))

    def create_batch(self, collection: str, documents: Iterable[Dict[str, Any]],
                     batch_size: Optional[int] = None) -> List[str]:
        writer = BatchWriter(self, batch_size)
        ids = [writer.create(collection, data) for data in documents]
        writer.commit()
        return ids

    def delete_all(self, collection: str, batch_size: Optional[int] = None) -> int:
        writer = BatchWriter(self, batch_size)
        for doc_id in self.iter_ids(collection):
            writer.delete(collection, doc_id)
        return writer.commit()


# =====================
# Firestore
# =====================
class FirestoreStore(DocumentStore):
    def __init__(self, client: firestore.Client, name: Optional[str] = None):
        self.client = client
        self.name = name or "(default)"

    @classmethod
    def connect(cls, project: Optional[str], database: str) -> "FirestoreStore":
        logger.info("Initializing Firestore client: project=%s, database=%s", project, database)
        return cls(firestore.Client(project=project, database=database), name=database)

    def read_all(self, collection: str) -> List[Document]:
        try:
            return [Document(s.id, s.to_dict() or {}) for s in self.client.collection(collection).stream()]
        except GoogleAPICallError as e:
            raise StoreError(f"Reading {collection} from {self.name} failed: {e}", collection) from e

    def allocate_id(self, collection: str) -> str:
        return self.client.collection(collection).document().id

    def commit(self, operations: Sequence[WriteOperation]) -> None:
        if len(operations) > self.max_batch_size:
            raise StoreError(f"Batch of {len(operations)} exceeds {self.max_batch_size} operations")
        batch = self.client.batch()
        for op in operations:
            ref = self.client.collection(op.collection).document(op.doc_id)
            if op.kind == CREATE:
                batch.set(ref, op.data)
            elif op.kind == DELETE:
                batch.delete(ref)
            else:
                raise ValueError(f"Unknown write operation {op.kind!r}")
        try:
            batch.commit()
        except GoogleAPICallError as e:
            raise StoreError(f"Batch commit to {self.name} failed: {e}") from e

    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            snap = self.client.collection(collection).document(doc_id).get()
        except GoogleAPICallError as e:
            raise StoreError(f"Reading {collection}/{doc_id} failed: {e}", collection) from e
        return snap.to_dict() if snap.exists else None

    def set_document(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        try:
            self.client.collection(collection).document(doc_id).set(data, merge=merge)
        except GoogleAPICallError as e:
            raise StoreError(f"Writing {collection}/{doc_id} failed: {e}", collection) from e

    def iter_ids(self, collection: str) -> Iterator[str]:
        """
        Yield document ids in stable name order, paged.
        Uses select([]) to fetch only document names (no fields).
        """
        q = self.client.collection(collection)
        last = None
        while True:
            qq = q.select([]).order_by("__name__")
            if last is not None:
                qq = qq.start_after(last)
            try:
                docs = list(qq.limit(PAGE_SIZE).stream())
            except GoogleAPICallError as e:
                raise StoreError(f"Listing {collection} failed: {e}", collection) from e
            if not docs:
                break
            for d in docs:
                yield d.id
            last = docs[-1]


# =====================
# In-memory
# =====================
class InMemoryStore(DocumentStore):
    """
    Dict-backed store. ``call_log`` (optionally shared between stores) records
    ``(store, action, collection)`` tuples in call order. ``fail_on_commit``
    holds 1-based commit numbers that raise StoreError instead of applying.
    """

    def __init__(self, name: str = "memory", call_log: Optional[list] = None,
                 max_batch_size: int = MAX_BATCH_SIZE,
                 fail_on_commit: Iterable[int] = (),
                 fail_when: Optional[Callable[[Sequence[WriteOperation]], bool]] = None):
        self.name = name
        self.max_batch_size = max_batch_size
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.call_log = call_log if call_log is not None else []
        self.fail_on_commit = set(fail_on_commit)
        self.fail_when = fail_when
        self.commits = 0
        self._issued = set()

    def seed(self, collection: str, documents: Dict[str, Dict[str, Any]]) -> None:
        bucket = self.collections.setdefault(collection, {})
        for doc_id, data in documents.items():
            bucket[doc_id] = copy.deepcopy(data)
            self._issued.add(doc_id)

    def documents(self, collection: str) -> Dict[str, Dict[str, Any]]:
        return self.collections.get(collection, {})

    def read_all(self, collection: str) -> List[Document]:
        self.call_log.append((self.name, "read_all", collection))
        return [Document(k, copy.deepcopy(v)) for k, v in self.documents(collection).items()]

    def allocate_id(self, collection: str) -> str:
        while True:
            doc_id = uuid.uuid4().hex[:20]
            if doc_id not in self._issued:
                self._issued.add(doc_id)
                return doc_id

    def commit(self, operations: Sequence[WriteOperation]) -> None:
        self.commits += 1
        collections = sorted({op.collection for op in operations})
        self.call_log.append((self.name, "commit", ",".join(collections)))
        if len(operations) > self.max_batch_size:
            raise StoreError(f"Batch of {len(operations)} exceeds {self.max_batch_size} operations")
        if self.commits in self.fail_on_commit or (self.fail_when and self.fail_when(operations)):
            raise StoreError(f"Simulated failure on commit #{self.commits}")

        staged = copy.deepcopy(self.collections)
        for op in operations:
            bucket = staged.setdefault(op.collection, {})
            if op.kind == CREATE:
                bucket[op.doc_id] = copy.deepcopy(op.data)
            elif op.kind == DELETE:
                bucket.pop(op.doc_id, None)
            else:
                raise ValueError(f"Unknown write operation {op.kind!r}")
        self.collections = staged

    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        data = self.documents(collection).get(doc_id)
        return copy.deepcopy(data) if data is not None else None

    def set_document(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        self.call_log.append((self.name, "set", collection))
        bucket = self.collections.setdefault(collection, {})
        if merge and doc_id in bucket:
            bucket[doc_id].update(copy.deepcopy(data))
        else:
            bucket[doc_id] = copy.deepcopy(data)
