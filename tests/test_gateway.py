from unittest.mock import MagicMock, call

import pytest
from google.api_core.exceptions import ServiceUnavailable

from kpi_migration.batch_writer import CREATE, DELETE, WriteOperation
from kpi_migration.errors import StoreError
from kpi_migration.gateway import PAGE_SIZE, Document, FirestoreStore, InMemoryStore


def snapshot(doc_id, data):
    snap = MagicMock()
    snap.id = doc_id
    snap.to_dict.return_value = data
    return snap


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def store(client):
    return FirestoreStore(client, name="tenants")


def test_read_all_streams_collection(store, client):
    client.collection.return_value.stream.return_value = [snapshot("a", {"name": "IT"}), snapshot("b", None)]

    docs = store.read_all("departments")

    client.collection.assert_called_with("departments")
    assert docs == [Document("a", {"name": "IT"}), Document("b", {})]


def test_read_failure_becomes_store_error(store, client):
    client.collection.return_value.stream.side_effect = ServiceUnavailable("down")
    with pytest.raises(StoreError) as exc:
        store.read_all("departments")
    assert exc.value.collection == "departments"


def test_allocate_id_uses_client_side_ids(store, client):
    client.collection.return_value.document.return_value.id = "auto123"
    assert store.allocate_id("kpis") == "auto123"
    client.collection.return_value.document.assert_called_with()


def test_commit_builds_one_batch(store, client):
    batch = client.batch.return_value
    refs = client.collection.return_value.document

    store.commit([
        WriteOperation(CREATE, "kpis", "n1", {"name": "X"}),
        WriteOperation(DELETE, "kpis", "old"),
    ])

    assert refs.call_args_list == [call("n1"), call("old")]
    batch.set.assert_called_once_with(refs.return_value, {"name": "X"})
    batch.delete.assert_called_once_with(refs.return_value)
    batch.commit.assert_called_once_with()


def test_commit_failure_becomes_store_error(store, client):
    client.batch.return_value.commit.side_effect = ServiceUnavailable("down")
    with pytest.raises(StoreError):
        store.commit([WriteOperation(CREATE, "kpis", "n1", {})])


def test_commit_rejects_oversized_batches(store, client):
    ops = [WriteOperation(DELETE, "kpis", str(i)) for i in range(501)]
    with pytest.raises(StoreError):
        store.commit(ops)
    client.batch.assert_not_called()


def test_iter_ids_pages_through_document_names(store, client):
    first, second = snapshot("a", None), snapshot("b", None)
    ordered = client.collection.return_value.select.return_value.order_by.return_value
    ordered.limit.return_value.stream.return_value = [first, second]
    ordered.start_after.return_value.limit.return_value.stream.return_value = []

    assert list(store.iter_ids("kpis")) == ["a", "b"]
    client.collection.return_value.select.assert_called_with([])
    ordered.limit.assert_called_with(PAGE_SIZE)
    ordered.start_after.assert_called_once_with(second)


def test_get_and_set_document(store, client):
    ref = client.collection.return_value.document.return_value
    ref.get.return_value.exists = True
    ref.get.return_value.to_dict.return_value = {"status": "applied"}

    assert store.get_document("_migrations", "x") == {"status": "applied"}
    store.set_document("_migrations", "x", {"status": "failed"}, merge=True)
    ref.set.assert_called_once_with({"status": "failed"}, merge=True)

    ref.get.return_value.exists = False
    assert store.get_document("_migrations", "x") is None


class TestInMemoryStore:
    def test_create_batch_and_delete_all(self):
        store = InMemoryStore(max_batch_size=2)
        ids = store.create_batch("kpis", [{"n": i} for i in range(5)])

        assert len(set(ids)) == 5
        assert store.count("kpis") == 5
        assert store.delete_all("kpis") == 5
        assert store.read_all("kpis") == []

    def test_commit_is_atomic(self):
        store = InMemoryStore()
        with pytest.raises(ValueError):
            store.commit([
                WriteOperation(CREATE, "kpis", "a", {}),
                WriteOperation("upsert", "kpis", "b", {}),
            ])
        assert store.documents("kpis") == {}

    def test_reads_return_copies(self):
        store = InMemoryStore()
        store.seed("kpis", {"a": {"tags": ["x"]}})
        store.read_all("kpis")[0].fields["tags"].append("y")
        assert store.documents("kpis")["a"] == {"tags": ["x"]}
