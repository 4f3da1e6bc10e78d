import pytest

from kpi_migration.batch_writer import BatchWriter
from kpi_migration.errors import BatchCommitError
from kpi_migration.gateway import InMemoryStore


def queue(writer, n, collection="departments"):
    return [writer.create(collection, {"n": i}) for i in range(n)]


def test_commit_splits_into_bounded_chunks():
    store = InMemoryStore()
    writer = BatchWriter(store, batch_size=2)
    ids = queue(writer, 5)

    assert writer.commit() == 5
    assert store.commits == 3
    assert set(store.documents("departments")) == set(ids)
    assert len(writer) == 0


def test_batch_size_never_exceeds_store_limit():
    store = InMemoryStore(max_batch_size=3)
    writer = BatchWriter(store, batch_size=400)
    assert writer.batch_size == 3
    queue(writer, 7)
    writer.commit()
    assert store.commits == 3


def test_empty_commit_does_not_touch_store():
    store = InMemoryStore()
    assert BatchWriter(store).commit() == 0
    assert store.commits == 0


def test_created_ids_are_unique():
    store = InMemoryStore()
    writer = BatchWriter(store)
    ids = queue(writer, 50)
    assert len(set(ids)) == 50


def test_failed_chunk_compensates_earlier_chunks():
    store = InMemoryStore(fail_on_commit={3})
    store.seed("departments", {"keep": {"name": "existing"}})
    writer = BatchWriter(store, batch_size=2)
    queue(writer, 5)

    with pytest.raises(BatchCommitError) as exc:
        writer.commit()

    assert exc.value.committed == 4
    assert exc.value.compensated == 4
    assert exc.value.collection == "departments"
    assert list(store.documents("departments")) == ["keep"]


def test_failed_compensation_still_raises_original_error():
    store = InMemoryStore(fail_on_commit={2, 3})
    writer = BatchWriter(store, batch_size=2)
    queue(writer, 3)

    with pytest.raises(BatchCommitError) as exc:
        writer.commit()

    assert exc.value.compensated == 0
    assert len(store.documents("departments")) == 2


def test_deletes_are_chunked_too():
    store = InMemoryStore()
    store.seed("kpis", {f"k{i}": {} for i in range(5)})
    writer = BatchWriter(store, batch_size=2)
    for doc in store.read_all("kpis"):
        writer.delete("kpis", doc.id)
    assert writer.commit() == 5
    assert store.documents("kpis") == {}


def test_dry_run_never_commits():
    store = InMemoryStore()
    writer = BatchWriter(store, dry_run=True)
    queue(writer, 3)
    assert writer.commit() == 3
    assert store.commits == 0
    assert store.documents("departments") == {}
