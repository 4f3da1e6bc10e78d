from kpi_migration.gateway import InMemoryStore
from kpi_migration.orchestrator import run_migration
from kpi_migration.rollback import RollbackCoordinator, rollback_migration

from .conftest import TARGET_COLLECTIONS


def test_rollback_empties_every_target_collection(legacy_data, target, settings):
    assert run_migration(legacy_data, target, settings).success
    legacy_before = {c: dict(legacy_data.documents(c)) for c in legacy_data.collections}

    coordinator = RollbackCoordinator(target, settings)
    assert coordinator.rollback_migration() is True

    for collection in TARGET_COLLECTIONS:
        assert target.read_all(collection) == []
    assert coordinator.last_counts["departments"] == 2
    assert coordinator.last_counts["kpiCategories"] == 5
    assert {c: dict(legacy_data.documents(c)) for c in legacy_data.collections} == legacy_before


def test_rollback_deletes_dependents_first(settings):
    target = InMemoryStore()
    for collection in TARGET_COLLECTIONS:
        target.seed(collection, {f"{collection}-1": {}})

    assert rollback_migration(target, settings)
    assert [entry[2] for entry in target.call_log if entry[1] == "commit"] == list(reversed(TARGET_COLLECTIONS))


def test_rollback_without_migration_succeeds(settings):
    assert rollback_migration(InMemoryStore(), settings) is True


def test_rollback_keeps_the_ledger(settings):
    target = InMemoryStore()
    target.seed("_migrations", {"multi_tenant_v1_tenants": {"status": "applied"}})
    target.seed("kpis", {"k": {}})
    assert rollback_migration(target, settings)
    assert target.documents("_migrations")


def test_rollback_failure_returns_false(settings):
    target = InMemoryStore(fail_when=lambda ops: ops[0].collection == "kpis")
    target.seed("kpis", {"k1": {}})
    target.seed("rewardCalculations", {"c1": {}})

    coordinator = RollbackCoordinator(target, settings)
    assert coordinator.rollback_migration() is False
    assert coordinator.last_counts == {"rewardCalculations": 1, "kpiRecords": 0, "rewardPrograms": 0}
    assert target.documents("kpis") == {"k1": {}}


def test_dry_run_rollback_only_counts(settings):
    target = InMemoryStore()
    target.seed("employees", {"a": {}, "b": {}})

    coordinator = RollbackCoordinator(target, settings.with_overrides(dry_run=True))
    assert coordinator.rollback_migration() is True
    assert coordinator.last_counts["employees"] == 2
    assert len(target.documents("employees")) == 2
