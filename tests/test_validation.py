import json

from kpi_migration.orchestrator import run_migration
from kpi_migration.validation import validate_migration


def migrated(legacy_data, target, settings):
    result = run_migration(legacy_data, target, settings)
    assert result.success
    return result.organization_id


def test_clean_migration_is_valid(legacy_data, target, settings):
    org_id = migrated(legacy_data, target, settings)

    report = validate_migration(target, org_id, settings)

    assert report.is_valid
    assert report.counts == {
        "organizations": 1,
        "departments": 2,
        "employees": 2,
        "kpiCategories": 5,
        "kpis": 1,
        "kpiRecords": 2,
        "rewardPrograms": 2,
        "rewardCalculations": 1,
    }
    assert report.orphaned == []
    assert report.unresolved["employees.departmentId"] == 0


def test_unknown_organization_is_invalid(legacy_data, target, settings):
    migrated(legacy_data, target, settings)
    report = validate_migration(target, "nope", settings)
    assert not report.organization_found
    assert not report.is_valid
    assert report.misscoped


def test_blank_references_are_counted_not_orphaned(source, target, settings):
    source.seed("employees", {"e1": {"departmentId": "gone"}})
    org_id = migrated(source, target, settings)

    report = validate_migration(target, org_id, settings)

    assert report.is_valid
    assert report.unresolved["employees.departmentId"] == 1


def test_dangling_reference_is_orphaned(legacy_data, target, settings):
    org_id = migrated(legacy_data, target, settings)
    kpi_id = next(iter(target.documents("kpis")))
    target.documents("kpis")[kpi_id]["categoryId"] = "deleted-category"

    report = validate_migration(target, org_id, settings)

    assert not report.is_valid
    assert report.orphaned == [{
        "collection": "kpis", "id": kpi_id, "field": "categoryId", "value": "deleted-category",
    }]


def test_non_string_reference_is_orphaned(legacy_data, target, settings):
    org_id = migrated(legacy_data, target, settings)
    employee_id = next(iter(target.documents("employees")))
    target.documents("employees")[employee_id]["departmentId"] = ["d1", "d2"]

    report = validate_migration(target, org_id, settings)

    assert not report.is_valid
    assert report.orphaned == [{
        "collection": "employees", "id": employee_id, "field": "departmentId", "value": "['d1', 'd2']",
    }]


def test_report_writes_json(legacy_data, target, settings, tmp_path):
    org_id = migrated(legacy_data, target, settings)
    out = tmp_path / "report.json"

    validate_migration(target, org_id, settings).write_json(str(out))

    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["organizationId"] == org_id
    assert data["valid"] is True
    assert data["counts"]["departments"] == 2
