from datetime import datetime, timezone

import pytest

from kpi_migration.config import MigrationSettings
from kpi_migration.gateway import InMemoryStore

FIXED_NOW = datetime(2026, 10, 19, 8, 30, tzinfo=timezone.utc)

TARGET_COLLECTIONS = [
    "organizations",
    "departments",
    "employees",
    "kpiCategories",
    "kpis",
    "kpiRecords",
    "rewardPrograms",
    "rewardCalculations",
]


@pytest.fixture
def call_log():
    return []


@pytest.fixture
def source(call_log):
    return InMemoryStore("legacy", call_log=call_log)


@pytest.fixture
def target(call_log):
    return InMemoryStore("tenants", call_log=call_log)


@pytest.fixture
def settings():
    return MigrationSettings(project="test-project", source_database="legacy", target_database="tenants")


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def legacy_data(source):
    """A small but complete legacy dataset; every collection has documents."""
    source.seed("departments", {
        "d1": {"name": "IT", "description": "Tech", "managerId": "e1", "budget": 1000,
               "createdAt": "2024-01-01T00:00:00Z", "isActive": True},
        "d2": {"name": "Human Resources", "createdAt": "2024-01-02T00:00:00Z", "isActive": True},
    })
    source.seed("employees", {
        "e1": {"name": "Ann", "email": "ann@example.com", "departmentId": "d1", "role": "admin",
               "employeeId": "NV001", "position": "Lead", "isActive": True},
        "e2": {"name": "Bob", "email": "bob@example.com", "departmentId": "d2", "role": "manager",
               "isActive": False},
    })
    source.seed("kpis", {
        "k1": {"name": "Tickets Closed", "departmentId": "d1", "unit": "tickets",
               "frequency": "monthly", "target": 100},
    })
    source.seed("kpiRecords", {
        "r1": {"kpiId": "k1", "employeeId": "e1", "period": "2024-05", "target": 100, "actual": 80,
               "status": "approved", "attachments": ["a.pdf"]},
        "r2": {"kpiId": "k1", "employeeId": "e2", "target": 0, "actual": 5},
    })
    source.seed("rewardCalculations", {
        "c1": {"employeeId": "e1", "period": "2024-05", "kpiScore": 90, "netAmount": 500000},
    })
    return source
