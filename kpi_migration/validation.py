"""
Read-only post-migration checks for one organization.

Counts the organization's documents per target collection, lists documents
scoped to another organization, and lists foreign keys that point at no
migrated document.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

from .config import ENTITY_KEYS, MigrationSettings
from .gateway import DocumentStore

logger = logging.getLogger(__name__)

# (entity, field path, referenced entity)
REFERENCES: List[Tuple[str, str, str]] = [
    ("employees", "departmentId", "departments"),
    ("kpis", "departmentId", "departments"),
    ("kpis", "categoryId", "kpiCategories"),
    ("kpiRecords", "employeeId", "employees"),
    ("kpiRecords", "kpiId", "kpis"),
    ("rewardCalculations", "employeeId", "employees"),
]


@dataclass
class ValidationReport:
    organization_id: str
    organization_found: bool = False
    counts: Dict[str, int] = field(default_factory=dict)
    misscoped: List[Dict[str, str]] = field(default_factory=list)
    orphaned: List[Dict[str, str]] = field(default_factory=list)
    unresolved: Dict[str, int] = field(default_factory=dict)
    generated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def is_valid(self) -> bool:
        return self.organization_found and not self.misscoped and not self.orphaned

    def to_dict(self) -> Dict[str, Any]:
        return {
            "organizationId": self.organization_id,
            "generatedAt": self.generated_at,
            "valid": self.is_valid,
            "organizationFound": self.organization_found,
            "counts": self.counts,
            "misscoped": self.misscoped,
            "orphaned": self.orphaned,
            "unresolved": self.unresolved,
        }

    def write_json(self, path: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, ensure_ascii=False, indent=2)


def validate_migration(target: DocumentStore, organization_id: str,
                       settings: Optional[MigrationSettings] = None) -> ValidationReport:
    settings = settings or MigrationSettings()
    layout = settings.layout
    report = ValidationReport(organization_id)

    docs: Dict[str, Dict[str, Dict[str, Any]]] = {}
    for key in ENTITY_KEYS:
        docs[key] = {d.id: d.fields for d in target.read_all(layout.target_name(key))}

    report.organization_found = organization_id in docs["organizations"]
    report.counts["organizations"] = 1 if report.organization_found else 0

    for key in ENTITY_KEYS[1:]:
        owned = 0
        for doc_id, data in docs[key].items():
            scope = data.get("organizationId")
            if scope == organization_id:
                owned += 1
            else:
                report.misscoped.append({"collection": key, "id": doc_id, "organizationId": str(scope)})
        report.counts[key] = owned

    for entity, field_name, referenced in REFERENCES:
        known: Set[str] = set(docs[referenced])
        empty = 0
        for doc_id, data in docs[entity].items():
            value = data.get(field_name)
            if value is None or value == "":
                empty += 1
            elif not isinstance(value, str) or value not in known:
                report.orphaned.append({
                    "collection": entity, "id": doc_id, "field": field_name, "value": str(value),
                })
        report.unresolved[f"{entity}.{field_name}"] = empty

    logger.info("Validation of %s: valid=%s, misscoped=%d, orphaned=%d",
                organization_id, report.is_valid, len(report.misscoped), len(report.orphaned))
    return report
