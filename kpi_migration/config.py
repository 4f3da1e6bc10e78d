"""
Runtime configuration for the multi-tenant migration.

Defaults are read from the environment (a local ``.env`` is honoured when
present). Legacy data is read from SOURCE_DATABASE_ID and the organization
scoped copies are written to TARGET_DATABASE_ID.
"""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from .errors import ConfigurationError
from .remap import MissingReferencePolicy

load_dotenv()

DEFAULT_PROJECT_ID = os.environ.get("GOOGLE_CLOUD_PROJECT") or os.environ.get("GCP_PROJECT")
DEFAULT_SOURCE_DATABASE_ID = os.environ.get("SOURCE_DATABASE_ID", "(default)")
DEFAULT_TARGET_DATABASE_ID = os.environ.get("TARGET_DATABASE_ID", "tenants")
DEFAULT_BATCH_SIZE = os.environ.get("MIGRATION_BATCH_SIZE", "400")
DEFAULT_MISSING_REFERENCE_POLICY = os.environ.get("MISSING_REFERENCE_POLICY", "nullify")
DEFAULT_LOG_LEVEL = os.environ.get("MIGRATION_LOG_LEVEL", "INFO")

MAX_BATCH_SIZE = 500      # Firestore max per commit is 500

MIGRATION_ID = "multi_tenant_v1"
MIGRATIONS_COLLECTION = "_migrations"
MIGRATIONS_YAML = Path(__file__).resolve().parent / "migrations.yaml"

# Entity keys in dependency order
ENTITY_KEYS = (
    "organizations",
    "departments",
    "employees",
    "kpiCategories",
    "kpis",
    "kpiRecords",
    "rewardPrograms",
    "rewardCalculations",
)


def _default_names() -> Dict[str, str]:
    return {key: key for key in ENTITY_KEYS}


@dataclass(frozen=True)
class CollectionLayout:
    """Collection names for the legacy (read) side and the target (write) side."""

    legacy: Dict[str, str] = field(default_factory=_default_names)
    target: Dict[str, str] = field(default_factory=_default_names)

    def __post_init__(self):
        for side, names in (("legacy", self.legacy), ("target", self.target)):
            missing = [key for key in ENTITY_KEYS if not names.get(key)]
            if missing:
                raise ConfigurationError(f"{side} layout is missing collections: {', '.join(missing)}")
        if MIGRATIONS_COLLECTION in self.target.values():
            raise ConfigurationError(f"{MIGRATIONS_COLLECTION} is reserved for the migration ledger")

    def legacy_name(self, key: str) -> str:
        return self.legacy[key]

    def target_name(self, key: str) -> str:
        return self.target[key]

    def target_collections(self) -> List[str]:
        return [self.target[key] for key in ENTITY_KEYS]


@dataclass(frozen=True)
class MigrationSettings:
    project: Optional[str] = DEFAULT_PROJECT_ID
    source_database: str = DEFAULT_SOURCE_DATABASE_ID
    target_database: str = DEFAULT_TARGET_DATABASE_ID
    batch_size: int = 400
    missing_reference_policy: MissingReferencePolicy = MissingReferencePolicy.NULLIFY
    dry_run: bool = False
    layout: CollectionLayout = field(default_factory=CollectionLayout)

    def __post_init__(self):
        if not isinstance(self.batch_size, int) or isinstance(self.batch_size, bool):
            raise ConfigurationError(f"batch_size must be an integer, got {self.batch_size!r}")
        if not 1 <= self.batch_size <= MAX_BATCH_SIZE:
            raise ConfigurationError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}, got {self.batch_size}")
        if not isinstance(self.missing_reference_policy, MissingReferencePolicy):
            object.__setattr__(
                self, "missing_reference_policy", parse_policy(self.missing_reference_policy)
            )

    def with_overrides(self, **changes: Any) -> "MigrationSettings":
        changes = {k: v for k, v in changes.items() if v is not None}
        return replace(self, **changes)


def parse_policy(value: Any) -> MissingReferencePolicy:
    try:
        return MissingReferencePolicy(str(value).strip().lower())
    except ValueError:
        choices = ", ".join(p.value for p in MissingReferencePolicy)
        raise ConfigurationError(f"Unknown missing reference policy {value!r} (use one of: {choices})")


def parse_batch_size(value: Any) -> int:
    try:
        size = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Batch size must be an integer, got {value!r}")
    return max(1, min(size, MAX_BATCH_SIZE))


def settings_from_env() -> MigrationSettings:
    """Build settings from the environment variables documented above."""
    return MigrationSettings(
        project=DEFAULT_PROJECT_ID,
        source_database=DEFAULT_SOURCE_DATABASE_ID,
        target_database=DEFAULT_TARGET_DATABASE_ID,
        batch_size=parse_batch_size(DEFAULT_BATCH_SIZE),
        missing_reference_policy=parse_policy(DEFAULT_MISSING_REFERENCE_POLICY),
    )


def load_migrations_yaml(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the migration registry."""
    yaml_path = Path(path) if path else MIGRATIONS_YAML
    if not yaml_path.exists():
        return {"migrations": []}
    with open(yaml_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {"migrations": []}


def get_migration_info(migration_id: str, path: Optional[Path] = None) -> Optional[Dict[str, Any]]:
    data = load_migrations_yaml(path)
    for migration in data.get("migrations", []):
        if migration.get("id") == migration_id:
            return migration
    return None
