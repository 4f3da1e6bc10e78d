"""
Legacy id -> target id tables.

Each stage builds exactly one RemapTable and hands it to the stages that
depend on it. Tables are immutable once built.
"""

import enum
import logging
from collections.abc import Mapping
from typing import Any, Dict, Iterator, Optional

from .errors import MissingReferenceError

logger = logging.getLogger(__name__)


class MissingReferencePolicy(enum.Enum):
    NULLIFY = "nullify"   # keep the record, write the field's fallback value
    DROP = "drop"         # skip the record
    FAIL = "fail"         # abort the run


class DropRecord(Exception):
    """Raised by resolve_reference under the DROP policy; caught by the stage."""

    def __init__(self, entity: str, legacy_id: str, field: str, reference: str):
        super().__init__(f"{entity} {legacy_id}: unresolved {field}={reference!r}")
        self.entity = entity
        self.legacy_id = legacy_id
        self.field = field
        self.reference = reference


class RemapTable(Mapping):
    """Read-only mapping of legacy ids to newly minted ids for one entity type."""

    def __init__(self, entity: str, entries: Optional[Dict[str, str]] = None):
        self.entity = entity
        self._entries = dict(entries or {})

    def __getitem__(self, legacy_id: str) -> str:
        return self._entries[legacy_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"RemapTable({self.entity!r}, {len(self)} entries)"

    def lookup(self, legacy_id: Optional[str]) -> Optional[str]:
        if not legacy_id:
            return None
        return self._entries.get(legacy_id)

    @classmethod
    def empty(cls, entity: str) -> "RemapTable":
        return cls(entity)


class RemapTableBuilder:
    """Collects entries for one stage and freezes them into a RemapTable."""

    def __init__(self, entity: str):
        self.entity = entity
        self._entries: Dict[str, str] = {}
        self._targets = set()

    def add(self, legacy_id: str, target_id: str) -> None:
        if legacy_id in self._entries:
            raise ValueError(f"{self.entity}: legacy id {legacy_id!r} already mapped")
        if target_id in self._targets:
            raise ValueError(f"{self.entity}: target id {target_id!r} already assigned")
        self._entries[legacy_id] = target_id
        self._targets.add(target_id)

    def __len__(self) -> int:
        return len(self._entries)

    def build(self) -> RemapTable:
        return RemapTable(self.entity, self._entries)


def resolve_reference(
    table: RemapTable,
    reference: Any,
    policy: MissingReferencePolicy,
    *,
    entity: str,
    legacy_id: str,
    field: str,
    fallback: Optional[str] = "",
) -> Optional[str]:
    """
    Translate a legacy foreign key through ``table``.

    Empty or absent keys are not missing references and resolve to
    ``fallback`` under every policy.
    """
    if reference is None or reference == "":
        return fallback
    reference = str(reference)
    found = table.lookup(reference)
    if found is not None:
        return found

    if policy is MissingReferencePolicy.FAIL:
        raise MissingReferenceError(entity, field, legacy_id, reference)
    if policy is MissingReferencePolicy.DROP:
        raise DropRecord(entity, legacy_id, field, reference)

    logger.warning("%s %s: %s=%r not migrated, using %r", entity, legacy_id, field, reference, fallback)
    return fallback
