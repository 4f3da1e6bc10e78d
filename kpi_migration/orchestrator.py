"""
Single-tenant -> multi-tenant migration orchestrator.

Runs the stages strictly in dependency order, threading each stage's remap
table into the stages that need it:

    organization -> departments -> employees -> KPI categories -> KPIs
        -> KPI records -> reward programs -> reward calculations

Any exception raised by a stage ends the run: an ``error`` progress event is
emitted and a failed MigrationResult with zeroed stats is returned. Documents
committed by earlier stages stay in place until rollback_migration runs.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from . import stages
from .config import MigrationSettings
from .gateway import DocumentStore
from .progress import TOTAL, MigrationProgress, ProgressCallback, ProgressStatus

logger = logging.getLogger(__name__)


@dataclass
class MigrationStats:
    organizationsCreated: int = 0
    departmentsMigrated: int = 0
    employeesMigrated: int = 0
    kpisMigrated: int = 0
    recordsMigrated: int = 0
    programsCreated: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class MigrationResult:
    success: bool
    message: str
    stats: MigrationStats = field(default_factory=MigrationStats)
    failed_stage: Optional[str] = None
    organization_id: Optional[str] = None
    dry_run: bool = False
    started_at: Optional[str] = None
    finished_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "stats": self.stats.to_dict(),
            "failedStage": self.failed_stage,
            "organizationId": self.organization_id,
            "dryRun": self.dry_run,
            "startedAt": self.started_at,
            "finishedAt": self.finished_at,
        }


class MigrationOrchestrator:
    def __init__(self, source: DocumentStore, target: DocumentStore,
                 settings: Optional[MigrationSettings] = None,
                 on_progress: Optional[ProgressCallback] = None,
                 clock=None):
        self.source = source
        self.target = target
        self.settings = settings or MigrationSettings()
        self.on_progress = on_progress
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._step = None

    def _report(self, step: str, completed: int, status: ProgressStatus, message: Optional[str] = None) -> None:
        self._step = step
        if self.on_progress:
            self.on_progress(MigrationProgress(step, completed, TOTAL, status, message))

    def run_migration(self) -> MigrationResult:
        started = self.clock()
        self._step = None
        try:
            stats, organization_id = self._run(started)
        except Exception as e:
            failed_stage = self._step
            logger.exception("Migration failed during %r", failed_stage)
            try:
                self._report("Migration failed", 0, ProgressStatus.ERROR, f"Migration failed: {e}")
            except Exception:
                logger.exception("Progress callback failed while reporting the error")
            return MigrationResult(
                success=False,
                message=f"Migration failed: {e}",
                stats=MigrationStats(),
                failed_stage=failed_stage,
                dry_run=self.settings.dry_run,
                started_at=started.isoformat(),
                finished_at=self.clock().isoformat(),
            )

        self._report("Migration completed", 100, ProgressStatus.COMPLETED, "Migration completed successfully!")
        return MigrationResult(
            success=True,
            message="Migration completed successfully" + (" (dry run)" if self.settings.dry_run else ""),
            stats=stats,
            organization_id=organization_id,
            dry_run=self.settings.dry_run,
            started_at=started.isoformat(),
            finished_at=self.clock().isoformat(),
        )

    def _run(self, now: datetime):
        ctx = stages.StageContext(self.source, self.target, self.settings, now)
        stats = MigrationStats()
        logger.info("Starting migration (dry_run=%s, policy=%s)",
                    self.settings.dry_run, self.settings.missing_reference_policy.value)

        self._report("Starting migration", 0, ProgressStatus.RUNNING, "Initializing migration process...")

        self._report("Creating organization", 10, ProgressStatus.RUNNING, "Creating default organization...")
        organization_id = stages.create_organization(ctx)
        stats.organizationsCreated = 1

        self._report("Migrating departments", 20, ProgressStatus.RUNNING, "Migrating departments...")
        departments = stages.migrate_departments(ctx, organization_id)
        stats.departmentsMigrated = departments.created

        self._report("Migrating employees", 40, ProgressStatus.RUNNING, "Migrating employees...")
        employees = stages.migrate_employees(ctx, organization_id, departments.table)
        stats.employeesMigrated = employees.created

        self._report("Creating KPI categories", 50, ProgressStatus.RUNNING, "Creating KPI categories...")
        categories = stages.create_kpi_categories(ctx, organization_id)

        self._report("Migrating KPIs", 60, ProgressStatus.RUNNING, "Migrating KPIs...")
        kpis = stages.migrate_kpis(ctx, organization_id, departments.table, categories.table)
        stats.kpisMigrated = kpis.created

        self._report("Migrating KPI records", 70, ProgressStatus.RUNNING, "Migrating KPI records...")
        records = stages.migrate_kpi_records(ctx, organization_id, employees.table, kpis.table)
        stats.recordsMigrated = records.created

        self._report("Creating reward programs", 80, ProgressStatus.RUNNING, "Creating reward programs...")
        programs = stages.create_reward_programs(ctx, organization_id)
        stats.programsCreated = programs.created

        self._report("Migrating reward calculations", 90, ProgressStatus.RUNNING, "Migrating reward calculations...")
        calculations = stages.migrate_reward_calculations(ctx, organization_id, employees.table)
        logger.info("Migrated %d reward calculations", calculations.created)

        return stats, organization_id


def run_migration(source: DocumentStore, target: DocumentStore,
                  settings: Optional[MigrationSettings] = None,
                  on_progress: Optional[ProgressCallback] = None) -> MigrationResult:
    return MigrationOrchestrator(source, target, settings, on_progress).run_migration()
