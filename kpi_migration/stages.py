"""
The eight migration stages.

Every stage reads one legacy snapshot (or nothing, for the synthesized
catalogs), turns each record into its organization scoped counterpart with a
pure ``build_*`` function, queues the creates on a BatchWriter and commits
once. The returned StageOutcome carries the stage's remap table; no stage
writes to another stage's table.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from .batch_writer import BatchWriter
from .config import MigrationSettings
from .gateway import DocumentStore
from .models import (
    Department,
    EnhancedKpi,
    EnhancedKpiRecord,
    Employee,
    KpiCategory,
    KpiSettings,
    KpiTargets,
    LegacyDepartment,
    LegacyEmployee,
    LegacyKpi,
    LegacyKpiRecord,
    LegacyRewardCalculation,
    Organization,
    OrganizationSettings,
    PersonalInfo,
    RewardBreakdown,
    RewardCalculation,
    RewardEligibility,
    RewardMultipliers,
    RewardPerformance,
    RewardProgram,
    RewardProgramSettings,
    RewardStructure,
    SystemInfo,
    WorkInfo,
)
from .remap import DropRecord, MissingReferencePolicy, RemapTable, RemapTableBuilder, resolve_reference

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "Operations"
MINIMUM_FACTOR = 0.6
EXCELLENT_FACTOR = 1.2

KPI_CATEGORIES = [
    {"name": "Sales", "description": "Sales performance metrics", "color": "#10B981", "icon": "📈"},
    {"name": "Customer Service", "description": "Customer service metrics", "color": "#3B82F6", "icon": "🎧"},
    {"name": "Operations", "description": "Operational efficiency metrics", "color": "#F59E0B", "icon": "⚙️"},
    {"name": "Quality", "description": "Quality control metrics", "color": "#8B5CF6", "icon": "✅"},
    {"name": "Innovation", "description": "Innovation and development metrics", "color": "#EF4444", "icon": "💡"},
]

REWARD_PROGRAMS = [
    {
        "name": "Monthly Performance Bonus",
        "description": "Monthly performance-based reward program",
        "period": "monthly",
        "min_performance": 70,
        "base_amount": 1000000,
        "multipliers": {"excellent": 2.0, "good": 1.5, "average": 1.0, "poor": 0.5},
    },
    {
        "name": "Quarterly Achievement Award",
        "description": "Quarterly achievement recognition program",
        "period": "quarterly",
        "min_performance": 80,
        "base_amount": 5000000,
        "multipliers": {"excellent": 3.0, "good": 2.0, "average": 1.5, "poor": 0.0},
    },
]


@dataclass
class StageContext:
    source: DocumentStore
    target: DocumentStore
    settings: MigrationSettings
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def timestamp(self) -> str:
        return self.now.isoformat()

    @property
    def policy(self) -> MissingReferencePolicy:
        return self.settings.missing_reference_policy

    def writer(self) -> BatchWriter:
        return BatchWriter(self.target, self.settings.batch_size, dry_run=self.settings.dry_run)

    def legacy(self, key: str) -> str:
        return self.settings.layout.legacy_name(key)

    def destination(self, key: str) -> str:
        return self.settings.layout.target_name(key)


@dataclass(frozen=True)
class StageOutcome:
    table: RemapTable
    created: int
    dropped: int = 0


# =====================
# Helpers
# =====================
def derive_code(name: str) -> str:
    return re.sub(r"\s+", "_", (name or "").upper())


def current_period(now: datetime) -> str:
    return f"{now.year}-{now.month:02d}"


def achievement_rate(actual: float, target: float) -> float:
    if not actual or not target:
        return 0
    return actual / target * 100


def normalize_role(role: Optional[str]) -> str:
    return "admin" if role == "admin" else "employee"


def _migrate_collection(ctx: StageContext, key: str, parse: Callable, build: Callable) -> StageOutcome:
    """Read legacy ``key``, build each record, queue creates, commit once."""
    snapshot = ctx.source.read_all(ctx.legacy(key))
    logger.info("Migrating %d %s", len(snapshot), key)

    writer = ctx.writer()
    builder = RemapTableBuilder(key)
    destination = ctx.destination(key)
    dropped = 0
    for doc in snapshot:
        legacy = parse(doc)
        try:
            record = build(legacy)
        except DropRecord as e:
            logger.warning("Dropping %s", e)
            dropped += 1
            continue
        new_id = writer.create(destination, record.to_document())
        builder.add(doc.id, new_id)

    writer.commit()
    table = builder.build()
    logger.info("Created %d %s (%d dropped)", len(table), key, dropped)
    return StageOutcome(table, len(table), dropped)


def _create_fixed(ctx: StageContext, key: str, records: Dict[str, object]) -> StageOutcome:
    writer = ctx.writer()
    builder = RemapTableBuilder(key)
    destination = ctx.destination(key)
    for name, record in records.items():
        builder.add(name, writer.create(destination, record.to_document()))
    writer.commit()
    logger.info("Created %d %s", len(builder), key)
    return StageOutcome(builder.build(), len(builder))


# =====================
# Stage 1: organization
# =====================
def build_organization(now: str) -> Organization:
    return Organization(
        name="Default Organization",
        code="DEFAULT",
        description="Default organization created during migration",
        settings=OrganizationSettings(),
        createdAt=now,
        updatedAt=now,
        isActive=True,
    )


def create_organization(ctx: StageContext) -> str:
    """Create the single default organization and return its id."""
    writer = ctx.writer()
    organization_id = writer.create(ctx.destination("organizations"), build_organization(ctx.timestamp).to_document())
    writer.commit()
    logger.info("Created organization %s", organization_id)
    return organization_id


# =====================
# Stage 2: departments
# =====================
def build_department(legacy: LegacyDepartment, organization_id: str, now: str) -> Department:
    return Department(
        organizationId=organization_id,
        name=legacy.name,
        code=derive_code(legacy.name),
        description=legacy.description,
        managerId=legacy.manager_id,
        parentId=None,
        level=1,
        budget=legacy.budget,
        createdAt=legacy.created_at,
        updatedAt=now,
        isActive=legacy.is_active,
    )


def migrate_departments(ctx: StageContext, organization_id: str) -> StageOutcome:
    return _migrate_collection(
        ctx, "departments", LegacyDepartment.from_document,
        lambda legacy: build_department(legacy, organization_id, ctx.timestamp),
    )


# =====================
# Stage 3: employees
# =====================
def build_employee(legacy: LegacyEmployee, organization_id: str, departments: RemapTable,
                   policy: MissingReferencePolicy, now: str) -> Employee:
    department_id = resolve_reference(
        departments, legacy.department_id, policy,
        entity="employee", legacy_id=legacy.id, field="departmentId", fallback="",
    )
    return Employee(
        organizationId=organization_id,
        departmentId=department_id,
        employeeCode=legacy.employee_code or legacy.id,
        personalInfo=PersonalInfo(
            fullName=legacy.name,
            email=legacy.email,
            phone=legacy.phone,
            avatar=legacy.avatar,
            position=legacy.position or "Employee",
            level="Staff",
        ),
        workInfo=WorkInfo(
            startDate=legacy.start_date,
            endDate=legacy.end_date,
            salary=legacy.salary,
            managerId=legacy.manager_id,
            employmentType="full-time",
        ),
        systemInfo=SystemInfo(
            role=normalize_role(legacy.role),
            isActive=legacy.is_active,
            lastLoginAt=None,
        ),
        createdAt=legacy.created_at,
        updatedAt=now,
    )


def migrate_employees(ctx: StageContext, organization_id: str, departments: RemapTable) -> StageOutcome:
    return _migrate_collection(
        ctx, "employees", LegacyEmployee.from_document,
        lambda legacy: build_employee(legacy, organization_id, departments, ctx.policy, ctx.timestamp),
    )


# =====================
# Stage 4: KPI categories
# =====================
def build_kpi_categories(organization_id: str, now: str) -> Dict[str, KpiCategory]:
    return {
        c["name"]: KpiCategory(
            organizationId=organization_id,
            name=c["name"],
            description=c["description"],
            color=c["color"],
            icon=c["icon"],
            weight=1,
            createdAt=now,
            updatedAt=now,
            isActive=True,
        )
        for c in KPI_CATEGORIES
    }


def create_kpi_categories(ctx: StageContext, organization_id: str) -> StageOutcome:
    """Synthesize the fixed category catalog. The table is keyed by category name."""
    return _create_fixed(ctx, "kpiCategories", build_kpi_categories(organization_id, ctx.timestamp))


# =====================
# Stage 5: KPIs
# =====================
def build_targets(target: float) -> KpiTargets:
    return KpiTargets(minimum=target * MINIMUM_FACTOR, target=target, excellent=target * EXCELLENT_FACTOR)


def build_kpi(legacy: LegacyKpi, organization_id: str, departments: RemapTable, categories: RemapTable,
              policy: MissingReferencePolicy, now: str) -> EnhancedKpi:
    department_id = resolve_reference(
        departments, legacy.department_id, policy,
        entity="kpi", legacy_id=legacy.id, field="departmentId", fallback=None,
    )
    return EnhancedKpi(
        organizationId=organization_id,
        departmentId=department_id,
        # every KPI lands in the Operations category
        categoryId=categories.lookup(DEFAULT_CATEGORY) or "",
        name=legacy.name,
        code=derive_code(legacy.name),
        description=legacy.description,
        type="number",
        unit=legacy.unit,
        frequency=legacy.frequency,
        targets=build_targets(legacy.target),
        settings=KpiSettings(isActive=True, requiresApproval=True, autoCalculation=False),
        createdAt=legacy.created_at,
        updatedAt=now,
    )


def migrate_kpis(ctx: StageContext, organization_id: str, departments: RemapTable,
                 categories: RemapTable) -> StageOutcome:
    return _migrate_collection(
        ctx, "kpis", LegacyKpi.from_document,
        lambda legacy: build_kpi(legacy, organization_id, departments, categories, ctx.policy, ctx.timestamp),
    )


# =====================
# Stage 6: KPI records
# =====================
def build_kpi_record(legacy: LegacyKpiRecord, organization_id: str, employees: RemapTable, kpis: RemapTable,
                     policy: MissingReferencePolicy, now: datetime) -> EnhancedKpiRecord:
    employee_id = resolve_reference(
        employees, legacy.employee_id, policy,
        entity="kpiRecord", legacy_id=legacy.id, field="employeeId", fallback="",
    )
    kpi_id = resolve_reference(
        kpis, legacy.kpi_id, policy,
        entity="kpiRecord", legacy_id=legacy.id, field="kpiId", fallback="",
    )
    return EnhancedKpiRecord(
        organizationId=organization_id,
        employeeId=employee_id,
        # TODO: back-fill from the migrated employee's departmentId
        departmentId="",
        kpiId=kpi_id,
        period=legacy.period or current_period(now),
        targetValue=legacy.target,
        actualValue=legacy.actual,
        achievementRate=achievement_rate(legacy.actual, legacy.target),
        score=legacy.score,
        status=legacy.status or "submitted",
        submittedAt=legacy.submitted_at,
        approvedAt=legacy.approved_at,
        approvedBy=legacy.approved_by,
        notes=legacy.notes,
        attachments=list(legacy.attachments),
        createdAt=legacy.created_at,
        updatedAt=now.isoformat(),
    )


def migrate_kpi_records(ctx: StageContext, organization_id: str, employees: RemapTable,
                        kpis: RemapTable) -> StageOutcome:
    return _migrate_collection(
        ctx, "kpiRecords", LegacyKpiRecord.from_document,
        lambda legacy: build_kpi_record(legacy, organization_id, employees, kpis, ctx.policy, ctx.now),
    )


# =====================
# Stage 7: reward programs
# =====================
def build_reward_programs(organization_id: str, now: str) -> Dict[str, RewardProgram]:
    return {
        p["name"]: RewardProgram(
            organizationId=organization_id,
            name=p["name"],
            description=p["description"],
            period=p["period"],
            eligibility=RewardEligibility(minPerformance=p["min_performance"]),
            structure=RewardStructure(
                baseAmount=p["base_amount"],
                multipliers=RewardMultipliers(**p["multipliers"]),
            ),
            settings=RewardProgramSettings(isActive=True, autoCalculate=True),
            createdAt=now,
            updatedAt=now,
        )
        for p in REWARD_PROGRAMS
    }


def create_reward_programs(ctx: StageContext, organization_id: str) -> StageOutcome:
    return _create_fixed(ctx, "rewardPrograms", build_reward_programs(organization_id, ctx.timestamp))


# =====================
# Stage 8: reward calculations
# =====================
def build_reward_calculation(legacy: LegacyRewardCalculation, organization_id: str, employees: RemapTable,
                             policy: MissingReferencePolicy, now: datetime) -> RewardCalculation:
    employee_id = resolve_reference(
        employees, legacy.employee_id, policy,
        entity="rewardCalculation", legacy_id=legacy.id, field="employeeId", fallback="",
    )
    return RewardCalculation(
        organizationId=organization_id,
        employeeId=employee_id,
        departmentId="",
        programId="",
        period=legacy.period or current_period(now),
        performance=RewardPerformance(
            kpiScore=legacy.kpi_score,
            achievementRate=legacy.achievement_rate,
            grade=legacy.grade or "average",
        ),
        calculation=RewardBreakdown(
            baseAmount=legacy.base_amount,
            multiplier=legacy.multiplier,
            totalReward=legacy.total_reward,
            penalties=legacy.penalties,
            netAmount=legacy.net_amount,
        ),
        status=legacy.status or "calculated",
        calculatedAt=legacy.calculated_at or now.isoformat(),
        approvedAt=legacy.approved_at,
        approvedBy=legacy.approved_by,
        paidAt=legacy.paid_at,
        createdAt=legacy.created_at,
        updatedAt=now.isoformat(),
    )


def migrate_reward_calculations(ctx: StageContext, organization_id: str, employees: RemapTable) -> StageOutcome:
    return _migrate_collection(
        ctx, "rewardCalculations", LegacyRewardCalculation.from_document,
        lambda legacy: build_reward_calculation(legacy, organization_id, employees, ctx.policy, ctx.now),
    )
