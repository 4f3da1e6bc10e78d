"""
Typed records for both sides of the migration.

Legacy records are parsed leniently from Firestore dicts (fields may be
missing). Target records serialize to the camelCase payload the multi-tenant
application reads; ``None`` fields are left out of the document.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from .gateway import Document


def _compact(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _compact(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_compact(v) for v in value]
    return value


def _number(value: Any, default: float = 0) -> float:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


class TargetRecord:
    def to_document(self) -> Dict[str, Any]:
        return _compact(asdict(self))


# =====================
# Legacy (single tenant)
# =====================
@dataclass(frozen=True)
class LegacyDepartment:
    id: str
    name: str
    description: Optional[str] = None
    manager_id: Optional[str] = None
    budget: Optional[float] = None
    created_at: Optional[str] = None
    is_active: Optional[bool] = None

    @classmethod
    def from_document(cls, doc: Document) -> "LegacyDepartment":
        d = doc.fields
        return cls(
            id=doc.id,
            name=str(d.get("name") or ""),
            description=d.get("description"),
            manager_id=d.get("managerId"),
            budget=d.get("budget"),
            created_at=d.get("createdAt"),
            is_active=d.get("isActive"),
        )


@dataclass(frozen=True)
class LegacyEmployee:
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None
    position: Optional[str] = None
    department_id: Optional[str] = None
    employee_code: Optional[str] = None
    role: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    salary: Optional[float] = None
    manager_id: Optional[str] = None
    is_active: Optional[bool] = None
    created_at: Optional[str] = None

    @classmethod
    def from_document(cls, doc: Document) -> "LegacyEmployee":
        d = doc.fields
        return cls(
            id=doc.id,
            name=d.get("name"),
            email=d.get("email"),
            phone=d.get("phone"),
            avatar=d.get("avatar"),
            position=d.get("position"),
            department_id=d.get("departmentId"),
            employee_code=d.get("employeeId") or d.get("id"),
            role=d.get("role"),
            start_date=d.get("startDate"),
            end_date=d.get("endDate"),
            salary=d.get("salary"),
            manager_id=d.get("managerId"),
            is_active=d.get("isActive"),
            created_at=d.get("createdAt"),
        )


@dataclass(frozen=True)
class LegacyKpi:
    id: str
    name: str
    description: Optional[str] = None
    department_id: Optional[str] = None
    unit: Optional[str] = None
    frequency: Optional[str] = None
    target: float = 0
    created_at: Optional[str] = None

    @classmethod
    def from_document(cls, doc: Document) -> "LegacyKpi":
        d = doc.fields
        return cls(
            id=doc.id,
            name=str(d.get("name") or ""),
            description=d.get("description"),
            department_id=d.get("departmentId"),
            unit=d.get("unit"),
            frequency=d.get("frequency"),
            target=_number(d.get("target")),
            created_at=d.get("createdAt"),
        )


@dataclass(frozen=True)
class LegacyKpiRecord:
    id: str
    kpi_id: Optional[str] = None
    employee_id: Optional[str] = None
    period: Optional[str] = None
    target: float = 0
    actual: float = 0
    score: float = 0
    status: Optional[str] = None
    submitted_at: Optional[str] = None
    approved_at: Optional[str] = None
    approved_by: Optional[str] = None
    notes: Optional[str] = None
    attachments: List[Any] = field(default_factory=list)
    created_at: Optional[str] = None

    @classmethod
    def from_document(cls, doc: Document) -> "LegacyKpiRecord":
        d = doc.fields
        return cls(
            id=doc.id,
            kpi_id=d.get("kpiId"),
            employee_id=d.get("employeeId"),
            period=d.get("period"),
            target=_number(d.get("target")),
            actual=_number(d.get("actual")),
            score=_number(d.get("score")),
            status=d.get("status"),
            submitted_at=d.get("submittedAt"),
            approved_at=d.get("approvedAt"),
            approved_by=d.get("approvedBy"),
            notes=d.get("notes"),
            attachments=list(d.get("attachments") or []),
            created_at=d.get("createdAt"),
        )


@dataclass(frozen=True)
class LegacyRewardCalculation:
    id: str
    employee_id: Optional[str] = None
    period: Optional[str] = None
    kpi_score: float = 0
    achievement_rate: float = 0
    grade: Optional[str] = None
    base_amount: float = 0
    multiplier: float = 1
    total_reward: float = 0
    penalties: float = 0
    net_amount: float = 0
    status: Optional[str] = None
    calculated_at: Optional[str] = None
    approved_at: Optional[str] = None
    approved_by: Optional[str] = None
    paid_at: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_document(cls, doc: Document) -> "LegacyRewardCalculation":
        d = doc.fields
        return cls(
            id=doc.id,
            employee_id=d.get("employeeId"),
            period=d.get("period"),
            kpi_score=_number(d.get("kpiScore")),
            achievement_rate=_number(d.get("achievementRate")),
            grade=d.get("grade"),
            base_amount=_number(d.get("baseAmount")),
            multiplier=_number(d.get("multiplier"), default=1) or 1,
            total_reward=_number(d.get("totalReward")),
            penalties=_number(d.get("penalties")),
            net_amount=_number(d.get("netAmount")),
            status=d.get("status"),
            calculated_at=d.get("calculatedAt"),
            approved_at=d.get("approvedAt"),
            approved_by=d.get("approvedBy"),
            paid_at=d.get("paidAt"),
            created_at=d.get("createdAt"),
        )


# =====================
# Target (multi tenant)
# =====================
@dataclass(frozen=True)
class OrganizationSettings:
    currency: str = "VND"
    timezone: str = "Asia/Ho_Chi_Minh"
    language: str = "vi"


@dataclass(frozen=True)
class Organization(TargetRecord):
    name: str
    code: str
    description: str
    settings: OrganizationSettings
    createdAt: str
    updatedAt: str
    isActive: bool = True


@dataclass(frozen=True)
class Department(TargetRecord):
    organizationId: str
    name: str
    code: str
    level: int
    updatedAt: str
    description: Optional[str] = None
    managerId: Optional[str] = None
    parentId: Optional[str] = None
    budget: Optional[float] = None
    createdAt: Optional[str] = None
    isActive: Optional[bool] = None


@dataclass(frozen=True)
class PersonalInfo:
    fullName: Optional[str]
    email: Optional[str]
    phone: Optional[str]
    avatar: Optional[str]
    position: str
    level: str = "Staff"


@dataclass(frozen=True)
class WorkInfo:
    startDate: Optional[str]
    endDate: Optional[str]
    salary: Optional[float]
    managerId: Optional[str]
    employmentType: str = "full-time"


@dataclass(frozen=True)
class SystemInfo:
    role: str
    isActive: Optional[bool]
    lastLoginAt: Optional[str] = None


@dataclass(frozen=True)
class Employee(TargetRecord):
    organizationId: str
    departmentId: str
    employeeCode: str
    personalInfo: PersonalInfo
    workInfo: WorkInfo
    systemInfo: SystemInfo
    updatedAt: str
    createdAt: Optional[str] = None


@dataclass(frozen=True)
class KpiCategory(TargetRecord):
    organizationId: str
    name: str
    description: str
    color: str
    icon: str
    createdAt: str
    updatedAt: str
    weight: float = 1
    isActive: bool = True


@dataclass(frozen=True)
class KpiTargets:
    minimum: float
    target: float
    excellent: float


@dataclass(frozen=True)
class KpiSettings:
    isActive: bool = True
    requiresApproval: bool = True
    autoCalculation: bool = False


@dataclass(frozen=True)
class EnhancedKpi(TargetRecord):
    organizationId: str
    categoryId: str
    name: str
    code: str
    targets: KpiTargets
    settings: KpiSettings
    updatedAt: str
    departmentId: Optional[str] = None
    description: Optional[str] = None
    type: str = "number"
    unit: Optional[str] = None
    frequency: Optional[str] = None
    createdAt: Optional[str] = None


@dataclass(frozen=True)
class EnhancedKpiRecord(TargetRecord):
    organizationId: str
    employeeId: str
    departmentId: str
    kpiId: str
    period: str
    targetValue: float
    actualValue: float
    achievementRate: float
    score: float
    status: str
    updatedAt: str
    attachments: List[Any] = field(default_factory=list)
    submittedAt: Optional[str] = None
    approvedAt: Optional[str] = None
    approvedBy: Optional[str] = None
    notes: Optional[str] = None
    createdAt: Optional[str] = None


@dataclass(frozen=True)
class RewardMultipliers:
    excellent: float
    good: float
    average: float
    poor: float


@dataclass(frozen=True)
class RewardStructure:
    baseAmount: float
    multipliers: RewardMultipliers


@dataclass(frozen=True)
class RewardEligibility:
    minPerformance: float


@dataclass(frozen=True)
class RewardProgramSettings:
    isActive: bool = True
    autoCalculate: bool = True


@dataclass(frozen=True)
class RewardProgram(TargetRecord):
    organizationId: str
    name: str
    description: str
    period: str
    eligibility: RewardEligibility
    structure: RewardStructure
    settings: RewardProgramSettings
    createdAt: str
    updatedAt: str


@dataclass(frozen=True)
class RewardPerformance:
    kpiScore: float
    achievementRate: float
    grade: str


@dataclass(frozen=True)
class RewardBreakdown:
    baseAmount: float
    multiplier: float
    totalReward: float
    penalties: float
    netAmount: float


@dataclass(frozen=True)
class RewardCalculation(TargetRecord):
    organizationId: str
    employeeId: str
    departmentId: str
    programId: str
    period: str
    performance: RewardPerformance
    calculation: RewardBreakdown
    status: str
    calculatedAt: str
    updatedAt: str
    approvedAt: Optional[str] = None
    approvedBy: Optional[str] = None
    paidAt: Optional[str] = None
    createdAt: Optional[str] = None
