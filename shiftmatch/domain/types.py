"""Immutable snapshot and result types used by the assignment engine.

Everything the engine reads during a run is one of the frozen dataclasses
below. Loaders build them from the ORM rows in ``models.py``; the optimizer
never mutates them and records its decisions in a separate ledger.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Dict, FrozenSet, List, Optional, Tuple


class Priority(IntEnum):
    """Shift priority. Higher value is more urgent."""

    LOW = 1
    NORMAL = 2
    MEDIUM = 2  # alias of NORMAL
    HIGH = 3
    CRITICAL = 4
    EMERGENCY = 5

    @classmethod
    def parse(cls, value: Optional[str]) -> "Priority":
        if value is None:
            return cls.NORMAL
        if isinstance(value, Priority):
            return value
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            return cls.NORMAL


class EmploymentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"
    TERMINATED = "TERMINATED"
    ON_LEAVE = "ON_LEAVE"

    @classmethod
    def parse(cls, value: Optional[str]) -> "EmploymentStatus":
        if value is None:
            return cls.INACTIVE
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return cls.INACTIVE


class OptimizationGoal(str, Enum):
    BALANCED = "balanced"
    COST = "cost"
    QUALITY = "quality"
    COVERAGE = "coverage"

    @classmethod
    def parse(cls, value) -> "OptimizationGoal":
        if isinstance(value, OptimizationGoal):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(g.value for g in cls)
            raise ValueError(f"Unknown optimization goal '{value}' (expected one of: {valid})")


class FailureReason(str, Enum):
    SHIFT_NOT_FOUND = "shift_not_found"
    SHIFT_NOT_ASSIGNABLE = "shift_not_assignable"
    NO_CANDIDATES = "no_candidates"
    AGENT_CONFLICT = "agent_conflict"
    BATCH_ABORTED = "batch_aborted"


class ConflictType(str, Enum):
    DOUBLE_BOOKING = "double_booking"
    SUPERVISOR_OVERLAP = "supervisor_overlap"
    SITE_CAPACITY = "site_capacity"
    OVERTIME_VIOLATION = "overtime_violation"
    SKILL_MISMATCH = "skill_mismatch"


# Shift statuses that can no longer receive an agent
CLOSED_SHIFT_STATUSES = frozenset({"CANCELLED", "COMPLETED"})


def iso_week(moment: datetime) -> Tuple[int, int]:
    """(ISO year, ISO week) a moment falls in."""
    year, week, _ = moment.isocalendar()
    return year, week


@dataclass(frozen=True)
class TimeWindow:
    """Half-open time interval ``[start, end)``."""

    start: datetime
    end: datetime

    def __post_init__(self):
        if self.end <= self.start:
            raise ValueError(f"Time window must end after it starts: {self.start} - {self.end}")

    @property
    def hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600.0

    def overlaps(self, other: "TimeWindow") -> bool:
        return self.start < other.end and other.start < self.end

    def covers(self, other: "TimeWindow") -> bool:
        return self.start <= other.start and other.end <= self.end


@dataclass(frozen=True)
class ShiftSnapshot:
    shift_id: str
    site_id: str
    window: TimeWindow
    required_skills: FrozenSet[str] = frozenset()
    priority: Priority = Priority.NORMAL
    status: str = "SCHEDULED"
    agent_id: Optional[str] = None
    supervisor_id: Optional[str] = None

    @property
    def hours(self) -> float:
        return self.window.hours

    @property
    def week(self) -> Tuple[int, int]:
        """ISO week the shift counts toward; a shift belongs to the week it starts in."""
        return iso_week(self.window.start)


@dataclass(frozen=True)
class Commitment:
    """A block of time an agent is already bound to."""

    shift_id: str
    agent_id: str
    window: TimeWindow
    priority: Priority = Priority.NORMAL
    source: str = "external"  # "external" or "in_run"


@dataclass(frozen=True)
class AgentSnapshot:
    agent_id: str
    skills: FrozenSet[str] = frozenset()
    certifications: FrozenSet[str] = frozenset()
    employment_status: EmploymentStatus = EmploymentStatus.ACTIVE
    performance_score: float = 0.5
    weekly_hours: Tuple[Tuple[Tuple[int, int], float], ...] = ()  # ((iso year, iso week), hours)
    availability: Tuple[TimeWindow, ...] = ()  # empty = open availability
    commitments: Tuple[Commitment, ...] = ()
    recent_site_counts: Tuple[Tuple[str, int], ...] = ()
    overtime_permitted: bool = False

    @property
    def qualifications(self) -> FrozenSet[str]:
        return self.skills | self.certifications

    def hours_in_week(self, week: Tuple[int, int]) -> float:
        for key, hours in self.weekly_hours:
            if key == week:
                return hours
        return 0.0

    def recent_assignments_at(self, site_id: str) -> int:
        for site, count in self.recent_site_counts:
            if site == site_id:
                return count
        return 0


@dataclass(frozen=True)
class AssignmentCandidate:
    shift_id: str
    agent_id: str
    feasible: bool
    score: float
    reasons: Tuple[str, ...] = ()
    factors: Tuple[Tuple[str, float], ...] = ()
    performance: float = 0.0
    workload: float = 0.0

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["reasons"] = list(self.reasons)
        data["factors"] = {name: round(value, 4) for name, value in self.factors}
        return data


@dataclass(frozen=True)
class AssignmentMatrixRow:
    shift: ShiftSnapshot
    candidates: Tuple[AssignmentCandidate, ...] = ()
    rejected: Tuple[AssignmentCandidate, ...] = ()

    @property
    def shift_id(self) -> str:
        return self.shift.shift_id


@dataclass(frozen=True)
class AssignmentResult:
    shift_id: str
    agent_id: str
    score: float
    method: str
    assigned_at: datetime
    reason: str = ""

    def to_dict(self) -> Dict:
        return {
            "shift_id": self.shift_id,
            "agent_id": self.agent_id,
            "score": round(self.score, 4),
            "method": self.method,
            "assigned_at": self.assigned_at.isoformat(),
            "reason": self.reason,
        }


@dataclass(frozen=True)
class FailedShift:
    shift_id: str
    reason: FailureReason
    detail: str = ""

    def to_dict(self) -> Dict:
        return {"shift_id": self.shift_id, "reason": self.reason.value, "detail": self.detail}


@dataclass(frozen=True)
class SchedulingConflict:
    type: ConflictType
    shift_ids: Tuple[str, ...]
    severity: str
    agent_id: Optional[str] = None
    site_id: Optional[str] = None
    description: str = ""

    def to_dict(self) -> Dict:
        return {
            "type": self.type.value,
            "shift_ids": list(self.shift_ids),
            "severity": self.severity,
            "agent_id": self.agent_id,
            "site_id": self.site_id,
            "description": self.description,
        }


@dataclass
class AssignmentPlan:
    """Outcome of one optimization run, prior to any external commit."""

    success: bool
    optimization_goal: OptimizationGoal
    assignments: List[AssignmentResult] = field(default_factory=list)
    failed: List[FailedShift] = field(default_factory=list)
    report: Dict = field(default_factory=dict)
    notify_agents: bool = True

    def to_dict(self) -> Dict:
        return {
            "success": self.success,
            "optimization_goal": self.optimization_goal.value,
            "assignments": [a.to_dict() for a in self.assignments],
            "failed": [f.to_dict() for f in self.failed],
            "report": self.report,
        }
