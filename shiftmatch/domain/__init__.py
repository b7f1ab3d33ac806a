"""Domain models, snapshot types and data access layer."""

from .models import Agent, AvailabilityWindow, Base, Shift, ShiftAssignment, Site
from .repositories import (
    AgentRepository,
    AssignmentRepository,
    ShiftRepository,
    SiteRepository,
)
from .types import (
    AgentSnapshot,
    AssignmentCandidate,
    AssignmentMatrixRow,
    AssignmentPlan,
    AssignmentResult,
    Commitment,
    ConflictType,
    EmploymentStatus,
    FailedShift,
    FailureReason,
    OptimizationGoal,
    Priority,
    SchedulingConflict,
    ShiftSnapshot,
    TimeWindow,
)

__all__ = [
    "Agent",
    "AvailabilityWindow",
    "Base",
    "Shift",
    "ShiftAssignment",
    "Site",
    "AgentRepository",
    "AssignmentRepository",
    "ShiftRepository",
    "SiteRepository",
    "AgentSnapshot",
    "AssignmentCandidate",
    "AssignmentMatrixRow",
    "AssignmentPlan",
    "AssignmentResult",
    "Commitment",
    "ConflictType",
    "EmploymentStatus",
    "FailedShift",
    "FailureReason",
    "OptimizationGoal",
    "Priority",
    "SchedulingConflict",
    "ShiftSnapshot",
    "TimeWindow",
]
