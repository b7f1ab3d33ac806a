"""Assignment engine: matrix builder, greedy optimizer and service orchestration."""

from .ledger import CommitmentLedger
from .matrix import build_assignment_matrix, build_matrix_row, rank_candidates
from .optimizer import OptimizationOutcome, optimize_assignments
from .orchestrator import (
    AssignmentService,
    AssignOptions,
    EngineContext,
    Recommendations,
    ScheduleOptimization,
    plan_assignments,
)
from .report import assignment_reason, build_report

__all__ = [
    "CommitmentLedger",
    "build_assignment_matrix",
    "build_matrix_row",
    "rank_candidates",
    "OptimizationOutcome",
    "optimize_assignments",
    "AssignmentService",
    "AssignOptions",
    "EngineContext",
    "Recommendations",
    "ScheduleOptimization",
    "plan_assignments",
    "assignment_reason",
    "build_report",
]
