"""Plan summary statistics."""

from __future__ import annotations

from collections import Counter
from typing import Dict, List, Sequence

from shiftmatch.domain.types import AssignmentResult, FailedShift, OptimizationGoal, SchedulingConflict
from shiftmatch.services.analytics import score_distribution


def assignment_reason(score: float) -> str:
    """Short human-readable justification stored with each assignment."""
    reasons = []
    if score > 0.9:
        reasons.append("Excellent match")
    if score > 0.8:
        reasons.append("High skill compatibility")
    if score > 0.7:
        reasons.append("Good availability")
    return ", ".join(reasons) or "Automated assignment"


def build_report(
    requested: int,
    assignments: Sequence[AssignmentResult],
    failed: Sequence[FailedShift],
    goal: OptimizationGoal,
    aborted: bool = False,
    pre_existing_conflicts: Sequence[SchedulingConflict] = (),
) -> Dict:
    """
    Summarize one optimization run.

    Returns:
        Dict with counts, method breakdown, average score, score
        distribution, failure reasons and pre-check conflicts
    """
    scores: List[float] = [a.score for a in assignments]
    average = sum(scores) / len(scores) if scores else 0.0
    return {
        "optimization_goal": goal.value,
        "total_requested": requested,
        "assigned": len(assignments),
        "failed": len(failed),
        "success_rate": round(len(assignments) / requested, 4) if requested else 0.0,
        "aborted": aborted,
        "method_breakdown": dict(Counter(a.method for a in assignments)),
        "average_score": round(average, 4),
        "score_distribution": score_distribution(scores),
        "failure_reasons": dict(Counter(f.reason.value for f in failed)),
        "pre_existing_conflicts": [c.to_dict() for c in pre_existing_conflicts],
    }
