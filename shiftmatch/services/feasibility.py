"""Feasibility scorer: hard constraints plus weighted soft score per pair."""

from __future__ import annotations

from typing import Sequence

from shiftmatch.domain.types import AgentSnapshot, AssignmentCandidate, Commitment, ShiftSnapshot

from .constraints import check_hard_constraints
from .scoring import WeightProfile, calculate_factors, weighted_score


def evaluate_candidate(
    shift: ShiftSnapshot,
    agent: AgentSnapshot,
    profile: WeightProfile,
    cfg,
    in_run: Sequence[Commitment] = (),
) -> AssignmentCandidate:
    """
    Score one agent for one shift.

    Infeasible pairs still get a score so that preview mode can rank them,
    but they carry ``feasible=False`` and the violated reason codes.
    """
    reasons = check_hard_constraints(shift, agent, cfg, in_run)
    feasible = not reasons
    factors = calculate_factors(shift, agent, cfg, feasible)
    return AssignmentCandidate(
        shift_id=shift.shift_id,
        agent_id=agent.agent_id,
        feasible=feasible,
        score=weighted_score(factors, profile),
        reasons=reasons,
        factors=tuple(factors.items()),
        performance=agent.performance_score,
        workload=agent.hours_in_week(shift.week),
    )
