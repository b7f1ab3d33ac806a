"""Assignment matrix: per-shift candidate rankings."""

from __future__ import annotations

from typing import List, Sequence

from shiftmatch.domain.types import AgentSnapshot, AssignmentCandidate, AssignmentMatrixRow, ShiftSnapshot
from shiftmatch.services.feasibility import evaluate_candidate
from shiftmatch.services.scoring import WeightProfile


def candidate_rank_key(candidate: AssignmentCandidate):
    """Score desc, then performance desc, then workload asc, then agent id asc."""
    return (-candidate.score, -candidate.performance, candidate.workload, candidate.agent_id)


def rank_candidates(candidates: Sequence[AssignmentCandidate]) -> List[AssignmentCandidate]:
    return sorted(candidates, key=candidate_rank_key)


def build_matrix_row(
    shift: ShiftSnapshot,
    agents: Sequence[AgentSnapshot],
    profile: WeightProfile,
    cfg,
) -> AssignmentMatrixRow:
    """Evaluate every agent against one shift and split feasible from rejected."""
    evaluated = [evaluate_candidate(shift, agent, profile, cfg) for agent in agents]
    ranked = rank_candidates(evaluated)
    return AssignmentMatrixRow(
        shift=shift,
        candidates=tuple(c for c in ranked if c.feasible),
        rejected=tuple(c for c in ranked if not c.feasible),
    )


def build_assignment_matrix(
    shifts: Sequence[ShiftSnapshot],
    agents: Sequence[AgentSnapshot],
    profile: WeightProfile,
    cfg,
) -> List[AssignmentMatrixRow]:
    """
    Build the assignment matrix for a batch.

    Args:
        shifts: Shift snapshots in request order
        agents: Candidate agent pool (may be empty)
        profile: Weight profile selected by the optimization goal
        cfg: SchedulerConfig

    Returns:
        One row per shift, in the same order as ``shifts``
    """
    return [build_matrix_row(shift, agents, profile, cfg) for shift in shifts]
