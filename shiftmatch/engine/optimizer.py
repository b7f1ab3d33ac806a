"""Greedy, priority- and scarcity-aware assignment optimizer."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Mapping, Sequence

from shiftmatch.domain.types import (
    AgentSnapshot,
    AssignmentMatrixRow,
    AssignmentResult,
    Commitment,
    FailedShift,
    FailureReason,
)
from shiftmatch.services.constraints import blocking_commitments, check_hard_constraints

from .ledger import CommitmentLedger
from .report import assignment_reason

logger = logging.getLogger(__name__)


@dataclass
class OptimizationOutcome:
    assignments: List[AssignmentResult] = field(default_factory=list)
    failed: List[FailedShift] = field(default_factory=list)
    ledger: CommitmentLedger = field(default_factory=CommitmentLedger)
    aborted: bool = False


def shift_order_key(row: AssignmentMatrixRow):
    """Priority desc, start asc, fewest feasible candidates first, then id."""
    shift = row.shift
    return (-int(shift.priority), shift.window.start, len(row.candidates), shift.shift_id)


def _describe_rejections(row: AssignmentMatrixRow) -> str:
    if not row.rejected:
        return "no agents in the candidate pool"
    counts = Counter(reason for c in row.rejected for reason in c.reasons)
    top = ", ".join(f"{reason} ({n})" for reason, n in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])))
    return f"0 of {len(row.rejected)} agents feasible: {top}"


def _failure_for(row: AssignmentMatrixRow, blockers: Sequence[Commitment]) -> FailedShift:
    shift = row.shift
    if not row.candidates:
        return FailedShift(shift.shift_id, FailureReason.NO_CANDIDATES, _describe_rejections(row))

    higher = sorted({b.shift_id for b in blockers if b.priority > shift.priority})
    if higher:
        return FailedShift(
            shift.shift_id,
            FailureReason.AGENT_CONFLICT,
            f"feasible agents taken by higher-priority shifts: {', '.join(higher)}",
        )
    return FailedShift(
        shift.shift_id,
        FailureReason.NO_CANDIDATES,
        f"all {len(row.candidates)} feasible agents committed earlier in this run",
    )


def optimize_assignments(
    matrix: Sequence[AssignmentMatrixRow],
    agents: Mapping[str, AgentSnapshot],
    cfg,
    clock: Callable[[], datetime],
    allow_partial_assignment: bool = True,
) -> OptimizationOutcome:
    """
    Commit at most one agent per shift, walking shifts in priority order.

    Args:
        matrix: Rows from ``build_assignment_matrix``
        agents: Agent snapshots keyed by id
        cfg: SchedulerConfig
        clock: Timestamp source for the results
        allow_partial_assignment: When False the first failure aborts the
            whole batch and no assignments are returned

    Returns:
        OptimizationOutcome with assignments, failures and the run ledger
    """
    outcome = OptimizationOutcome()
    ordered = sorted(matrix, key=shift_order_key)

    for position, row in enumerate(ordered):
        shift = row.shift
        chosen = None
        blockers: List[Commitment] = []

        for candidate in row.candidates:
            agent = agents[candidate.agent_id]
            in_run = outcome.ledger.for_agent(agent.agent_id)
            if not check_hard_constraints(shift, agent, cfg, in_run):
                chosen = candidate
                break
            blockers.extend(blocking_commitments(shift, agent, cfg, in_run))

        if chosen is not None:
            outcome.ledger.commit(shift, chosen.agent_id)
            outcome.assignments.append(
                AssignmentResult(
                    shift_id=shift.shift_id,
                    agent_id=chosen.agent_id,
                    score=chosen.score,
                    method=cfg.assignment_method,
                    assigned_at=clock(),
                    reason=assignment_reason(chosen.score),
                )
            )
            logger.debug("Shift %s -> agent %s (score %.3f)", shift.shift_id, chosen.agent_id, chosen.score)
            continue

        failure = _failure_for(row, blockers)
        outcome.failed.append(failure)
        logger.info("Shift %s not assigned: %s (%s)", shift.shift_id, failure.reason.value, failure.detail)

        if not allow_partial_assignment:
            outcome.aborted = True
            outcome.assignments = []
            for remaining in ordered[position + 1:]:
                outcome.failed.append(
                    FailedShift(
                        remaining.shift_id,
                        FailureReason.BATCH_ABORTED,
                        f"batch aborted after shift {shift.shift_id} failed",
                    )
                )
            logger.warning("Partial assignment disabled; aborting batch after shift %s", shift.shift_id)
            break

    return outcome
