"""Hard constraint checks for assigning an agent to a shift."""

from __future__ import annotations

from typing import FrozenSet, Iterable, List, Sequence, Tuple

from shiftmatch.domain.types import AgentSnapshot, Commitment, EmploymentStatus, ShiftSnapshot, TimeWindow, iso_week

# Reason codes, in the order they are reported
SCHEDULE_OVERLAP = "schedule_overlap"
OUTSIDE_AVAILABILITY = "outside_availability"
MISSING_SKILLS = "missing_skills"
AGENT_INACTIVE = "agent_inactive"
MAX_HOURS_EXCEEDED = "max_hours_exceeded"

HOURS_EPSILON = 1e-6


def overlapping_commitments(shift: ShiftSnapshot, commitments: Iterable[Commitment]) -> List[Commitment]:
    """Return the commitments whose time overlaps the shift (other shifts only)."""
    return [c for c in commitments if c.shift_id != shift.shift_id and c.window.overlaps(shift.window)]


def _merge_windows(windows: Sequence[TimeWindow]) -> List[TimeWindow]:
    merged: List[TimeWindow] = []
    for window in sorted(windows, key=lambda w: (w.start, w.end)):
        if merged and window.start <= merged[-1].end:
            if window.end > merged[-1].end:
                merged[-1] = TimeWindow(merged[-1].start, window.end)
        else:
            merged.append(window)
    return merged


def is_available(shift: ShiftSnapshot, agent: AgentSnapshot) -> bool:
    """
    Check that one availability window covers the whole shift.

    Back-to-back windows are merged first, so 06:00-12:00 plus 12:00-18:00
    covers a 10:00-14:00 shift. An agent without declared windows is treated
    as openly available.
    """
    if not agent.availability:
        return True
    return any(window.covers(shift.window) for window in _merge_windows(agent.availability))


def missing_skills(shift: ShiftSnapshot, agent: AgentSnapshot) -> FrozenSet[str]:
    return shift.required_skills - agent.qualifications


def same_week_commitments(shift: ShiftSnapshot, commitments: Iterable[Commitment]) -> List[Commitment]:
    """Commitments (other shifts only) that start in the shift's ISO week."""
    return [c for c in commitments if c.shift_id != shift.shift_id and iso_week(c.window.start) == shift.week]


def projected_hours(shift: ShiftSnapshot, agent: AgentSnapshot, in_run: Iterable[Commitment] = ()) -> float:
    """Hours the agent would work in the shift's ISO week after taking it."""
    in_run_hours = sum(c.window.hours for c in same_week_commitments(shift, in_run))
    return agent.hours_in_week(shift.week) + in_run_hours + shift.hours


def exceeds_max_hours(
    shift: ShiftSnapshot,
    agent: AgentSnapshot,
    cfg,
    in_run: Iterable[Commitment] = (),
) -> bool:
    if cfg.allow_overtime or agent.overtime_permitted:
        return False
    return projected_hours(shift, agent, in_run) > cfg.max_weekly_hours + HOURS_EPSILON


def check_hard_constraints(
    shift: ShiftSnapshot,
    agent: AgentSnapshot,
    cfg,
    in_run: Sequence[Commitment] = (),
) -> Tuple[str, ...]:
    """
    Evaluate every hard constraint for a (shift, agent) pair.

    Args:
        shift: Shift to fill
        agent: Candidate agent snapshot (carries its external commitments)
        cfg: SchedulerConfig with hours policy
        in_run: Commitments made to this agent earlier in the current run

    Returns:
        Tuple of violated reason codes; empty when the pair is feasible
    """
    reasons: List[str] = []

    # 1. No overlap with anything the agent already holds
    if overlapping_commitments(shift, agent.commitments) or overlapping_commitments(shift, in_run):
        reasons.append(SCHEDULE_OVERLAP)

    # 2. Declared availability covers the shift
    if not is_available(shift, agent):
        reasons.append(OUTSIDE_AVAILABILITY)

    # 3. Qualifications
    if missing_skills(shift, agent):
        reasons.append(MISSING_SKILLS)

    # 4. Employment status
    if agent.employment_status != EmploymentStatus.ACTIVE:
        reasons.append(AGENT_INACTIVE)

    # 5. Hours cap
    if exceeds_max_hours(shift, agent, cfg, in_run):
        reasons.append(MAX_HOURS_EXCEEDED)

    return tuple(reasons)


def blocking_commitments(
    shift: ShiftSnapshot,
    agent: AgentSnapshot,
    cfg,
    in_run: Sequence[Commitment],
) -> List[Commitment]:
    """
    In-run commitments that make a statically feasible agent unusable.

    Overlapping commitments block directly. When the hours cap is what
    fails, every in-run commitment in the same week contributed to it.
    """
    blockers = overlapping_commitments(shift, in_run)
    if exceeds_max_hours(shift, agent, cfg, in_run) and not exceeds_max_hours(shift, agent, cfg):
        blockers.extend(c for c in same_week_commitments(shift, in_run) if c not in blockers)
    return blockers
