"""Read-only scheduling conflict detection over a set of shifts."""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from shiftmatch.domain.types import AgentSnapshot, ConflictType, SchedulingConflict, ShiftSnapshot

from .constraints import HOURS_EPSILON


def _active(shifts: Iterable[ShiftSnapshot]) -> List[ShiftSnapshot]:
    return sorted(
        (s for s in shifts if s.status != "CANCELLED"),
        key=lambda s: (s.window.start, s.window.end, s.shift_id),
    )


def _overlapping_pairs(shifts: Sequence[ShiftSnapshot]):
    """Yield each overlapping pair once; ``shifts`` must be sorted by start."""
    for i, first in enumerate(shifts):
        for second in shifts[i + 1:]:
            if second.window.start >= first.window.end:
                break
            yield first, second


def find_double_bookings(shifts: Iterable[ShiftSnapshot]) -> List[SchedulingConflict]:
    by_agent: Dict[str, List[ShiftSnapshot]] = defaultdict(list)
    for shift in _active(shifts):
        if shift.agent_id:
            by_agent[shift.agent_id].append(shift)

    conflicts = []
    for agent_id in sorted(by_agent):
        for first, second in _overlapping_pairs(by_agent[agent_id]):
            conflicts.append(
                SchedulingConflict(
                    type=ConflictType.DOUBLE_BOOKING,
                    shift_ids=(first.shift_id, second.shift_id),
                    severity="high",
                    agent_id=agent_id,
                    description=f"Agent {agent_id} is assigned to overlapping shifts",
                )
            )
    return conflicts


def find_supervisor_overlaps(shifts: Iterable[ShiftSnapshot]) -> List[SchedulingConflict]:
    by_supervisor: Dict[str, List[ShiftSnapshot]] = defaultdict(list)
    for shift in _active(shifts):
        if shift.supervisor_id:
            by_supervisor[shift.supervisor_id].append(shift)

    conflicts = []
    for supervisor_id in sorted(by_supervisor):
        for first, second in _overlapping_pairs(by_supervisor[supervisor_id]):
            if first.site_id == second.site_id:
                continue
            conflicts.append(
                SchedulingConflict(
                    type=ConflictType.SUPERVISOR_OVERLAP,
                    shift_ids=(first.shift_id, second.shift_id),
                    severity="medium",
                    agent_id=supervisor_id,
                    description=(
                        f"Supervisor {supervisor_id} is required at sites "
                        f"{first.site_id} and {second.site_id} at the same time"
                    ),
                )
            )
    return conflicts


def _over_capacity_clusters(shifts: Sequence[ShiftSnapshot], capacity: int):
    """Yield (shift ids, peak) for each overlap cluster that exceeds capacity."""
    cluster: List[ShiftSnapshot] = []
    cluster_end = None
    for shift in list(shifts) + [None]:
        if shift is not None and cluster and shift.window.start < cluster_end:
            cluster.append(shift)
            cluster_end = max(cluster_end, shift.window.end)
            continue

        if len(cluster) > capacity:
            events = sorted(
                [(s.window.start, 1, s.shift_id) for s in cluster] + [(s.window.end, 0, s.shift_id) for s in cluster]
            )
            active, over, peak = set(), set(), 0
            for _, is_start, shift_id in events:
                if is_start:
                    active.add(shift_id)
                else:
                    active.discard(shift_id)
                peak = max(peak, len(active))
                if len(active) > capacity:
                    over.update(active)
            if over:
                yield tuple(sorted(over)), peak

        if shift is not None:
            cluster = [shift]
            cluster_end = shift.window.end


def find_site_capacity_violations(
    shifts: Iterable[ShiftSnapshot],
    site_capacities: Mapping[str, Optional[int]],
    default_capacity: Optional[int] = None,
) -> List[SchedulingConflict]:
    by_site: Dict[str, List[ShiftSnapshot]] = defaultdict(list)
    for shift in _active(shifts):
        by_site[shift.site_id].append(shift)

    conflicts = []
    for site_id in sorted(by_site):
        capacity = site_capacities.get(site_id)
        if capacity is None:
            capacity = default_capacity
        if capacity is None:
            continue
        for shift_ids, peak in _over_capacity_clusters(by_site[site_id], capacity):
            conflicts.append(
                SchedulingConflict(
                    type=ConflictType.SITE_CAPACITY,
                    shift_ids=shift_ids,
                    severity="medium",
                    site_id=site_id,
                    description=f"Site {site_id} has {peak} concurrent shifts (capacity {capacity})",
                )
            )
    return conflicts


def find_overtime_violations(
    shifts: Iterable[ShiftSnapshot],
    agents: Mapping[str, AgentSnapshot],
    max_weekly_hours: float,
) -> List[SchedulingConflict]:
    hours: Dict[tuple, float] = defaultdict(float)
    members: Dict[tuple, List[str]] = defaultdict(list)
    for shift in _active(shifts):
        if not shift.agent_id:
            continue
        agent = agents.get(shift.agent_id)
        if agent is not None and agent.overtime_permitted:
            continue
        key = (shift.agent_id, *shift.week)
        hours[key] += shift.hours
        members[key].append(shift.shift_id)

    conflicts = []
    for key in sorted(hours):
        if hours[key] <= max_weekly_hours + HOURS_EPSILON:
            continue
        agent_id, year, week = key
        conflicts.append(
            SchedulingConflict(
                type=ConflictType.OVERTIME_VIOLATION,
                shift_ids=tuple(members[key]),
                severity="medium",
                agent_id=agent_id,
                description=f"Agent {agent_id} scheduled {hours[key]:.1f}h in {year}-W{week:02d} (cap {max_weekly_hours}h)",
            )
        )
    return conflicts


def find_skill_mismatches(
    shifts: Iterable[ShiftSnapshot],
    agents: Mapping[str, AgentSnapshot],
) -> List[SchedulingConflict]:
    conflicts = []
    for shift in _active(shifts):
        agent = agents.get(shift.agent_id) if shift.agent_id else None
        if agent is None:
            continue
        missing = shift.required_skills - agent.qualifications
        if missing:
            conflicts.append(
                SchedulingConflict(
                    type=ConflictType.SKILL_MISMATCH,
                    shift_ids=(shift.shift_id,),
                    severity="low",
                    agent_id=agent.agent_id,
                    site_id=shift.site_id,
                    description=f"Agent {agent.agent_id} lacks required skills: {', '.join(sorted(missing))}",
                )
            )
    return conflicts


def detect_conflicts(
    shifts: Sequence[ShiftSnapshot],
    site_capacities: Optional[Mapping[str, Optional[int]]] = None,
    agents: Optional[Mapping[str, AgentSnapshot]] = None,
    cfg=None,
) -> List[SchedulingConflict]:
    """
    Scan a shift set for scheduling conflicts without modifying anything.

    Args:
        shifts: Assigned or proposed shift snapshots
        site_capacities: Max concurrent shifts per site (None = unlimited)
        agents: Agent snapshots keyed by id; enables overtime and skill checks
        cfg: SchedulerConfig; supplies the default site capacity and hours cap

    Returns:
        Conflicts ordered by type, then by the order they were found
    """
    default_capacity = getattr(cfg, "default_site_capacity", None)
    conflicts = find_double_bookings(shifts)
    conflicts += find_supervisor_overlaps(shifts)
    conflicts += find_site_capacity_violations(shifts, site_capacities or {}, default_capacity)
    if agents is not None:
        if cfg is not None:
            conflicts += find_overtime_violations(shifts, agents, cfg.max_weekly_hours)
        conflicts += find_skill_mismatches(shifts, agents)
    return conflicts
