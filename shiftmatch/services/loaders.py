"""Context loaders: build immutable planning snapshots from the store."""

from __future__ import annotations

import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import datetime, time, timedelta
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from shiftmatch.domain.models import Agent, Shift, split_tags
from shiftmatch.domain.repositories import (
    AgentRepository,
    AssignmentRepository,
    ShiftRepository,
    SiteRepository,
)
from shiftmatch.domain.types import (
    CLOSED_SHIFT_STATUSES,
    AgentSnapshot,
    Commitment,
    EmploymentStatus,
    FailedShift,
    FailureReason,
    Priority,
    ShiftSnapshot,
    TimeWindow,
)

logger = logging.getLogger(__name__)

DEFAULT_PERFORMANCE = 0.5


@dataclass(frozen=True)
class PlanningContext:
    """Everything one optimization run reads, loaded up front."""

    shifts: Tuple[ShiftSnapshot, ...] = ()
    agents: Tuple[AgentSnapshot, ...] = ()
    failed: Tuple[FailedShift, ...] = ()
    existing_shifts: Tuple[ShiftSnapshot, ...] = ()
    site_capacities: Mapping[str, Optional[int]] = field(default_factory=dict)

    @property
    def agents_by_id(self) -> Dict[str, AgentSnapshot]:
        return {a.agent_id: a for a in self.agents}


def shift_snapshot(row: Shift) -> ShiftSnapshot:
    return ShiftSnapshot(
        shift_id=row.shift_id,
        site_id=row.site_id,
        window=TimeWindow(row.start_time, row.end_time),
        required_skills=split_tags(row.required_skills),
        priority=Priority.parse(row.priority),
        status=(row.status or "SCHEDULED").upper(),
        agent_id=row.agent_id,
        supervisor_id=row.supervisor_id,
    )


def _dedupe(ids: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for shift_id in ids:
        if shift_id not in seen:
            seen.add(shift_id)
            ordered.append(shift_id)
    return ordered


def load_shifts(session: Session, shift_ids: Sequence[str]) -> Tuple[List[ShiftSnapshot], List[FailedShift]]:
    """
    Load enriched shift snapshots in request order.

    Unknown ids and shifts that can no longer be staffed are reported as
    failures instead of raising, so the rest of the batch can proceed.
    """
    ordered_ids = _dedupe(shift_ids)
    rows = ShiftRepository.get_by_ids(session, ordered_ids)

    shifts: List[ShiftSnapshot] = []
    failed: List[FailedShift] = []
    for shift_id in ordered_ids:
        row = rows.get(shift_id)
        if row is None:
            failed.append(FailedShift(shift_id, FailureReason.SHIFT_NOT_FOUND, "unknown shift id"))
            continue
        snapshot = shift_snapshot(row)
        if snapshot.status in CLOSED_SHIFT_STATUSES:
            failed.append(
                FailedShift(shift_id, FailureReason.SHIFT_NOT_ASSIGNABLE, f"shift status is {snapshot.status}")
            )
            continue
        shifts.append(snapshot)
    return shifts, failed


def workload_window(shifts: Sequence[ShiftSnapshot]) -> Optional[TimeWindow]:
    """Commitment horizon: every ISO week the batch touches, Monday 00:00 to Monday 00:00."""
    if not shifts:
        return None
    first = min(s.window.start for s in shifts)
    last = max(s.window.end for s in shifts) - timedelta(microseconds=1)
    start_day = first.date() - timedelta(days=first.weekday())
    end_day = last.date() - timedelta(days=last.weekday()) + timedelta(days=7)
    return TimeWindow(
        datetime.combine(start_day, time.min, tzinfo=first.tzinfo),
        datetime.combine(end_day, time.min, tzinfo=first.tzinfo),
    )


def agent_snapshot(row: Agent) -> AgentSnapshot:
    """Static agent attributes; workload and commitments are merged in later."""
    return AgentSnapshot(
        agent_id=row.agent_id,
        skills=split_tags(row.skills),
        certifications=split_tags(row.certifications),
        employment_status=EmploymentStatus.parse(row.employment_status),
        performance_score=DEFAULT_PERFORMANCE if row.performance_score is None else float(row.performance_score),
        availability=tuple(TimeWindow(w.start_time, w.end_time) for w in row.availability),
        overtime_permitted=bool(row.overtime_permitted),
    )


def _agent_snapshots(session: Session) -> List[AgentSnapshot]:
    return [agent_snapshot(row) for row in AgentRepository.get_all(session)]


def _assigned_snapshots(session: Session, window: TimeWindow) -> List[ShiftSnapshot]:
    return [shift_snapshot(row) for row in ShiftRepository.get_assigned_overlapping(session, window.start, window.end)]


def _recent_site_counts(session: Session, since: datetime, until: datetime) -> Dict[str, Dict[str, int]]:
    counts: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for record in AssignmentRepository.get_between(session, since, until):
        counts[record.agent_id][record.shift.site_id] += 1
    return {agent_id: dict(sites) for agent_id, sites in counts.items()}


def _site_capacities(session: Session, site_ids: Iterable[str]) -> Dict[str, Optional[int]]:
    return {site_id: site.max_concurrent_shifts for site_id, site in SiteRepository.get_by_ids(session, site_ids).items()}


def build_agent_pool(
    agents: Sequence[AgentSnapshot],
    assigned: Sequence[ShiftSnapshot],
    site_counts: Mapping[str, Mapping[str, int]],
    shifts: Sequence[ShiftSnapshot],
) -> List[AgentSnapshot]:
    """
    Merge the independently loaded pieces into agent snapshots.

    Only agents whose availability intersects at least one batch shift are
    kept; agents without declared availability are always kept. Workload is
    bucketed by the ISO week each assigned shift starts in. Shifts in the
    batch itself never count as existing commitments or workload.
    """
    batch_ids = {s.shift_id for s in shifts}
    commitments: Dict[str, List[Commitment]] = defaultdict(list)
    workload: Dict[str, Dict[Tuple[int, int], float]] = defaultdict(lambda: defaultdict(float))
    for shift in assigned:
        if shift.shift_id in batch_ids or not shift.agent_id:
            continue
        commitments[shift.agent_id].append(
            Commitment(shift.shift_id, shift.agent_id, shift.window, shift.priority, "external")
        )
        workload[shift.agent_id][shift.week] += shift.hours

    pool: List[AgentSnapshot] = []
    for agent in agents:
        if agent.availability and not any(w.overlaps(s.window) for w in agent.availability for s in shifts):
            continue
        weeks = workload.get(agent.agent_id, {})
        pool.append(
            replace(
                agent,
                weekly_hours=tuple(sorted((week, round(hours, 6)) for week, hours in weeks.items())),
                commitments=tuple(commitments.get(agent.agent_id, ())),
                recent_site_counts=tuple(sorted(site_counts.get(agent.agent_id, {}).items())),
            )
        )
    return pool


def _in_session(session_factory: Callable[[], Session], loader: Callable, *args):
    with session_factory() as session:
        return loader(session, *args)


def load_context(
    session_factory: Callable[[], Session],
    shift_ids: Sequence[str],
    cfg,
    as_of: datetime,
) -> PlanningContext:
    """
    Load the planning snapshot for a batch.

    Shifts are loaded first because they define the time horizon; the
    agent, commitment, site-history and site-capacity queries are then
    independent and run on a thread pool, one session per query.
    """
    with session_factory() as session:
        shifts, failed = load_shifts(session, shift_ids)

    window = workload_window(shifts)
    if window is None:
        logger.info("No assignable shifts among %d requested ids", len(shift_ids))
        return PlanningContext(failed=tuple(failed))

    since = as_of - timedelta(days=cfg.continuity_lookback_days)
    with ThreadPoolExecutor(max_workers=cfg.loader_workers, thread_name_prefix="shiftmatch-loader") as pool:
        agents_f = pool.submit(_in_session, session_factory, _agent_snapshots)
        assigned_f = pool.submit(_in_session, session_factory, _assigned_snapshots, window)
        history_f = pool.submit(_in_session, session_factory, _recent_site_counts, since, as_of)
        capacity_f = pool.submit(_in_session, session_factory, _site_capacities, {s.site_id for s in shifts})
        base_agents = agents_f.result()
        assigned = assigned_f.result()
        site_counts = history_f.result()
        capacities = capacity_f.result()

    agents = build_agent_pool(base_agents, assigned, site_counts, shifts)
    batch_ids = {s.shift_id for s in shifts}
    logger.info(
        "Loaded context: %d shifts, %d agents, %d existing commitments, %d failed ids",
        len(shifts),
        len(agents),
        len(assigned),
        len(failed),
    )
    return PlanningContext(
        shifts=tuple(shifts),
        agents=tuple(agents),
        failed=tuple(failed),
        existing_shifts=tuple(s for s in assigned if s.shift_id not in batch_ids),
        site_capacities=capacities,
    )
