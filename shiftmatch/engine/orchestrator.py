"""Orchestrator - loads a planning snapshot, runs the optimizer and commits accepted plans."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from shiftmatch.config import SchedulerConfig
from shiftmatch.domain.models import ShiftAssignment, utcnow
from shiftmatch.domain.repositories import AgentRepository, AssignmentRepository, ShiftRepository, SiteRepository
from shiftmatch.domain.types import (
    CLOSED_SHIFT_STATUSES,
    AssignmentCandidate,
    AssignmentPlan,
    FailedShift,
    FailureReason,
    OptimizationGoal,
    SchedulingConflict,
    ShiftSnapshot,
)
from shiftmatch.services.analytics import history_frame, summarize_history
from shiftmatch.services.conflicts import detect_conflicts as scan_conflicts
from shiftmatch.services.conflicts import find_double_bookings
from shiftmatch.services.loaders import PlanningContext, agent_snapshot, load_context, shift_snapshot
from shiftmatch.services.notifications import (
    AssignmentNotice,
    LoggingDispatcher,
    NotificationDispatcher,
    dispatch_all,
)
from shiftmatch.services.scoring import weight_profile_for

from .matrix import build_assignment_matrix, build_matrix_row
from .optimizer import optimize_assignments
from .report import build_report

logger = logging.getLogger(__name__)

NO_ACTION_MESSAGE = "All shifts in the period are already assigned; no action taken"
NO_SHIFTS_MESSAGE = "No shifts found in the period; no action taken"


@dataclass
class EngineContext:
    """Collaborators shared by every service call."""

    session_factory: Callable[[], Session]
    cfg: SchedulerConfig = field(default_factory=SchedulerConfig)
    clock: Callable[[], datetime] = utcnow
    dispatcher: NotificationDispatcher = field(default_factory=LoggingDispatcher)


@dataclass
class AssignOptions:
    optimization_goal: OptimizationGoal | str = OptimizationGoal.BALANCED
    allow_partial_assignment: bool = True
    notify_agents: bool = True
    validate_constraints: bool = True

    def __post_init__(self):
        self.optimization_goal = OptimizationGoal.parse(self.optimization_goal)


@dataclass
class Recommendations:
    """Ranked preview for one shift; nothing is committed."""

    shift: ShiftSnapshot
    candidates: List[AssignmentCandidate]
    total_agents: int
    available_agents: int

    def to_dict(self) -> Dict:
        return {
            "shift_id": self.shift.shift_id,
            "site_id": self.shift.site_id,
            "start_time": self.shift.window.start.isoformat(),
            "end_time": self.shift.window.end.isoformat(),
            "total_agents": self.total_agents,
            "available_agents": self.available_agents,
            "candidates": [c.to_dict() for c in self.candidates],
        }


@dataclass
class ScheduleOptimization:
    total_shifts: int
    optimized_shifts: int
    plan: AssignmentPlan
    message: str = ""

    def to_dict(self) -> Dict:
        return {
            "total_shifts": self.total_shifts,
            "optimized_shifts": self.optimized_shifts,
            "message": self.message,
            "plan": self.plan.to_dict(),
        }


def _post_check(planning: PlanningContext, plan_shifts: Sequence[ShiftSnapshot]) -> None:
    """Reject a plan that double-books an agent against itself or the store."""
    planned_ids = {s.shift_id for s in plan_shifts}
    clashes = [
        c for c in find_double_bookings(list(planning.existing_shifts) + list(plan_shifts))
        if planned_ids.intersection(c.shift_ids)
    ]
    if clashes:
        raise ValueError(f"Plan double-books agents: {[c.shift_ids for c in clashes]}")


def plan_assignments(context: EngineContext, shift_ids: Sequence[str], options: AssignOptions) -> AssignmentPlan:
    """
    Build an assignment plan for a batch of shifts.

    Args:
        context: EngineContext with store, clock and config
        shift_ids: Shift ids to staff (duplicates collapsed)
        options: AssignOptions

    Returns:
        AssignmentPlan; nothing is written to the store
    """
    cfg = context.cfg
    goal = options.optimization_goal
    profile = weight_profile_for(goal, cfg)
    planning = load_context(context.session_factory, shift_ids, cfg, context.clock())
    requested = len(planning.shifts) + len(planning.failed)

    pre_existing: List[SchedulingConflict] = []
    if options.validate_constraints:
        # batch shifts are scanned unbound; their current agents are being re-planned
        proposed = [replace(s, agent_id=None) for s in planning.shifts]
        pre_existing = scan_conflicts(list(planning.existing_shifts) + proposed, planning.site_capacities, cfg=cfg)
        if pre_existing:
            logger.warning("Pre-check found %d conflicts among existing and proposed shifts", len(pre_existing))

    if planning.failed and not options.allow_partial_assignment:
        failed = list(planning.failed) + [
            FailedShift(s.shift_id, FailureReason.BATCH_ABORTED, "batch aborted: some requested shifts cannot be loaded")
            for s in planning.shifts
        ]
        logger.warning("Partial assignment disabled; %d shifts failed to load", len(planning.failed))
        return AssignmentPlan(
            success=False,
            optimization_goal=goal,
            failed=failed,
            report=build_report(requested, [], failed, goal, aborted=True, pre_existing_conflicts=pre_existing),
            notify_agents=options.notify_agents,
        )

    matrix = build_assignment_matrix(planning.shifts, planning.agents, profile, cfg)
    outcome = optimize_assignments(
        matrix,
        planning.agents_by_id,
        cfg,
        context.clock,
        allow_partial_assignment=options.allow_partial_assignment,
    )

    if options.validate_constraints and outcome.assignments:
        by_id = {s.shift_id: s for s in planning.shifts}
        _post_check(planning, [replace(by_id[a.shift_id], agent_id=a.agent_id) for a in outcome.assignments])

    failed = list(planning.failed) + outcome.failed
    report = build_report(
        requested,
        outcome.assignments,
        failed,
        goal,
        aborted=outcome.aborted,
        pre_existing_conflicts=pre_existing,
    )
    logger.info("Plan (%s): %d assigned, %d failed of %d", goal.value, len(outcome.assignments), len(failed), requested)
    return AssignmentPlan(
        success=not outcome.aborted,
        optimization_goal=goal,
        assignments=list(outcome.assignments),
        failed=failed,
        report=report,
        notify_agents=options.notify_agents,
    )


class AssignmentService:
    """
    Public entry point of the assignment engine.

    Planning calls are read-only and return plans; ``commit_plan`` is the
    only call that writes to the store.
    """

    def __init__(self, context: EngineContext):
        self.context = context

    @property
    def cfg(self) -> SchedulerConfig:
        return self.context.cfg

    def _validate_ids(self, shift_ids: Sequence[str]) -> None:
        if not shift_ids:
            raise ValueError("shift_ids must not be empty")
        unique = set(shift_ids)
        if len(unique) > self.cfg.max_batch_size:
            raise ValueError(f"Batch of {len(unique)} shifts exceeds max_batch_size={self.cfg.max_batch_size}")

    @staticmethod
    def _validate_period(start: datetime, end: datetime) -> None:
        if end <= start:
            raise ValueError(f"end ({end}) must be after start ({start})")

    def assign_shifts(self, shift_ids: Sequence[str], options: AssignOptions | None = None) -> AssignmentPlan:
        """Plan the best agent for each shift in the batch."""
        self._validate_ids(shift_ids)
        return plan_assignments(self.context, list(shift_ids), options or AssignOptions())

    def get_recommendations(
        self,
        shift_id: str,
        limit: int = 10,
        include_unavailable: bool = False,
        optimization_goal: OptimizationGoal | str = OptimizationGoal.BALANCED,
    ) -> Recommendations:
        """
        Rank agents for a single shift without committing anything.

        Raises:
            ValueError: limit out of range, unknown goal or closed shift
            LookupError: unknown shift id
        """
        if not 1 <= limit <= self.cfg.max_recommendations:
            raise ValueError(f"limit must be between 1 and {self.cfg.max_recommendations}, got {limit}")
        goal = OptimizationGoal.parse(optimization_goal)

        planning = load_context(self.context.session_factory, [shift_id], self.cfg, self.context.clock())
        for failure in planning.failed:
            if failure.reason is FailureReason.SHIFT_NOT_FOUND:
                raise LookupError(f"Shift not found: {shift_id}")
            raise ValueError(f"Shift {shift_id} cannot be staffed: {failure.detail}")

        row = build_matrix_row(planning.shifts[0], planning.agents, weight_profile_for(goal, self.cfg), self.cfg)
        ranked = list(row.candidates)
        if include_unavailable:
            ranked += list(row.rejected)
        return Recommendations(
            shift=row.shift,
            candidates=ranked[:limit],
            total_agents=len(planning.agents),
            available_agents=len(row.candidates),
        )

    def optimize_schedule(
        self,
        start: datetime,
        end: datetime,
        site_id: Optional[str] = None,
        optimization_goal: OptimizationGoal | str = OptimizationGoal.BALANCED,
        preserve_existing_assignments: bool = True,
    ) -> ScheduleOptimization:
        """
        Re-plan every open shift in a period.

        With ``preserve_existing_assignments`` only unassigned shifts are
        planned; otherwise assigned shifts are re-planned from scratch.
        """
        self._validate_period(start, end)
        goal = OptimizationGoal.parse(optimization_goal)

        with self.context.session_factory() as session:
            rows = ShiftRepository.get_in_range(session, start, end, site_id=site_id)
            open_rows = [r for r in rows if (r.status or "").upper() not in CLOSED_SHIFT_STATUSES]
            if preserve_existing_assignments:
                open_rows = [r for r in open_rows if r.agent_id is None]
            target_ids = [r.shift_id for r in open_rows]

        if not target_ids:
            message = NO_ACTION_MESSAGE if rows else NO_SHIFTS_MESSAGE
            logger.info("optimize_schedule %s - %s: %s", start, end, message)
            plan = AssignmentPlan(success=True, optimization_goal=goal, report=build_report(0, [], [], goal))
            return ScheduleOptimization(total_shifts=len(rows), optimized_shifts=0, plan=plan, message=message)

        self._validate_ids(target_ids)
        plan = plan_assignments(self.context, target_ids, AssignOptions(optimization_goal=goal))
        return ScheduleOptimization(
            total_shifts=len(rows),
            optimized_shifts=len(plan.assignments),
            plan=plan,
            message=f"Optimized {len(plan.assignments)} of {len(target_ids)} shifts",
        )

    def detect_conflicts(self, start: datetime, end: datetime, site_id: Optional[str] = None) -> List[SchedulingConflict]:
        """Report conflicts among the stored shifts that overlap a period."""
        self._validate_period(start, end)
        with self.context.session_factory() as session:
            shifts = [shift_snapshot(r) for r in ShiftRepository.get_overlapping(session, start, end, site_id=site_id)]
            agent_rows = AgentRepository.get_by_ids(session, {s.agent_id for s in shifts if s.agent_id})
            agents = {agent_id: agent_snapshot(row) for agent_id, row in agent_rows.items()}
            capacities = {
                sid: site.max_concurrent_shifts
                for sid, site in SiteRepository.get_by_ids(session, {s.site_id for s in shifts}).items()
            }
        conflicts = scan_conflicts(shifts, capacities, agents=agents, cfg=self.cfg)
        logger.info("Found %d conflicts among %d shifts", len(conflicts), len(shifts))
        return conflicts

    def get_assignment_analytics(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        site_id: Optional[str] = None,
    ) -> Dict:
        """Summary statistics over persisted assignment history."""
        end = end or self.context.clock()
        start = start or end - timedelta(days=self.cfg.analytics_window_days)
        self._validate_period(start, end)
        with self.context.session_factory() as session:
            history = history_frame(AssignmentRepository.get_between(session, start, end, site_id=site_id))
        summary = summarize_history(history, top_agents_limit=self.cfg.top_agents_limit)
        summary["period"] = {"start": start.isoformat(), "end": end.isoformat(), "site_id": site_id}
        return summary

    def commit_plan(self, plan: AssignmentPlan, notify_agents: Optional[bool] = None) -> Dict[str, int]:
        """
        Persist an accepted plan and notify the assigned agents.

        Writes the shift bindings and history rows in one transaction. The
        transaction is rolled back and the error re-raised on failure;
        notification problems are only logged.
        """
        notify = plan.notify_agents if notify_agents is None else notify_agents
        notices: List[AssignmentNotice] = []

        with self.context.session_factory() as session:
            try:
                for result in plan.assignments:
                    shift = ShiftRepository.assign_agent(
                        session,
                        result.shift_id,
                        result.agent_id,
                        result.score,
                        result.method,
                        result.assigned_at,
                    )
                    session.add(
                        ShiftAssignment(
                            shift_id=result.shift_id,
                            agent_id=result.agent_id,
                            assignment_score=result.score,
                            assignment_method=result.method,
                            assignment_reason=result.reason,
                            assigned_at=result.assigned_at,
                        )
                    )
                    notices.append(
                        AssignmentNotice(
                            recipient_id=result.agent_id,
                            shift_id=result.shift_id,
                            site_name=shift.site.name if shift.site is not None else shift.site_id,
                            start_time=shift.start_time.isoformat(),
                            end_time=shift.end_time.isoformat(),
                        )
                    )
                session.commit()
            except Exception:
                session.rollback()
                logger.exception("Failed to commit plan with %d assignments", len(plan.assignments))
                raise

        logger.info("Committed %d assignments", len(plan.assignments))
        delivery = {"delivered": 0, "failed": 0}
        if notify and notices:
            delivery = dispatch_all(self.context.dispatcher, notices)
        return {"committed": len(plan.assignments), **delivery}
