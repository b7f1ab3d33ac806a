"""Repository classes for data access."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session, selectinload

from .models import Agent, Shift, ShiftAssignment, Site


class SiteRepository:
    """Repository for site data access."""

    @staticmethod
    def get_by_ids(session: Session, site_ids: Iterable[str]) -> Dict[str, Site]:
        """Get sites keyed by ID."""
        ids = list(set(site_ids))
        if not ids:
            return {}
        return {s.site_id: s for s in session.query(Site).filter(Site.site_id.in_(ids)).all()}


class AgentRepository:
    """Repository for agent data access."""

    @staticmethod
    def get_all(session: Session) -> List[Agent]:
        """Get all agents with their availability windows."""
        return (
            session.query(Agent)
            .options(selectinload(Agent.availability))
            .order_by(Agent.agent_id)
            .all()
        )

    @staticmethod
    def get_by_ids(session: Session, agent_ids: Iterable[str]) -> Dict[str, Agent]:
        """Get agents keyed by ID."""
        ids = list(set(agent_ids))
        if not ids:
            return {}
        return {a.agent_id: a for a in session.query(Agent).filter(Agent.agent_id.in_(ids)).all()}


class ShiftRepository:
    """Repository for shift data access."""

    @staticmethod
    def get_by_ids(session: Session, shift_ids: Iterable[str]) -> Dict[str, Shift]:
        """Get shifts keyed by ID."""
        ids = list(set(shift_ids))
        if not ids:
            return {}
        return {s.shift_id: s for s in session.query(Shift).filter(Shift.shift_id.in_(ids)).all()}

    @staticmethod
    def get_in_range(session: Session, start: datetime, end: datetime, site_id: Optional[str] = None) -> List[Shift]:
        """Get shifts that lie entirely inside ``[start, end]``."""
        query = session.query(Shift).filter(Shift.start_time >= start, Shift.end_time <= end)
        if site_id is not None:
            query = query.filter(Shift.site_id == site_id)
        return query.order_by(Shift.start_time, Shift.shift_id).all()

    @staticmethod
    def get_overlapping(session: Session, start: datetime, end: datetime, site_id: Optional[str] = None) -> List[Shift]:
        """Get shifts with any time inside ``[start, end)``, including ones that run past either bound."""
        query = session.query(Shift).filter(Shift.start_time < end, Shift.end_time > start)
        if site_id is not None:
            query = query.filter(Shift.site_id == site_id)
        return query.order_by(Shift.start_time, Shift.shift_id).all()

    @staticmethod
    def get_assigned_overlapping(session: Session, start: datetime, end: datetime) -> List[Shift]:
        """Get agent-bound, non-cancelled shifts overlapping ``[start, end)``."""
        return (
            session.query(Shift)
            .filter(
                Shift.agent_id.isnot(None),
                Shift.status != "CANCELLED",
                Shift.start_time < end,
                Shift.end_time > start,
            )
            .order_by(Shift.start_time, Shift.shift_id)
            .all()
        )

    @staticmethod
    def assign_agent(
        session: Session,
        shift_id: str,
        agent_id: str,
        score: float,
        method: str,
        assigned_at: datetime,
    ) -> Shift:
        """Bind an agent to a shift (caller commits)."""
        shift = session.query(Shift).filter(Shift.shift_id == shift_id).one()
        shift.agent_id = agent_id
        shift.status = "CONFIRMED"
        shift.assigned_at = assigned_at
        shift.assignment_score = score
        shift.assignment_method = method
        return shift


class AssignmentRepository:
    """Repository for assignment history data access."""

    @staticmethod
    def get_between(
        session: Session,
        start: datetime,
        end: datetime,
        site_id: Optional[str] = None,
    ) -> List[ShiftAssignment]:
        """Get assignment history rows with ``assigned_at`` inside ``[start, end]``."""
        query = (
            session.query(ShiftAssignment)
            .options(selectinload(ShiftAssignment.shift).selectinload(Shift.site))
            .filter(ShiftAssignment.assigned_at >= start, ShiftAssignment.assigned_at <= end)
        )
        if site_id is not None:
            query = query.join(Shift, ShiftAssignment.shift_id == Shift.shift_id).filter(Shift.site_id == site_id)
        return query.order_by(ShiftAssignment.assigned_at, ShiftAssignment.id).all()
