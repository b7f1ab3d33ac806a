"""SQLAlchemy models for the field-agent deployment store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import FrozenSet, Iterable

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, relationship


def split_tags(value: str | None) -> FrozenSet[str]:
    """Parse a semicolon-separated tag column into a normalized set."""
    if not value:
        return frozenset()
    return frozenset(tag.strip().lower() for tag in str(value).split(";") if tag.strip())


def join_tags(tags: Iterable[str]) -> str:
    return ";".join(sorted({t.strip().lower() for t in tags if t and t.strip()}))


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the naive DateTime columns below."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Site(Base):
    """Client site where shifts are worked."""

    __tablename__ = "sites"

    site_id = Column(String(64), primary_key=True, name="id")
    name = Column(String(200), nullable=False)
    max_concurrent_shifts = Column(Integer, nullable=True)  # None = unlimited

    shifts = relationship("Shift", back_populates="site")

    def __repr__(self) -> str:
        return f"<Site(id={self.site_id}, name='{self.name}', capacity={self.max_concurrent_shifts})>"


class Agent(Base):
    """Field agent with qualifications and performance information."""

    __tablename__ = "agents"

    agent_id = Column(String(64), primary_key=True, name="id")
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    employment_status = Column(String(20), nullable=False, default="ACTIVE")

    # Semicolon-separated keywords, e.g. "armed;first_aid"
    skills = Column(Text, nullable=True)
    certifications = Column(Text, nullable=True)

    performance_score = Column(Float, nullable=True)  # 0-1 scale
    overtime_permitted = Column(Boolean, nullable=False, default=False)

    availability = relationship("AvailabilityWindow", back_populates="agent", order_by="AvailabilityWindow.start_time")
    shifts = relationship("Shift", back_populates="agent")
    assignment_history = relationship("ShiftAssignment", back_populates="agent")

    def __repr__(self) -> str:
        return f"<Agent(id={self.agent_id}, name='{self.first_name} {self.last_name}', status='{self.employment_status}')>"


class AvailabilityWindow(Base):
    """A period during which an agent declared themselves available."""

    __tablename__ = "availability_windows"

    id = Column(Integer, primary_key=True, autoincrement=True)
    agent_id = Column(String(64), ForeignKey("agents.id"), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)

    agent = relationship("Agent", back_populates="availability")

    def __repr__(self) -> str:
        return f"<AvailabilityWindow(agent={self.agent_id}, {self.start_time} - {self.end_time})>"


class Shift(Base):
    """A time-boxed work period at a site, optionally bound to an agent."""

    __tablename__ = "shifts"

    shift_id = Column(String(64), primary_key=True, name="id")
    site_id = Column(String(64), ForeignKey("sites.id"), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    required_skills = Column(Text, nullable=True)  # Semicolon-separated
    priority = Column(String(20), nullable=False, default="NORMAL")
    status = Column(String(20), nullable=False, default="SCHEDULED")
    agent_id = Column(String(64), ForeignKey("agents.id"), nullable=True)
    supervisor_id = Column(String(64), nullable=True)
    assigned_at = Column(DateTime, nullable=True)
    assignment_score = Column(Float, nullable=True)
    assignment_method = Column(String(40), nullable=True)

    site = relationship("Site", back_populates="shifts")
    agent = relationship("Agent", back_populates="shifts")
    assignment_history = relationship("ShiftAssignment", back_populates="shift")

    def __repr__(self) -> str:
        return f"<Shift(id={self.shift_id}, site={self.site_id}, {self.start_time} - {self.end_time}, agent={self.agent_id})>"


class ShiftAssignment(Base):
    """Historical record of an accepted assignment decision."""

    __tablename__ = "shift_assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    shift_id = Column(String(64), ForeignKey("shifts.id"), nullable=False)
    agent_id = Column(String(64), ForeignKey("agents.id"), nullable=False)
    assignment_score = Column(Float, nullable=False)
    assignment_method = Column(String(40), nullable=False)
    assignment_reason = Column(Text, nullable=True)
    assigned_at = Column(DateTime, nullable=False, default=utcnow)

    shift = relationship("Shift", back_populates="assignment_history")
    agent = relationship("Agent", back_populates="assignment_history")

    def __repr__(self) -> str:
        return f"<ShiftAssignment(id={self.id}, shift={self.shift_id}, agent={self.agent_id}, score={self.assignment_score})>"
