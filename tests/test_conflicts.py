"""Tests for scheduling conflict detection."""

from datetime import datetime, timedelta

from shiftmatch.config import SchedulerConfig
from shiftmatch.domain.types import AgentSnapshot, ConflictType, ShiftSnapshot, TimeWindow
from shiftmatch.services.conflicts import (
    detect_conflicts,
    find_double_bookings,
    find_overtime_violations,
    find_site_capacity_violations,
    find_supervisor_overlaps,
)

MONDAY = datetime(2025, 3, 3)


def make_shift(shift_id, start_hour, hours=8, site_id="SITE-1", agent_id=None, supervisor_id=None,
               status="CONFIRMED", skills=()):
    start = MONDAY + timedelta(hours=start_hour)
    return ShiftSnapshot(
        shift_id=shift_id,
        site_id=site_id,
        window=TimeWindow(start, start + timedelta(hours=hours)),
        required_skills=frozenset(skills),
        status=status,
        agent_id=agent_id,
        supervisor_id=supervisor_id,
    )


def test_double_booking_one_conflict_per_pair():
    """Each overlapping pair for the same agent is reported once."""
    shifts = [
        make_shift("S1", 8, agent_id="A1"),
        make_shift("S2", 10, agent_id="A1"),
        make_shift("S3", 12, agent_id="A1"),
        make_shift("S4", 10, agent_id="A2"),
    ]
    conflicts = find_double_bookings(shifts)
    assert [c.shift_ids for c in conflicts] == [("S1", "S2"), ("S1", "S3"), ("S2", "S3")]
    assert all(c.type is ConflictType.DOUBLE_BOOKING and c.severity == "high" for c in conflicts)


def test_adjacent_and_cancelled_shifts_do_not_conflict():
    """Back-to-back shifts and cancelled shifts never double-book."""
    shifts = [
        make_shift("S1", 0, agent_id="A1"),
        make_shift("S2", 8, agent_id="A1"),
        make_shift("S3", 9, agent_id="A1", status="CANCELLED"),
    ]
    assert find_double_bookings(shifts) == []


def test_supervisor_overlap_needs_different_sites():
    """A supervisor overlapping at the same site is fine; across sites it is a conflict."""
    shifts = [
        make_shift("S1", 8, site_id="SITE-1", supervisor_id="SUP"),
        make_shift("S2", 9, site_id="SITE-1", supervisor_id="SUP"),
        make_shift("S3", 10, site_id="SITE-2", supervisor_id="SUP"),
    ]
    conflicts = find_supervisor_overlaps(shifts)
    assert [c.shift_ids for c in conflicts] == [("S1", "S3"), ("S2", "S3")]
    assert conflicts[0].agent_id == "SUP"


def test_site_capacity_one_conflict_per_cluster():
    """Over-capacity periods are reported once per overlapping cluster."""
    shifts = [
        make_shift("S1", 8),
        make_shift("S2", 9),
        make_shift("S3", 10),
        # second cluster on Tuesday
        make_shift("S4", 32),
        make_shift("S5", 33),
        make_shift("S6", 34),
    ]
    conflicts = find_site_capacity_violations(shifts, {"SITE-1": 2})
    assert len(conflicts) == 2
    assert conflicts[0].shift_ids == ("S1", "S2", "S3")
    assert conflicts[1].shift_ids == ("S4", "S5", "S6")
    assert "3 concurrent" in conflicts[0].description


def test_site_capacity_within_limit_and_unlimited():
    """No conflict at capacity or when the site has no limit."""
    shifts = [make_shift("S1", 8), make_shift("S2", 9)]
    assert find_site_capacity_violations(shifts, {"SITE-1": 2}) == []
    assert find_site_capacity_violations(shifts, {"SITE-1": None}) == []
    assert len(find_site_capacity_violations(shifts, {}, default_capacity=1)) == 1


def test_overtime_violation_per_iso_week():
    """Hours above the weekly cap for one agent in one ISO week are flagged."""
    shifts = [make_shift(f"S{i}", 24 * i, hours=12, agent_id="A1") for i in range(4)]
    conflicts = find_overtime_violations(shifts, {}, max_weekly_hours=40.0)
    assert len(conflicts) == 1
    assert conflicts[0].type is ConflictType.OVERTIME_VIOLATION
    assert conflicts[0].shift_ids == ("S0", "S1", "S2", "S3")

    # overtime-permitted agents are exempt
    agents = {"A1": AgentSnapshot("A1", overtime_permitted=True)}
    assert find_overtime_violations(shifts, agents, max_weekly_hours=40.0) == []


def test_detect_conflicts_combines_checks():
    """The full scan reports every conflict type it can see."""
    cfg = SchedulerConfig(max_weekly_hours=10.0)
    shifts = [
        make_shift("S1", 8, agent_id="A1", skills={"armed"}),
        make_shift("S2", 12, agent_id="A1"),
    ]
    agents = {"A1": AgentSnapshot("A1")}
    types = [c.type for c in detect_conflicts(shifts, {"SITE-1": 1}, agents=agents, cfg=cfg)]
    assert types == [
        ConflictType.DOUBLE_BOOKING,
        ConflictType.SITE_CAPACITY,
        ConflictType.OVERTIME_VIOLATION,
        ConflictType.SKILL_MISMATCH,
    ]


def test_detect_conflicts_without_agents_skips_agent_checks():
    """Overtime and skill checks need agent data."""
    shifts = [make_shift("S1", 8, agent_id="A1", skills={"armed"})]
    assert detect_conflicts(shifts, cfg=SchedulerConfig()) == []
