"""Tests for context loaders over the SQLAlchemy store."""

from datetime import datetime, timedelta

import pytest

from shiftmatch.config import SchedulerConfig
from shiftmatch.domain.models import Agent, AvailabilityWindow, Shift, ShiftAssignment, Site
from shiftmatch.domain.types import EmploymentStatus, FailureReason, Priority, ShiftSnapshot, TimeWindow, iso_week
from shiftmatch.services.loaders import load_context, load_shifts, workload_window

MONDAY = datetime(2025, 3, 3)
AS_OF = datetime(2025, 3, 1, 12)


def at(hours: float) -> datetime:
    return MONDAY + timedelta(hours=hours)


@pytest.fixture
def seeded(session_factory):
    """Two sites, four agents, a batch shift and some existing assignments."""
    with session_factory() as session:
        session.add_all([
            Site(site_id="SITE-1", name="Harbor Depot", max_concurrent_shifts=2),
            Site(site_id="SITE-2", name="City Mall"),
        ])
        session.add_all([
            Agent(agent_id="A1", first_name="Ana", last_name="Ruiz", skills="armed;patrol",
                  certifications="first_aid", performance_score=0.8),
            Agent(agent_id="A2", first_name="Ben", last_name="Osei", skills="patrol"),
            Agent(agent_id="A3", first_name="Cal", last_name="Ito", skills="patrol"),
            Agent(agent_id="A4", first_name="Dee", last_name="Moss", employment_status="SUSPENDED"),
        ])
        session.add_all([
            AvailabilityWindow(agent_id="A1", start_time=at(6), end_time=at(24)),
            # Friday only: never intersects the Monday batch
            AvailabilityWindow(agent_id="A3", start_time=at(96), end_time=at(120)),
        ])
        session.add_all([
            Shift(shift_id="NEW-1", site_id="SITE-1", start_time=at(8), end_time=at(16),
                  required_skills="Armed", priority="high"),
            Shift(shift_id="NEW-2", site_id="SITE-2", start_time=at(8), end_time=at(16),
                  status="CANCELLED"),
            Shift(shift_id="OLD-1", site_id="SITE-2", start_time=at(18), end_time=at(22),
                  agent_id="A2", status="CONFIRMED"),
            Shift(shift_id="OLD-2", site_id="SITE-1", start_time=at(-72), end_time=at(-64),
                  agent_id="A2", status="COMPLETED"),
            Shift(shift_id="OLD-3", site_id="SITE-2", start_time=at(9), end_time=at(12),
                  agent_id="A1", status="CANCELLED"),
        ])
        session.add_all([
            ShiftAssignment(shift_id="OLD-2", agent_id="A2", assignment_score=0.8,
                            assignment_method="MANUAL", assigned_at=AS_OF - timedelta(days=3)),
            ShiftAssignment(shift_id="OLD-2", agent_id="A2", assignment_score=0.8,
                            assignment_method="MANUAL", assigned_at=AS_OF - timedelta(days=2)),
            ShiftAssignment(shift_id="OLD-1", agent_id="A1", assignment_score=0.6,
                            assignment_method="MANUAL", assigned_at=AS_OF - timedelta(days=90)),
        ])
        session.commit()
    return session_factory


def test_load_shifts_reports_unknown_and_closed(seeded):
    """Unknown ids and cancelled shifts become failures; order and dedupe follow the request."""
    with seeded() as session:
        shifts, failed = load_shifts(session, ["NEW-1", "MISSING", "NEW-2", "NEW-1"])

    assert [s.shift_id for s in shifts] == ["NEW-1"]
    assert [(f.shift_id, f.reason) for f in failed] == [
        ("MISSING", FailureReason.SHIFT_NOT_FOUND),
        ("NEW-2", FailureReason.SHIFT_NOT_ASSIGNABLE),
    ]


def test_shift_snapshot_parses_tags_and_priority(seeded):
    """Semicolon tags are normalized and priority strings become enum values."""
    with seeded() as session:
        shifts, _ = load_shifts(session, ["NEW-1"])
    assert shifts[0].required_skills == frozenset({"armed"})
    assert shifts[0].priority is Priority.HIGH


def test_workload_window_spans_iso_weeks():
    """The workload window runs Monday to Monday over every week the batch touches."""
    shifts = [
        ShiftSnapshot("S1", "X", TimeWindow(at(30), at(38))),
        ShiftSnapshot("S2", "X", TimeWindow(at(170), at(178))),
    ]
    window = workload_window(shifts)
    assert window.start == MONDAY
    assert window.end == MONDAY + timedelta(days=14)
    assert workload_window([]) is None


def test_shift_ending_at_midnight_stays_in_its_week():
    """A Sunday shift ending exactly at Monday 00:00 does not pull in the next week."""
    window = workload_window([ShiftSnapshot("S1", "X", TimeWindow(at(160), at(168)))])
    assert window.end == MONDAY + timedelta(days=7)


def test_load_context_builds_agent_pool(seeded):
    """Agents whose availability misses the batch are left out; open agents stay."""
    context = load_context(seeded, ["NEW-1"], SchedulerConfig(), AS_OF)
    assert [a.agent_id for a in context.agents] == ["A1", "A2", "A4"]

    a1 = context.agents_by_id["A1"]
    assert a1.skills == frozenset({"armed", "patrol"})
    assert a1.qualifications == frozenset({"armed", "patrol", "first_aid"})
    assert a1.performance_score == 0.8
    # cancelled shifts are not commitments
    assert a1.commitments == ()
    assert a1.weekly_hours == ()

    a4 = context.agents_by_id["A4"]
    assert a4.employment_status is EmploymentStatus.SUSPENDED
    assert a4.performance_score == 0.5


def test_load_context_workload_and_commitments(seeded):
    """Assigned shifts inside the window become workload and external commitments."""
    context = load_context(seeded, ["NEW-1"], SchedulerConfig(), AS_OF)
    a2 = context.agents_by_id["A2"]
    assert a2.hours_in_week(iso_week(MONDAY)) == pytest.approx(4.0)
    assert [c.shift_id for c in a2.commitments] == ["OLD-1"]
    assert [s.shift_id for s in context.existing_shifts] == ["OLD-1"]


def test_workload_is_bucketed_by_iso_week(seeded):
    """Assigned hours count toward the week each shift starts in."""
    with seeded() as session:
        session.add_all([
            Shift(shift_id="NEXT-1", site_id="SITE-1", start_time=at(176), end_time=at(184)),
            Shift(shift_id="OLD-4", site_id="SITE-1", start_time=at(192), end_time=at(198),
                  agent_id="A2", status="CONFIRMED"),
        ])
        session.commit()

    context = load_context(seeded, ["NEW-1", "NEXT-1"], SchedulerConfig(), AS_OF)
    a2 = context.agents_by_id["A2"]
    assert a2.weekly_hours == ((iso_week(MONDAY), 4.0), (iso_week(at(176)), 6.0))
    assert a2.hours_in_week(iso_week(at(400))) == 0.0


def test_load_context_recent_site_history(seeded):
    """Only history inside the lookback counts toward continuity."""
    context = load_context(seeded, ["NEW-1"], SchedulerConfig(), AS_OF)
    assert context.agents_by_id["A2"].recent_assignments_at("SITE-1") == 2
    assert context.agents_by_id["A1"].recent_site_counts == ()


def test_load_context_site_capacities(seeded):
    """Capacities are loaded for the sites the batch touches."""
    context = load_context(seeded, ["NEW-1"], SchedulerConfig(), AS_OF)
    assert context.site_capacities == {"SITE-1": 2}


def test_batch_shift_is_not_its_own_commitment(seeded):
    """Re-planning an assigned shift ignores its current binding."""
    with seeded() as session:
        shift = session.get(Shift, "NEW-1")
        shift.agent_id = "A1"
        session.commit()

    context = load_context(seeded, ["NEW-1"], SchedulerConfig(), AS_OF)
    assert context.agents_by_id["A1"].commitments == ()
    assert context.agents_by_id["A1"].weekly_hours == ()


def test_load_context_serial_workers(seeded):
    """A single loader worker gives the same snapshot."""
    parallel = load_context(seeded, ["NEW-1"], SchedulerConfig(), AS_OF)
    serial = load_context(seeded, ["NEW-1"], SchedulerConfig(loader_workers=1), AS_OF)
    assert parallel == serial


def test_load_context_without_assignable_shifts(seeded):
    """Nothing to plan still returns the failures."""
    context = load_context(seeded, ["MISSING"], SchedulerConfig(), AS_OF)
    assert context.shifts == () and context.agents == ()
    assert context.failed[0].reason is FailureReason.SHIFT_NOT_FOUND
