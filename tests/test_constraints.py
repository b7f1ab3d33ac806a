"""Tests for hard constraint checks."""

from datetime import datetime, timedelta

import pytest

from shiftmatch.config import SchedulerConfig
from shiftmatch.domain.types import (
    AgentSnapshot,
    Commitment,
    EmploymentStatus,
    Priority,
    ShiftSnapshot,
    TimeWindow,
    iso_week,
)
from shiftmatch.services.constraints import (
    AGENT_INACTIVE,
    MAX_HOURS_EXCEEDED,
    MISSING_SKILLS,
    OUTSIDE_AVAILABILITY,
    SCHEDULE_OVERLAP,
    blocking_commitments,
    check_hard_constraints,
    is_available,
    projected_hours,
)

MONDAY = datetime(2025, 3, 3)
WEEK = iso_week(MONDAY)


def window(start_hour: float, hours: float) -> TimeWindow:
    start = MONDAY + timedelta(hours=start_hour)
    return TimeWindow(start, start + timedelta(hours=hours))


def make_shift(shift_id="S1", start_hour=8, hours=8, skills=(), priority=Priority.NORMAL):
    return ShiftSnapshot(
        shift_id=shift_id,
        site_id="SITE-1",
        window=window(start_hour, hours),
        required_skills=frozenset(skills),
        priority=priority,
    )


@pytest.fixture
def cfg():
    return SchedulerConfig(max_weekly_hours=40.0)


def test_feasible_pair_has_no_reasons(cfg):
    """An active, available, qualified agent with spare hours passes."""
    agent = AgentSnapshot("A1", skills=frozenset({"armed"}))
    assert check_hard_constraints(make_shift(skills={"armed"}), agent, cfg) == ()


def test_time_window_rejects_inverted_bounds():
    """A window must end after it starts."""
    with pytest.raises(ValueError):
        TimeWindow(MONDAY, MONDAY)


def test_overlap_with_external_commitment(cfg):
    """An existing assignment overlapping the shift blocks the agent."""
    existing = Commitment("OLD", "A1", window(12, 4))
    agent = AgentSnapshot("A1", commitments=(existing,))
    assert check_hard_constraints(make_shift(), agent, cfg) == (SCHEDULE_OVERLAP,)


def test_back_to_back_commitment_is_not_overlap(cfg):
    """Half-open windows: a shift ending at 08:00 does not clash with one starting at 08:00."""
    existing = Commitment("OLD", "A1", window(0, 8))
    agent = AgentSnapshot("A1", commitments=(existing,))
    assert SCHEDULE_OVERLAP not in check_hard_constraints(make_shift(), agent, cfg)


def test_overlap_with_in_run_commitment(cfg):
    """Commitments made earlier in the same run count as well."""
    agent = AgentSnapshot("A1")
    in_run = (Commitment("S0", "A1", window(10, 2), source="in_run"),)
    assert check_hard_constraints(make_shift(), agent, cfg, in_run) == (SCHEDULE_OVERLAP,)


def test_availability_must_cover_whole_shift(cfg):
    """A window that only partially covers the shift is not enough."""
    agent = AgentSnapshot("A1", availability=(window(10, 10),))
    assert check_hard_constraints(make_shift(), agent, cfg) == (OUTSIDE_AVAILABILITY,)


def test_adjacent_availability_windows_are_merged():
    """Two touching windows together cover a shift spanning the seam."""
    agent = AgentSnapshot("A1", availability=(window(12, 6), window(6, 6)))
    assert is_available(make_shift(start_hour=10, hours=4), agent)


def test_no_declared_availability_means_open():
    """Agents without windows are treated as openly available."""
    assert is_available(make_shift(), AgentSnapshot("A1"))


def test_certifications_satisfy_required_skills(cfg):
    """Required skills are matched against skills and certifications together."""
    agent = AgentSnapshot("A1", skills=frozenset({"patrol"}), certifications=frozenset({"first_aid"}))
    shift = make_shift(skills={"patrol", "first_aid"})
    assert check_hard_constraints(shift, agent, cfg) == ()


def test_missing_skill_rejected(cfg):
    """A missing requirement yields missing_skills."""
    agent = AgentSnapshot("A1", skills=frozenset({"patrol"}))
    assert check_hard_constraints(make_shift(skills={"armed"}), agent, cfg) == (MISSING_SKILLS,)


@pytest.mark.parametrize("status", [EmploymentStatus.INACTIVE, EmploymentStatus.SUSPENDED, EmploymentStatus.ON_LEAVE])
def test_non_active_agents_rejected(cfg, status):
    """Only ACTIVE agents can be assigned."""
    agent = AgentSnapshot("A1", employment_status=status)
    assert check_hard_constraints(make_shift(), agent, cfg) == (AGENT_INACTIVE,)


def test_hours_cap(cfg):
    """Workload plus the shift may not exceed max_weekly_hours."""
    assert check_hard_constraints(make_shift(), AgentSnapshot("A1", weekly_hours=((WEEK, 32.0),)), cfg) == ()
    assert check_hard_constraints(make_shift(), AgentSnapshot("A1", weekly_hours=((WEEK, 33.0),)), cfg) == (
        MAX_HOURS_EXCEEDED,
    )


def test_hours_cap_counts_in_run_commitments(cfg):
    """Hours committed earlier in the run add to the projected workload."""
    agent = AgentSnapshot("A1", weekly_hours=((WEEK, 24.0),))
    in_run = (Commitment("S0", "A1", window(30, 10), source="in_run"),)
    assert projected_hours(make_shift(), agent, in_run) == pytest.approx(42.0)
    assert check_hard_constraints(make_shift(), agent, cfg, in_run) == (MAX_HOURS_EXCEEDED,)


def test_overtime_permitted_per_agent_or_globally(cfg):
    """Overtime can be allowed per agent or in config."""
    busy = AgentSnapshot("A1", weekly_hours=((WEEK, 39.0),), overtime_permitted=True)
    assert check_hard_constraints(make_shift(), busy, cfg) == ()

    relaxed = SchedulerConfig(max_weekly_hours=40.0, allow_overtime=True)
    assert check_hard_constraints(make_shift(), AgentSnapshot("A2", weekly_hours=((WEEK, 39.0),)), relaxed) == ()


def test_reasons_reported_in_fixed_order(cfg):
    """All violations are reported, in constraint order."""
    agent = AgentSnapshot(
        "A1",
        employment_status=EmploymentStatus.INACTIVE,
        availability=(window(40, 4),),
        commitments=(Commitment("OLD", "A1", window(9, 1)),),
        weekly_hours=((WEEK, 40.0),),
    )
    reasons = check_hard_constraints(make_shift(skills={"armed"}), agent, cfg)
    assert reasons == (SCHEDULE_OVERLAP, OUTSIDE_AVAILABILITY, MISSING_SKILLS, AGENT_INACTIVE, MAX_HOURS_EXCEEDED)


def test_blocking_commitments_for_overlap_and_hours(cfg):
    """Blockers are the in-run commitments that turned a feasible agent infeasible."""
    agent = AgentSnapshot("A1", weekly_hours=((WEEK, 20.0),))
    early = Commitment("S0", "A1", window(30, 8), Priority.HIGH, "in_run")
    clash = Commitment("S2", "A1", window(9, 2), Priority.LOW, "in_run")

    assert blocking_commitments(make_shift(), agent, cfg, (clash,)) == [clash]
    # 20 + 8 + 8 = 36 fits; adding a second 8h block does not
    later = Commitment("S3", "A1", window(50, 8), Priority.LOW, "in_run")
    assert set(blocking_commitments(make_shift(), agent, cfg, (early, later))) == {early, later}


def test_hours_cap_is_per_iso_week(cfg):
    """Hours held or committed in another week do not count toward this week's cap."""
    next_week = make_shift("S9", start_hour=7 * 24 + 8)
    agent = AgentSnapshot("A1", weekly_hours=((WEEK, 40.0),))
    assert check_hard_constraints(make_shift(), agent, cfg) == (MAX_HOURS_EXCEEDED,)
    assert check_hard_constraints(next_week, agent, cfg) == ()

    in_run = (Commitment("S0", "A1", window(30, 10), source="in_run"),)
    assert projected_hours(next_week, agent, in_run) == pytest.approx(8.0)
    assert blocking_commitments(next_week, agent, cfg, in_run) == []
