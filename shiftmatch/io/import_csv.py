"""CSV import utilities to seed the deployment store."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

import pandas as pd
from sqlalchemy.orm import Session

from shiftmatch.domain.models import Agent, AvailabilityWindow, Shift, Site, join_tags, split_tags

logger = logging.getLogger(__name__)

TRUTHY = {"TRUE", "T", "1", "YES", "Y"}


def _read(csv_path: str | Path, id_column: str | None = None) -> pd.DataFrame:
    df = pd.read_csv(csv_path, dtype=str)

    # Normalize column names
    df.columns = df.columns.str.lower().str.strip()
    if id_column is not None:
        df.rename(columns={"id": id_column}, inplace=True)
    return df


def _text(row: pd.Series, column: str, default: str | None = None) -> str | None:
    value = row.get(column)
    if value is None or pd.isna(value):
        return default
    text = str(value).strip()
    return text or default


def _tags(row: pd.Series, column: str) -> str | None:
    return join_tags(split_tags(_text(row, column))) or None


def _timestamp(value) -> datetime:
    ts = pd.Timestamp(value)
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts.to_pydatetime()


def import_sites_csv(session: Session, csv_path: str | Path) -> int:
    """
    Import sites from CSV into database.

    Args:
        session: Database session
        csv_path: CSV with site_id, name and optional max_concurrent_shifts

    Returns:
        Number of sites imported
    """
    df = _read(csv_path, "site_id")
    sites = []
    for _, row in df.iterrows():
        capacity = row.get("max_concurrent_shifts")
        sites.append(
            Site(
                site_id=str(row["site_id"]),
                name=_text(row, "name", str(row["site_id"])),
                max_concurrent_shifts=int(capacity) if capacity is not None and pd.notna(capacity) else None,
            )
        )

    session.add_all(sites)
    session.commit()

    logger.info("Imported %d sites from %s", len(sites), csv_path)
    return len(sites)


def import_agents_csv(session: Session, csv_path: str | Path) -> int:
    """
    Import agents from CSV into database.

    Skills and certifications are semicolon-separated and stored normalized.
    """
    df = _read(csv_path, "agent_id")
    agents = []
    for _, row in df.iterrows():
        score = row.get("performance_score")
        agents.append(
            Agent(
                agent_id=str(row["agent_id"]),
                first_name=_text(row, "first_name", ""),
                last_name=_text(row, "last_name", ""),
                employment_status=_text(row, "employment_status", "ACTIVE").upper(),
                skills=_tags(row, "skills"),
                certifications=_tags(row, "certifications"),
                performance_score=float(score) if score is not None and pd.notna(score) else None,
                overtime_permitted=_text(row, "overtime_permitted", "FALSE").upper() in TRUTHY,
            )
        )

    session.add_all(agents)
    session.commit()

    logger.info("Imported %d agents from %s", len(agents), csv_path)
    return len(agents)


def import_availability_csv(session: Session, csv_path: str | Path) -> int:
    """Import agent availability windows (agent_id, start_time, end_time)."""
    df = _read(csv_path)
    windows = []
    for _, row in df.iterrows():
        start = _timestamp(row["start_time"])
        end = _timestamp(row["end_time"])
        if end <= start:
            raise ValueError(f"Availability window for agent {row['agent_id']} ends before it starts: {start} - {end}")
        windows.append(AvailabilityWindow(agent_id=str(row["agent_id"]), start_time=start, end_time=end))

    session.add_all(windows)
    session.commit()

    logger.info("Imported %d availability windows from %s", len(windows), csv_path)
    return len(windows)


def import_shifts_csv(session: Session, csv_path: str | Path) -> int:
    """
    Import shifts from CSV into database.

    Args:
        session: Database session
        csv_path: CSV with shift_id, site_id, start_time, end_time and the
            optional columns required_skills, priority, status, agent_id,
            supervisor_id

    Returns:
        Number of shifts imported
    """
    df = _read(csv_path, "shift_id")
    shifts = []
    for _, row in df.iterrows():
        start = _timestamp(row["start_time"])
        end = _timestamp(row["end_time"])
        if end <= start:
            raise ValueError(f"Shift {row['shift_id']} ends before it starts: {start} - {end}")
        shifts.append(
            Shift(
                shift_id=str(row["shift_id"]),
                site_id=str(row["site_id"]),
                start_time=start,
                end_time=end,
                required_skills=_tags(row, "required_skills"),
                priority=_text(row, "priority", "NORMAL").upper(),
                status=_text(row, "status", "SCHEDULED").upper(),
                agent_id=_text(row, "agent_id"),
                supervisor_id=_text(row, "supervisor_id"),
            )
        )

    session.add_all(shifts)
    session.commit()

    logger.info("Imported %d shifts from %s", len(shifts), csv_path)
    return len(shifts)
