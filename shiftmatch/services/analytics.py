"""Read-only statistics over persisted assignment history."""

from __future__ import annotations

from collections import Counter
from typing import Dict, Iterable, List, Sequence

import pandas as pd

from shiftmatch.domain.models import ShiftAssignment

SCORE_BUCKETS = ("excellent", "good", "fair", "poor")

HISTORY_COLUMNS = ["shift_id", "agent_id", "site_id", "site_name", "score", "method", "assigned_at"]


def score_bucket(score: float) -> str:
    if score >= 0.9:
        return "excellent"
    if score >= 0.7:
        return "good"
    if score >= 0.5:
        return "fair"
    return "poor"


def score_distribution(scores: Iterable[float]) -> Dict[str, int]:
    counts = Counter(score_bucket(s) for s in scores)
    return {bucket: counts.get(bucket, 0) for bucket in SCORE_BUCKETS}


def history_frame(records: Sequence[ShiftAssignment]) -> pd.DataFrame:
    """Flatten history rows (with their shift and site loaded) into a DataFrame."""
    rows = [
        {
            "shift_id": r.shift_id,
            "agent_id": r.agent_id,
            "site_id": r.shift.site_id if r.shift is not None else None,
            "site_name": r.shift.site.name if r.shift is not None and r.shift.site is not None else None,
            "score": float(r.assignment_score),
            "method": r.assignment_method,
            "assigned_at": r.assigned_at,
        }
        for r in records
    ]
    return pd.DataFrame(rows, columns=HISTORY_COLUMNS)


def summarize_history(history: pd.DataFrame, top_agents_limit: int = 10) -> Dict:
    """
    Compute assignment analytics from a history DataFrame.

    Args:
        history: DataFrame with HISTORY_COLUMNS
        top_agents_limit: Number of agents to keep in ``top_agents``

    Returns:
        Dict with total_assignments, average_score, method_breakdown,
        score_distribution, top_agents and per_site_averages
    """
    if history.empty:
        return {
            "total_assignments": 0,
            "average_score": 0.0,
            "method_breakdown": {},
            "score_distribution": score_distribution([]),
            "top_agents": [],
            "per_site_averages": [],
        }

    methods = history.groupby("method").size().sort_index()

    by_agent = (
        history.groupby("agent_id")["score"]
        .agg(assignments="count", average_score="mean")
        .reset_index()
        .sort_values(["average_score", "assignments", "agent_id"], ascending=[False, False, True])
        .head(top_agents_limit)
    )

    by_site = (
        history.assign(site_name=history["site_name"].fillna(""))
        .groupby(["site_id", "site_name"])["score"]
        .agg(assignments="count", average_score="mean")
        .reset_index()
        .sort_values("site_id")
    )

    return {
        "total_assignments": int(len(history)),
        "average_score": round(float(history["score"].mean()), 4),
        "method_breakdown": {str(k): int(v) for k, v in methods.items()},
        "score_distribution": score_distribution(history["score"]),
        "top_agents": _records(by_agent),
        "per_site_averages": _records(by_site),
    }


def _records(frame: pd.DataFrame) -> List[Dict]:
    out = []
    for row in frame.to_dict(orient="records"):
        row["assignments"] = int(row["assignments"])
        row["average_score"] = round(float(row["average_score"]), 4)
        out.append(row)
    return out
