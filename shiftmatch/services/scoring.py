"""Soft scoring of (shift, agent) pairs under named weight profiles."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

from shiftmatch.config import DEFAULT_WEIGHT_PROFILES, SCORE_FACTORS
from shiftmatch.domain.types import AgentSnapshot, OptimizationGoal, ShiftSnapshot


@dataclass(frozen=True)
class WeightProfile:
    goal: OptimizationGoal
    weights: Tuple[Tuple[str, float], ...]

    @property
    def total(self) -> float:
        return sum(w for _, w in self.weights)

    def weight(self, factor: str) -> float:
        return dict(self.weights).get(factor, 0.0)


def weight_profile_for(goal: OptimizationGoal | str, cfg=None) -> WeightProfile:
    """Look up the weight profile for an optimization goal."""
    goal = OptimizationGoal.parse(goal)
    table = getattr(cfg, "weight_profiles", None) or DEFAULT_WEIGHT_PROFILES
    weights = dict(DEFAULT_WEIGHT_PROFILES[goal.value])
    weights.update(table.get(goal.value, {}))
    return WeightProfile(goal=goal, weights=tuple((f, float(weights.get(f, 0.0))) for f in SCORE_FACTORS))


def _clip(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def skill_match_score(shift: ShiftSnapshot, agent: AgentSnapshot) -> float:
    """Fraction of required skills the agent holds; 1.0 when nothing is required."""
    if not shift.required_skills:
        return 1.0
    matched = shift.required_skills & agent.qualifications
    return len(matched) / len(shift.required_skills)


def workload_balance_score(shift: ShiftSnapshot, agent: AgentSnapshot, max_hours: float) -> float:
    """Inverse of utilization in the shift's week: idle agents score 1.0, capped agents 0.0."""
    return _clip(1.0 - agent.hours_in_week(shift.week) / max_hours)


def continuity_score(shift: ShiftSnapshot, agent: AgentSnapshot, saturation: int) -> float:
    """Bonus for recent work at the same site, saturating after a few assignments."""
    return _clip(agent.recent_assignments_at(shift.site_id) / saturation)


def calculate_factors(shift: ShiftSnapshot, agent: AgentSnapshot, cfg, feasible: bool) -> Dict[str, float]:
    """Compute every normalized soft factor for the pair."""
    return {
        "skill_match": skill_match_score(shift, agent),
        "workload_balance": workload_balance_score(shift, agent, cfg.max_weekly_hours),
        "performance": _clip(agent.performance_score),
        "continuity": continuity_score(shift, agent, cfg.continuity_saturation),
        "feasibility": 1.0 if feasible else 0.0,
    }


def weighted_score(factors: Dict[str, float], profile: WeightProfile) -> float:
    """Weighted mean of the factors, clipped to [0, 1]."""
    total = profile.total
    if total <= 0:
        return 0.0
    score = sum(weight * factors.get(name, 0.0) for name, weight in profile.weights) / total
    return _clip(score)
