"""Configuration loading for the assignment engine (YAML or JSON)."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, Optional

import yaml


SCORE_FACTORS = ("skill_match", "workload_balance", "performance", "continuity", "feasibility")

DEFAULT_WEIGHT_PROFILES: Dict[str, Dict[str, float]] = {
    "balanced": {"skill_match": 1.0, "workload_balance": 1.0, "performance": 1.0, "continuity": 1.0, "feasibility": 0.0},
    "cost": {"skill_match": 1.0, "workload_balance": 4.0, "performance": 1.0, "continuity": 1.0, "feasibility": 0.0},
    "quality": {"skill_match": 3.0, "workload_balance": 1.0, "performance": 4.0, "continuity": 1.0, "feasibility": 0.0},
    "coverage": {"skill_match": 1.0, "workload_balance": 1.0, "performance": 1.0, "continuity": 1.0, "feasibility": 4.0},
}


def _default_profiles() -> Dict[str, Dict[str, float]]:
    return {goal: dict(weights) for goal, weights in DEFAULT_WEIGHT_PROFILES.items()}


@dataclass
class SchedulerConfig:
    max_weekly_hours: float = 60.0
    allow_overtime: bool = False
    continuity_lookback_days: int = 30
    continuity_saturation: int = 3
    max_batch_size: int = 500
    max_recommendations: int = 20
    loader_workers: int = 3
    assignment_method: str = "INTELLIGENT_AUTO"
    default_site_capacity: Optional[int] = None
    analytics_window_days: int = 30
    top_agents_limit: int = 10
    weight_profiles: Dict[str, Dict[str, float]] = field(default_factory=_default_profiles)

    def __post_init__(self):
        _validate(self)


def _validate(cfg: SchedulerConfig) -> None:
    if cfg.max_weekly_hours <= 0:
        raise ValueError(f"max_weekly_hours must be positive, got {cfg.max_weekly_hours}")
    if cfg.continuity_saturation < 1:
        raise ValueError("continuity_saturation must be at least 1")
    if cfg.max_batch_size < 1:
        raise ValueError("max_batch_size must be at least 1")
    if cfg.loader_workers < 1:
        raise ValueError("loader_workers must be at least 1")

    for goal, weights in cfg.weight_profiles.items():
        if goal not in DEFAULT_WEIGHT_PROFILES:
            raise ValueError(f"Unknown optimization goal in weight_profiles: '{goal}'")
        for factor, weight in weights.items():
            if factor not in SCORE_FACTORS:
                raise ValueError(f"Unknown score factor '{factor}' in weight profile '{goal}'")
            if weight < 0:
                raise ValueError(f"Negative weight for '{factor}' in weight profile '{goal}'")
        if sum(weights.values()) <= 0:
            raise ValueError(f"Weight profile '{goal}' must have at least one positive weight")


def _read_file(path: Path) -> Dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return json.loads(text) or {}
    return yaml.safe_load(text) or {}


def load_config(path: str | Path | None = None) -> SchedulerConfig:
    """Load configuration from a YAML or JSON file.

    Missing keys fall back to defaults. Weight profile overrides are merged
    factor by factor on top of the built-in profiles.
    """
    if path is None:
        return SchedulerConfig()

    raw = _read_file(Path(path))
    if not isinstance(raw, dict):
        raise ValueError(f"Config file {path} must contain a mapping at the top level")

    known = {f.name for f in fields(SchedulerConfig)}
    unknown = set(raw) - known
    if unknown:
        raise ValueError(f"Unknown config keys in {path}: {sorted(unknown)}")

    profiles = _default_profiles()
    for goal, overrides in (raw.pop("weight_profiles", None) or {}).items():
        profiles.setdefault(str(goal), {}).update({str(k): float(v) for k, v in (overrides or {}).items()})

    return SchedulerConfig(weight_profiles=profiles, **raw)
