"""Services for scoring, conflict detection, loading and analytics."""

from .analytics import score_distribution, summarize_history
from .conflicts import detect_conflicts
from .constraints import check_hard_constraints
from .feasibility import evaluate_candidate
from .loaders import PlanningContext, load_context
from .scoring import WeightProfile, weight_profile_for

__all__ = [
    "score_distribution",
    "summarize_history",
    "detect_conflicts",
    "check_hard_constraints",
    "evaluate_candidate",
    "PlanningContext",
    "load_context",
    "WeightProfile",
    "weight_profile_for",
]
