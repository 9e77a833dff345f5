"""Enrichment, reconciliation and recommendation engine for toManage."""

from tomanage.engine.enrichment import (
    compute_urgency,
    infer_energy,
    infer_context,
    estimate_duration,
    enrich_task,
    enrich_tasks,
)
from tomanage.engine.reconciliation import merge_tasks, SyncResult
from tomanage.engine.recommendation import (
    Recommendation,
    RecommendationEngine,
    RecommendationMethod,
    select,
)
from tomanage.engine.context import get_current_context, get_user_profile

__all__ = [
    "compute_urgency",
    "infer_energy",
    "infer_context",
    "estimate_duration",
    "enrich_task",
    "enrich_tasks",
    "merge_tasks",
    "SyncResult",
    "Recommendation",
    "RecommendationEngine",
    "RecommendationMethod",
    "select",
    "get_current_context",
    "get_user_profile",
]
