"""Task recommendation strategies for toManage.

Each strategy is a pure selector over incomplete tasks that yields a task
(or none), its candidate list and a deterministic rationale. The engine
then asks the AI reasoning service for a richer rationale and keeps the
deterministic one whenever that call is unavailable or fails.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from tomanage.engine.enrichment import compute_urgency
from tomanage.engine.prompts import build_recommendation_prompt
from tomanage.errors import ExternalServiceError, ToolExecutionError, ValidationError
from tomanage.models.constants import (
    DEEP_WORK_MIN_MINUTES,
    DEFAULT_FALLBACK_DURATION_MINUTES,
    PRIORITY_WEIGHT,
    QUICK_WIN_MAX_MINUTES,
    URGENCY_SEVERITY,
)
from tomanage.models.preferences import CurrentContext, UserProfile
from tomanage.models.task import EnergyLevel, Priority, Task, Urgency, enum_to_value

logger = logging.getLogger(__name__)

NO_TASKS_MESSAGE = "Great job! You have no incomplete tasks. Time to relax or plan your next goals."

URGENT_LEVELS = [Urgency.OVERDUE.value, Urgency.CRITICAL.value, Urgency.TODAY.value]
NOT_URGENT_LEVELS = [Urgency.THIS_WEEK.value, Urgency.FUTURE.value, Urgency.NONE.value]
IMPORTANT_PRIORITIES = [Priority.HIGH.value, Priority.MEDIUM.value]
QUICK_WIN_ENERGY = [EnergyLevel.LOW.value, EnergyLevel.MEDIUM.value]


class RecommendationMethod(str, Enum):
    """Named selection strategies."""
    SMART = "smart"
    ENERGY = "energy"
    QUICK = "quick"
    EISENHOWER = "eisenhower"
    FOCUS = "focus"


class RecommendationSource(str, Enum):
    """Where the rationale text came from."""
    AI = "ai"
    RULES = "rules"


class Recommendation(BaseModel):
    """Outcome of a recommendation request."""

    method: RecommendationMethod
    task: Optional[Task] = Field(None, description="Recommended task, if any")
    candidates: List[Task] = Field(default_factory=list, description="Filtered/sorted candidate list")
    quadrants: Optional[Dict[str, List[Task]]] = Field(None, description="Eisenhower quadrants Q1..Q4")
    message: str = Field(..., description="Rationale text")
    source: RecommendationSource = RecommendationSource.RULES

    class Config:
        """Pydantic configuration."""
        use_enum_values = True


def _priority(task: Task) -> str:
    return enum_to_value(task.priority) or Priority.NONE.value


def _urgency(task: Task) -> str:
    return enum_to_value(task.urgency) or Urgency.NONE.value


def _energy(task: Task) -> str:
    return enum_to_value(task.energy_required) or EnergyLevel.MEDIUM.value


def incomplete_tasks(tasks: List[Task]) -> List[Task]:
    return [task for task in tasks if not task.completed]


def describe_task(task: Task) -> str:
    """Deterministic rationale for a chosen task."""
    duration = task.estimated_duration or DEFAULT_FALLBACK_DURATION_MINUTES
    return (
        f"**RECOMMENDED TASK:** {task.title}\n\n"
        f"**WHY NOW:** This task has {_priority(task)} priority and requires {_energy(task)} energy.\n\n"
        f"**ESTIMATED TIME:** ~{duration} minutes"
    )


def select_smart(tasks: List[Task], context: Optional[CurrentContext] = None) -> Recommendation:
    """First overdue/critical task, otherwise the first task."""
    pressing = [t for t in tasks if _urgency(t) in (Urgency.OVERDUE.value, Urgency.CRITICAL.value)]
    chosen = pressing[0] if pressing else tasks[0]
    return Recommendation(
        method=RecommendationMethod.SMART,
        task=chosen,
        candidates=pressing or list(tasks),
        message=describe_task(chosen),
    )


def select_energy(tasks: List[Task], context: Optional[CurrentContext] = None) -> Recommendation:
    """Pick from the bucket matching the predicted energy (unknown means medium).

    Never recommends a task from a different bucket.
    """
    predicted = EnergyLevel.MEDIUM.value
    if context is not None and context.predicted_energy:
        predicted = enum_to_value(context.predicted_energy)

    bucket = [t for t in tasks if _energy(t) == predicted]
    if not bucket:
        return Recommendation(
            method=RecommendationMethod.ENERGY,
            message=(
                f"No tasks match your current {predicted} energy level. "
                "Take a short break or do something that shifts your energy "
                "(a walk, stretching, a snack) before picking up new work."
            ),
        )
    return Recommendation(
        method=RecommendationMethod.ENERGY,
        task=bucket[0],
        candidates=bucket,
        message=describe_task(bucket[0]),
    )


def select_quick(tasks: List[Task], context: Optional[CurrentContext] = None) -> Recommendation:
    """Short (<= 30 min), low/medium energy tasks; priority desc, duration asc."""
    quick = [
        t for t in tasks
        if t.estimated_duration is not None
        and t.estimated_duration <= QUICK_WIN_MAX_MINUTES
        and _energy(t) in QUICK_WIN_ENERGY
    ]
    quick.sort(key=lambda t: (-PRIORITY_WEIGHT[_priority(t)], t.estimated_duration))
    if not quick:
        return Recommendation(
            method=RecommendationMethod.QUICK,
            message=(
                f"No quick wins available: no open task takes {QUICK_WIN_MAX_MINUTES} minutes "
                "or less at low or medium energy."
            ),
        )
    return Recommendation(
        method=RecommendationMethod.QUICK,
        task=quick[0],
        candidates=quick,
        message=describe_task(quick[0]),
    )


def eisenhower_quadrant(task: Task) -> str:
    """Classify a task into Q1..Q4 by urgency and priority."""
    urgent = _urgency(task) in URGENT_LEVELS
    important = _priority(task) in IMPORTANT_PRIORITIES
    if urgent and important:
        return "Q1"
    if important and _urgency(task) in NOT_URGENT_LEVELS:
        return "Q2"
    if urgent:
        return "Q3"
    return "Q4"


def select_eisenhower(tasks: List[Task], context: Optional[CurrentContext] = None) -> Recommendation:
    """Recommend the first Q1 task; otherwise say Q1 is clear and point at Q2."""
    quadrants: Dict[str, List[Task]] = {"Q1": [], "Q2": [], "Q3": [], "Q4": []}
    for task in tasks:
        quadrants[eisenhower_quadrant(task)].append(task)

    if quadrants["Q1"]:
        chosen = quadrants["Q1"][0]
        return Recommendation(
            method=RecommendationMethod.EISENHOWER,
            task=chosen,
            candidates=quadrants["Q1"],
            quadrants=quadrants,
            message=describe_task(chosen),
        )

    message = "Q1 (urgent and important) is clear. Use this time for Q2: important work that is not urgent yet."
    if quadrants["Q2"]:
        message += f" Start with: {quadrants['Q2'][0].title}"
    return Recommendation(
        method=RecommendationMethod.EISENHOWER,
        candidates=quadrants["Q2"],
        quadrants=quadrants,
        message=message,
    )


def select_focus(tasks: List[Task], context: Optional[CurrentContext] = None) -> Recommendation:
    """Deep-work candidates: >= 60 min, high energy, high/medium priority."""
    deep = [
        t for t in tasks
        if t.estimated_duration is not None
        and t.estimated_duration >= DEEP_WORK_MIN_MINUTES
        and _energy(t) == EnergyLevel.HIGH.value
        and _priority(t) in IMPORTANT_PRIORITIES
    ]
    deep.sort(key=lambda t: (-PRIORITY_WEIGHT[_priority(t)], URGENCY_SEVERITY[_urgency(t)]))
    if not deep:
        return Recommendation(
            method=RecommendationMethod.FOCUS,
            message=(
                "No deep-work candidates right now. "
                "Use the time for quick wins, admin or planning instead."
            ),
        )
    return Recommendation(
        method=RecommendationMethod.FOCUS,
        task=deep[0],
        candidates=deep,
        message=describe_task(deep[0]),
    )


SELECTORS: Dict[str, Callable[[List[Task], Optional[CurrentContext]], Recommendation]] = {
    RecommendationMethod.SMART.value: select_smart,
    RecommendationMethod.ENERGY.value: select_energy,
    RecommendationMethod.QUICK.value: select_quick,
    RecommendationMethod.EISENHOWER.value: select_eisenhower,
    RecommendationMethod.FOCUS.value: select_focus,
}


def select(
    method: str,
    tasks: List[Task],
    context: Optional[CurrentContext] = None,
    now: Optional[datetime] = None,
) -> Recommendation:
    """Deterministic selection for a method over the incomplete tasks.

    When now is given, urgency is recomputed against it first; otherwise the
    urgency already on each task is used.

    Raises:
        ValidationError: If method is not a known strategy
    """
    method = enum_to_value(method)
    selector = SELECTORS.get(method)
    if selector is None:
        raise ValidationError(f"Unknown recommendation method: {method}")

    open_tasks = incomplete_tasks(tasks)
    if not open_tasks:
        return Recommendation(method=method, message=NO_TASKS_MESSAGE)
    if now is not None:
        open_tasks = [
            t.model_copy(update={"urgency": enum_to_value(compute_urgency(t, now))}) for t in open_tasks
        ]
    return selector(open_tasks, context)


class RecommendationEngine:
    """Combines the deterministic selectors with the AI reasoning service."""

    def __init__(self, ai_client=None):
        self.ai_client = ai_client

    def recommend(
        self,
        method: str,
        tasks: List[Task],
        profile: Optional[UserProfile] = None,
        tool_executor=None,
        now: Optional[datetime] = None,
    ) -> Recommendation:
        """Recommend a task, using the AI rationale when it is available.

        The AI never sees completed tasks. Any AI failure leaves the
        deterministic rationale in place.
        """
        context = profile.current_context if profile else None
        selection = select(method, tasks, context, now)

        if selection.task is None and not incomplete_tasks(tasks):
            return selection
        if self.ai_client is None or not self.ai_client.is_configured or profile is None:
            return selection

        note = f"Rule-based pick: {selection.task.title}" if selection.task else selection.message
        prompt = build_recommendation_prompt(profile, incomplete_tasks(tasks), selection.method, note)
        try:
            text = self.ai_client.chat(
                [{"role": "user", "content": prompt}],
                tool_executor=tool_executor,
            )
        except (ExternalServiceError, ToolExecutionError) as e:
            logger.warning(f"AI recommendation failed, using rule-based rationale: {type(e).__name__}")
            return selection

        if not text:
            return selection
        return selection.model_copy(update={"message": text, "source": RecommendationSource.AI.value})
