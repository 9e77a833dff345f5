"""Tests for deterministic task enrichment."""

import pytest
from datetime import datetime, timedelta, timezone

from tomanage.engine.enrichment import (
    compute_urgency,
    enrich_task,
    enrich_tasks,
    estimate_duration,
    infer_context,
    infer_energy,
    parse_duration_text,
)
from tomanage.models.task import ContextType, EnergyLevel, Task, Urgency


def _task(base, **overrides):
    return Task(**{**base, "description": None, **overrides})


class TestComputeUrgency:
    """Urgency buckets relative to Monday 2026-01-26 09:00 UTC."""

    def test_no_due_date(self, sample_task_base, now):
        assert compute_urgency(_task(sample_task_base), now) == Urgency.NONE

    def test_overdue(self, sample_task_base, now):
        task = _task(sample_task_base, due_date=now - timedelta(minutes=1))
        assert compute_urgency(task, now) == Urgency.OVERDUE

    @pytest.mark.parametrize("delta", [timedelta(minutes=30), timedelta(hours=3), timedelta(hours=4), timedelta(hours=4, minutes=59)])
    def test_critical_within_four_whole_hours(self, sample_task_base, now, delta):
        task = _task(sample_task_base, due_date=now + delta)
        assert compute_urgency(task, now) == Urgency.CRITICAL

    def test_later_today(self, sample_task_base, now):
        task = _task(sample_task_base, due_date=now + timedelta(hours=5))
        assert compute_urgency(task, now) == Urgency.TODAY

        task = _task(sample_task_base, due_date=now.replace(hour=23, minute=0))
        assert compute_urgency(task, now) == Urgency.TODAY

    def test_tomorrow(self, sample_task_base, now):
        task = _task(sample_task_base, due_date=now + timedelta(days=1, hours=1))
        assert compute_urgency(task, now) == Urgency.TOMORROW

    def test_last_minute_of_tomorrow(self, sample_task_base, now):
        task = _task(sample_task_base, due_date=datetime(2026, 1, 27, 23, 59, tzinfo=timezone.utc))
        assert compute_urgency(task, now) == Urgency.TOMORROW

    def test_this_week(self, sample_task_base, now):
        for days in (3, 7):
            task = _task(sample_task_base, due_date=now + timedelta(days=days))
            assert compute_urgency(task, now) == Urgency.THIS_WEEK

    def test_future(self, sample_task_base, now):
        task = _task(sample_task_base, due_date=now + timedelta(days=8))
        assert compute_urgency(task, now) == Urgency.FUTURE

    def test_naive_due_date_is_utc(self, sample_task_base, now):
        task = _task(sample_task_base, due_date=datetime(2026, 1, 26, 10, 0))
        assert compute_urgency(task, now) == Urgency.CRITICAL

    def test_day_boundaries_use_now_time_zone(self, sample_task_base):
        eastern = timezone(timedelta(hours=-5))
        local_now = datetime(2026, 1, 26, 10, 0, tzinfo=eastern)
        # 21:00 local, already tomorrow in UTC
        task = _task(sample_task_base, due_date=datetime(2026, 1, 27, 2, 0, tzinfo=timezone.utc))

        assert compute_urgency(task, local_now) == Urgency.TODAY


class TestInferEnergy:

    @pytest.mark.parametrize("title,expected", [
        ("Implement OAuth flow", EnergyLevel.HIGH),
        ("Refactor the billing module", EnergyLevel.HIGH),
        ("Read article on caching", EnergyLevel.LOW),
        ("Quick check of inbox", EnergyLevel.LOW),
        ("Call mom", EnergyLevel.MEDIUM),
        ("Refactor and review code", EnergyLevel.MEDIUM),
    ])
    def test_keyword_counts(self, sample_task_base, title, expected):
        assert infer_energy(_task(sample_task_base, title=title)) == expected

    def test_description_counts(self, sample_task_base):
        task = _task(sample_task_base, title="Task", description="quick check")
        assert infer_energy(task) == EnergyLevel.LOW


class TestInferContext:

    @pytest.mark.parametrize("title,expected", [
        ("Fix React component", ContextType.FRONTEND),
        ("Deploy API server", ContextType.BACKEND),
        ("Practice leetcode", ContextType.INTERVIEW),
        ("Team standup", ContextType.MEETING),
        ("Review PR #12", ContextType.REVIEW),
        ("Plan sprint", ContextType.PLANNING),
        ("Finish Rust tutorial", ContextType.LEARNING),
        ("Answer email", ContextType.ADMIN),
        ("Buy groceries", ContextType.GENERAL),
    ])
    def test_keywords(self, sample_task_base, title, expected):
        assert infer_context(_task(sample_task_base, title=title)) == expected

    def test_first_matching_context_wins(self, sample_task_base):
        task = _task(sample_task_base, title="Review the API design")
        assert infer_context(task) == ContextType.BACKEND

    def test_tags_are_considered(self, sample_task_base):
        task = _task(sample_task_base, title="Something", tags=["frontend"])
        assert infer_context(task) == ContextType.FRONTEND


class TestDuration:

    @pytest.mark.parametrize("text,expected", [
        ("about 2h", 120),
        ("1.5 hours", 90),
        ("0.25h", 15),
        ("45 min", 45),
        ("10 minutes", 10),
        ("2h 30m", 120),
        ("no numbers here", None),
        ("0h", None),
        (None, None),
    ])
    def test_parse_duration_text(self, text, expected):
        assert parse_duration_text(text) == expected

    def test_tag_duration_wins(self, sample_task_base):
        task = _task(sample_task_base, tags=["2h"], description="takes 45 min")
        assert estimate_duration(task) == 120

    def test_description_duration(self, sample_task_base):
        task = _task(sample_task_base, description="takes 45 min")
        assert estimate_duration(task) == 45

    def test_table_lookup(self, sample_task_base):
        assert estimate_duration(_task(sample_task_base, title="Implement OAuth flow")) == 90
        assert estimate_duration(_task(sample_task_base, title="Fix React component")) == 60

    def test_explicit_energy_and_context(self, sample_task_base):
        assert estimate_duration(_task(sample_task_base), "low", "admin") == 15


class TestEnrichTask:

    def test_new_task_is_fully_enriched(self, sample_task_base, now):
        task = _task(sample_task_base, title="Implement OAuth flow", due_date=now + timedelta(hours=3))
        enriched = enrich_task(task, now)

        assert enriched.urgency == "critical"
        assert enriched.energy_required == "high"
        assert enriched.context_type == "general"
        assert enriched.estimated_duration == 90
        assert enriched.category == "work"

    def test_explicit_values_are_kept(self, sample_task_base, now):
        task = _task(
            sample_task_base,
            title="Implement OAuth flow",
            energy_required="low",
            estimated_duration=10,
            context_type="meeting",
            category="personal",
        )
        enriched = enrich_task(task, now)

        assert enriched.energy_required == "low"
        assert enriched.estimated_duration == 10
        assert enriched.context_type == "meeting"
        assert enriched.category == "personal"

    def test_enrichment_is_idempotent(self, sample_task_base, now):
        task = _task(sample_task_base, title="Study graph algorithms", due_date=now + timedelta(days=2))
        once = enrich_task(task, now)

        assert enrich_task(once, now) == once
        assert once.category == "learning"

    def test_urgency_is_recomputed(self, sample_task_base, now):
        task = _task(sample_task_base, due_date=now + timedelta(days=2))
        enriched = enrich_task(task, now)
        assert enriched.urgency == "this-week"

        later = enrich_task(enriched, now + timedelta(days=3))
        assert later.urgency == "overdue"

    def test_enrich_tasks_preserves_order(self, sample_task_base, now):
        tasks = [_task(sample_task_base, id=str(i), title=f"Task {i}") for i in range(3)]
        enriched = enrich_tasks(tasks, now)

        assert [t.id for t in enriched] == ["0", "1", "2"]
        assert all(t.urgency == "none" for t in enriched)
