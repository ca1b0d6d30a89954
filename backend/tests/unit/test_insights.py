"""Tests for priority insights."""

from __future__ import annotations

from datetime import datetime, timedelta

from voicetasks.core.insights import compute_priority_insights
from voicetasks.db.models import Task

NOW = datetime(2025, 3, 1, 9, 0)


def test_counts_only_open_tasks() -> None:
    tasks = [
        Task(title="Urgent", priority="high"),
        Task(title="Done urgent", priority="high", completed=True),
        Task(title="Due in three days", due_date=NOW + timedelta(days=3)),
        Task(title="Overdue", due_date=NOW - timedelta(days=1)),
        Task(title="Due next month", due_date=NOW + timedelta(days=30)),
        Task(title="Suggested", ai_score=71),
        Task(title="Borderline", ai_score=70),
    ]

    insights = compute_priority_insights(tasks, now=NOW)

    assert insights.to_dict() == {"urgent": 1, "due_soon": 2, "suggested": 1}


def test_empty_task_list() -> None:
    assert compute_priority_insights([], now=NOW).to_dict() == {
        "urgent": 0,
        "due_soon": 0,
        "suggested": 0,
    }
