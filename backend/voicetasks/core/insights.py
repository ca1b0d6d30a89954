"""Priority insights over open tasks."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta

from voicetasks.db.models import Task, utcnow

DUE_SOON_WINDOW = timedelta(days=7)
SUGGESTED_SCORE_THRESHOLD = 70


@dataclass
class PriorityInsights:
    urgent: int = 0  # open, high priority
    due_soon: int = 0  # open, due within a week (overdue included)
    suggested: int = 0  # open, AI score above threshold

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def compute_priority_insights(tasks: Iterable[Task], now: datetime | None = None) -> PriorityInsights:
    now = now or utcnow()
    horizon = now + DUE_SOON_WINDOW

    insights = PriorityInsights()
    for task in tasks:
        if task.completed:
            continue
        if task.priority == "high":
            insights.urgent += 1
        if task.due_date is not None and task.due_date <= horizon:
            insights.due_soon += 1
        if (task.ai_score or 0) > SUGGESTED_SCORE_THRESHOLD:
            insights.suggested += 1
    return insights
