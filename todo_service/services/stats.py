"""Statistics aggregation over a todo collection."""

from datetime import datetime
from typing import Iterable, Optional, Sequence

from ..models.task import Priority, Task
from ..schemas import TaskStats
from ..utils.dates import utc_now

UNCATEGORIZED = "Uncategorized"


def compute_stats(
    tasks: Sequence[Task],
    priorities: Optional[Iterable[str]] = None,
    now: Optional[datetime] = None,
) -> TaskStats:
    """Recompute statistics for ``tasks``.

    Args:
        tasks: The whole collection
        priorities: Priority values reported in ``by_priority`` even when zero
        now: Reference time for the overdue check

    Returns:
        Aggregated statistics
    """
    now = now or utc_now()
    if priorities is None:
        priorities = [Priority.LOW.value, Priority.MEDIUM.value, Priority.HIGH.value]

    by_priority = {priority: 0 for priority in priorities}
    by_category: dict = {}
    completed = 0
    overdue = 0

    for task in tasks:
        if task.completed:
            completed += 1
        elif task.is_overdue(now):
            overdue += 1

        if task.priority in by_priority:
            by_priority[task.priority] += 1

        category = task.category or UNCATEGORIZED
        by_category[category] = by_category.get(category, 0) + 1

    total = len(tasks)
    # Whole percent, halves rounded up
    completion_rate = int(completed * 100 / total + 0.5) if total else 0

    return TaskStats(
        total=total,
        completed=completed,
        active=total - completed,
        completion_rate=completion_rate,
        overdue=overdue,
        by_priority=by_priority,
        by_category=by_category,
        categories=list(by_category),
    )
