"""Read-only views over a todo collection: filter, search, sort, paginate.

Every helper returns a new list and leaves its input untouched.
"""

import logging
from typing import Iterable, List, NamedTuple, Optional, Sequence

from ..models.task import (
    LOWEST_PRIORITY_RANK,
    PRIORITY_ORDER,
    SortField,
    SortOrder,
    StatusFilter,
    Task,
)
from ..schemas import TaskQuery

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10


class TaskPage(NamedTuple):
    """Result of a listing: the visible todos and the count before pagination."""
    items: List[Task]
    total: int
    page: Optional[int] = None
    limit: Optional[int] = None


def filter_by_status(tasks: Iterable[Task], status: StatusFilter = StatusFilter.ALL) -> List[Task]:
    """Keep active or completed todos; ``all`` keeps everything."""
    status = StatusFilter(status)
    if status == StatusFilter.ACTIVE:
        return [task for task in tasks if not task.completed]
    if status == StatusFilter.COMPLETED:
        return [task for task in tasks if task.completed]
    return list(tasks)


def filter_by_category(tasks: Iterable[Task], category: Optional[str]) -> List[Task]:
    if not category:
        return list(tasks)
    return [task for task in tasks if task.category == category]


def filter_by_priority(tasks: Iterable[Task], priority: Optional[str]) -> List[Task]:
    if not priority:
        return list(tasks)
    return [task for task in tasks if task.priority == priority]


def matches_search(task: Task, term: str) -> bool:
    """Case-insensitive substring match on text, description and category."""
    term = term.strip().lower()
    if not term:
        return True
    return (
        term in task.text.lower()
        or term in (task.description or "").lower()
        or term in (task.category or "").lower()
    )


def search_tasks(tasks: Iterable[Task], term: Optional[str]) -> List[Task]:
    """Todos matching ``term``; a blank term matches everything."""
    if not term or not term.strip():
        return list(tasks)
    return [task for task in tasks if matches_search(task, term)]


def priority_rank(priority: Optional[str]) -> int:
    return PRIORITY_ORDER.get(priority or "", LOWEST_PRIORITY_RANK)


_SORT_KEYS: dict = {
    SortField.CREATED_AT: lambda task: task.created_at,
    SortField.UPDATED_AT: lambda task: task.updated_at,
    SortField.PRIORITY: lambda task: priority_rank(task.priority),
    SortField.TITLE: lambda task: task.text.casefold(),
    SortField.STATUS: lambda task: task.completed,
}


def sort_tasks(
    tasks: Iterable[Task],
    sort_by: Optional[SortField] = None,
    sort_order: Optional[SortOrder] = None,
) -> List[Task]:
    """Stable sort of todos; no key keeps collection order.

    Todos without a due date always come after dated ones when sorting
    by due date, whatever the direction.
    """
    tasks = list(tasks)
    if sort_by is None:
        return tasks

    sort_by = SortField(sort_by)
    reverse = SortOrder(sort_order or SortOrder.DESC) == SortOrder.DESC

    if sort_by == SortField.DUE_DATE:
        dated = [task for task in tasks if task.due_date is not None]
        undated = [task for task in tasks if task.due_date is None]
        return sorted(dated, key=lambda task: task.due_date, reverse=reverse) + undated

    return sorted(tasks, key=_SORT_KEYS[sort_by], reverse=reverse)


def paginate(tasks: Sequence[Task], page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> List[Task]:
    """Slice one page out of ``tasks``; pages start at 1."""
    if page < 1:
        raise ValueError("Page must be a positive integer")
    if not 1 <= limit <= 100:
        raise ValueError("Limit must be a positive integer between 1 and 100")
    start = (page - 1) * limit
    return list(tasks[start:start + limit])


def apply_query(tasks: Sequence[Task], query: Optional[TaskQuery] = None) -> TaskPage:
    """Run the full listing pipeline; all predicates combine with AND."""
    query = query or TaskQuery()

    result = filter_by_status(tasks, query.status)
    result = search_tasks(result, query.search)
    result = filter_by_category(result, query.category)
    result = filter_by_priority(result, query.priority)
    result = sort_tasks(result, query.sort_by, query.sort_order)

    total = len(result)
    if not query.paginated:
        return TaskPage(items=result, total=total)

    page = query.page or 1
    limit = query.limit or DEFAULT_PAGE_SIZE
    logger.debug(f"Paginating {total} todos: page={page}, limit={limit}")
    return TaskPage(items=paginate(result, page, limit), total=total, page=page, limit=limit)
