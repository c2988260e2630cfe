"""Todo CRUD, reorder, bulk and statistics routes."""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ..deps import get_todo_store
from ..exceptions import InternalError, TaskNotFoundError, TaskValidationError
from ..models.task import Task
from ..schemas import (
    ApiResponse,
    ClearAllResult,
    ClearCompletedResult,
    MoveRequest,
    ReorderRequest,
    TaskCreate,
    TaskStats,
    TaskUpdate,
)
from ..services.todo_store import TodoStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/todos", tags=["todos"])

NOT_PERSISTED_WARNING = " (warning: changes could not be saved)"


def _message(todo_store: TodoStore, message: str) -> str:
    if todo_store.last_persistence_error is not None:
        return message + NOT_PERSISTED_WARNING
    return message


def _not_found(task_id: str) -> HTTPException:
    logger.warning(f"Todo {task_id} not found")
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Todo not found")


def _to_payload(result: Any) -> Any:
    if isinstance(result, Task):
        return result.to_dict()
    if isinstance(result, list):
        return [_to_payload(item) for item in result]
    return result


@router.get("", response_model=ApiResponse[List[Task]], response_model_exclude_none=True)
def list_todos(
    search: Optional[str] = Query(None, description="Case-insensitive search term"),
    filter_: Optional[str] = Query(None, alias="filter", description="all, active or completed"),
    category: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    todo_store: TodoStore = Depends(get_todo_store)
) -> ApiResponse[List[Task]]:
    """List todos with optional filters, search, sorting and pagination.

    Returns:
        Matching todos and the number of matches before pagination

    Raises:
        TaskValidationError: If a query option is invalid
    """
    query: Dict[str, Any] = {
        "search": search,
        "filter": filter_ or "all",
        "category": category,
        "priority": priority,
        "sort_by": sort_by,
        "sort_order": sort_order,
        "page": page,
        "limit": limit,
    }

    try:
        logger.debug(f"Listing todos with query: {query}")

        result = todo_store.list_tasks(query)

        return ApiResponse(data=result.items, total=result.total, page=result.page, limit=result.limit)

    except TaskValidationError:
        raise
    except Exception as e:
        logger.error(f"Error listing todos: {str(e)}")
        raise InternalError("Failed to fetch todos", e) from e


@router.post(
    "",
    response_model=ApiResponse[Task],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
def create_todo(
    task_data: TaskCreate,
    todo_store: TodoStore = Depends(get_todo_store)
) -> ApiResponse[Task]:
    """Create a new todo.

    Args:
        task_data: Todo creation data
        todo_store: Todo store instance

    Returns:
        Created todo

    Raises:
        TaskValidationError: If a field is invalid
    """
    try:
        logger.info(f"Creating new todo: {task_data.text}")

        task = todo_store.create_task_from_schema(task_data)

        return ApiResponse(data=task, message=_message(todo_store, "Todo created successfully"))

    except TaskValidationError as e:
        logger.warning(f"Validation error creating todo: {str(e)}")
        raise
    except Exception as e:
        logger.error(f"Unexpected error creating todo: {str(e)}")
        raise InternalError("Failed to create todo", e) from e


@router.get("/stats", response_model=ApiResponse[TaskStats], response_model_exclude_none=True)
def get_todo_statistics(
    todo_store: TodoStore = Depends(get_todo_store)
) -> ApiResponse[TaskStats]:
    """Get todo statistics."""
    try:
        logger.debug("Getting todo statistics")

        return ApiResponse(data=todo_store.get_statistics())

    except Exception as e:
        logger.error(f"Error getting todo statistics: {str(e)}")
        raise InternalError("Failed to fetch stats", e) from e


@router.get("/search", response_model=ApiResponse[List[Task]], response_model_exclude_none=True)
def search_todos(
    q: str = Query(..., min_length=1, description="Search query"),
    limit: Optional[int] = Query(10, ge=1, le=50),
    todo_store: TodoStore = Depends(get_todo_store)
) -> ApiResponse[List[Task]]:
    """Search todos by text, description and category.

    Args:
        q: Search query
        limit: Maximum number of results
        todo_store: Todo store instance

    Returns:
        Matching todos in collection order
    """
    try:
        logger.debug(f"Searching todos with query: {q}")

        tasks = todo_store.search_tasks(q, limit=limit)

        return ApiResponse(data=tasks, total=len(tasks))

    except Exception as e:
        logger.error(f"Error searching todos: {str(e)}")
        raise InternalError("Failed to search todos", e) from e


@router.put("/reorder", response_model=ApiResponse[List[Task]], response_model_exclude_none=True)
def reorder_todos(
    reorder_data: ReorderRequest,
    todo_store: TodoStore = Depends(get_todo_store)
) -> ApiResponse[List[Task]]:
    """Reorder todos by id; unlisted todos keep their relative order at the end.

    Raises:
        TaskValidationError: If an id is unknown or repeated
    """
    try:
        logger.info(f"Reordering {len(reorder_data.todo_ids)} todos")

        tasks = todo_store.reorder_tasks(reorder_data.todo_ids)

        return ApiResponse(data=tasks, message=_message(todo_store, "Todos reordered successfully"))

    except TaskValidationError as e:
        logger.warning(f"Validation error reordering todos: {str(e)}")
        raise
    except Exception as e:
        logger.error(f"Unexpected error reordering todos: {str(e)}")
        raise InternalError("Failed to reorder todos", e) from e


@router.put("/move", response_model=ApiResponse[List[Task]], response_model_exclude_none=True)
def move_todo(
    move_data: MoveRequest,
    todo_store: TodoStore = Depends(get_todo_store)
) -> ApiResponse[List[Task]]:
    """Move one todo from startIndex to endIndex."""
    try:
        logger.info(f"Moving todo from {move_data.start_index} to {move_data.end_index}")

        tasks = todo_store.move_task(move_data.start_index, move_data.end_index)

        return ApiResponse(data=tasks, message=_message(todo_store, "Todo moved successfully"))

    except TaskValidationError as e:
        logger.warning(f"Validation error moving todo: {str(e)}")
        raise
    except Exception as e:
        logger.error(f"Unexpected error moving todo: {str(e)}")
        raise InternalError("Failed to move todo", e) from e


@router.put("/toggle-all", response_model=ApiResponse[List[Task]], response_model_exclude_none=True)
def toggle_all_todos(
    todo_store: TodoStore = Depends(get_todo_store)
) -> ApiResponse[List[Task]]:
    """Complete every todo, or reopen all of them when none is active."""
    try:
        tasks = todo_store.toggle_all()

        return ApiResponse(data=tasks, message=_message(todo_store, "Todos updated successfully"))

    except Exception as e:
        logger.error(f"Unexpected error toggling all todos: {str(e)}")
        raise InternalError("Failed to update todos", e) from e


@router.delete("/completed", response_model=ApiResponse[ClearCompletedResult], response_model_exclude_none=True)
def clear_completed_todos(
    todo_store: TodoStore = Depends(get_todo_store)
) -> ApiResponse[ClearCompletedResult]:
    """Delete all completed todos."""
    try:
        removed = todo_store.clear_completed()

        return ApiResponse(
            data=ClearCompletedResult(deleted_count=len(removed), deleted_todos=removed),
            message=_message(todo_store, f"{len(removed)} completed todos deleted"),
        )

    except Exception as e:
        logger.error(f"Error deleting completed todos: {str(e)}")
        raise InternalError("Failed to delete completed todos", e) from e


@router.delete("", response_model=ApiResponse[ClearAllResult], response_model_exclude_none=True)
def clear_all_todos(
    todo_store: TodoStore = Depends(get_todo_store)
) -> ApiResponse[ClearAllResult]:
    """Delete every todo."""
    try:
        count = todo_store.clear_all_tasks()

        return ApiResponse(
            data=ClearAllResult(deleted_count=count),
            message=_message(todo_store, f"{count} todos deleted"),
        )

    except Exception as e:
        logger.error(f"Error deleting all todos: {str(e)}")
        raise InternalError("Failed to delete todos", e) from e


@router.post("/actions", response_model=ApiResponse[Any], response_model_exclude_none=True)
def apply_todo_action(
    command: Dict[str, Any] = Body(..., description="A command object with a 'type' field"),
    todo_store: TodoStore = Depends(get_todo_store)
) -> ApiResponse[Any]:
    """Apply one tagged command (add_task, toggle_task, reorder_tasks, ...).

    Raises:
        HTTPException: If the command targets a missing todo
        TaskValidationError: If the command is unknown or invalid
    """
    try:
        logger.info(f"Applying todo action: {command.get('type')}")

        result = todo_store.apply(command)

        return ApiResponse(data=_to_payload(result), message=_message(todo_store, "Action applied"))

    except TaskNotFoundError as e:
        raise _not_found(e.task_id)
    except TaskValidationError as e:
        logger.warning(f"Validation error applying action: {str(e)}")
        raise
    except Exception as e:
        logger.error(f"Unexpected error applying action: {str(e)}")
        raise InternalError("Failed to apply action", e) from e


@router.get("/{todo_id}", response_model=ApiResponse[Task], response_model_exclude_none=True)
def get_todo(
    todo_id: str,
    todo_store: TodoStore = Depends(get_todo_store)
) -> ApiResponse[Task]:
    """Get a specific todo by ID.

    Raises:
        HTTPException: If the todo is not found
    """
    try:
        logger.debug(f"Getting todo: {todo_id}")

        return ApiResponse(data=todo_store.get_task(todo_id))

    except TaskNotFoundError:
        raise _not_found(todo_id)
    except Exception as e:
        logger.error(f"Error getting todo {todo_id}: {str(e)}")
        raise InternalError("Failed to fetch todo", e) from e


@router.put("/{todo_id}", response_model=ApiResponse[Task], response_model_exclude_none=True)
def update_todo(
    todo_id: str,
    task_data: TaskUpdate,
    todo_store: TodoStore = Depends(get_todo_store)
) -> ApiResponse[Task]:
    """Update a todo with the provided fields.

    Args:
        todo_id: Todo ID
        task_data: Fields to change
        todo_store: Todo store instance

    Returns:
        Updated todo

    Raises:
        HTTPException: If the todo is not found
        TaskValidationError: If no field is given or a field is invalid
    """
    try:
        logger.info(f"Updating todo: {todo_id}")

        task = todo_store.update_task(todo_id, task_data)

        return ApiResponse(data=task, message=_message(todo_store, "Todo updated successfully"))

    except TaskNotFoundError:
        raise _not_found(todo_id)
    except TaskValidationError as e:
        logger.warning(f"Validation error updating todo {todo_id}: {str(e)}")
        raise
    except Exception as e:
        logger.error(f"Unexpected error updating todo {todo_id}: {str(e)}")
        raise InternalError("Failed to update todo", e) from e


@router.patch("/{todo_id}/toggle", response_model=ApiResponse[Task], response_model_exclude_none=True)
def toggle_todo(
    todo_id: str,
    todo_store: TodoStore = Depends(get_todo_store)
) -> ApiResponse[Task]:
    """Flip a todo's completed flag."""
    try:
        task = todo_store.toggle_task(todo_id)

        return ApiResponse(data=task, message=_message(todo_store, "Todo updated successfully"))

    except TaskNotFoundError:
        raise _not_found(todo_id)
    except Exception as e:
        logger.error(f"Unexpected error toggling todo {todo_id}: {str(e)}")
        raise InternalError("Failed to update todo", e) from e


@router.delete("/{todo_id}", response_model=ApiResponse[Task], response_model_exclude_none=True)
def delete_todo(
    todo_id: str,
    todo_store: TodoStore = Depends(get_todo_store)
) -> ApiResponse[Task]:
    """Delete a todo.

    Returns:
        The removed todo

    Raises:
        HTTPException: If the todo is not found
    """
    try:
        logger.info(f"Deleting todo: {todo_id}")

        task = todo_store.delete_task(todo_id)

        return ApiResponse(data=task, message=_message(todo_store, "Todo deleted successfully"))

    except TaskNotFoundError:
        raise _not_found(todo_id)
    except Exception as e:
        logger.error(f"Error deleting todo {todo_id}: {str(e)}")
        raise InternalError("Failed to delete todo", e) from e
