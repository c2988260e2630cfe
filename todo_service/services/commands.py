"""Tagged commands describing every transition of the todo collection.

A command is a plain pydantic model discriminated on its ``type`` field.
``TodoStore.apply`` dispatches each one to the matching store operation,
so clients that queue intents (a UI reducer, a batch replay) share the
same validation and persistence path as the REST routes.
"""

from typing import Annotated, Any, Dict, List, Literal, Union

from pydantic import Field, TypeAdapter, ValidationError

from ..exceptions import TaskValidationError
from ..models.task import Task
from ..schemas import CamelModel, MoveRequest, ReorderRequest, TaskCreate, TaskUpdate, format_validation_errors


class AddTask(TaskCreate):
    type: Literal["add_task"] = "add_task"


class UpdateTask(CamelModel):
    type: Literal["update_task"] = "update_task"
    id: str
    updates: TaskUpdate


class EditTask(CamelModel):
    type: Literal["edit_task"] = "edit_task"
    id: str
    text: str


class SetPriority(CamelModel):
    type: Literal["set_priority"] = "set_priority"
    id: str
    priority: str


class ToggleTask(CamelModel):
    type: Literal["toggle_task"] = "toggle_task"
    id: str


class ToggleAll(CamelModel):
    type: Literal["toggle_all"] = "toggle_all"


class DeleteTask(CamelModel):
    type: Literal["delete_task"] = "delete_task"
    id: str


class ReorderTasks(ReorderRequest):
    type: Literal["reorder_tasks"] = "reorder_tasks"


class MoveTask(MoveRequest):
    type: Literal["move_task"] = "move_task"


class ClearCompleted(CamelModel):
    type: Literal["clear_completed"] = "clear_completed"


class ClearAll(CamelModel):
    type: Literal["clear_all"] = "clear_all"


class SetTasks(CamelModel):
    type: Literal["set_tasks"] = "set_tasks"
    todos: List[Task] = Field(default_factory=list)


TaskCommand = Annotated[
    Union[
        AddTask,
        UpdateTask,
        EditTask,
        SetPriority,
        ToggleTask,
        ToggleAll,
        DeleteTask,
        ReorderTasks,
        MoveTask,
        ClearCompleted,
        ClearAll,
        SetTasks,
    ],
    Field(discriminator="type"),
]

_COMMAND_ADAPTER: TypeAdapter = TypeAdapter(TaskCommand)


def parse_command(payload: Dict[str, Any]) -> Any:
    """Build a command from a ``{"type": ..., ...}`` mapping.

    Raises:
        TaskValidationError: If the type is unknown or a field is invalid
    """
    try:
        return _COMMAND_ADAPTER.validate_python(payload)
    except ValidationError as e:
        raise TaskValidationError(format_validation_errors(e.errors()), message="Invalid command") from e
