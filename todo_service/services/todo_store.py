"""Todo store: the ordered todo collection and every operation on it."""

import logging
from datetime import datetime
from threading import RLock
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from ..config import Settings
from ..exceptions import PersistenceError, TaskNotFoundError, TaskValidationError
from ..models.task import Priority, Task
from ..schemas import TaskCreate, TaskQuery, TaskStats, TaskUpdate, format_validation_errors
from ..utils.dates import utc_now
from ..utils.logging import TimedOperation
from . import commands
from .persistence import MemorySlot, PersistenceSlot, create_slot, deserialize_tasks, serialize_tasks
from .query import TaskPage, apply_query, search_tasks
from .stats import compute_stats

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def default_tasks(now: Optional[datetime] = None) -> List[Task]:
    """Example todos used when the persistence slot is empty."""
    now = now or utc_now()
    return [
        Task(
            text="Welcome to your glassmorphism todo app",
            priority=Priority.MEDIUM.value,
            category="general",
            created_at=now,
            updated_at=now,
        ),
        Task(
            text="Try dragging todos to reorder them",
            priority=Priority.LOW.value,
            category="tips",
            created_at=now,
            updated_at=now,
        ),
    ]


def _parse(schema: Type[SchemaT], data: Union[SchemaT, Dict[str, Any]]) -> SchemaT:
    if isinstance(data, schema):
        return data
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise TaskValidationError(format_validation_errors(e.errors())) from e


class TodoStore:
    """Ordered todo collection mirrored to a persistence slot.

    New todos go to the front. Every mutation replaces the collection with a
    new list and then writes the whole collection to the slot. A lock
    serializes operations so concurrent request handlers cannot lose updates.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        slot: Optional[PersistenceSlot] = None,
        clock: Callable[[], datetime] = utc_now,
        autoload: bool = True,
    ):
        """Initialize the todo store.

        Args:
            settings: Field limits, enums and storage key
            slot: Persistence slot (in-memory when omitted)
            clock: Source of the current time
            autoload: Load the collection from the slot immediately
        """
        self.settings = settings or Settings()
        self._slot = slot if slot is not None else MemorySlot()
        self._clock = clock
        self._tasks: List[Task] = []
        self._lock = RLock()
        self.load_error: Optional[PersistenceError] = None
        self.last_persistence_error: Optional[PersistenceError] = None

        if autoload:
            self.load()

        logger.info(f"Todo store initialized with {self._slot.name} slot ({len(self._tasks)} todos)")

    # ---- persistence ----

    @property
    def storage_key(self) -> str:
        return self.settings.storage_key

    def load(self) -> Optional[PersistenceError]:
        """Replace the collection with the slot contents.

        An empty slot yields the example todos (or nothing, when seeding is
        disabled). An unreadable slot yields an empty collection.

        Returns:
            The load error, if any; it is also kept in ``load_error``
        """
        with self._lock:
            try:
                raw = self._slot.get(self.storage_key)
                tasks = deserialize_tasks(raw) if raw is not None else None
            except Exception as e:
                error = e if isinstance(e, PersistenceError) else PersistenceError("read", self.storage_key, e)
                logger.error(f"Error loading todos, starting empty: {error}")
                self._tasks = []
                self.load_error = error
                return error

            self.load_error = None
            if tasks is None:
                self._tasks = default_tasks(self._now()) if self.settings.seed_defaults else []
                logger.info(f"Persistence slot empty, starting with {len(self._tasks)} example todos")
                return None

            self._tasks = self._drop_duplicate_ids(tasks)
            logger.info(f"Loaded {len(self._tasks)} todos from persistence slot")
            return None

    def persist(self) -> bool:
        """Write the whole collection to the slot.

        Failures are logged and kept in ``last_persistence_error``; the
        in-memory collection is not rolled back.

        Returns:
            True if the write succeeded
        """
        with self._lock:
            try:
                with TimedOperation(f"persist {len(self._tasks)} todos", __name__):
                    self._slot.set(self.storage_key, serialize_tasks(self._tasks))
            except Exception as e:
                error = e if isinstance(e, PersistenceError) else PersistenceError("write", self.storage_key, e)
                logger.error(f"Error saving todos: {error}")
                self.last_persistence_error = error
                return False

            self.last_persistence_error = None
            return True

    def _commit(self, tasks: List[Task]) -> None:
        self._tasks = tasks
        self.persist()

    @staticmethod
    def _drop_duplicate_ids(tasks: Iterable[Task]) -> List[Task]:
        seen = set()
        unique = []
        for task in tasks:
            if task.id in seen:
                logger.warning(f"Dropping duplicate todo id {task.id} from persisted data")
                continue
            seen.add(task.id)
            unique.append(task)
        return unique

    # ---- helpers ----

    def _now(self) -> datetime:
        return self._clock()

    def _index_of(self, task_id: str) -> int:
        for index, task in enumerate(self._tasks):
            if task.id == task_id:
                return index
        raise TaskNotFoundError(task_id)

    def _validate(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Check provided fields against configured limits and enums.

        Returns:
            The cleaned fields

        Raises:
            TaskValidationError: Listing every problem found
        """
        settings = self.settings
        errors: List[str] = []
        clean: Dict[str, Any] = {}

        if "text" in fields:
            text = fields["text"]
            if not isinstance(text, str):
                errors.append("Text is required and must be a string")
            elif not text.strip():
                errors.append("Text cannot be empty")
            elif len(text.strip()) > settings.text_max_length:
                errors.append(f"Text must be at most {settings.text_max_length} characters")
            else:
                clean["text"] = text.strip()

        if "description" in fields:
            description = fields["description"] or ""
            if not isinstance(description, str):
                errors.append("Description must be a string")
            elif len(description.strip()) > settings.description_max_length:
                errors.append(f"Description must be at most {settings.description_max_length} characters")
            else:
                clean["description"] = description.strip()

        if "priority" in fields:
            priority = fields["priority"]
            if priority not in settings.priorities:
                errors.append(f"Priority must be one of: {', '.join(settings.priorities)}")
            else:
                clean["priority"] = priority

        if "category" in fields:
            category = fields["category"]
            if category is None or (isinstance(category, str) and not category.strip()):
                category = settings.default_category
            if not isinstance(category, str):
                errors.append("Category must be a string")
            elif settings.categories is not None and category.strip() not in settings.categories:
                errors.append(f"Category must be one of: {', '.join(settings.categories)}")
            elif len(category.strip()) > settings.category_max_length:
                errors.append(f"Category must be at most {settings.category_max_length} characters")
            else:
                clean["category"] = category.strip()

        if "due_date" in fields:
            clean["due_date"] = fields["due_date"]

        if "completed" in fields:
            if not isinstance(fields["completed"], bool):
                errors.append("Completed must be a boolean")
            else:
                clean["completed"] = fields["completed"]

        if errors:
            raise TaskValidationError(errors)
        return clean

    def _touch_moved(self, before: Sequence[Task], after: Sequence[Task]) -> List[Task]:
        """Refresh updated_at on todos whose position changed."""
        old_positions = {task.id: index for index, task in enumerate(before)}
        now = self._now()
        result = []
        for index, task in enumerate(after):
            if old_positions.get(task.id) != index:
                task = task.model_copy()
                task.update_timestamp(now)
            result.append(task)
        return result

    # ---- reads ----

    @property
    def tasks(self) -> List[Task]:
        """Snapshot of the collection in display order."""
        with self._lock:
            return list(self._tasks)

    def __len__(self) -> int:
        return len(self._tasks)

    def get_task(self, task_id: str) -> Task:
        """Get a todo by ID.

        Raises:
            TaskNotFoundError: If no todo has this ID
        """
        with self._lock:
            task = self._tasks[self._index_of(task_id)]
            logger.debug(f"Retrieved todo {task_id}: {task.text}")
            return task

    def list_tasks(self, query: Optional[Union[TaskQuery, Dict[str, Any]]] = None) -> TaskPage:
        """List todos with optional filters, search, sorting and pagination.

        Args:
            query: Listing options, as a TaskQuery or a mapping of its fields

        Returns:
            The page of todos and the number of matches before pagination

        Raises:
            TaskValidationError: If an option is invalid
        """
        query = _parse(TaskQuery, query if query is not None else {})
        if query.priority is not None and query.priority not in self.settings.priorities:
            raise TaskValidationError(
                [f"Priority filter must be one of: {', '.join(self.settings.priorities)}"],
                message="Query validation failed",
            )

        with self._lock:
            page = apply_query(self._tasks, query)

        logger.debug(f"Listed {len(page.items)} of {page.total} todos ({query.model_dump(exclude_none=True)})")
        return page

    def search_tasks(self, query: str, limit: Optional[int] = None) -> List[Task]:
        """Search todos by text, description and category.

        Args:
            query: Search term; blank terms match nothing
            limit: Maximum number of results

        Returns:
            Matching todos in collection order
        """
        if not query or not query.strip():
            return []

        with self._lock:
            matching = search_tasks(self._tasks, query)

        if limit is not None:
            matching = matching[:limit]

        logger.debug(f"Found {len(matching)} todos matching query: {query}")
        return matching

    def get_statistics(self) -> TaskStats:
        """Aggregate statistics, recomputed on every call."""
        with self._lock:
            return compute_stats(self._tasks, self.settings.priorities, self._now())

    # ---- mutations ----

    def create_task(
        self,
        text: str,
        description: Optional[str] = None,
        priority: Optional[str] = None,
        category: Optional[str] = None,
        due_date: Any = None,
    ) -> Task:
        """Create a new todo at the front of the collection.

        Args:
            text: Todo text, 1-200 characters after trimming
            description: Optional description
            priority: One of the configured priorities (default medium)
            category: Category (default general)
            due_date: Optional deadline (datetime or ISO-8601 string)

        Returns:
            Created todo

        Raises:
            TaskValidationError: If any field is invalid
        """
        task_data = _parse(TaskCreate, {
            "text": text,
            "description": description,
            "priority": priority,
            "category": category,
            "due_date": due_date,
        })
        return self.create_task_from_schema(task_data)

    def create_task_from_schema(self, task_data: Union[TaskCreate, Dict[str, Any]]) -> Task:
        """Create a new todo from schema (or a mapping of its fields)."""
        task_data = _parse(TaskCreate, task_data)
        clean = self._validate({
            "text": task_data.text,
            "description": task_data.description,
            "priority": task_data.priority or self.settings.default_priority,
            "category": task_data.category,
            "due_date": task_data.due_date,
        })

        with self._lock:
            now = self._now()
            task = Task(**clean, created_at=now, updated_at=now)
            self._commit([task] + self._tasks)

        logger.info(f"Created todo {task.id}: {task.text}")
        return task

    def update_task(self, task_id: str, task_data: Union[TaskUpdate, Dict[str, Any]]) -> Task:
        """Apply a partial update to a todo.

        Args:
            task_id: Todo ID
            task_data: Fields to change; omitted fields are left untouched

        Returns:
            Updated todo

        Raises:
            TaskValidationError: If no field is given or a field is invalid
            TaskNotFoundError: If no todo has this ID
        """
        task_data = _parse(TaskUpdate, task_data)
        changes = task_data.changes()
        if not changes:
            raise TaskValidationError(["At least one field must be provided for update"])
        clean = self._validate(changes)

        with self._lock:
            index = self._index_of(task_id)
            task = self._tasks[index].model_copy(update=clean)
            task.update_timestamp(self._now())

            tasks = list(self._tasks)
            tasks[index] = task
            self._commit(tasks)

        logger.info(f"Updated todo {task_id}: {sorted(clean)}")
        return task

    def edit_task(self, task_id: str, text: str) -> Task:
        """Replace a todo's text."""
        return self.update_task(task_id, {"text": text})

    def set_priority(self, task_id: str, priority: str) -> Task:
        """Change a todo's priority."""
        return self.update_task(task_id, {"priority": priority})

    def toggle_task(self, task_id: str) -> Task:
        """Flip a todo's completed flag.

        Raises:
            TaskNotFoundError: If no todo has this ID
        """
        with self._lock:
            index = self._index_of(task_id)
            task = self._tasks[index].model_copy(update={"completed": not self._tasks[index].completed})
            task.update_timestamp(self._now())

            tasks = list(self._tasks)
            tasks[index] = task
            self._commit(tasks)

        logger.info(f"Toggled todo {task_id}: completed={task.completed}")
        return task

    def toggle_all(self) -> List[Task]:
        """Complete every todo, or reopen them all when none is active."""
        with self._lock:
            if not self._tasks:
                return []

            completed = any(not task.completed for task in self._tasks)
            now = self._now()
            tasks = []
            for task in self._tasks:
                task = task.model_copy(update={"completed": completed})
                task.update_timestamp(now)
                tasks.append(task)
            self._commit(tasks)

        logger.info(f"Marked all {len(tasks)} todos completed={completed}")
        return list(tasks)

    def delete_task(self, task_id: str) -> Task:
        """Delete a todo.

        Returns:
            The removed todo

        Raises:
            TaskNotFoundError: If no todo has this ID
        """
        with self._lock:
            index = self._index_of(task_id)
            tasks = list(self._tasks)
            task = tasks.pop(index)
            self._commit(tasks)

        logger.info(f"Deleted todo {task_id}: {task.text}")
        return task

    def clear_completed(self) -> List[Task]:
        """Remove every completed todo.

        Returns:
            The removed todos (empty when none were completed)
        """
        with self._lock:
            removed = [task for task in self._tasks if task.completed]
            if not removed:
                return []
            self._commit([task for task in self._tasks if not task.completed])

        logger.info(f"Cleared {len(removed)} completed todos")
        return removed

    def clear_all_tasks(self) -> int:
        """Remove every todo.

        Returns:
            Number of todos that were removed
        """
        with self._lock:
            count = len(self._tasks)
            self._commit([])

        logger.warning(f"Cleared all {count} todos")
        return count

    def reorder_tasks(self, todo_ids: Sequence[str]) -> List[Task]:
        """Reorder todos to follow ``todo_ids``.

        Todos missing from ``todo_ids`` keep their relative order and go after
        the listed ones. Only todos whose position changed are touched.

        Raises:
            TaskValidationError: If an ID is unknown or listed twice
        """
        todo_ids = list(todo_ids)
        with self._lock:
            by_id = {task.id: task for task in self._tasks}

            errors = []
            unknown = [str(task_id) for task_id in todo_ids if task_id not in by_id]
            if unknown:
                errors.append(f"Invalid todo IDs: {', '.join(unknown)}")

            seen = set()
            duplicates = []
            for task_id in todo_ids:
                if task_id in seen and task_id not in duplicates:
                    duplicates.append(task_id)
                seen.add(task_id)
            if duplicates:
                errors.append(f"Duplicate todo IDs: {', '.join(map(str, duplicates))}")

            if errors:
                raise TaskValidationError(errors)

            ordered = [by_id[task_id] for task_id in todo_ids]
            ordered += [task for task in self._tasks if task.id not in seen]
            tasks = self._touch_moved(self._tasks, ordered)
            self._commit(tasks)

        logger.info(f"Reordered {len(todo_ids)} of {len(tasks)} todos")
        return list(tasks)

    def move_task(self, start_index: int, end_index: int) -> List[Task]:
        """Move the todo at ``start_index`` to ``end_index``.

        Raises:
            TaskValidationError: If either index is outside the collection
        """
        with self._lock:
            size = len(self._tasks)
            errors = []
            if not 0 <= start_index < size:
                errors.append(f"Start index {start_index} is out of range (0-{size - 1})")
            if not 0 <= end_index < size:
                errors.append(f"End index {end_index} is out of range (0-{size - 1})")
            if errors:
                raise TaskValidationError(errors)

            ordered = list(self._tasks)
            ordered.insert(end_index, ordered.pop(start_index))
            tasks = self._touch_moved(self._tasks, ordered)
            self._commit(tasks)

        logger.info(f"Moved todo from position {start_index} to {end_index}")
        return list(tasks)

    def replace_all(self, tasks: Iterable[Union[Task, Dict[str, Any]]]) -> List[Task]:
        """Replace the whole collection.

        Raises:
            TaskValidationError: If a record is invalid or an ID repeats
        """
        validated = []
        errors: List[str] = []
        for index, record in enumerate(tasks):
            try:
                task = _parse(Task, record)
                clean = self._validate({
                    "text": task.text,
                    "description": task.description,
                    "priority": task.priority,
                    "category": task.category,
                    "completed": task.completed,
                })
            except TaskValidationError as e:
                errors.extend(f"Todo {index}: {message}" for message in e.errors)
                continue
            validated.append(task.model_copy(update=clean))

        ids = [task.id for task in validated]
        if len(set(ids)) != len(ids):
            errors.append("Todo IDs must be unique")
        if errors:
            raise TaskValidationError(errors)

        with self._lock:
            self._commit(validated)

        logger.info(f"Replaced collection with {len(validated)} todos")
        return list(validated)

    # ---- command dispatch ----

    def apply(self, command: Any) -> Any:
        """Run one tagged command through the matching operation.

        Args:
            command: A command model or a ``{"type": ...}`` mapping

        Returns:
            Whatever the underlying operation returns

        Raises:
            TaskValidationError: If the command is unknown or invalid
            TaskNotFoundError: If the command targets a missing todo
        """
        if isinstance(command, dict):
            command = commands.parse_command(command)

        handlers: Dict[type, Callable[[Any], Any]] = {
            commands.AddTask: self.create_task_from_schema,
            commands.UpdateTask: lambda c: self.update_task(c.id, c.updates),
            commands.EditTask: lambda c: self.edit_task(c.id, c.text),
            commands.SetPriority: lambda c: self.set_priority(c.id, c.priority),
            commands.ToggleTask: lambda c: self.toggle_task(c.id),
            commands.ToggleAll: lambda c: self.toggle_all(),
            commands.DeleteTask: lambda c: self.delete_task(c.id),
            commands.ReorderTasks: lambda c: self.reorder_tasks(c.todo_ids),
            commands.MoveTask: lambda c: self.move_task(c.start_index, c.end_index),
            commands.ClearCompleted: lambda c: self.clear_completed(),
            commands.ClearAll: lambda c: self.clear_all_tasks(),
            commands.SetTasks: lambda c: self.replace_all(c.todos),
        }

        handler = handlers.get(type(command))
        if handler is None:
            raise TaskValidationError([f"Unknown command: {type(command).__name__}"], message="Invalid command")

        logger.debug(f"Applying command {command.type}")
        return handler(command)


def create_todo_store(settings: Settings, slot: Optional[PersistenceSlot] = None) -> TodoStore:
    """Build a todo store backed by the configured persistence slot.

    Returns:
        Loaded todo store
    """
    return TodoStore(settings, slot if slot is not None else create_slot(settings))
