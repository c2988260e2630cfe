"""Exceptions raised by the todo store and translated by the API layer."""

from typing import Iterable, List, Optional


class TodoServiceError(Exception):
    """Base class for todo service errors."""


class TaskValidationError(TodoServiceError, ValueError):
    """One or more fields failed validation; the collection is unchanged."""

    def __init__(self, errors: Iterable[str], message: str = "Validation failed"):
        self.errors: List[str] = list(errors)
        self.message = message
        super().__init__("; ".join(self.errors) or message)


class TaskNotFoundError(TodoServiceError, LookupError):
    """The referenced todo id is not in the collection."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Todo {task_id} not found")


class PersistenceError(TodoServiceError):
    """Reading or writing the persistence slot failed.

    Never fatal: the store keeps operating on its in-memory collection.
    """

    def __init__(self, operation: str, key: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.key = key
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Failed to {operation} persistence slot '{key}'{detail}")


class InternalError(TodoServiceError):
    """Unexpected failure surfaced at the API boundary."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.message = message
        self.cause = cause
        super().__init__(message)
