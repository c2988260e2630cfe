"""API request/response schemas for the todo service."""

from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, Sequence, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictBool, field_validator
from pydantic.alias_generators import to_camel

from .models.task import SortField, SortOrder, StatusFilter, Task
from .utils.dates import parse_due_date, utc_now

T = TypeVar("T")

# Accepted spellings for sort keys used by the different clients.
SORT_FIELD_ALIASES = {
    "date": SortField.CREATED_AT.value,
    "created_at": SortField.CREATED_AT.value,
    "updated_at": SortField.UPDATED_AT.value,
    "due_date": SortField.DUE_DATE.value,
    "alphabetical": SortField.TITLE.value,
    "text": SortField.TITLE.value,
}


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def format_validation_errors(errors: Sequence[Dict[str, Any]]) -> List[str]:
    """Turn pydantic error dicts into human-readable messages."""
    messages = []
    for error in errors:
        ctx_error = (error.get("ctx") or {}).get("error")
        if error.get("type") == "value_error" and ctx_error is not None:
            messages.append(str(ctx_error))
            continue

        location = ".".join(
            str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")
        )
        message = error.get("msg", "Invalid value")
        messages.append(f"{location}: {message}" if location else message)
    return messages


class CamelModel(BaseModel):
    """Base model exposing camelCase names on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Todo-related schemas
class TaskCreate(CamelModel):
    """Schema for creating a new todo. Limits and enums are checked by the store."""
    text: str = Field(
        ...,
        validation_alias=AliasChoices("text", "title"),
        description="Todo text (also accepted as 'title')"
    )
    description: Optional[str] = Field(None, description="Todo description")
    priority: Optional[str] = Field(None, description="Todo priority")
    category: Optional[str] = Field(None, description="Todo category")
    due_date: Optional[datetime] = Field(None, description="Optional deadline")

    @field_validator("text", "description", "priority", "category", mode="before")
    @classmethod
    def strip_strings(cls, value: Any) -> Any:
        return _strip(value)

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date_value(cls, value: Any) -> Optional[datetime]:
        return parse_due_date(value)


class TaskUpdate(CamelModel):
    """Schema for a partial todo update. Only fields that were sent are applied."""
    text: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("text", "title"),
        description="Todo text (also accepted as 'title')"
    )
    description: Optional[str] = Field(None, description="Todo description")
    priority: Optional[str] = Field(None, description="Todo priority")
    category: Optional[str] = Field(None, description="Todo category")
    due_date: Optional[datetime] = Field(None, description="Deadline; null clears it")
    completed: Optional[StrictBool] = Field(None, description="Completion state")

    @field_validator("text", "description", "priority", "category", mode="before")
    @classmethod
    def strip_strings(cls, value: Any) -> Any:
        return _strip(value)

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date_value(cls, value: Any) -> Optional[datetime]:
        return parse_due_date(value)

    def changes(self) -> Dict[str, Any]:
        """Fields explicitly provided by the caller."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class TaskQuery(CamelModel):
    """Filter, search, sort and pagination options for listing todos."""
    status: StatusFilter = Field(
        default=StatusFilter.ALL,
        validation_alias=AliasChoices("filter", "status"),
        description="Completion status filter"
    )
    search: Optional[str] = Field(None, description="Case-insensitive search term")
    category: Optional[str] = Field(None, description="Category filter")
    priority: Optional[str] = Field(None, description="Priority filter")
    sort_by: Optional[SortField] = Field(None, description="Sort key (collection order when omitted)")
    sort_order: Optional[SortOrder] = Field(None, description="Sort direction (desc by default)")
    page: Optional[int] = Field(None, ge=1, description="Page number, starting at 1")
    limit: Optional[int] = Field(None, ge=1, le=100, description="Page size")

    @field_validator("search", "category", "priority", mode="before")
    @classmethod
    def blank_or_all_is_none(cls, value: Any) -> Any:
        value = _strip(value)
        if value == "" or value == "all":
            return None
        return value

    @field_validator("sort_by", mode="before")
    @classmethod
    def normalize_sort_alias(cls, value: Any) -> Any:
        if isinstance(value, str):
            return SORT_FIELD_ALIASES.get(value, value)
        return value

    @property
    def paginated(self) -> bool:
        return self.page is not None or self.limit is not None


class ReorderRequest(CamelModel):
    """Schema for reordering todos by id."""
    todo_ids: List[str] = Field(..., description="Todo ids in the desired order")


class MoveRequest(CamelModel):
    """Schema for moving one todo between positions."""
    start_index: int = Field(..., description="Current position of the todo")
    end_index: int = Field(..., description="Target position of the todo")


class ClearCompletedResult(CamelModel):
    """Result of removing all completed todos."""
    deleted_count: int = Field(..., description="Number of todos removed")
    deleted_todos: List[Task] = Field(default_factory=list, description="The removed todos")


class ClearAllResult(CamelModel):
    """Result of removing every todo."""
    deleted_count: int = Field(..., description="Number of todos removed")


class TaskStats(CamelModel):
    """Aggregated statistics over the whole collection."""
    total: int = 0
    completed: int = 0
    active: int = 0
    completion_rate: int = Field(default=0, description="Completed share in whole percent")
    overdue: int = 0
    by_priority: Dict[str, int] = Field(default_factory=dict)
    by_category: Dict[str, int] = Field(default_factory=dict)
    categories: List[str] = Field(default_factory=list, description="Distinct categories in collection order")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope wrapping every API response."""
    success: bool = Field(default=True, description="Whether the request succeeded")
    data: Optional[T] = Field(None, description="Response payload")
    message: Optional[str] = Field(None, description="Human-readable status message")
    error: Optional[str] = Field(None, description="Error detail")
    errors: Optional[List[str]] = Field(None, description="Validation messages")
    total: Optional[int] = Field(None, description="Matching todos before pagination")
    page: Optional[int] = Field(None, description="Current page")
    limit: Optional[int] = Field(None, description="Page size")


# Health check schema
class HealthResponse(BaseModel):
    """Schema for health check responses."""
    success: bool = Field(default=True, description="Always true while the process is up")
    status: str = Field(default="healthy", description="Service health status")
    message: str = Field(default="Server is running", description="Status message")
    timestamp: datetime = Field(default_factory=utc_now, description="Health check timestamp")
    version: str = Field(default="1.0.0", description="Application version")
    storage: Dict[str, Any] = Field(default_factory=dict, description="Persistence slot status")
