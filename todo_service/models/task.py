"""Domain models for the todo list."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ..utils.dates import ensure_utc, parse_due_date, utc_now


class Priority(str, Enum):
    """Known priority values. The allowed subset is configurable."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


# Ordinal used when sorting by priority; unknown values rank with LOW.
PRIORITY_ORDER: Dict[str, int] = {
    Priority.URGENT.value: 4,
    Priority.HIGH.value: 3,
    Priority.MEDIUM.value: 2,
    Priority.LOW.value: 1,
}
LOWEST_PRIORITY_RANK = 1


class StatusFilter(str, Enum):
    """Completion status filter."""
    ALL = "all"
    ACTIVE = "active"
    COMPLETED = "completed"


class SortField(str, Enum):
    """Fields a todo listing can be sorted by."""
    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"
    DUE_DATE = "dueDate"
    PRIORITY = "priority"
    TITLE = "title"
    STATUS = "status"


class SortOrder(str, Enum):
    """Sort direction."""
    ASC = "asc"
    DESC = "desc"


def generate_id() -> str:
    """Generate an opaque, never reused todo id."""
    return str(uuid4())


class Task(BaseModel):
    """Todo domain model.

    Serialized with camelCase keys (``dueDate``, ``createdAt``, ``updatedAt``),
    which is also the persisted format.
    """

    id: str = Field(default_factory=generate_id, description="Unique todo identifier")
    text: str = Field(..., min_length=1, description="Todo text")
    description: str = Field(default="", description="Optional longer description")
    completed: bool = Field(default=False, description="Whether the todo is done")
    priority: str = Field(default=Priority.MEDIUM.value, description="Todo priority")
    category: str = Field(default="general", description="Todo category")
    due_date: Optional[datetime] = Field(default=None, description="Optional deadline")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    @model_validator(mode="before")
    @classmethod
    def default_timestamps(cls, data: Any) -> Any:
        # Both timestamps default to the same instant.
        if isinstance(data, dict):
            created_key = "createdAt" if "createdAt" in data else "created_at"
            updated_key = "updatedAt" if "updatedAt" in data else "updated_at"
            if data.get(created_key) is None or data.get(updated_key) is None:
                data = dict(data)
                now = utc_now()
                created = data.get(created_key) or now
                data[created_key] = created
                data[updated_key] = data.get(updated_key) or created
        return data

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date_value(cls, value: Any) -> Optional[datetime]:
        return parse_due_date(value)

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timestamps(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def check_timestamp_order(self) -> "Task":
        if self.updated_at < self.created_at:
            self.updated_at = self.created_at
        return self

    def update_timestamp(self, now: Optional[datetime] = None) -> None:
        """Refresh updated_at, never moving it before created_at."""
        now = now or utc_now()
        self.updated_at = max(now, self.created_at)

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        """Whether the todo has a past due date and is not completed."""
        if self.completed or self.due_date is None:
            return False
        return self.due_date < (now or utc_now())

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
