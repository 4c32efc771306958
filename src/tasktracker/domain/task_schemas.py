from __future__ import annotations

import re
from datetime import date, datetime, time, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from tasktracker.domain.task_models import (
    DESCRIPTION_MAX,
    TAG_MAX,
    TAGS_MAX,
    TITLE_MAX,
    Priority,
)

TaskStatus = Literal["completed", "incomplete"]
DueDateBucket = Literal["overdue", "today", "week", "none"]
SortField = Literal["createdAt", "dueDate", "priority", "title", "completed"]
SortOrder = Literal["asc", "desc"]

DEFAULT_LIMIT = 25
MAX_LIMIT = 100
# keeps (page - 1) * limit inside a signed 64-bit OFFSET
MAX_PAGE = (2**63 - 1) // MAX_LIMIT

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DATE_TIME = re.compile(r"^\d{4}-\d{2}-\d{2}T")

DUE_DATE_ERROR = "dueDate must be a yyyy-mm-dd date or an ISO-8601 datetime"


def normalize_due_date(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a dueDate as sent on the wire.

    A bare yyyy-mm-dd becomes midnight UTC of that day; a ``T``-separated
    ISO-8601 datetime is converted to UTC (naive means UTC). Anything else
    raises ValueError.
    """
    if value is None:
        return None
    if _DATE_ONLY.match(value):
        return datetime.combine(date.fromisoformat(value), time.min, tzinfo=timezone.utc)
    if not _DATE_TIME.match(value):
        raise ValueError(f"Invalid dueDate: {value!r}")
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _check_due_date(value: Optional[str]) -> Optional[str]:
    try:
        normalize_due_date(value)
    except ValueError:
        raise ValueError(DUE_DATE_ERROR) from None
    return value


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TaskCreate(_CamelModel):
    title: str = Field(min_length=1, max_length=TITLE_MAX)
    description: Optional[str] = Field(default=None, max_length=DESCRIPTION_MAX)
    priority: Priority = Priority.MEDIUM
    due_date: Optional[str] = None
    tags: List[str] = Field(default_factory=list, max_length=TAGS_MAX)

    @field_validator("due_date")
    @classmethod
    def validate_due_date(cls, v: Optional[str]) -> Optional[str]:
        return _check_due_date(v)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: List[str]) -> List[str]:
        for tag in v:
            if len(tag) > TAG_MAX:
                raise ValueError(f"tags must be {TAG_MAX} characters or less")
        return v


class TaskUpdate(_CamelModel):
    """
    Partial update. Only fields present in the payload are applied
    (``model_fields_set``), so ``{"dueDate": null}`` clears the due date while
    omitting it leaves the date alone.
    """

    title: Optional[str] = Field(default=None, min_length=1, max_length=TITLE_MAX)
    description: Optional[str] = Field(default=None, max_length=DESCRIPTION_MAX)
    priority: Optional[Priority] = None
    completed: Optional[bool] = None
    due_date: Optional[str] = None
    tags: Optional[List[str]] = Field(default=None, max_length=TAGS_MAX)
    version: Optional[int] = Field(default=None, gt=0)

    @field_validator("due_date")
    @classmethod
    def validate_due_date(cls, v: Optional[str]) -> Optional[str]:
        return _check_due_date(v)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        for tag in v or []:
            if len(tag) > TAG_MAX:
                raise ValueError(f"tags must be {TAG_MAX} characters or less")
        return v


class TaskToggle(_CamelModel):
    version: Optional[int] = None


class TaskFilters(_CamelModel):
    page: int = Field(default=1, ge=1, le=MAX_PAGE)
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT)
    search: Optional[str] = None
    priority: Optional[Priority] = None
    status: Optional[TaskStatus] = None
    due_date: Optional[DueDateBucket] = None
    tags: Optional[List[str]] = None
    sort_by: SortField = "createdAt"
    sort_order: SortOrder = "desc"

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


class TaskOut(_CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    priority: Priority
    completed: bool
    due_date: Optional[str] = None
    tags: List[str]
    created_at: str
    updated_at: str
    deleted_at: Optional[str] = None
    is_overdue: bool
    version: int


class PaginationOut(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class TaskPage(BaseModel):
    data: List[TaskOut]
    pagination: PaginationOut


class ProblemDetails(_CamelModel):
    type: str
    title: str
    status: int
    detail: str
    instance: str
    trace_id: Optional[str] = None
