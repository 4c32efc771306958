from __future__ import annotations

import secrets
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from tasktracker.domain.errors import ValidationError

TITLE_MAX = 200
DESCRIPTION_MAX = 1000
TAGS_MAX = 10
TAG_MAX = 30

UPDATABLE_FIELDS = frozenset({"title", "description", "priority", "completed", "due_date", "tags"})


class Priority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_task_id() -> str:
    return f"task_{secrets.token_urlsafe(12)}"


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Millisecond-precision UTC ISO-8601 string, e.g. 2024-12-31T00:00:00.000Z."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


@dataclass
class Task:
    """
    The task entity. Every instance is valid: construction and update() both
    run the full rule set and raise ValidationError otherwise.

    Each state change bumps updated_at and increments version by exactly one,
    including changes that leave the visible state as it was (marking a
    completed task completed again).
    """

    id: str
    title: str
    description: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    completed: bool = False
    due_date: Optional[datetime] = None
    tags: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    deleted_at: Optional[datetime] = None
    version: int = 1

    def __post_init__(self) -> None:
        self.priority = Priority(self.priority)
        self.tags = list(self.tags or [])
        self._validate()

    def _validate(self) -> None:
        if not self.title or not self.title.strip():
            raise ValidationError("Task title is required", "title")
        if len(self.title) > TITLE_MAX:
            raise ValidationError(f"Task title must be {TITLE_MAX} characters or less", "title")
        if self.description and len(self.description) > DESCRIPTION_MAX:
            raise ValidationError(
                f"Task description must be {DESCRIPTION_MAX} characters or less", "description"
            )
        if len(self.tags) > TAGS_MAX:
            raise ValidationError(f"Task cannot have more than {TAGS_MAX} tags", "tags")
        for tag in self.tags:
            if len(tag) > TAG_MAX:
                raise ValidationError(f"Tag must be {TAG_MAX} characters or less", "tags")

    def _touch(self) -> None:
        self.updated_at = utcnow()
        self.version += 1

    def mark_completed(self) -> None:
        self.completed = True
        self._touch()

    def mark_incomplete(self) -> None:
        self.completed = False
        self._touch()

    def toggle_complete(self) -> None:
        if self.completed:
            self.mark_incomplete()
        else:
            self.mark_completed()

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        if self.due_date is None or self.completed:
            return False
        return self.due_date < (now or utcnow())

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self) -> None:
        now = utcnow()
        self.deleted_at = now
        self.updated_at = now
        self.version += 1

    def restore(self) -> None:
        # callers check is_deleted first
        self.deleted_at = None
        self._touch()

    def update(self, **changes: Any) -> None:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise TypeError(f"Task.update() got unexpected fields: {', '.join(sorted(unknown))}")

        # replace() re-runs __post_init__, so an invalid result raises before anything is committed
        staged = replace(self, **changes, updated_at=utcnow(), version=self.version + 1)
        for f in fields(self):
            setattr(self, f.name, getattr(staged, f.name))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "completed": self.completed,
            "dueDate": to_iso(self.due_date),
            "tags": list(self.tags),
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
            "deletedAt": to_iso(self.deleted_at),
            "isOverdue": self.is_overdue(),
            "version": self.version,
        }
