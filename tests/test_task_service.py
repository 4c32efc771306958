import logging
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from tasktracker.domain.errors import ConflictError, NotFoundError, ValidationError
from tasktracker.domain.task_models import Priority
from tasktracker.domain.task_schemas import TaskCreate, TaskFilters, TaskUpdate, normalize_due_date
from tasktracker.services.task_service import CONFLICT_MESSAGE


class TestNormalizeDueDate:
    def test_bare_date_is_midnight_utc(self):
        assert normalize_due_date("2024-12-31") == datetime(2024, 12, 31, tzinfo=timezone.utc)

    def test_datetime_with_zulu(self):
        assert normalize_due_date("2024-12-31T10:15:00.000Z") == datetime(2024, 12, 31, 10, 15, tzinfo=timezone.utc)

    def test_datetime_with_offset_converted_to_utc(self):
        value = normalize_due_date("2024-12-31T10:00:00+02:00")
        assert value == datetime(2024, 12, 31, 8, 0, tzinfo=timezone.utc)
        assert value.tzinfo == timezone.utc

    def test_naive_datetime_taken_as_utc(self):
        assert normalize_due_date("2024-12-31T10:00:00") == datetime(2024, 12, 31, 10, tzinfo=timezone.utc)

    def test_none(self):
        assert normalize_due_date(None) is None

    @pytest.mark.parametrize("value", ["2024-12-31 10:00:00", "2024-13-45", "31/12/2024", "tomorrow", "2024-12-31T25:00"])
    def test_rejects_unparseable_values(self, value):
        with pytest.raises(ValueError):
            normalize_due_date(value)

    def test_schema_rejects_what_the_service_cannot_normalize(self):
        with pytest.raises(PydanticValidationError):
            TaskCreate.model_validate({"title": "x", "dueDate": "2024-12-31 10:00:00"})
        with pytest.raises(PydanticValidationError):
            TaskUpdate.model_validate({"dueDate": "2024-02-30"})


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_example(self, service):
        task = await service.create_task(TaskCreate.model_validate({
            "title": "Test Task",
            "priority": "HIGH",
            "dueDate": "2024-12-31",
            "tags": ["work", "important"],
        }))
        data = task.to_dict()
        assert data["version"] == 1
        assert data["completed"] is False
        assert data["priority"] == "HIGH"
        assert data["tags"] == ["work", "important"]
        assert data["dueDate"] == "2024-12-31T00:00:00.000Z"
        assert data["deletedAt"] is None
        assert data["id"].startswith("task_")

    @pytest.mark.asyncio
    async def test_defaults_and_persistence(self, service, memory_repo):
        task = await service.create_task(TaskCreate(title="Minimal", description=""))
        assert task.priority is Priority.MEDIUM
        assert task.description is None
        assert task.created_at == task.updated_at
        assert await memory_repo.find_by_id(task.id) == task

    @pytest.mark.asyncio
    async def test_whitespace_title_rejected_by_entity(self, service):
        with pytest.raises(ValidationError):
            await service.create_task(TaskCreate(title="   "))

    @pytest.mark.asyncio
    async def test_logs_create_event(self, service, caplog):
        with caplog.at_level(logging.INFO, logger="tasktracker.tasks"):
            task = await service.create_task(TaskCreate(title="Logged"))
        record = next(r for r in caplog.records if r.getMessage() == "task.create")
        assert record.task_id == task.id
        assert record.category == "tasks"


class TestReadAndList:
    @pytest.mark.asyncio
    async def test_get_missing_raises(self, service):
        with pytest.raises(NotFoundError) as exc:
            await service.get_task_by_id("task_nope")
        assert str(exc.value) == "Task with id task_nope not found"

    @pytest.mark.asyncio
    async def test_pagination_envelope(self, service):
        for i in range(5):
            await service.create_task(TaskCreate(title=f"Task {i}"))

        result = await service.get_tasks(TaskFilters(page=2, limit=2))
        assert len(result.data) == 2
        assert result.pagination.total == 5
        assert result.pagination.pages == 3
        assert result.pagination.page == 2
        assert result.pagination.limit == 2

        body = result.to_dict()
        assert body["pagination"] == {"page": 2, "limit": 2, "total": 5, "pages": 3}
        assert len(body["data"]) == 2

    @pytest.mark.asyncio
    async def test_empty_listing_has_zero_pages(self, service):
        result = await service.get_tasks(TaskFilters())
        assert result.data == []
        assert result.pagination.pages == 0


class TestUpdate:
    @pytest.mark.asyncio
    async def test_applies_only_supplied_fields(self, service):
        task = await service.create_task(TaskCreate(title="Original", description="keep", tags=["a"]))
        updated = await service.update_task(task.id, TaskUpdate(title="Renamed", completed=True))
        assert updated.title == "Renamed"
        assert updated.completed is True
        assert updated.description == "keep"
        assert updated.tags == ["a"]
        assert updated.version == 2

    @pytest.mark.asyncio
    async def test_matching_version_succeeds(self, service):
        task = await service.create_task(TaskCreate(title="v"))
        updated = await service.update_task(task.id, TaskUpdate(title="v2", version=1))
        assert updated.version == 2

    @pytest.mark.asyncio
    async def test_stale_version_conflicts(self, service):
        task = await service.create_task(TaskCreate(title="v"))
        await service.update_task(task.id, TaskUpdate(title="v2"))

        with pytest.raises(ConflictError) as exc:
            await service.update_task(task.id, TaskUpdate(title="v3", version=1))
        assert str(exc.value) == CONFLICT_MESSAGE
        assert (await service.get_task_by_id(task.id)).title == "v2"

    @pytest.mark.asyncio
    async def test_due_date_set_and_cleared(self, service):
        task = await service.create_task(TaskCreate(title="due"))
        updated = await service.update_task(task.id, TaskUpdate.model_validate({"dueDate": "2030-05-01"}))
        assert updated.due_date == datetime(2030, 5, 1, tzinfo=timezone.utc)

        cleared = await service.update_task(task.id, TaskUpdate.model_validate({"dueDate": None}))
        assert cleared.due_date is None

        untouched = await service.update_task(task.id, TaskUpdate(title="again"))
        assert untouched.due_date is None

    @pytest.mark.asyncio
    async def test_null_for_required_field_is_ignored(self, service):
        task = await service.create_task(TaskCreate(title="keep", priority=Priority.HIGH))
        updated = await service.update_task(task.id, TaskUpdate.model_validate({"priority": None}))
        assert updated.priority is Priority.HIGH

    @pytest.mark.asyncio
    async def test_invalid_update_is_not_persisted(self, service):
        task = await service.create_task(TaskCreate(title="valid"))
        with pytest.raises(ValidationError):
            await service.update_task(task.id, TaskUpdate(title="  "))
        stored = await service.get_task_by_id(task.id)
        assert stored.title == "valid"
        assert stored.version == 1

    @pytest.mark.asyncio
    async def test_update_deleted_task_is_not_found(self, service):
        task = await service.create_task(TaskCreate(title="gone"))
        await service.delete_task(task.id)
        with pytest.raises(NotFoundError):
            await service.update_task(task.id, TaskUpdate(title="x"))


class TestToggle:
    @pytest.mark.asyncio
    async def test_toggle_round_trip(self, service):
        task = await service.create_task(TaskCreate(title="t"))
        done = await service.toggle_task_complete(task.id)
        assert done.completed is True and done.version == 2
        undone = await service.toggle_task_complete(task.id, version=2)
        assert undone.completed is False and undone.version == 3

    @pytest.mark.asyncio
    async def test_toggle_conflict(self, service):
        task = await service.create_task(TaskCreate(title="t"))
        with pytest.raises(ConflictError):
            await service.toggle_task_complete(task.id, version=7)

    @pytest.mark.asyncio
    async def test_version_zero_is_checked(self, service):
        task = await service.create_task(TaskCreate(title="t"))
        with pytest.raises(ConflictError):
            await service.toggle_task_complete(task.id, version=0)

    @pytest.mark.asyncio
    async def test_toggle_missing(self, service):
        with pytest.raises(NotFoundError):
            await service.toggle_task_complete("task_missing")


class TestDeleteRestore:
    @pytest.mark.asyncio
    async def test_lifecycle(self, service):
        task = await service.create_task(TaskCreate(title="cycle", tags=["x"]))
        await service.delete_task(task.id)

        with pytest.raises(NotFoundError):
            await service.get_task_by_id(task.id)

        deleted = await service.get_deleted_tasks(TaskFilters())
        assert [t.id for t in deleted] == [task.id]
        assert deleted[0].version == 2

        restored = await service.restore_task(task.id)
        assert restored.deleted_at is None
        assert restored.version == 3
        fetched = await service.get_task_by_id(task.id)
        assert fetched.title == "cycle"
        assert fetched.tags == ["x"]
        assert await service.get_deleted_tasks(TaskFilters()) == []

    @pytest.mark.asyncio
    async def test_delete_missing(self, service):
        with pytest.raises(NotFoundError):
            await service.delete_task("task_missing")

    @pytest.mark.asyncio
    async def test_restore_requires_deleted_task(self, service):
        task = await service.create_task(TaskCreate(title="live"))
        with pytest.raises(NotFoundError) as exc:
            await service.restore_task(task.id)
        assert str(exc.value) == f"Deleted task with id {task.id} not found"

        with pytest.raises(NotFoundError):
            await service.restore_task("task_missing")

    @pytest.mark.asyncio
    async def test_deleted_listing_ignores_status(self, service):
        task = await service.create_task(TaskCreate(title="done then deleted"))
        await service.toggle_task_complete(task.id)
        await service.delete_task(task.id)

        found = await service.get_deleted_tasks(TaskFilters(status="incomplete"))
        assert [t.id for t in found] == [task.id]
