from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, Response, status

from tasktracker.domain.task_models import Priority
from tasktracker.domain.task_schemas import (
    DEFAULT_LIMIT,
    MAX_LIMIT,
    MAX_PAGE,
    DueDateBucket,
    SortField,
    SortOrder,
    TaskCreate,
    TaskFilters,
    TaskOut,
    TaskPage,
    TaskStatus,
    TaskToggle,
    TaskUpdate,
)
from tasktracker.services.task_service import TaskService

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


def get_service(request: Request) -> TaskService:
    # wired by create_app()
    return request.app.state.task_service


def _split_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    # ?tags=a&tags=b and ?tags=a,b are both accepted
    if not tags:
        return None
    out = [t.strip() for raw in tags for t in raw.split(",") if t.strip()]
    return out or None


def deleted_task_filters(
    page: int = Query(1, ge=1, le=MAX_PAGE),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    search: Optional[str] = Query(None),
    priority: Optional[Priority] = Query(None),
    due_date: Optional[DueDateBucket] = Query(None, alias="dueDate"),
    tags: Optional[List[str]] = Query(None),
    sort_by: SortField = Query("createdAt", alias="sortBy"),
    sort_order: SortOrder = Query("desc", alias="sortOrder"),
) -> TaskFilters:
    return TaskFilters(
        page=page,
        limit=limit,
        search=(search or "").strip() or None,
        priority=priority,
        due_date=due_date,
        tags=_split_tags(tags),
        sort_by=sort_by,
        sort_order=sort_order,
    )


def task_filters(
    base: TaskFilters = Depends(deleted_task_filters),
    task_status: Optional[TaskStatus] = Query(None, alias="status"),
) -> TaskFilters:
    return base.model_copy(update={"status": task_status})


@router.get("", response_model=TaskPage)
async def list_tasks(filters: TaskFilters = Depends(task_filters), svc: TaskService = Depends(get_service)):
    result = await svc.get_tasks(filters)
    return result.to_dict()


@router.get("/deleted", response_model=List[TaskOut])
async def list_deleted_tasks(
    filters: TaskFilters = Depends(deleted_task_filters), svc: TaskService = Depends(get_service)
):
    tasks = await svc.get_deleted_tasks(filters)
    return [t.to_dict() for t in tasks]


@router.get("/{task_id}", response_model=TaskOut)
async def get_task(task_id: str, svc: TaskService = Depends(get_service)):
    task = await svc.get_task_by_id(task_id)
    return task.to_dict()


@router.post("", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
async def create_task(payload: TaskCreate, svc: TaskService = Depends(get_service)):
    task = await svc.create_task(payload)
    return task.to_dict()


@router.patch("/{task_id}", response_model=TaskOut)
async def update_task(task_id: str, payload: TaskUpdate, svc: TaskService = Depends(get_service)):
    task = await svc.update_task(task_id, payload)
    return task.to_dict()


@router.patch("/{task_id}/toggle", response_model=TaskOut)
async def toggle_task(
    task_id: str,
    payload: Optional[TaskToggle] = Body(None),
    svc: TaskService = Depends(get_service),
):
    version = payload.version if payload is not None else None
    task = await svc.toggle_task_complete(task_id, version)
    return task.to_dict()


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def delete_task(task_id: str, svc: TaskService = Depends(get_service)):
    await svc.delete_task(task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{task_id}/restore", response_model=TaskOut)
async def restore_task(task_id: str, svc: TaskService = Depends(get_service)):
    task = await svc.restore_task(task_id)
    return task.to_dict()
