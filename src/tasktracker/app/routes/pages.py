from pathlib import Path

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse
from starlette.templating import Jinja2Templates

from tasktracker.app.routes.tasks import get_service
from tasktracker.domain.task_models import Priority
from tasktracker.domain.task_schemas import MAX_PAGE, TaskFilters
from tasktracker.services.task_service import TaskService

BASE_DIR = Path(__file__).resolve().parent.parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))

router = APIRouter(tags=["pages"])


@router.get("/", response_class=HTMLResponse, include_in_schema=False)
async def home(
    request: Request,
    page: int = Query(1, ge=1, le=MAX_PAGE),
    search: str = "",
    priority: str = "",
    status: str = "",
    svc: TaskService = Depends(get_service),
):
    # the filter form submits empty strings for "any"
    filters = TaskFilters(
        page=page,
        search=search.strip() or None,
        priority=Priority(priority) if priority in Priority.__members__ else None,
        status=status if status in ("completed", "incomplete") else None,
    )
    result = await svc.get_tasks(filters)
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "title": "Tasks",
            "tasks": [t.to_dict() for t in result.data],
            "pagination": result.pagination,
            "filters": filters,
        },
    )
