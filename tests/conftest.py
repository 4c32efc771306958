# tests/conftest.py

import os
import tempfile

# Memory backend and a throwaway log dir before tasktracker.app.main builds its module-level app
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="tasktracker-logs-"))

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from tasktracker.app.main import create_app  # noqa: E402
from tasktracker.config import Settings  # noqa: E402
from tasktracker.domain.task_models import Priority, Task, new_task_id  # noqa: E402
from tasktracker.infra.db.sqlite import create_schema, make_engine, make_sessionmaker, make_sqlite_url  # noqa: E402
from tasktracker.infra.db.task_repo_memory import InMemoryTaskRepo  # noqa: E402
from tasktracker.infra.db.task_repo_sqlite import SQLiteTaskRepo  # noqa: E402
from tasktracker.services.task_service import TaskService  # noqa: E402

BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def build_task(n: int = 0, **overrides) -> Task:
    """A valid task whose created_at grows with n, so createdAt ordering is predictable."""
    created = BASE_TIME + timedelta(minutes=n)
    fields = dict(
        id=new_task_id(),
        title=f"Task {n}",
        description=None,
        priority=Priority.MEDIUM,
        completed=False,
        due_date=None,
        tags=[],
        created_at=created,
        updated_at=created,
    )
    fields.update(overrides)
    return Task(**fields)


@pytest.fixture()
def make_task():
    return build_task


@pytest.fixture()
def memory_repo() -> InMemoryTaskRepo:
    return InMemoryTaskRepo()


@pytest_asyncio.fixture()
async def sqlite_repo(tmp_path):
    engine = make_engine(make_sqlite_url(str(tmp_path / "tasks.db")))
    await create_schema(engine)
    yield SQLiteTaskRepo(make_sessionmaker(engine))
    await engine.dispose()


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def repo(request, tmp_path):
    """Runs the repository contract against both adapters."""
    if request.param == "memory":
        yield InMemoryTaskRepo()
        return
    engine = make_engine(make_sqlite_url(str(tmp_path / "contract.db")))
    await create_schema(engine)
    yield SQLiteTaskRepo(make_sessionmaker(engine))
    await engine.dispose()


@pytest.fixture()
def service(memory_repo) -> TaskService:
    return TaskService(memory_repo)


@pytest.fixture()
def settings() -> Settings:
    return Settings(persistence_backend="memory", log_dir=None, log_level="WARNING")


@pytest.fixture()
def client(settings):
    app = create_app(settings)
    with TestClient(app) as c:
        yield c
