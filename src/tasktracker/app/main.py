from contextlib import asynccontextmanager
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version as package_version
from pathlib import Path
from typing import Optional
import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from tasktracker.app.errors import setup_error_handlers
from tasktracker.app.middleware.access_log import AccessLogMiddleware
from tasktracker.app.routes import pages, tasks
from tasktracker.config import Settings, get_settings
from tasktracker.domain.task_models import to_iso
from tasktracker.infra.db.sqlite import create_schema, make_engine, make_sessionmaker, make_sqlite_url, ping
from tasktracker.infra.db.task_repo_memory import InMemoryTaskRepo
from tasktracker.infra.db.task_repo_sqlite import SQLiteTaskRepo
from tasktracker.observability.logging import setup_logging
from tasktracker.services.task_service import TaskService

BASE_DIR = Path(__file__).resolve().parent
logger = logging.getLogger("tasktracker.system")

try:
    APP_VERSION = package_version("tasktracker")
except PackageNotFoundError:
    APP_VERSION = "0.0.0"


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_dir)
    logger.info(
        "system.start",
        extra={
            "category": "system",
            "event": "system.start",
            "environment": settings.environment,
            "backend": settings.persistence_backend,
        },
    )

    # --- storage wiring ---
    engine = None
    if settings.persistence_backend == "sqlite":
        engine = make_engine(make_sqlite_url(settings.db_path))
        repo = SQLiteTaskRepo(make_sessionmaker(engine))
    else:
        repo = InMemoryTaskRepo()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if engine is not None:
            await create_schema(engine)
            logger.info(
                "db.ready",
                extra={"category": "system", "event": "db.ready", "db_path": settings.db_path},
            )
        yield
        if engine is not None:
            await engine.dispose()
        logger.info("system.stop", extra={"category": "system", "event": "system.stop"})

    app = FastAPI(title="Task Tracker", version=APP_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.task_service = TaskService(repo)

    app.add_middleware(AccessLogMiddleware)
    setup_error_handlers(app, production=settings.is_production)

    # Static files (CSS)
    app.mount("/static", StaticFiles(directory=str(BASE_DIR / "static")), name="static")

    # Routers
    app.include_router(tasks.router)
    app.include_router(pages.router)

    @app.get("/health")
    async def health():
        now = to_iso(datetime.now(timezone.utc))
        try:
            if engine is not None:
                await ping(engine)
        except Exception as exc:
            logger.error(
                "db.unhealthy",
                exc_info=exc,
                extra={"category": "system", "event": "db.unhealthy"},
            )
            return JSONResponse(
                status_code=503,
                content={"status": "unhealthy", "error": str(exc), "timestamp": now},
            )
        return {
            "status": "healthy",
            "timestamp": now,
            "version": APP_VERSION,
            "backend": settings.persistence_backend,
        }

    return app


app = create_app()
