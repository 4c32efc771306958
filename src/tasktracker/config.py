from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - APP_ENV: 'development' (default) or 'production'; production hides 500 details
    - PERSISTENCE_BACKEND: 'sqlite' (default) or 'memory'
    - DB_PATH: sqlite db file. Default './data/tasks.db'
    - LOG_LEVEL: root log level. Default 'INFO'
    - LOG_DIR: directory for tasktracker.jsonl. Default './logs'
    - HOST / PORT: bind address for the uvicorn entry point
    """

    environment: str = "development"
    persistence_backend: str = "sqlite"
    db_path: str = "./data/tasks.db"
    log_level: str = "INFO"
    log_dir: str = "./logs"
    host: str = "127.0.0.1"
    port: int = 3000

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def get_settings() -> Settings:
    backend = _get_env("PERSISTENCE_BACKEND", "sqlite").lower()
    if backend not in {"memory", "sqlite"}:
        backend = "sqlite"

    try:
        port = int(_get_env("PORT", "3000"))
    except ValueError:
        port = 3000

    return Settings(
        environment=_get_env("APP_ENV", "development").lower(),
        persistence_backend=backend,
        db_path=_get_env("DB_PATH", "./data/tasks.db"),
        log_level=_get_env("LOG_LEVEL", "INFO").upper(),
        log_dir=_get_env("LOG_DIR", "./logs"),
        host=_get_env("HOST", "127.0.0.1"),
        port=port,
    )
