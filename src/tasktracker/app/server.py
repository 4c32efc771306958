import uvicorn

from tasktracker.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "tasktracker.app.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,  # keep the JSON handlers installed by create_app()
    )


if __name__ == "__main__":
    main()
