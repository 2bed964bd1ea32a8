import uvicorn

from dinedesk.config import get_settings


def main():
    settings = get_settings()
    uvicorn.run(
        "dinedesk.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        reload=False,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
