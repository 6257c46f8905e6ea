import uvicorn

from facilitator.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "facilitator.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
