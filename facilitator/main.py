import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from facilitator.config import Settings, get_settings
from facilitator.container import Services, build_services
from facilitator.meetings.routes import router as meetings_router
from facilitator.webhook.routes import router as webhook_router

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.services = services or build_services(settings)
        app.state.services.relay.worker.start()
        logger.info("Meeting facilitator relay started")
        try:
            yield
        finally:
            await app.state.services.aclose()

    app = FastAPI(title="Meeting Facilitator API", debug=settings.api_debug, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(meetings_router, prefix="/api", tags=["meetings"])
    app.include_router(webhook_router, prefix="/api", tags=["webhook"])

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    return app


app = create_app()
