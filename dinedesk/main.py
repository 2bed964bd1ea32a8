from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import models  # noqa: F401  (registers tables on Base.metadata)
from .api import register_routers
from .changefeed import ChangeFeed
from .config import Settings, get_settings
from .core.errors import DineDeskError
from .core.logging import configure_logging
from .database import Base, build_engine, build_session_factory
from .realtime import OrderRelay
from .seed_data import seed
from .services import roles as role_service

log = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    engine = build_engine(settings.DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    feed = ChangeFeed()
    session_factory = build_session_factory(engine, feed)

    db = session_factory()
    try:
        if settings.SEED_ON_STARTUP:
            seed(db)
        else:
            role_service.ensure_system_roles(db)
    finally:
        db.close()

    app = FastAPI(
        title=settings.APP_NAME,
        description="Orders, kitchen display, inventory and reporting for a single restaurant.",
        version=settings.VERSION,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.feed = feed
    app.state.session_factory = session_factory
    app.state.relay = OrderRelay(feed, session_factory, settings.HEARTBEAT_INTERVAL_SECONDS)

    register_routers(app)

    @app.exception_handler(DineDeskError)
    async def domain_error_handler(request: Request, exc: DineDeskError):
        if exc.status_code >= 500:
            log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        log.error("Unhandled error: %s", exc, exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.get("/", tags=["Health"])
    def health() -> dict[str, str]:
        return {"status": "ok"}

    log.info("%s %s ready on %s", settings.APP_NAME, settings.VERSION, engine.url.render_as_string())
    return app
