"""
Distillery Label Engine: FastAPI application entry point.
create_app() is the composition root: it builds one Database and one
instance of each component and stores them on app.state.
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from label_engine.compliance.router import router as compliance_router
from label_engine.config import Settings, get_settings
from label_engine.container import build_services
from label_engine.core.errors import LabelEngineError
from label_engine.core.logging import get_logger, setup_logging
from label_engine.database.engine import Database, build_engine
from label_engine.labels.router import router as labels_router
from label_engine.timeline.router import router as timeline_router
from label_engine.versioning.router import router as versioning_router

APP_VERSION = "1.0.0"

logger = get_logger(__name__)


async def handle_label_engine_error(request: Request, exc: LabelEngineError) -> JSONResponse:
    log = logger.error if exc.http_status >= 500 else logger.info
    log(
        exc.message,
        extra={
            "event": "request_failed",
            "code": exc.code,
            "status": exc.http_status,
            "path": request.url.path,
        },
    )
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(level="DEBUG" if settings.DEBUG else settings.LOG_LEVEL)
    database = database or Database(build_engine(settings))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting label engine", extra={
            "event": "startup",
            "app_name": settings.APP_NAME,
            "environment": settings.APP_ENV,
            "ai_provider": settings.AI_PROVIDER,
        })
        await database.create_all()
        logger.info("Database tables ready", extra={"event": "db_ready"})
        if not settings.WIZARD_KEY:
            logger.warning(
                "WIZARD_KEY is not set; gated endpoints will answer 500",
                extra={"event": "wizard_key_missing"},
            )

        yield

        await database.dispose()
        logger.info("Application shutdown complete", extra={"event": "shutdown"})

    app = FastAPI(title=settings.APP_NAME, version=APP_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.services = build_services(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(LabelEngineError, handle_label_engine_error)

    # Fixed paths under /api/labels/... must register before /api/labels/{label_id}.
    app.include_router(versioning_router, prefix="/api", tags=["Versioning"])
    app.include_router(timeline_router, prefix="/api", tags=["Status Timeline"])
    app.include_router(compliance_router, prefix="/api/compliance", tags=["Compliance"])
    app.include_router(labels_router, prefix="/api", tags=["Labels"])

    @app.get("/")
    async def root():
        return {
            "app": settings.APP_NAME,
            "version": APP_VERSION,
            "status": "running",
            "ai_provider": settings.AI_PROVIDER,
            "ai_model": settings.active_ai_model,
        }

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return app
