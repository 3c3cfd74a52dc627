import os

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from .config import settings
from .db import Base, engine
from .errors import ConflictError, FleetTrackError, NotFoundError, ValidationError
from .logging import setup_logging, RequestIdMiddleware
from .models import models  # noqa: F401  registers tables on Base.metadata
from .auth.router import router as auth_router
from .routes.inventory import router as inventory_router
from .routes.assignments import router as assignments_router
from .routes.clients import router as clients_router
from .routes.renewals import router as renewals_router
from .routes.tasks import router as tasks_router
from .routes.reports import router as reports_router
from .routes.analytics import router as analytics_router
from .routes.masterdata import router as masterdata_router

logger = structlog.get_logger(__name__)

ERROR_STATUS = {
    NotFoundError: 404,
    ConflictError: 409,
    ValidationError: 400,
}


def register_error_handlers(app: FastAPI) -> None:
    async def _domain_error(request: Request, exc: FleetTrackError):
        status_code = ERROR_STATUS.get(type(exc), 400)
        logger.info("request_rejected", path=request.url.path, status=status_code, detail=exc.message)
        return JSONResponse(status_code=status_code, content={"detail": exc.message})

    async def _unhandled(request: Request, exc: Exception):
        logger.exception("unhandled_error", path=request.url.path)
        content = {"detail": "Internal server error"}
        if not settings.is_production:
            content.update({"error": str(exc), "type": type(exc).__name__})
        return JSONResponse(status_code=500, content=content)

    app.add_exception_handler(FleetTrackError, _domain_error)
    app.add_exception_handler(Exception, _unhandled)


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[settings.rate_limit],
        enabled=settings.rate_limit_enabled,
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    register_error_handlers(app)

    # Routers
    app.include_router(auth_router)
    app.include_router(inventory_router)
    app.include_router(assignments_router)
    app.include_router(clients_router)
    app.include_router(renewals_router)
    app.include_router(tasks_router)
    app.include_router(reports_router)
    app.include_router(analytics_router)
    app.include_router(masterdata_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.get("/health")
    def health():
        return {"status": "ok", "environment": settings.environment}

    @app.on_event("startup")
    def _startup():
        logger.info("startup", app=settings.app_name, environment=settings.environment)
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        if settings.auto_create_db:
            Base.metadata.create_all(bind=engine)
            logger.info("database_ready")

    return app


app = create_app()
