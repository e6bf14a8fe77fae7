from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from tenantdesk.core.config import settings
import tenantdesk.models  # noqa: F401  # force model registration

from tenantdesk.api.responses import error
from tenantdesk.api.v1.auth import router as auth_router
from tenantdesk.api.v1.health import router as health_router
from tenantdesk.api.v1.projects import router as projects_router
from tenantdesk.api.v1.tasks import router as tasks_router
from tenantdesk.api.v1.tenants import router as tenants_router
from tenantdesk.api.v1.users import router as users_router
from tenantdesk.core.exceptions import AppError
from tenantdesk.core.logging import RequestContextLogMiddleware, configure_logging
from tenantdesk.db.bootstrap import run_startup
from tenantdesk.db.session import AsyncSessionLocal

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await run_startup(AsyncSessionLocal)
    yield


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        extra = {"details": exc.details} if exc.details else {}
        return error(exc.status_code, exc.message, **extra)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"field": ".".join(str(p) for p in e.get("loc", ())[1:]), "message": e.get("msg")}
            for e in exc.errors()
        ]
        return error(400, "Validation error", errors=errors)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("unhandled_exception", exc_info=exc)
        return error(500, "Internal server error")


def create_application() -> FastAPI:
    configure_logging("tenantdesk", settings.LOG_LEVEL, json_logs=settings.is_production_like)

    app = FastAPI(title="tenantdesk API", lifespan=lifespan)

    app.add_middleware(RequestContextLogMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.get("/")
    def root():
        return {"status": "ok", "service": "tenantdesk"}

    # Routers
    app.include_router(health_router, prefix="/api/v1")
    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(tenants_router, prefix="/api/v1")
    app.include_router(users_router, prefix="/api/v1")
    app.include_router(projects_router, prefix="/api/v1")
    app.include_router(tasks_router, prefix="/api/v1")

    return app


app = create_application()
