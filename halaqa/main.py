"""Halaqa FastAPI application."""

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from halaqa.config import get_settings
from halaqa.database import close_db, init_db
from halaqa.exceptions import HalaqaError, error_envelope, http_status_for
from halaqa.logging_config import (
    bind_request_context,
    clear_request_context,
    configure_logging,
    get_logger,
)
from halaqa.redis import close_redis, init_redis
from halaqa.routes.assignments import router as assignments_router
from halaqa.routes.homework import router as homework_router
from halaqa.routes.notifications import router as notifications_router
from halaqa.routes.targets import router as targets_router

logger = get_logger(__name__)

_HTTP_CODES = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: init DB + Redis on startup, cleanup on shutdown."""
    settings = get_settings()
    configure_logging(
        level=settings.log_level,
        json_format=settings.log_json,
        service_name=settings.service_name,
    )

    logger.info("starting_database_init")
    await init_db()

    # Notifications still get written when Redis is down; only fan-out stops.
    try:
        await init_redis(settings.redis_url)
        logger.info("redis_connected", url=settings.redis_url)
    except Exception as e:
        logger.warning("redis_unavailable", url=settings.redis_url, error=str(e))

    logger.info("application_started", version=settings.service_version)
    yield

    logger.info("shutting_down")
    await close_redis()
    await close_db()
    logger.info("shutdown_complete")


def register_exception_handlers(app: FastAPI) -> None:
    """Map every error to the ``{success: false, error, code}`` envelope."""

    @app.exception_handler(HalaqaError)
    async def halaqa_error_handler(request: Request, exc: HalaqaError):
        status_code = http_status_for(exc)
        logger.info(
            "request_rejected",
            path=request.url.path,
            code=exc.code,
            status_code=status_code,
            error=exc.message,
        )
        return JSONResponse(status_code=status_code, content=error_envelope(exc.message, exc.code))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}"
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_envelope(
                "Validation failed", "VALIDATION_ERROR", details={"errors": errors}
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        default = "INTERNAL_ERROR" if exc.status_code >= 500 else "HTTP_ERROR"
        code = _HTTP_CODES.get(exc.status_code, default)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(str(exc.detail), code),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            error=str(exc),
            exc_info=exc,
        )
        message = str(exc) if app.debug else "An unexpected error occurred"
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_envelope(message, "INTERNAL_ERROR"),
        )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    app = FastAPI(
        title="Halaqa",
        description="Quran school backend: assignments, homework and targets",
        version=settings.service_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        bind_request_context(request_id=request_id, path=request.url.path)
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers["X-Request-ID"] = request_id
        return response

    register_exception_handlers(app)

    app.include_router(assignments_router)
    app.include_router(homework_router)
    app.include_router(targets_router)
    app.include_router(notifications_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok", "service": settings.service_name}

    return app


app = create_app()
