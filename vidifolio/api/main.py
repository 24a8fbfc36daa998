"""
FastAPI Main Application
"""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.staticfiles import StaticFiles
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from vidifolio import __version__
from vidifolio.api.deps import close_job_manager
from vidifolio.config.settings import settings
from vidifolio.core.errors import (
    AuthenticationError,
    InvalidArgument,
    NotFoundOrUnauthorized,
    UpstreamFailure,
)
from vidifolio.services.job_state import JobStateError
from vidifolio.services.observability import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup; finish inline pipelines on shutdown"""
    logger.info("application_starting", log_level=settings.log_level)

    from vidifolio.models import init_db

    init_db()
    logger.info("application_started")

    yield

    logger.info("application_shutting_down")
    await close_job_manager()
    logger.info("application_stopped")


# Create FastAPI app
app = FastAPI(
    title="Vidifolio - Portfolio Video Generation API",
    description="Turns uploaded portfolios into AI-generated promotional videos",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "apikey", "x-client-info"],
)


def _resolve_video_dir() -> str:
    video_dir = Path(settings.video_dir)
    try:
        video_dir.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        fallback = Path("data", "static").resolve()
        Path(fallback, settings.video_bucket).mkdir(parents=True, exist_ok=True)
        logger.warning(
            "static_root_fallback",
            configured=str(settings.static_root),
            fallback=str(fallback),
        )
        settings.static_root = str(fallback)
        return settings.video_dir
    return str(video_dir)


# Generated videos are public; portfolio documents are served only via signed /blobs URLs
app.mount(
    f"{settings.static_url_prefix}/{settings.video_bucket}",
    StaticFiles(directory=_resolve_video_dir()),
    name="videos",
)


@app.get("/health")
async def health_check():
    """
    Health check endpoint

    Returns:
        JSON response with service health status
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "vidifolio-backend",
    }


@app.get("/")
async def root():
    return {"service": "vidifolio-backend", "docs": "/docs"}


# Exception handlers
def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    """Invalid or missing credential (401)"""
    logger.warning("authentication_failed", path=request.url.path, error=exc.message)
    return _error(status.HTTP_401_UNAUTHORIZED, exc.message)


@app.exception_handler(NotFoundOrUnauthorized)
@app.exception_handler(InvalidArgument)
async def client_error_handler(request: Request, exc):
    """Handled request errors (400)"""
    logger.warning(
        "request_rejected",
        path=request.url.path,
        error=exc.message,
        error_type=type(exc).__name__,
    )
    return _error(status.HTTP_400_BAD_REQUEST, exc.message)


@app.exception_handler(UpstreamFailure)
async def upstream_failure_handler(request: Request, exc: UpstreamFailure):
    """Record store, blob store or provider failure on a synchronous path (400)"""
    logger.error(
        "upstream_failure",
        path=request.url.path,
        error=exc.message,
        error_type=type(exc).__name__,
    )
    return _error(status.HTTP_400_BAD_REQUEST, exc.message)


@app.exception_handler(JobStateError)
async def job_state_error_handler(request: Request, exc: JobStateError):
    logger.error("job_state_error", path=request.url.path, error=str(exc))
    return _error(status.HTTP_400_BAD_REQUEST, str(exc))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handle request validation errors (400)
    """
    errors = exc.errors()
    logger.warning(
        "validation_error",
        path=request.url.path,
        errors=[str(err.get("msg")) for err in errors],
    )

    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Request validation failed"
    return _error(status.HTTP_400_BAD_REQUEST, message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Unknown paths and methods share one response (405)"""
    if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        return _error(status.HTTP_405_METHOD_NOT_ALLOWED, "Method or Path not allowed")
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """
    Handle generic exceptions (500)
    """
    logger.error(
        "unexpected_error",
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
    )

    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred")


# Import routers
from vidifolio.api.routes import auth, blobs, portfolio, user, videos  # noqa: E402

# Register routers
app.include_router(auth.router, tags=["auth"])
app.include_router(user.router, tags=["user"])
app.include_router(portfolio.router, tags=["portfolio"])
app.include_router(videos.router, tags=["videos"])
app.include_router(blobs.router, tags=["blobs"])
