"""Main entry point for the Upvista core API."""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from upvista_core.api.v1 import (
    activity_router,
    articles_router,
    comments_router,
    feed_router,
    hashtags_router,
    posts_router,
)
from upvista_core.api.v1.dependencies import StoreDep, get_media_storage
from upvista_core.core.errors import AppError, ValidationFailedError
from upvista_core.core.settings import settings
from upvista_core.services.jobs import build_jobs
from upvista_core.services.scheduler import JobScheduler
from upvista_core.store import get_store_client, reset_store_client

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Post and feed engine for the Upvista social platform",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(posts_router, prefix="/api/v1")
app.include_router(feed_router, prefix="/api/v1")
app.include_router(hashtags_router, prefix="/api/v1")
app.include_router(comments_router, prefix="/api/v1")
app.include_router(articles_router, prefix="/api/v1")
app.include_router(activity_router, prefix="/api/v1")


def _error_body(message: str, code: str) -> dict[str, object]:
    return {"success": False, "message": message, "code": code}


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc.code))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(
        status_code=ValidationFailedError.status_code,
        content=_error_body(str(message), ValidationFailedError.code),
    )


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    code = "unauthenticated" if exc.status_code == status.HTTP_401_UNAUTHORIZED else "http_error"
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail), code),
        headers=exc.headers,
    )


@app.on_event("startup")
async def on_startup() -> None:
    if settings.scheduler_enabled:
        scheduler = JobScheduler(build_jobs(get_store_client()))
        await scheduler.start()
        app.state.scheduler = scheduler
    else:
        app.state.scheduler = None
    logger.info("%s %s started", settings.app_name, settings.app_version)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    scheduler: JobScheduler | None = getattr(app.state, "scheduler", None)
    if scheduler:
        await scheduler.stop()
    await get_store_client().close()
    await get_media_storage().close()
    reset_store_client()


@app.get("/health")
async def health_check(store: StoreDep) -> dict[str, object]:
    """Health check endpoint to verify the service is running."""
    scheduler: JobScheduler | None = getattr(app.state, "scheduler", None)
    metrics = store.metrics
    return {
        "status": "ok",
        "data_provider": settings.data_provider,
        "scheduler_running": bool(scheduler and scheduler.running),
        "store": {
            "requests": metrics.request_count,
            "errors": metrics.error_count,
            "average_response_ms": round(metrics.get_average_response_time() * 1000, 3),
        },
    }


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("upvista_core.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
