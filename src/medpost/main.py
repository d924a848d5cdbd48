# src/medpost/main.py
"""ASGI application for the medpost publication backend."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from medpost.api.v1 import posts_router
from medpost.core.exceptions import EntityNotFoundError, ForbiddenPermissionsError
from medpost.core.settings import settings
from medpost.services.analytics import AnalyticsDisabledError, AnalyticsError, get_analytics_client
from medpost.services.views import ViewsSyncWorker

DESCRIPTION = "Publication backend for medical content"

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Domain errors that escape a route, keyed by the HTTP status they become.
# Handlers resolve along the exception's MRO, so subclasses land on their own entry.
ERROR_STATUSES: dict[type[Exception], int] = {
    ForbiddenPermissionsError: status.HTTP_403_FORBIDDEN,
    EntityNotFoundError: status.HTTP_404_NOT_FOUND,
    AnalyticsDisabledError: status.HTTP_503_SERVICE_UNAVAILABLE,
    AnalyticsError: status.HTTP_502_BAD_GATEWAY,
}


async def start_views_sync(app: FastAPI) -> None:
    app.state.views_worker = None
    if not (settings.analytics_enabled and settings.views_sync_enabled):
        logger.info("Views sync disabled")
        return
    worker = ViewsSyncWorker(get_analytics_client())
    await worker.start()
    app.state.views_worker = worker
    logger.info("Views sync every %ss", settings.views_sync_interval_seconds)


async def stop_views_sync(app: FastAPI) -> None:
    worker: ViewsSyncWorker | None = getattr(app.state, "views_worker", None)
    if worker is not None:
        await worker.stop()
    if settings.analytics_enabled:
        await get_analytics_client().close()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    await start_views_sync(app)
    try:
        yield
    finally:
        await stop_views_sync(app)


app = FastAPI(
    title="medpost API",
    description=DESCRIPTION,
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)
app.add_middleware(GZipMiddleware)
app.include_router(posts_router, prefix="/api/v1")


async def domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status_code = next(
        ERROR_STATUSES[cls] for cls in type(exc).__mro__ if cls in ERROR_STATUSES
    )
    if status_code >= 500:
        logger.warning("Analytics failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


for _error_type in ERROR_STATUSES:
    app.add_exception_handler(_error_type, domain_error_handler)


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Service name, version and where the interactive docs live."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": DESCRIPTION,
        "docs": app.docs_url or "",
        "redoc": app.redoc_url or "",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("medpost.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
