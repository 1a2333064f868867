"""FastAPI application setup for Campus Chat."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from campus_chat.api.dependencies import (
    get_app_settings,
    get_chat_service,
    get_ingest_pipeline,
    get_keyword_scorer,
    get_memory,
)
from campus_chat.api.routes_admin import router as admin_router
from campus_chat.api.routes_chat import router as chat_router
from campus_chat.core.errors import CampusChatError
from campus_chat.core.logging import configure_logging, get_logger
from campus_chat.ingest.watcher import Watcher

configure_logging()
logger = get_logger(__name__)

app = FastAPI(
    title="Campus Chat",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://127.0.0.1:3000",
        "http://localhost:3000",
    ],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(chat_router, prefix="", tags=["chat"])
app.include_router(admin_router, prefix="", tags=["admin"])

_WATCHER: Watcher | None = None


@app.exception_handler(CampusChatError)
async def campus_chat_error_handler(request: Request, exc: CampusChatError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed: %s", exc.message, extra={"ctx_path": request.url.path})
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})


def reingest_changed(paths: Sequence[Path]) -> dict[str, object]:
    """Watcher callback: ingest the changed files, then refresh the keyword corpus."""
    stats = get_ingest_pipeline().ingest_paths(paths, trigger="watcher")
    get_keyword_scorer().reload()
    return stats


@app.on_event("startup")
async def startup() -> None:
    """Warm up core singletons and start background workers."""
    global _WATCHER
    settings = get_app_settings()
    get_chat_service()
    get_memory().start()
    if settings.watch_content and not settings.content_dir.is_dir():
        logger.warning("Content watcher disabled: %s is not a directory", settings.content_dir)
    elif settings.watch_content:
        _WATCHER = Watcher(settings.content_dir, reingest_changed)
        _WATCHER.start()


@app.on_event("shutdown")
async def shutdown() -> None:
    global _WATCHER
    if _WATCHER is not None:
        _WATCHER.stop()
        _WATCHER = None
    get_memory().stop()
