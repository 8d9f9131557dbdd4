"""
FastAPI application entry point for the tracker service.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from iftar_tracker.config import get_settings
from iftar_tracker.dependencies import get_controller
from iftar_tracker.routes import router


@asynccontextmanager
async def lifespan(app: FastAPI):
    controller = app.dependency_overrides.get(get_controller, get_controller)()
    controller.start()
    try:
        yield
    finally:
        controller.stop()


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Iftar Tracker", version="0.1.0", lifespan=lifespan)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
