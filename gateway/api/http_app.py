# ==============================
# FastAPI App Factory
# ==============================
from __future__ import annotations

from fastapi import FastAPI

from gateway.api.deps import get_settings
from gateway.api.routes_rag import router as rag_router
from ragkit.logging.logger import bootstrap_logger


def create_app() -> FastAPI:
    settings = get_settings()
    log = bootstrap_logger(settings)
    app = FastAPI(title=settings.app.name, version="0.1.0")
    app.include_router(rag_router, prefix="/api")
    log.info("HTTP gateway ready (env=%s)", settings.app.env)
    return app
