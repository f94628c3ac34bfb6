from __future__ import annotations
"""Pixel Studio: FastAPI application entry point.

Serves the generation API and the stored artifacts under ``/media``. The
database engine is created lazily and disposed on shutdown.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from pixelstudio.api.router import api_router
from pixelstudio.config import Settings, get_settings
from pixelstudio.database import close_db, init_db
from pixelstudio.errors import GenerationError
from pixelstudio.services.model_registry import MODEL_REGISTRY
from pixelstudio.services.providers import ADAPTERS

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def configured_providers(settings: Settings) -> list[str]:
    """Providers whose credential is present (the mock always is)."""
    ready = []
    for name, adapter_cls in sorted(ADAPTERS.items()):
        setting = adapter_cls.credential_setting
        if setting is None or getattr(settings, setting, ""):
            ready.append(name)
    return ready


@asynccontextmanager
async def lifespan(app: FastAPI):
    os.makedirs(settings.MEDIA_VOLUME, exist_ok=True)
    if settings.USE_MOCK_API:
        logger.warning("USE_MOCK_API is on: every model is served by the mock provider")
    logger.info("Providers with credentials: %s", ", ".join(configured_providers(settings)))

    if settings.DEBUG:
        # Development databases get their tables created on startup
        await init_db()

    yield

    await close_db()
    logger.info("Pixel Studio stopped")


app = FastAPI(
    title="Pixel Studio API",
    description="Image and video generation across multiple AI providers",
    version="0.1.0",
    lifespan=lifespan,
    redirect_slashes=False,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.environ.get("CORS_ORIGINS", "http://localhost:3000").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GenerationError)
async def generation_error_handler(request: Request, exc: GenerationError) -> JSONResponse:
    """Engine errors that escape a route surface their user-facing reason."""
    logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.reason)
    return JSONResponse(status_code=500, content={"detail": exc.reason})


app.include_router(api_router)

# Stored artifacts; ASSET_BASE_URL points here in development
os.makedirs(settings.MEDIA_VOLUME, exist_ok=True)
app.mount("/media", StaticFiles(directory=settings.MEDIA_VOLUME), name="media")


@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "mock_mode": settings.USE_MOCK_API,
        "models": len(MODEL_REGISTRY.list_models()),
        "providers": configured_providers(settings),
    }
