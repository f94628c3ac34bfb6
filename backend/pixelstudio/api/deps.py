from __future__ import annotations
"""Shared FastAPI dependencies."""

from fastapi import Header, HTTPException

from pixelstudio.config import get_settings
from pixelstudio.database import get_session_factory
from pixelstudio.services.generation_service import GenerationService
from pixelstudio.services.repository import GenerationRepository


async def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity. Authentication happens upstream; we only read the id."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    return x_user_id


def get_generation_service() -> GenerationService:
    return GenerationService(get_settings(), get_session_factory())


def get_repository() -> GenerationRepository:
    return GenerationRepository(get_session_factory())
