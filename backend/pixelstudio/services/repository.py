from __future__ import annotations
"""Relational store for generation sets and their artifacts.

Each operation runs in its own short session and commits immediately: a
generation request can take minutes, and the rows it creates must be
visible (and deletable) independently of one another.
"""

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from pixelstudio.errors import PersistenceError
from pixelstudio.models import GenerationSet, Image, Video
from pixelstudio.schemas.generation import GenerationRequest
from pixelstudio.services.model_registry import MEDIA_VIDEO

logger = logging.getLogger(__name__)


class GenerationRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, action: str) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Database error during %s: %s", action, e)
                raise PersistenceError(f"Database error during {action}") from e

    # ── Sets ─────────────────────────────────────────────────────

    async def create_set(self, user_id: str, request: GenerationRequest) -> GenerationSet:
        generation_set = GenerationSet(
            id=uuid.uuid4().hex[:36],
            user_id=user_id,
            prompt=request.prompt,
            model=request.model,
        )
        async with self._session("create set") as session:
            session.add(generation_set)
            await session.flush()
            await session.refresh(generation_set)
        logger.info("Created generation set %s for user %s", generation_set.id, user_id)
        return generation_set

    async def delete_set(self, set_id: str) -> None:
        async with self._session("delete set") as session:
            generation_set = await session.get(GenerationSet, set_id)
            if generation_set is None:
                logger.info("Generation set %s already deleted", set_id)
                return
            await session.delete(generation_set)
        logger.info("Deleted generation set %s", set_id)

    async def get_set(self, set_id: str) -> GenerationSet | None:
        async with self._session("load set") as session:
            result = await session.execute(
                select(GenerationSet)
                .where(GenerationSet.id == set_id)
                .options(
                    selectinload(GenerationSet.images),
                    selectinload(GenerationSet.videos),
                )
            )
            return result.scalar_one_or_none()

    # ── Artifacts ────────────────────────────────────────────────

    async def create_image(
        self,
        set_id: str,
        user_id: str,
        request: GenerationRequest,
        position: int,
        seed: int | None = None,
    ) -> Image:
        image = Image(
            id=uuid.uuid4().hex[:36],
            set_id=set_id,
            user_id=user_id,
            position=position,
            prompt=request.prompt,
            title=request.prompt[:255],
            model=request.model,
            style_preset=request.style,
            private=request.private,
            width=request.width,
            height=request.height,
            quality=request.quality,
            negative_prompt=request.negative_prompt,
            seed=seed if seed is not None else request.seed,
            cfg_scale=request.guidance_scale,
            steps=request.steps,
            prompt_upsampling=request.prompt_upsampling,
        )
        async with self._session("create image") as session:
            session.add(image)
            await session.flush()
            await session.refresh(image)
        return image

    async def create_video(
        self,
        set_id: str,
        user_id: str,
        request: GenerationRequest,
        position: int,
        external_id: str | None = None,
        seed: int | None = None,
    ) -> Video:
        video = Video(
            id=uuid.uuid4().hex[:36],
            set_id=set_id,
            user_id=user_id,
            position=position,
            prompt=request.prompt,
            title=request.prompt[:100],
            model=request.model,
            private=request.private,
            duration=request.duration,
            aspect_ratio=request.aspect_ratio,
            seed=seed if seed is not None else request.seed,
            source_image_url=request.source_image_url,
            external_id=external_id,
        )
        async with self._session("create video") as session:
            session.add(video)
            await session.flush()
            await session.refresh(video)
        return video

    async def delete_artifact(self, media_type: str, artifact_id: str) -> None:
        model = Video if media_type == MEDIA_VIDEO else Image
        async with self._session(f"delete {media_type}") as session:
            await session.execute(delete(model).where(model.id == artifact_id))
        logger.info("Deleted %s row %s", media_type, artifact_id)
