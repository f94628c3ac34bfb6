from __future__ import annotations
"""Artifact persister: metadata row first, then the binary.

Steps for one generated payload:
1. Create the Image/Video row scoped to the set
2. Put the bytes in the object store under a key derived from the row id
3. Return the formatted artifact with derived URLs

If step 2 fails the row is left in place and its id travels on the
PersistenceError; deleting it is the batch's job. Non-PNG images are
re-encoded before step 1. A thumbnail is written after step 2 when one can
be made; a missing thumbnail never fails the unit.
"""

import asyncio
import logging

from PIL import UnidentifiedImageError

from pixelstudio.config import Settings
from pixelstudio.errors import PersistenceError, ProviderFailure
from pixelstudio.models import Image, Video
from pixelstudio.schemas.generation import ArtifactRead, GenerationRequest
from pixelstudio.services import urls
from pixelstudio.services.model_registry import MEDIA_IMAGE, MEDIA_VIDEO
from pixelstudio.services.object_store import ObjectStore
from pixelstudio.services.polling import GenerationTask
from pixelstudio.services.providers.base import GeneratedPayload
from pixelstudio.services.repository import GenerationRepository
from pixelstudio.services.thumbnails import Thumbnailer, to_png

logger = logging.getLogger(__name__)


def image_to_read(image: Image, settings: Settings | None = None) -> ArtifactRead:
    return ArtifactRead(
        id=image.id,
        set_id=image.set_id,
        user_id=image.user_id,
        media_type=MEDIA_IMAGE,
        position=image.position,
        prompt=image.prompt,
        model=image.model,
        url=urls.image_url(image.id, settings),
        thumbnail_url=urls.image_thumbnail_url(image.id, settings),
        width=image.width,
        height=image.height,
        seed=image.seed,
        negative_prompt=image.negative_prompt,
        cfg_scale=image.cfg_scale,
        steps=image.steps,
        quality=image.quality,
        style_preset=image.style_preset,
        prompt_upsampling=image.prompt_upsampling,
        private=image.private,
        created_at=image.created_at,
    )


def video_to_read(video: Video, settings: Settings | None = None) -> ArtifactRead:
    return ArtifactRead(
        id=video.id,
        set_id=video.set_id,
        user_id=video.user_id,
        media_type=MEDIA_VIDEO,
        position=video.position,
        prompt=video.prompt,
        model=video.model,
        url=urls.video_url(video.id, settings),
        thumbnail_url=urls.video_thumbnail_url(video.id, settings),
        seed=video.seed,
        duration=video.duration,
        aspect_ratio=video.aspect_ratio,
        private=video.private,
        created_at=video.created_at,
    )


class ArtifactPersister:
    def __init__(
        self,
        repository: GenerationRepository,
        object_store: ObjectStore,
        settings: Settings,
        thumbnailer: Thumbnailer | None = None,
    ) -> None:
        self.repository = repository
        self.object_store = object_store
        self.settings = settings
        self.thumbnailer = thumbnailer or Thumbnailer()

    async def store(
        self,
        set_id: str,
        user_id: str,
        request: GenerationRequest,
        media_type: str,
        payload: GeneratedPayload,
        position: int,
        external_id: str | None = None,
        task: GenerationTask | None = None,
    ) -> ArtifactRead:
        """Persist one payload.

        Raises ProviderFailure for an unreadable image before any row exists,
        and PersistenceError (with artifact_id once a row exists).
        """
        if media_type == MEDIA_IMAGE:
            payload = await self._as_png(payload)

        if media_type == MEDIA_VIDEO:
            row = await self.repository.create_video(
                set_id, user_id, request, position, external_id=external_id, seed=payload.seed,
            )
            key = urls.video_key(row.id)
        else:
            row = await self.repository.create_image(
                set_id, user_id, request, position, seed=payload.seed,
            )
            key = urls.image_key(row.id)
        if task is not None:
            task.artifact_id = row.id

        try:
            await self.object_store.put(key, payload.data, payload.content_type)
        except PersistenceError as e:
            logger.error("Failed to store %s %s: %s", media_type, row.id, e.reason)
            raise PersistenceError(e.reason, artifact_id=row.id) from e
        except Exception as e:
            logger.error("Failed to store %s %s: %s", media_type, row.id, e)
            raise PersistenceError(
                f"Failed to upload {media_type} {row.id}", artifact_id=row.id,
            ) from e

        logger.info("Persisted %s %s in set %s", media_type, row.id, set_id)
        await self._store_thumbnail(media_type, row.id, payload.data)
        if media_type == MEDIA_VIDEO:
            return video_to_read(row, self.settings)
        return image_to_read(row, self.settings)

    async def _as_png(self, payload: GeneratedPayload) -> GeneratedPayload:
        if payload.content_type == "image/png":
            return payload
        try:
            data = await asyncio.to_thread(to_png, payload.data)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise ProviderFailure(f"Provider returned an unreadable image ({payload.content_type})") from e
        return GeneratedPayload(data=data, content_type="image/png", seed=payload.seed)

    async def _store_thumbnail(self, media_type: str, artifact_id: str, data: bytes) -> None:
        if media_type == MEDIA_VIDEO:
            thumbnail = await self.thumbnailer.video_thumbnail(data)
            key = urls.video_thumbnail_key(artifact_id)
        else:
            thumbnail = await self.thumbnailer.image_thumbnail(data)
            key = urls.image_thumbnail_key(artifact_id)
        if thumbnail is None:
            logger.warning("No thumbnail for %s %s", media_type, artifact_id)
            return
        try:
            await self.object_store.put(key, thumbnail, "image/jpeg")
        except PersistenceError as e:
            logger.warning("Failed to store thumbnail for %s %s: %s", media_type, artifact_id, e.reason)
