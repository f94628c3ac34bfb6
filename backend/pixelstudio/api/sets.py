from __future__ import annotations
"""Generation set read API."""

from fastapi import APIRouter, Depends, HTTPException

from pixelstudio.api.deps import get_repository
from pixelstudio.config import get_settings
from pixelstudio.schemas.generation import GenerationSetRead
from pixelstudio.services.persister import image_to_read, video_to_read
from pixelstudio.services.repository import GenerationRepository

router = APIRouter()


@router.get("/{set_id}", response_model=GenerationSetRead)
async def get_set(set_id: str, repository: GenerationRepository = Depends(get_repository)):
    """Get a set with its artifacts in generation order."""
    generation_set = await repository.get_set(set_id)
    if generation_set is None:
        raise HTTPException(status_code=404, detail="Set not found")

    settings = get_settings()
    artifacts = [image_to_read(image, settings) for image in generation_set.images]
    artifacts += [video_to_read(video, settings) for video in generation_set.videos]
    return GenerationSetRead(
        id=generation_set.id,
        user_id=generation_set.user_id,
        prompt=generation_set.prompt,
        model=generation_set.model,
        created_at=generation_set.created_at,
        artifacts=sorted(artifacts, key=lambda a: a.position),
    )
