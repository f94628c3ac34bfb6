from __future__ import annotations
"""Generation API: run a request inline or hand it to a Celery worker."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from pixelstudio.api.deps import get_current_user_id, get_generation_service
from pixelstudio.errors import (
    ConfigurationError,
    InsufficientCredits,
    PersistenceError,
    ValidationError,
)
from pixelstudio.schemas.generation import (
    GenerationRequest,
    GenerationResponse,
    QueuedGenerationResponse,
)
from pixelstudio.services.generation_service import GenerationService
from pixelstudio.services.model_registry import MODEL_REGISTRY
from pixelstudio.tasks.generation_tasks import generate_artifacts

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=GenerationResponse)
async def create_generation(
    data: GenerationRequest,
    user_id: str = Depends(get_current_user_id),
    service: GenerationService = Depends(get_generation_service),
):
    """Generate ``quantity`` artifacts and wait for the result.

    A failed generation is still a 200 with ``error`` set and an empty
    ``set_id``; only problems detected before any provider call map to
    4xx statuses.
    """
    try:
        return await service.generate(user_id, data)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.reason)
    except InsufficientCredits as e:
        raise HTTPException(status_code=402, detail=e.reason)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=e.reason)
    except PersistenceError as e:
        logger.error("Generation for user %s hit a storage error: %s", user_id, e.reason)
        raise HTTPException(status_code=503, detail=e.reason)


@router.post("/queue", response_model=QueuedGenerationResponse, status_code=202)
async def queue_generation(
    data: GenerationRequest,
    user_id: str = Depends(get_current_user_id),
):
    """Validate the request, then run it on a Celery worker."""
    try:
        MODEL_REGISTRY.validate(data)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.reason)

    result = generate_artifacts.delay(user_id, data.model_dump(mode="json"))
    logger.info("Queued generation task %s for user %s", result.id, user_id)
    return QueuedGenerationResponse(task_id=result.id)
