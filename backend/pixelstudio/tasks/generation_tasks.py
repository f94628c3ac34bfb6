from __future__ import annotations
"""Celery task that runs a generation request on a worker.

Each task:
1. Rebuilds the validated request from its JSON form
2. Runs it through GenerationService (charge → generate → persist)
3. Returns the response as JSON for the result backend
"""

import logging
from typing import Any

from celery import shared_task

from pixelstudio.config import get_settings
from pixelstudio.errors import GenerationError
from pixelstudio.schemas.generation import GenerationRequest, GenerationResponse
from pixelstudio.tasks import run_async

logger = logging.getLogger(__name__)


async def _generate(user_id: str, request: GenerationRequest) -> GenerationResponse:
    from pixelstudio.database import get_session_factory
    from pixelstudio.services.generation_service import GenerationService

    service = GenerationService(get_settings(), get_session_factory())
    return await service.generate(user_id, request)


@shared_task(bind=True, name="pixelstudio.tasks.generation_tasks.generate_artifacts")
def generate_artifacts(self, user_id: str, payload: dict[str, Any]) -> dict[str, Any]:
    """Generate artifacts for a queued request.

    Not retried: a retry would charge the user a second time.
    """
    try:
        request = GenerationRequest.from_form(payload)
        response = run_async(_generate(user_id, request))
    except GenerationError as exc:
        logger.error("Queued generation %s for user %s failed: %s", self.request.id, user_id, exc.reason)
        return GenerationResponse(error=exc.reason, set_id="").model_dump(mode="json")

    logger.info(
        "Queued generation %s for user %s finished: %d artifact(s)",
        self.request.id, user_id, len(response.artifacts),
    )
    return response.model_dump(mode="json")
