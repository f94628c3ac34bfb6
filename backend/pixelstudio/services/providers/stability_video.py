"""Stability AI image-to-video provider.

Flow:
1. Download the source image, multipart POST /image-to-video → id
2. GET /image-to-video/result/{id} with ``Accept: video/*``
   - 202 → still rendering
   - 200 → the MP4 bytes themselves
"""

from __future__ import annotations

import logging

from pixelstudio.errors import SubmissionRejected, ValidationError
from pixelstudio.schemas.generation import GenerationRequest
from pixelstudio.services.providers.base import (
    GeneratedPayload,
    JobHandle,
    PollingPolicy,
    PollState,
    PollStatus,
    ProviderAdapter,
)

logger = logging.getLogger(__name__)


class StabilityVideoAdapter(ProviderAdapter):
    provider_name = "stability_video"
    credential_setting = "STABILITY_API_KEY"
    polling = PollingPolicy(
        initial_delay=3.0, backoff=1.0, max_delay=3.0, max_attempts=200, max_wait=600.0,
    )
    STATUS_MAP = {
        "in-progress": PollState.PENDING,
        "complete": PollState.SUCCEEDED,
        "failed": PollState.FAILED,
        "not-found": PollState.NOT_FOUND,
    }

    @property
    def base_url(self) -> str:
        return self.settings.STABILITY_API_URL.rstrip("/")

    async def submit(self, request: GenerationRequest) -> JobHandle:
        if not request.source_image_url:
            raise ValidationError("Stability video requires a source image")
        source = await self._download(request.source_image_url)

        form: dict[str, str] = {}
        if request.seed is not None:
            form["seed"] = str(request.seed)
        if request.guidance_scale is not None:
            form["cfg_scale"] = str(request.guidance_scale)

        logger.info("Submitting Stability image-to-video request")
        response = await self._send(
            "POST",
            f"{self.base_url}/image-to-video",
            context="submit",
            data=form,
            files={"image": ("image.png", source.data, source.content_type or "image/png")},
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        self._check(response, "submit")
        task_id = self._json(response, "submit").get("id")
        if not task_id:
            raise SubmissionRejected("Stability returned no generation id")
        logger.info("Stability video generation started: %s", task_id)
        return JobHandle(job_id=task_id, provider=self.provider_name)

    async def poll_status(self, job_id: str) -> PollStatus:
        response = await self._send(
            "GET",
            f"{self.base_url}/image-to-video/result/{job_id}",
            context="poll",
            headers={"Authorization": f"Bearer {self.api_key}", "Accept": "video/*"},
        )
        if response.status_code == 202:
            return self.status_from("in-progress")
        if response.status_code == 404:
            return self.status_from("not-found", error_detail=f"Generation not found: {job_id}")
        if response.status_code == 400:
            detail = self._error_detail(response)
            return self.status_from(
                "failed", error_detail=detail, moderated=self._is_moderation(detail),
            )
        self._check(response, "poll")
        return PollStatus(
            state=PollState.SUCCEEDED,
            payload=GeneratedPayload(data=response.content, content_type="video/mp4"),
            raw_status="complete",
        )
