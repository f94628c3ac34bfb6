"""Runway video generation provider.

Flow:
1. POST /image_to_video or /text_to_video → task id
2. GET  /tasks/{id} → PENDING / THROTTLED / RUNNING / SUCCEEDED / FAILED
3. Download output[0]

Image-to-video uses gen3a_turbo; text-to-video is only served by the
veo3 family on Runway's API.
"""

from __future__ import annotations

import logging
from typing import Any

from pixelstudio.errors import SubmissionRejected
from pixelstudio.schemas.generation import GenerationRequest
from pixelstudio.services.providers.base import (
    JobHandle,
    PollingPolicy,
    PollState,
    PollStatus,
    ProviderAdapter,
)

logger = logging.getLogger(__name__)

RATIO_MAP = {
    "16:9": "1280:720",
    "9:16": "720:1280",
    "1:1": "960:960",
}
DEFAULT_RATIO = "1280:720"

IMAGE_TO_VIDEO_MODELS = {
    "runway-gen4-turbo": "gen3a_turbo",
    "runway-gen4-aleph": "gen3a_turbo",
    "runway-gen3": "gen3a_turbo",
    "runway-gen3-turbo": "gen3a_turbo",
}
TEXT_TO_VIDEO_MODEL = "veo3.1"


def runway_ratio(aspect_ratio: str | None) -> str:
    if aspect_ratio and aspect_ratio.count(":") == 1 and aspect_ratio not in RATIO_MAP:
        # Direct pixel ratios pass through
        width, _, height = aspect_ratio.partition(":")
        if width.isdigit() and height.isdigit() and int(width) > 100:
            return aspect_ratio
    return RATIO_MAP.get(aspect_ratio or "", DEFAULT_RATIO)


def text_to_video_duration(duration: int | None) -> int:
    """veo3 only renders 4, 6 or 8 second clips."""
    seconds = duration or 6
    if seconds <= 4:
        return 4
    if seconds <= 6:
        return 6
    return 8


class RunwayVideoAdapter(ProviderAdapter):
    provider_name = "runway"
    credential_setting = "RUNWAY_API_KEY"
    polling = PollingPolicy(
        initial_delay=2.0, backoff=1.2, max_delay=5.0, max_attempts=300, max_wait=600.0,
    )
    STATUS_MAP = {
        "PENDING": PollState.PENDING,
        "THROTTLED": PollState.PENDING,
        "RUNNING": PollState.PENDING,
        "SUCCEEDED": PollState.SUCCEEDED,
        "FAILED": PollState.FAILED,
        "CANCELLED": PollState.FAILED,
    }

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "X-Runway-Version": self.settings.RUNWAY_API_VERSION,
            "Content-Type": "application/json",
        }

    def build_body(self, request: GenerationRequest) -> tuple[str, dict[str, Any]]:
        """Return (endpoint, body) for the request's generation mode."""
        body: dict[str, Any] = {
            "promptText": request.prompt,
            "ratio": runway_ratio(request.aspect_ratio),
        }
        if request.seed is not None:
            body["seed"] = request.seed
        if request.source_image_url:
            body["model"] = IMAGE_TO_VIDEO_MODELS.get(self.model, "gen3a_turbo")
            body["promptImage"] = request.source_image_url
            body["duration"] = min(max(request.duration or 5, 2), 10)
            return "image_to_video", body
        body["model"] = TEXT_TO_VIDEO_MODEL
        body["duration"] = text_to_video_duration(request.duration)
        return "text_to_video", body

    async def submit(self, request: GenerationRequest) -> JobHandle:
        endpoint, body = self.build_body(request)
        url = f"{self.settings.RUNWAY_API_URL.rstrip('/')}/{endpoint}"
        logger.info(
            "Calling Runway %s model=%s ratio=%s duration=%s",
            endpoint, body["model"], body["ratio"], body["duration"],
        )
        response = await self._send("POST", url, context="submit", json=body, headers=self.headers)
        self._check(response, "submit")
        task_id = self._json(response, "submit").get("id")
        if not task_id:
            raise SubmissionRejected("Runway returned no task id")
        return JobHandle(job_id=task_id, provider=self.provider_name)

    async def poll_status(self, job_id: str) -> PollStatus:
        url = f"{self.settings.RUNWAY_API_URL.rstrip('/')}/tasks/{job_id}"
        response = await self._send("GET", url, context="poll", headers=self.headers)
        if response.status_code == 404:
            return PollStatus(state=PollState.NOT_FOUND, error_detail=f"Task not found: {job_id}")
        self._check(response, "poll")
        data = self._json(response, "poll")
        status = (data.get("status") or "").upper() or None

        if status == "THROTTLED":
            logger.info("Runway task %s is throttled, continuing to poll", job_id)
        if status == "SUCCEEDED":
            output = data.get("output")
            video_url = output[0] if isinstance(output, list) and output else output
            if not video_url:
                return PollStatus(
                    state=PollState.FAILED,
                    error_detail="Task succeeded but returned no output",
                    raw_status=status,
                )
            return self.status_from(status, result_ref=video_url)
        if status in ("FAILED", "CANCELLED"):
            error = data.get("failure") or data.get("error") or "Video generation failed"
            return self.status_from(
                status, error_detail=str(error), moderated=self._is_moderation(str(error)),
            )
        return self.status_from(status)
