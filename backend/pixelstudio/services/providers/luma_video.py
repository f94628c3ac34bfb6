"""Luma Dream Machine video generation provider.

POST /generations → GET /generations/{id} until ``completed``; the
finished document carries ``assets.video``.
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


class LumaVideoAdapter(ProviderAdapter):
    provider_name = "luma"
    credential_setting = "LUMA_API_KEY"
    polling = PollingPolicy(
        initial_delay=3.0, backoff=1.3, max_delay=5.0, max_attempts=200, max_wait=600.0,
    )
    STATUS_MAP = {
        "queued": PollState.PENDING,
        "dreaming": PollState.PENDING,
        "completed": PollState.SUCCEEDED,
        "failed": PollState.FAILED,
    }

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    def build_body(self, request: GenerationRequest) -> dict[str, Any]:
        body: dict[str, Any] = {
            "prompt": request.prompt,
            "aspect_ratio": request.aspect_ratio or "16:9",
        }
        if request.source_image_url:
            body["keyframes"] = {"frame0": {"type": "image", "url": request.source_image_url}}
        return body

    async def submit(self, request: GenerationRequest) -> JobHandle:
        url = f"{self.settings.LUMA_API_URL.rstrip('/')}/generations"
        logger.info("Starting Luma generation model=%s", self.model)
        response = await self._send(
            "POST", url, context="submit", json=self.build_body(request), headers=self.headers,
        )
        self._check(response, "submit")
        generation_id = self._json(response, "submit").get("id")
        if not generation_id:
            raise SubmissionRejected("Luma returned no generation id")
        return JobHandle(job_id=generation_id, provider=self.provider_name)

    async def poll_status(self, job_id: str) -> PollStatus:
        url = f"{self.settings.LUMA_API_URL.rstrip('/')}/generations/{job_id}"
        response = await self._send("GET", url, context="poll", headers=self.headers)
        if response.status_code == 404:
            return PollStatus(state=PollState.NOT_FOUND, error_detail=f"Generation not found: {job_id}")
        self._check(response, "poll")
        data = self._json(response, "poll")
        state = data.get("state")

        if state == "completed":
            video_url = (data.get("assets") or {}).get("video")
            if not video_url:
                return PollStatus(
                    state=PollState.FAILED,
                    error_detail="Generation completed but no video URL returned",
                    raw_status=state,
                )
            return self.status_from(state, result_ref=video_url)
        if state == "failed":
            reason = data.get("failure_reason") or "Video generation failed"
            return self.status_from(
                state, error_detail=reason, moderated=self._is_moderation(reason),
            )
        return self.status_from(state)
