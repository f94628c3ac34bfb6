"""Black Forest Labs (Flux) image generation provider.

Beta API. Async task pattern:
1. POST /v1/{model}         → task id
2. GET  /v1/get_result?id=  → status, sample URL when Ready
3. Download the sample

Supports: flux-pro, flux-pro-1.1, flux-dev, flux-pro-1.1-ultra
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

DEFAULT_WIDTH = 1024
DEFAULT_HEIGHT = 1024


class BlackForestAdapter(ProviderAdapter):
    provider_name = "black_forest_labs"
    credential_setting = "BLACK_FOREST_LABS_API_KEY"
    # Conservative polling for the beta API
    polling = PollingPolicy(
        initial_delay=1.0, backoff=1.5, max_delay=5.0, max_attempts=120, max_wait=300.0,
    )
    STATUS_MAP = {
        "Ready": PollState.SUCCEEDED,
        "Pending": PollState.PENDING,
        "Queued": PollState.PENDING,
        "Processing": PollState.PENDING,
        "Error": PollState.FAILED,
        "Request Moderated": PollState.FAILED,
        "Content Moderated": PollState.FAILED,
        "Task not found": PollState.NOT_FOUND,
    }
    MODERATED_STATUSES = frozenset({"Request Moderated", "Content Moderated"})

    @property
    def base_url(self) -> str:
        return self.settings.BLACK_FOREST_LABS_API_URL.rstrip("/")

    @property
    def headers(self) -> dict[str, str]:
        return {
            "x-key": self.api_key,
            "Content-Type": "application/json",
            "accept": "application/json",
        }

    def build_body(self, request: GenerationRequest) -> dict[str, Any]:
        body: dict[str, Any] = {
            "prompt": request.prompt,
            "width": request.width or DEFAULT_WIDTH,
            "height": request.height or DEFAULT_HEIGHT,
        }
        if request.seed is not None:
            body["seed"] = request.seed
        if request.prompt_upsampling:
            body["prompt_upsampling"] = True
        if request.guidance_scale is not None:
            body["guidance"] = request.guidance_scale
        if request.steps is not None:
            body["steps"] = request.steps
        return body

    async def submit(self, request: GenerationRequest) -> JobHandle:
        url = f"{self.base_url}/v1/{self.model}"
        logger.info("Creating Black Forest Labs task model=%s", self.model)
        response = await self._send(
            "POST", url, context="submit", json=self.build_body(request), headers=self.headers,
        )
        self._check(response, "submit")
        task_id = self._json(response, "submit").get("id")
        if not task_id:
            raise SubmissionRejected("Black Forest Labs returned no task id")
        logger.info("Black Forest Labs task created: %s", task_id)
        return JobHandle(job_id=task_id, provider=self.provider_name)

    async def poll_status(self, job_id: str) -> PollStatus:
        response = await self._send(
            "GET",
            f"{self.base_url}/v1/get_result",
            context="poll",
            params={"id": job_id},
            headers=self.headers,
        )
        if response.status_code == 404:
            return self.status_from("Task not found", error_detail=f"Task not found: {job_id}")
        self._check(response, "poll")
        data = self._json(response, "poll")
        status = data.get("status")

        if status in self.MODERATED_STATUSES:
            reasons = (data.get("details") or {}).get("Moderation Reasons") or []
            return self.status_from(
                status,
                error_detail=", ".join(reasons) or "Unknown reason",
                moderated=True,
            )
        if status == "Ready":
            sample = (data.get("result") or {}).get("sample")
            if not sample:
                return PollStatus(
                    state=PollState.FAILED,
                    error_detail="Task ready but no sample URL returned",
                    raw_status=status,
                )
            return self.status_from(status, result_ref=sample)
        if status == "Error":
            return self.status_from(status, error_detail=data.get("error") or "Unknown error")
        return self.status_from(status)
