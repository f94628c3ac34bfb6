"""Fal.ai image generation provider (queue API).

Flow:
1. POST {queue}/{endpoint}                     → request_id
2. GET  {queue}/{endpoint}/requests/{id}/status → IN_QUEUE / IN_PROGRESS / COMPLETED
3. GET  {queue}/{endpoint}/requests/{id}        → images[0].url, then download

Supports: fal-sdxl-lightning, fal-stable-cascade
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from pixelstudio.config import Settings
from pixelstudio.errors import ConfigurationError, ProviderFailure, SubmissionRejected
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


def _image_size(request: GenerationRequest) -> dict[str, int]:
    return {"width": request.width or 1024, "height": request.height or 1024}


def _lightning_input(request: GenerationRequest) -> dict[str, Any]:
    data: dict[str, Any] = {
        "prompt": request.prompt,
        "negative_prompt": request.negative_prompt or "",
        "image_size": _image_size(request),
        "num_inference_steps": 4,  # Lightning is distilled for 4 steps
        "num_images": 1,
        "enable_safety_checker": True,
    }
    if request.seed is not None:
        data["seed"] = request.seed
    return data


def _cascade_input(request: GenerationRequest) -> dict[str, Any]:
    data: dict[str, Any] = {
        "prompt": request.prompt,
        "negative_prompt": request.negative_prompt or "",
        "image_size": _image_size(request),
        "num_inference_steps": request.steps or 20,
        "guidance_scale": request.guidance_scale if request.guidance_scale is not None else 4,
        "num_images": 1,
        "enable_safety_checker": True,
    }
    if request.seed is not None:
        data["seed"] = request.seed
    return data


FAL_MODELS: dict[str, tuple[str, Callable[[GenerationRequest], dict[str, Any]]]] = {
    "fal-sdxl-lightning": ("fal-ai/fast-lightning-sdxl", _lightning_input),
    "fal-stable-cascade": ("fal-ai/stable-cascade", _cascade_input),
}


class FalAdapter(ProviderAdapter):
    provider_name = "fal"
    credential_setting = "FAL_API_KEY"
    # Fal is fast: poll often with a gentle backoff
    polling = PollingPolicy(
        initial_delay=0.5, backoff=1.2, max_delay=2.0, max_attempts=240, max_wait=180.0,
    )
    STATUS_MAP = {
        "IN_QUEUE": PollState.PENDING,
        "IN_PROGRESS": PollState.PENDING,
        "COMPLETED": PollState.SUCCEEDED,
        "FAILED": PollState.FAILED,
        "ERROR": PollState.FAILED,
    }

    def __init__(self, model: str, settings: Settings, http_client=None) -> None:
        super().__init__(model, settings, http_client)
        if model not in FAL_MODELS:
            raise ConfigurationError(f"Unsupported Fal model: {model}")
        self.endpoint, self._input_mapper = FAL_MODELS[model]

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Key {self.api_key}", "Content-Type": "application/json"}

    def _request_url(self, request_id: str) -> str:
        return f"{self.settings.FAL_QUEUE_URL.rstrip('/')}/{self.endpoint}/requests/{request_id}"

    async def submit(self, request: GenerationRequest) -> JobHandle:
        url = f"{self.settings.FAL_QUEUE_URL.rstrip('/')}/{self.endpoint}"
        logger.info("Submitting Fal request model=%s", self.model)
        response = await self._send(
            "POST", url, context="submit", json=self._input_mapper(request), headers=self.headers,
        )
        self._check(response, "submit")
        request_id = self._json(response, "submit").get("request_id")
        if not request_id:
            raise SubmissionRejected("Fal returned no request id")
        logger.info("Fal request queued: %s", request_id)
        return JobHandle(job_id=request_id, provider=self.provider_name)

    async def poll_status(self, job_id: str) -> PollStatus:
        response = await self._send(
            "GET", f"{self._request_url(job_id)}/status", context="poll", headers=self.headers,
        )
        if response.status_code == 404:
            return PollStatus(state=PollState.NOT_FOUND, error_detail=f"Request not found: {job_id}")
        self._check(response, "poll")
        status = self._json(response, "poll").get("status")
        if status == "COMPLETED":
            # The result document lives at the request URL, not in the status body
            return self.status_from(status, result_ref=job_id)
        if status in ("FAILED", "ERROR"):
            return self.status_from(status, error_detail="Image generation failed")
        return self.status_from(status)

    async def fetch_result(self, result_ref: str) -> GeneratedPayload:
        response = await self._send(
            "GET", self._request_url(result_ref), context="result", headers=self.headers,
        )
        self._check(response, "result")
        data = self._json(response, "result")
        images = data.get("images") or []
        if not images or not images[0].get("url"):
            raise ProviderFailure("No images in Fal response")
        payload = await self._download(images[0]["url"])
        return GeneratedPayload(
            data=payload.data, content_type=payload.content_type, seed=data.get("seed"),
        )
