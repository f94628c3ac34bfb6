"""Together AI image generation provider.

Synchronous, OpenAI-compatible: POST /images/generations with
``response_format=b64_json``.

Supports: together-flux-schnell, together-flux-dev, together-sdxl, together-sd-turbo
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any

from pixelstudio.config import Settings
from pixelstudio.errors import ConfigurationError, ContentModerated, ProviderFailure
from pixelstudio.schemas.generation import GenerationRequest
from pixelstudio.services.providers.base import GeneratedPayload, ProviderAdapter

logger = logging.getLogger(__name__)

TOGETHER_MODELS = {
    "together-flux-schnell": "black-forest-labs/FLUX.1-schnell-Free",
    "together-flux-dev": "black-forest-labs/FLUX.1-dev",
    "together-sdxl": "stabilityai/stable-diffusion-xl-base-1.0",
    "together-sd-turbo": "stabilityai/sdxl-turbo",
}


class TogetherAdapter(ProviderAdapter):
    provider_name = "together"
    credential_setting = "TOGETHER_API_KEY"

    def __init__(self, model: str, settings: Settings, http_client=None) -> None:
        super().__init__(model, settings, http_client)
        if model not in TOGETHER_MODELS:
            raise ConfigurationError(f"Unsupported Together model: {model}")
        self.model_id = TOGETHER_MODELS[model]

    def build_body(self, request: GenerationRequest) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.model_id,
            "prompt": request.prompt,
            "width": request.width or 1024,
            "height": request.height or 1024,
            "steps": request.steps or 20,
            "n": 1,
            "response_format": "b64_json",
        }
        if request.negative_prompt:
            body["negative_prompt"] = request.negative_prompt
        if request.seed is not None:
            body["seed"] = request.seed
        if request.guidance_scale is not None:
            body["guidance"] = request.guidance_scale
        return body

    async def submit(self, request: GenerationRequest) -> GeneratedPayload:
        url = f"{self.settings.TOGETHER_API_URL.rstrip('/')}/images/generations"
        logger.info("Requesting Together image model=%s", self.model_id)
        response = await self._send(
            "POST",
            url,
            context="submit",
            json=self.build_body(request),
            headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
        )
        if response.status_code == 400 and self._error_code(response) == "content_policy_violation":
            raise ContentModerated("prompt violates Together content policy")
        self._check(response, "submit")

        items = self._json(response, "submit").get("data") or []
        if not items or not items[0].get("b64_json"):
            raise ProviderFailure("No image data in Together response")
        try:
            data = base64.b64decode(items[0]["b64_json"])
        except (binascii.Error, ValueError) as exc:
            raise ProviderFailure("Together returned undecodable image data") from exc
        return GeneratedPayload(data=data, content_type="image/png", seed=request.seed)

    @staticmethod
    def _error_code(response) -> str | None:
        try:
            body = response.json()
        except ValueError:
            return None
        error = body.get("error") if isinstance(body, dict) else None
        return error.get("code") if isinstance(error, dict) else None
