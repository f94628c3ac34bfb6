"""Ideogram image generation provider.

Synchronous: POST /generate returns image URLs, each flagged with
``is_image_safe``. Only safe images are downloaded.

Supports: ideogram-v2, ideogram-v2-turbo, ideogram-v1, ideogram-v1-turbo
"""

from __future__ import annotations

import logging
from typing import Any

from pixelstudio.config import Settings
from pixelstudio.errors import ConfigurationError, ContentModerated
from pixelstudio.schemas.generation import GenerationRequest
from pixelstudio.services.providers.base import GeneratedPayload, ProviderAdapter

logger = logging.getLogger(__name__)

IDEOGRAM_MODELS = {
    "ideogram-v2": "V_2",
    "ideogram-v2-turbo": "V_2_TURBO",
    "ideogram-v1": "V_1",
    "ideogram-v1-turbo": "V_1_TURBO",
}

# width/height ratio → Ideogram bucket
ASPECT_BUCKETS = (
    (1.0, "ASPECT_1_1"),
    (16 / 9, "ASPECT_16_9"),
    (9 / 16, "ASPECT_9_16"),
    (4 / 3, "ASPECT_4_3"),
    (3 / 4, "ASPECT_3_4"),
    (3 / 2, "ASPECT_3_2"),
    (2 / 3, "ASPECT_2_3"),
)


def aspect_ratio_for(width: int | None, height: int | None) -> str:
    """Snap pixel dimensions to the closest supported aspect bucket."""
    if not width or not height:
        return "ASPECT_1_1"
    ratio = width / height
    for value, name in ASPECT_BUCKETS:
        if abs(ratio - value) < 0.1:
            return name
    return "ASPECT_1_1"


class IdeogramAdapter(ProviderAdapter):
    provider_name = "ideogram"
    credential_setting = "IDEOGRAM_API_KEY"

    def __init__(self, model: str, settings: Settings, http_client=None) -> None:
        super().__init__(model, settings, http_client)
        if model not in IDEOGRAM_MODELS:
            raise ConfigurationError(f"Unsupported Ideogram model: {model}")
        self.model_id = IDEOGRAM_MODELS[model]

    def build_body(self, request: GenerationRequest) -> dict[str, Any]:
        image_request: dict[str, Any] = {
            "prompt": request.prompt,
            "model": self.model_id,
            "aspect_ratio": aspect_ratio_for(request.width, request.height),
            "magic_prompt_option": "AUTO",
        }
        if request.negative_prompt:
            image_request["negative_prompt"] = request.negative_prompt
        if request.seed is not None:
            image_request["seed"] = request.seed
        return {"image_request": image_request}

    async def submit(self, request: GenerationRequest) -> GeneratedPayload:
        url = f"{self.settings.IDEOGRAM_API_URL.rstrip('/')}/generate"
        logger.info("Requesting Ideogram image model=%s", self.model)
        response = await self._send(
            "POST",
            url,
            context="submit",
            json=self.build_body(request),
            headers={"Api-Key": self.api_key, "Content-Type": "application/json"},
        )
        if response.status_code == 400 and self._error_code(response) == "CONTENT_MODERATION":
            raise ContentModerated("prompt rejected by Ideogram")
        self._check(response, "submit")

        images = self._json(response, "submit").get("data") or []
        safe = [img for img in images if isinstance(img, dict) and img.get("is_image_safe")]
        if not safe:
            raise ContentModerated("all generated images were flagged as unsafe")
        payload = await self._download(safe[0]["url"])
        return GeneratedPayload(
            data=payload.data, content_type=payload.content_type, seed=safe[0].get("seed"),
        )

    @staticmethod
    def _error_code(response) -> str | None:
        try:
            body = response.json()
        except ValueError:
            return None
        error = body.get("error") if isinstance(body, dict) else None
        return error.get("code") if isinstance(error, dict) else None
