"""Stability AI image generation provider (v2beta stable-image endpoints).

Synchronous: a multipart POST with ``Accept: image/*`` returns the PNG
bytes directly; the seed used comes back in the ``seed`` response header.

Supports: sd3-medium, sd3-large, sd3-large-turbo, sd3.5-medium, sd3.5-large,
sd3.5-large-turbo, stable-image-core, stable-image-ultra
"""

from __future__ import annotations

import logging

from pixelstudio.config import Settings
from pixelstudio.errors import ConfigurationError, ContentModerated
from pixelstudio.schemas.generation import GenerationRequest
from pixelstudio.services.providers.base import GeneratedPayload, ProviderAdapter

logger = logging.getLogger(__name__)

# model → (endpoint, model form field)
STABILITY_MODELS: dict[str, tuple[str, str | None]] = {
    "sd3-medium": ("sd3", "sd3-medium"),
    "sd3-large": ("sd3", "sd3-large"),
    "sd3-large-turbo": ("sd3", "sd3-large-turbo"),
    "sd3.5-medium": ("sd3", "sd3.5-medium"),
    "sd3.5-large": ("sd3", "sd3.5-large"),
    "sd3.5-large-turbo": ("sd3", "sd3.5-large-turbo"),
    "stable-image-core": ("core", None),
    "stable-image-ultra": ("ultra", None),
}


def aspect_ratio_for(width: int | None, height: int | None) -> str:
    """Map pixel dimensions onto the aspect ratios the v2beta API accepts."""
    if not width or not height:
        return "1:1"
    ratio = width / height
    if ratio >= 2.2:
        return "21:9"
    if ratio >= 1.7:
        return "16:9"
    if ratio >= 1.4:
        return "3:2"
    if ratio >= 1.2:
        return "5:4"
    if ratio >= 0.95:
        return "1:1"
    if ratio >= 0.75:
        return "4:5"
    if ratio >= 0.6:
        return "2:3"
    if ratio >= 0.5:
        return "9:16"
    return "9:21"


class StabilityImageAdapter(ProviderAdapter):
    provider_name = "stability"
    credential_setting = "STABILITY_API_KEY"

    def __init__(self, model: str, settings: Settings, http_client=None) -> None:
        super().__init__(model, settings, http_client)
        if model not in STABILITY_MODELS:
            raise ConfigurationError(
                f"Unsupported Stability AI model: {model}. "
                f"Available models: {', '.join(STABILITY_MODELS)}"
            )
        self.endpoint, self.model_param = STABILITY_MODELS[model]

    def build_form(self, request: GenerationRequest) -> dict[str, str]:
        form = {
            "prompt": request.prompt,
            "output_format": "png",
            "aspect_ratio": aspect_ratio_for(request.width, request.height),
        }
        if request.negative_prompt:
            form["negative_prompt"] = request.negative_prompt
        if self.model_param:
            form["model"] = self.model_param
        if request.style and request.style != "none":
            form["style_preset"] = request.style
        if request.seed is not None:
            form["seed"] = str(request.seed)
        return form

    async def submit(self, request: GenerationRequest) -> GeneratedPayload:
        url = f"{self.settings.STABILITY_API_URL.rstrip('/')}/stable-image/generate/{self.endpoint}"
        logger.info("Requesting Stability image model=%s endpoint=%s", self.model, self.endpoint)
        response = await self._send(
            "POST",
            url,
            context="submit",
            data=self.build_form(request),
            # An empty file part forces multipart/form-data
            files={"none": (None, "")},
            headers={"Authorization": f"Bearer {self.api_key}", "Accept": "image/*"},
        )
        # Stability answers moderation with 403, which would otherwise read as auth
        if response.status_code == 403 and self._is_moderation(self._error_detail(response)):
            raise ContentModerated(self._error_detail(response))
        self._check(response, "submit")
        if response.headers.get("finish-reason") == "CONTENT_FILTERED":
            raise ContentModerated("output blocked by Stability content filter")

        seed_header = response.headers.get("seed")
        seed = int(seed_header) if seed_header and seed_header.isdigit() else request.seed
        content_type = response.headers.get("content-type", "image/png").split(";")[0]
        return GeneratedPayload(data=response.content, content_type=content_type, seed=seed)
