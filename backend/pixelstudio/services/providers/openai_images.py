"""OpenAI DALL-E image generation provider.

Synchronous: one POST /images/generations returns the base64 image inline.

Supports: dall-e-2, dall-e-3
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any

from pixelstudio.errors import ProviderFailure
from pixelstudio.schemas.generation import GenerationRequest
from pixelstudio.services.providers.base import GeneratedPayload, ProviderAdapter

logger = logging.getLogger(__name__)

DEFAULT_SIZE = "1024x1024"
DALL_E_3_SIZES = {"1024x1024", "1792x1024", "1024x1792"}


class OpenAIImageAdapter(ProviderAdapter):
    provider_name = "openai"
    credential_setting = "OPENAI_API_KEY"

    def _size(self, request: GenerationRequest) -> str:
        if self.model == "dall-e-3" and request.width and request.height:
            size = f"{request.width}x{request.height}"
            if size in DALL_E_3_SIZES:
                return size
        return DEFAULT_SIZE

    def build_body(self, request: GenerationRequest) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.model,
            "prompt": request.prompt,
            "n": 1,
            "size": self._size(request),
            "response_format": "b64_json",
        }
        if self.model == "dall-e-3" and request.quality:
            body["quality"] = request.quality
        return body

    async def submit(self, request: GenerationRequest) -> GeneratedPayload:
        url = f"{self.settings.OPENAI_BASE_URL.rstrip('/')}/images/generations"
        logger.info("Requesting OpenAI image model=%s", self.model)
        response = await self._send(
            "POST",
            url,
            context="submit",
            json=self.build_body(request),
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        self._check(response, "submit")
        items = self._json(response, "submit").get("data") or []
        if not items or not items[0].get("b64_json"):
            raise ProviderFailure("OpenAI returned no image data")
        try:
            data = base64.b64decode(items[0]["b64_json"])
        except (binascii.Error, ValueError) as exc:
            raise ProviderFailure("OpenAI returned undecodable image data") from exc
        return GeneratedPayload(data=data, content_type="image/png")
