"""Declarative model capability registry.

Single source of truth for every model a user can pick: which provider
adapter serves it, whether it yields images or videos, what it costs, and
which request parameters it accepts.

Usage:
    from pixelstudio.services.model_registry import MODEL_REGISTRY
    cap = MODEL_REGISTRY.validate(request)
    models = MODEL_REGISTRY.list_models(provider="black_forest_labs")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pixelstudio.errors import ValidationError

if TYPE_CHECKING:
    from pixelstudio.schemas.generation import GenerationRequest

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

MEDIA_IMAGE = "image"
MEDIA_VIDEO = "video"

MODE_TEXT_TO_VIDEO = "text-to-video"
MODE_IMAGE_TO_VIDEO = "image-to-video"


@dataclass(frozen=True)
class ModelCapability:
    """Capability descriptor for a single model."""
    provider: str
    model: str
    media_type: str
    credit_cost: int = 1              # per image, or base cost per video
    per_second_cost: int = 0          # video only
    supports_styles: bool = False
    min_dimension: int = 256
    max_dimension: int = 2048
    video_modes: tuple[str, ...] = ()
    max_duration: int = 10

    @property
    def is_video(self) -> bool:
        return self.media_type == MEDIA_VIDEO

    def unit_cost(self, duration: int | None = None) -> int:
        """Credits charged for one generated artifact."""
        if not self.is_video:
            return self.credit_cost
        seconds = min(max(duration or 5, 1), self.max_duration)
        return self.credit_cost + seconds * self.per_second_cost


# ---------------------------------------------------------------------------
# Registry class
# ---------------------------------------------------------------------------

class ModelRegistry:
    """In-memory registry of all supported generation models."""

    def __init__(self) -> None:
        self._models: dict[str, ModelCapability] = {}
        self._by_provider: dict[str, list[ModelCapability]] = {}

    def register(self, cap: ModelCapability) -> None:
        self._models[cap.model] = cap
        self._by_provider.setdefault(cap.provider, []).append(cap)

    def get_capability(self, model: str) -> ModelCapability | None:
        return self._models.get(model)

    def require(self, model: str) -> ModelCapability:
        cap = self._models.get(model)
        if cap is None:
            raise ValidationError(f"Unknown model: {model}")
        return cap

    def list_models(
        self,
        provider: str | None = None,
        media_type: str | None = None,
    ) -> list[ModelCapability]:
        """List models, optionally filtered by provider and media type."""
        models = self._by_provider.get(provider, []) if provider else list(self._models.values())
        if media_type:
            models = [m for m in models if m.media_type == media_type]
        return models

    def list_providers(self) -> list[str]:
        """Return sorted list of unique provider names."""
        return sorted(self._by_provider.keys())

    def validate(self, request: GenerationRequest) -> ModelCapability:
        """Validate a request against the chosen model's capabilities.

        Returns the capability or raises ValidationError. Makes no network call.
        """
        cap = self.require(request.model)

        for name, value in (("width", request.width), ("height", request.height)):
            if value is not None and not cap.min_dimension <= value <= cap.max_dimension:
                raise ValidationError(
                    f"Image {name} must be between {cap.min_dimension} and "
                    f"{cap.max_dimension} pixels for {cap.model}"
                )

        if request.style and not cap.supports_styles:
            raise ValidationError(f"Model {cap.model} does not support style presets")

        if cap.is_video:
            mode = MODE_IMAGE_TO_VIDEO if request.source_image_url else MODE_TEXT_TO_VIDEO
            if mode not in cap.video_modes:
                raise ValidationError(f"Model {cap.model} does not support {mode} generation")
            if request.duration is not None and request.duration > cap.max_duration:
                raise ValidationError(
                    f"Model {cap.model} supports videos up to {cap.max_duration} seconds"
                )
        elif request.source_image_url:
            raise ValidationError(f"Model {cap.model} does not accept a source image")

        return cap

    def to_dict_list(self) -> list[dict[str, Any]]:
        """Serialize all models for API response."""
        return [
            {
                "provider": cap.provider,
                "model": cap.model,
                "media_type": cap.media_type,
                "credit_cost": cap.credit_cost,
                "per_second_cost": cap.per_second_cost,
                "supports_styles": cap.supports_styles,
                "min_dimension": cap.min_dimension,
                "max_dimension": cap.max_dimension,
                "video_modes": list(cap.video_modes),
                "max_duration": cap.max_duration,
            }
            for cap in self._models.values()
        ]


# ---------------------------------------------------------------------------
# Helpers to reduce boilerplate
# ---------------------------------------------------------------------------

def _image(provider: str, model: str, credits: int, **kwargs: Any) -> ModelCapability:
    return ModelCapability(provider, model, MEDIA_IMAGE, credit_cost=credits, **kwargs)


def _video(
    provider: str,
    model: str,
    base: int,
    per_second: int,
    modes: tuple[str, ...],
    max_duration: int,
) -> ModelCapability:
    return ModelCapability(
        provider, model, MEDIA_VIDEO,
        credit_cost=base,
        per_second_cost=per_second,
        video_modes=modes,
        max_duration=max_duration,
    )


BOTH_MODES = (MODE_TEXT_TO_VIDEO, MODE_IMAGE_TO_VIDEO)


# ---------------------------------------------------------------------------
# Build the global registry
# ---------------------------------------------------------------------------

MODEL_REGISTRY = ModelRegistry()

# Black Forest Labs (beta API, 512-1440 px)
for _model, _credits in (
    ("flux-pro", 2), ("flux-pro-1.1", 4), ("flux-dev", 2), ("flux-pro-1.1-ultra", 6),
):
    MODEL_REGISTRY.register(
        _image("black_forest_labs", _model, _credits, min_dimension=256, max_dimension=1440)
    )

# OpenAI
MODEL_REGISTRY.register(_image("openai", "dall-e-2", 1, min_dimension=1024, max_dimension=1024))
MODEL_REGISTRY.register(_image("openai", "dall-e-3", 6, min_dimension=1024, max_dimension=1792))

# Replicate
MODEL_REGISTRY.register(_image("replicate", "replicate-playground-v2.5", 2))
MODEL_REGISTRY.register(_image("replicate", "replicate-kandinsky-2.2", 2))

# Fal.ai
MODEL_REGISTRY.register(_image("fal", "fal-sdxl-lightning", 1, supports_styles=True))
MODEL_REGISTRY.register(_image("fal", "fal-stable-cascade", 2))

# Ideogram
for _model, _credits in (
    ("ideogram-v2", 4), ("ideogram-v2-turbo", 2), ("ideogram-v1", 2), ("ideogram-v1-turbo", 1),
):
    MODEL_REGISTRY.register(_image("ideogram", _model, _credits))

# Together AI
for _model, _credits in (
    ("together-flux-schnell", 1), ("together-flux-dev", 2),
    ("together-sdxl", 2), ("together-sd-turbo", 1),
):
    MODEL_REGISTRY.register(_image("together", _model, _credits, max_dimension=1792))

# Stability AI (v2beta image endpoints)
for _model, _credits in (
    ("sd3-medium", 2), ("sd3-large", 4), ("sd3-large-turbo", 3),
    ("sd3.5-medium", 2), ("sd3.5-large", 4), ("sd3.5-large-turbo", 3),
    ("stable-image-core", 2), ("stable-image-ultra", 6),
):
    MODEL_REGISTRY.register(_image("stability", _model, _credits, supports_styles=True))

# Video
MODEL_REGISTRY.register(_video("runway", "runway-gen4-turbo", 5, 2, (MODE_IMAGE_TO_VIDEO,), 10))
MODEL_REGISTRY.register(_video("runway", "runway-gen4-aleph", 10, 3, BOTH_MODES, 10))
MODEL_REGISTRY.register(_video("runway", "runway-gen3", 10, 3, BOTH_MODES, 10))
MODEL_REGISTRY.register(_video("runway", "runway-gen3-turbo", 5, 2, (MODE_IMAGE_TO_VIDEO,), 10))
MODEL_REGISTRY.register(_video("luma", "luma-dream-machine", 10, 3, BOTH_MODES, 5))
MODEL_REGISTRY.register(_video("stability_video", "stability-video", 8, 2, (MODE_IMAGE_TO_VIDEO,), 4))

# In-process mock provider
MODEL_REGISTRY.register(_image("mock", "mock-provider", 1, supports_styles=True))
MODEL_REGISTRY.register(_video("mock", "mock-video", 1, 0, BOTH_MODES, 10))
