"""Image/video provider adapters.

Each adapter implements the same pattern:
  submit → poll status until terminal → fetch result bytes

``build_adapter`` picks the adapter class from the model's registered
provider. With ``USE_MOCK_API`` on, every model is served by the mock.
"""

from __future__ import annotations

import httpx

from pixelstudio.config import Settings
from pixelstudio.services.model_registry import MODEL_REGISTRY
from pixelstudio.services.providers.base import ProviderAdapter
from pixelstudio.services.providers.black_forest import BlackForestAdapter
from pixelstudio.services.providers.fal import FalAdapter
from pixelstudio.services.providers.ideogram import IdeogramAdapter
from pixelstudio.services.providers.luma_video import LumaVideoAdapter
from pixelstudio.services.providers.mock import MockAdapter
from pixelstudio.services.providers.openai_images import OpenAIImageAdapter
from pixelstudio.services.providers.replicate import ReplicateAdapter
from pixelstudio.services.providers.runway_video import RunwayVideoAdapter
from pixelstudio.services.providers.stability import StabilityImageAdapter
from pixelstudio.services.providers.stability_video import StabilityVideoAdapter
from pixelstudio.services.providers.together import TogetherAdapter

ADAPTERS: dict[str, type[ProviderAdapter]] = {
    cls.provider_name: cls
    for cls in (
        BlackForestAdapter,
        FalAdapter,
        IdeogramAdapter,
        LumaVideoAdapter,
        MockAdapter,
        OpenAIImageAdapter,
        ReplicateAdapter,
        RunwayVideoAdapter,
        StabilityImageAdapter,
        StabilityVideoAdapter,
        TogetherAdapter,
    )
}


def build_adapter(
    model: str,
    settings: Settings,
    http_client: httpx.AsyncClient | None = None,
) -> ProviderAdapter:
    """Construct the adapter serving ``model``.

    Raises ValidationError for an unknown model, ConfigurationError when no
    adapter exists for its provider, AuthConfigurationError when the
    provider's credential is unset.
    """
    from pixelstudio.errors import ConfigurationError

    cap = MODEL_REGISTRY.require(model)
    if settings.USE_MOCK_API:
        return MockAdapter(model, settings, http_client)
    adapter_cls = ADAPTERS.get(cap.provider)
    if adapter_cls is None:
        raise ConfigurationError(f"No adapter registered for provider {cap.provider}")
    return adapter_cls(model, settings, http_client)


__all__ = ["ADAPTERS", "ProviderAdapter", "build_adapter"]
