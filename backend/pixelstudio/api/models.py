"""Model catalogue API: list supported models and their capabilities."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from pixelstudio.services.model_registry import MODEL_REGISTRY

router = APIRouter()


@router.get("")
async def list_models(provider: str | None = None, media_type: str | None = None) -> dict[str, Any]:
    """List every selectable model, optionally filtered."""
    models = MODEL_REGISTRY.list_models(provider=provider, media_type=media_type)
    names = {m.model for m in models}
    return {
        "models": [m for m in MODEL_REGISTRY.to_dict_list() if m["model"] in names],
        "providers": MODEL_REGISTRY.list_providers(),
        "total": len(models),
    }
