"""Pydantic schemas for request/response validation."""

from pixelstudio.schemas.generation import (
    ArtifactRead,
    GenerationRequest,
    GenerationResponse,
    GenerationSetRead,
    QueuedGenerationResponse,
)

__all__ = [
    "ArtifactRead",
    "GenerationRequest",
    "GenerationResponse",
    "GenerationSetRead",
    "QueuedGenerationResponse",
]
