from __future__ import annotations
"""Pydantic v2 schemas for generation requests and results."""

from datetime import datetime
from typing import Any, Literal

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from pixelstudio.errors import ValidationError

MAX_QUANTITY = 10


class GenerationRequest(BaseModel):
    """User intent to produce ``quantity`` artifacts from one model.

    Immutable once accepted. Provider-specific bounds (dimension limits,
    video modes) are checked by the model registry.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    prompt: str = Field(max_length=4000)
    negative_prompt: str | None = Field(default=None, max_length=4000)
    model: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=1, le=MAX_QUANTITY)
    width: int | None = Field(default=None, ge=256, le=2048)
    height: int | None = Field(default=None, ge=256, le=2048)

    # Provider tuning
    seed: int | None = Field(default=None, ge=0, le=4294967295)
    guidance_scale: float | None = Field(default=None, ge=0, le=35)
    steps: int | None = Field(default=None, ge=1, le=150)
    quality: Literal["standard", "hd"] | None = None
    style: str | None = None
    prompt_upsampling: bool = False

    # Video only
    duration: int | None = Field(default=None, ge=1, le=10)
    aspect_ratio: Literal["16:9", "9:16", "1:1"] | None = None
    source_image_url: str | None = None

    private: bool = False

    @field_validator("prompt")
    @classmethod
    def _prompt_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Prompt is required")
        return value

    @classmethod
    def from_form(cls, data: dict[str, Any]) -> GenerationRequest:
        """Build a request from untrusted input, raising the engine's ValidationError."""
        try:
            return cls.model_validate(data)
        except pydantic.ValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(p) for p in first.get("loc", ())) or "request"
            raise ValidationError(f"{field}: {first.get('msg', 'invalid value')}") from exc


class ArtifactRead(BaseModel):
    """A persisted image or video with its derived access locations."""

    id: str
    set_id: str
    user_id: str
    media_type: Literal["image", "video"]
    position: int = 0
    prompt: str
    model: str
    url: str
    thumbnail_url: str
    width: int | None = None
    height: int | None = None
    seed: int | None = None
    negative_prompt: str | None = None
    cfg_scale: float | None = None
    steps: int | None = None
    quality: str | None = None
    style_preset: str | None = None
    prompt_upsampling: bool = False
    duration: int | None = None
    aspect_ratio: str | None = None
    private: bool = False
    created_at: datetime | None = None


class GenerationResponse(BaseModel):
    """Outcome of one request: artifacts plus set id, or an error reason."""

    artifacts: list[ArtifactRead] = Field(default_factory=list)
    set_id: str = ""
    error: str | None = None
    failures: list[str] = Field(default_factory=list)
    partial_failure: str | None = None
    credits_charged: int = 0


class GenerationSetRead(BaseModel):
    id: str
    user_id: str
    prompt: str
    model: str
    created_at: datetime | None = None
    artifacts: list[ArtifactRead] = Field(default_factory=list)


class QueuedGenerationResponse(BaseModel):
    task_id: str
    status: str = "queued"
