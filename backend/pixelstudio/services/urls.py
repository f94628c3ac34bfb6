"""Derived access locations for stored artifacts.

URLs are never stored; they are computed from the artifact id at read time.
Images are always stored as PNG and videos as MP4, so the extension in the
key is fixed per media type. Thumbnails live under ``THUMBNAIL_PREFIX``,
which ``THUMBNAIL_BASE_URL`` serves.
"""

from __future__ import annotations

from pixelstudio.config import Settings, get_settings
from pixelstudio.services.model_registry import MEDIA_VIDEO

THUMBNAIL_PREFIX = "thumbnails"


def image_key(artifact_id: str) -> str:
    return f"{artifact_id}.png"


def image_thumbnail_key(artifact_id: str) -> str:
    return f"{THUMBNAIL_PREFIX}/resized-{artifact_id}.jpg"


def video_key(artifact_id: str) -> str:
    return f"videos/{artifact_id}.mp4"


def video_thumbnail_key(artifact_id: str) -> str:
    return f"{THUMBNAIL_PREFIX}/videos/{artifact_id}.jpg"


def object_keys(media_type: str, artifact_id: str) -> list[str]:
    """Every object an artifact may own: the binary, then its thumbnail."""
    if media_type == MEDIA_VIDEO:
        return [video_key(artifact_id), video_thumbnail_key(artifact_id)]
    return [image_key(artifact_id), image_thumbnail_key(artifact_id)]


def _thumbnail_url(key: str, settings: Settings) -> str:
    return f"{settings.THUMBNAIL_BASE_URL.rstrip('/')}/{key[len(THUMBNAIL_PREFIX) + 1:]}"


def image_url(artifact_id: str, settings: Settings | None = None) -> str:
    settings = settings or get_settings()
    return f"{settings.ASSET_BASE_URL.rstrip('/')}/{image_key(artifact_id)}"


def image_thumbnail_url(artifact_id: str, settings: Settings | None = None) -> str:
    return _thumbnail_url(image_thumbnail_key(artifact_id), settings or get_settings())


def video_url(artifact_id: str, settings: Settings | None = None) -> str:
    settings = settings or get_settings()
    return f"{settings.ASSET_BASE_URL.rstrip('/')}/{video_key(artifact_id)}"


def video_thumbnail_url(artifact_id: str, settings: Settings | None = None) -> str:
    return _thumbnail_url(video_thumbnail_key(artifact_id), settings or get_settings())
