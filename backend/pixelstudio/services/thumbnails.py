from __future__ import annotations
"""Thumbnails and image normalization for stored artifacts.

Video thumbnails are the first frame, extracted with ffmpeg from a temp
file. Image thumbnails are a Pillow downscale. Thumbnails are best effort:
``Thumbnailer`` returns None instead of raising, and the artifact is kept
without one.
"""

import asyncio
import io
import logging
import os
import subprocess
import tempfile

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

THUMBNAIL_WIDTH = 640


def extract_video_frame(video: bytes, width: int = THUMBNAIL_WIDTH) -> bytes:
    """Return the first frame of ``video`` as a JPEG, ``width`` pixels wide."""
    with tempfile.TemporaryDirectory(prefix="pixelstudio-thumb-") as tmp:
        video_path = os.path.join(tmp, "video.mp4")
        thumb_path = os.path.join(tmp, "thumb.jpg")
        with open(video_path, "wb") as f:
            f.write(video)

        cmd = [
            "ffmpeg", "-y",
            "-i", video_path,
            "-frames:v", "1",
            "-vf", f"scale={width}:-2",
            "-q:v", "3",
            thumb_path,
        ]
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=60)
        if result.returncode != 0 or not os.path.exists(thumb_path):
            logger.debug("ffmpeg thumbnail stderr: %s", result.stderr[-500:])
            raise RuntimeError("ffmpeg could not extract a frame")

        with open(thumb_path, "rb") as f:
            return f.read()


def resize_image(data: bytes, width: int = THUMBNAIL_WIDTH) -> bytes:
    """Downscale an image to ``width`` (never upscaling) and encode it as JPEG."""
    with Image.open(io.BytesIO(data)) as img:
        img = img.convert("RGB")
        if img.width > width:
            img = img.resize((width, max(1, round(img.height * width / img.width))))
        buffer = io.BytesIO()
        img.save(buffer, "JPEG", quality=85)
        return buffer.getvalue()


def to_png(data: bytes) -> bytes:
    """Re-encode any Pillow-readable image as PNG."""
    with Image.open(io.BytesIO(data)) as img:
        buffer = io.BytesIO()
        img.save(buffer, "PNG")
        return buffer.getvalue()


class Thumbnailer:
    """Builds thumbnails off the event loop, retrying video extraction."""

    def __init__(self, retries: int = 2, retry_delay: float = 1.0, sleep=asyncio.sleep) -> None:
        self.retries = retries
        self.retry_delay = retry_delay
        self.sleep = sleep

    async def video_thumbnail(self, video: bytes) -> bytes | None:
        for attempt in range(self.retries + 1):
            try:
                return await asyncio.to_thread(extract_video_frame, video)
            except FileNotFoundError:
                logger.warning("ffmpeg is not installed; skipping video thumbnail")
                return None
            except (OSError, RuntimeError, subprocess.TimeoutExpired) as e:
                logger.warning("Thumbnail extraction attempt %d failed: %s", attempt + 1, e)
                if attempt < self.retries:
                    await self.sleep(self.retry_delay)
        return None

    async def image_thumbnail(self, data: bytes) -> bytes | None:
        try:
            return await asyncio.to_thread(resize_image, data)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            logger.warning("Image thumbnail failed: %s", e)
            return None
