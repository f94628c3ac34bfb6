"""ORM model package: registers all models with Base.metadata."""

from pixelstudio.models.generation_set import GenerationSet
from pixelstudio.models.image import Image
from pixelstudio.models.user import User
from pixelstudio.models.video import Video

__all__ = [
    "GenerationSet",
    "Image",
    "User",
    "Video",
]
