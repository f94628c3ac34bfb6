from __future__ import annotations
"""GenerationSet ORM model: groups the artifacts produced by one request."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pixelstudio.database import Base


class GenerationSet(Base):
    """Grouping container created once per generation request.

    Owns its images and videos; deleting a set cascades to them.
    """

    __tablename__ = "generation_sets"
    __table_args__ = {
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: uuid.uuid4().hex[:36],
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )

    # Relationships
    images = relationship(
        "Image",
        back_populates="generation_set",
        cascade="all, delete-orphan",
        order_by="Image.position",
    )
    videos = relationship(
        "Video",
        back_populates="generation_set",
        cascade="all, delete-orphan",
        order_by="Video.position",
    )
