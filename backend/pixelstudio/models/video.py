from __future__ import annotations
"""Video ORM model: one persisted generated video."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pixelstudio.database import Base


class Video(Base):
    """A generated video. Rows only exist for completed, stored videos."""

    __tablename__ = "videos"
    __table_args__ = {
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: uuid.uuid4().hex[:36],
    )
    set_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("generation_sets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # unit index in its batch
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    private: Mapped[bool] = mapped_column(Boolean, default=False)

    duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    aspect_ratio: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    seed: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    source_image_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    external_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="complete"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )

    # Relationships
    generation_set = relationship("GenerationSet", back_populates="videos")
