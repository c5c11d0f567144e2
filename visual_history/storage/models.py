"""SQLAlchemy ORM models for page visits and encrypted screenshots."""

from __future__ import annotations

from typing import Any
from uuid import uuid4

from sqlalchemy import BigInteger, Boolean, ForeignKey, Integer, LargeBinary, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class PageRecord(Base):
    __tablename__ = "pages"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    url: Mapped[str] = mapped_column(Text, index=True)
    title: Mapped[str] = mapped_column(Text, default="")
    domain: Mapped[str] = mapped_column(String(255), index=True)
    # Milliseconds since the epoch.
    timestamp: Mapped[int] = mapped_column(BigInteger, index=True)
    dominant_r: Mapped[int] = mapped_column(Integer, default=128)
    dominant_g: Mapped[int] = mapped_column(Integer, default=128)
    dominant_b: Mapped[int] = mapped_column(Integer, default=128)
    text_content: Mapped[str] = mapped_column(Text, default="")
    has_images: Mapped[bool] = mapped_column(Boolean, default=False)
    has_videos: Mapped[bool] = mapped_column(Boolean, default=False)
    has_code: Mapped[bool] = mapped_column(Boolean, default=False)

    @property
    def dominant_color(self) -> dict[str, int]:
        return {"r": self.dominant_r, "g": self.dominant_g, "b": self.dominant_b}

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "domain": self.domain,
            "timestamp": self.timestamp,
            "dominantColor": self.dominant_color,
            "textContent": self.text_content,
            "hasImages": self.has_images,
            "hasVideos": self.has_videos,
            "hasCode": self.has_code,
        }


class ScreenshotBlob(Base):
    __tablename__ = "screenshots"

    page_id: Mapped[str] = mapped_column(
        ForeignKey("pages.id", ondelete="CASCADE"), primary_key=True
    )
    nonce: Mapped[bytes] = mapped_column(LargeBinary(12))
    ciphertext: Mapped[bytes] = mapped_column(LargeBinary)
