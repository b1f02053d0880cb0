"""
SQLAlchemy async ORM models for generation history.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Text, DateTime, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class ImageHistory(Base):
    """One generated image. Rows are inserted and deleted, never updated."""

    __tablename__ = "image_history"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    # NULL only for generations made in anonymous mode
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    image_url: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("idx_image_history_user_id", "user_id"),
        Index("idx_image_history_user_id_created_at", "user_id", "created_at"),
    )
