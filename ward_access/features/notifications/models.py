"""
Notification model.
"""
from datetime import datetime
from typing import Any, Dict
from sqlalchemy import String, ForeignKey, Text, Boolean, DateTime, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column

from ward_access.core.database.base import Base, TimestampMixin, generate_ulid


class Notification(Base, TimestampMixin):
    """One message for one recipient."""
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_inbox", "recipient_id", "is_read", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    recipient_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    # e.g. "access_request", "access_request_resolved"
    type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="medium")
    # {"entity_type", "entity_id", "link"}
    data: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, recipient_id={self.recipient_id}, type={self.type!r})>"
