"""
Access request model.
"""
from datetime import datetime
from sqlalchemy import String, ForeignKey, Text, DateTime, Enum as SQLEnum, Index
from sqlalchemy.orm import Mapped, mapped_column
import enum

from ward_access.core.database.base import Base, TimestampMixin, generate_ulid


class AccessRequestStatus(str, enum.Enum):
    """Status of access requests. Approved and rejected are terminal."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AccessRequest(Base, TimestampMixin):
    """
    Request from a user to use a restricted feature of a module.

    Managers approve or reject it once. Approval is bookkeeping only: it does
    not change the requester's override.
    """
    __tablename__ = "access_requests"
    __table_args__ = (
        Index("ix_access_requests_requester_lookup", "requester_id", "module", "feature", "status"),
        Index("ix_access_requests_queue", "status", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    requester_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # Denormalized, lower-cased
    requester_email: Mapped[str] = mapped_column(String(255), nullable=False)

    module: Mapped[str] = mapped_column(String(50), nullable=False)
    feature: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False, default="")

    status: Mapped[AccessRequestStatus] = mapped_column(
        SQLEnum(AccessRequestStatus),
        default=AccessRequestStatus.PENDING,
        nullable=False,
    )

    # Reviewer response
    reviewed_by_id: Mapped[str | None] = mapped_column(String(26), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_comment: Mapped[str] = mapped_column(Text, nullable=False, default="")

    def __repr__(self) -> str:
        return f"<AccessRequest(id={self.id}, requester={self.requester_email!r}, {self.module}:{self.feature}, status={self.status})>"
