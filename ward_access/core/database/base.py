"""
SQLAlchemy declarative base and common model utilities.

All SQLAlchemy models inherit from Base.
"""
from datetime import datetime
from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
import ulid


def generate_ulid() -> str:
    """Generate a new ULID string (26 chars, lexicographically sortable by time)."""
    return str(ulid.ULID())


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Usage:
        from ward_access.core.database.base import Base

        class PermissionManager(Base):
            __tablename__ = "permission_managers"

            email: Mapped[str] = mapped_column(String(255), primary_key=True)
    """
    pass


class TimestampMixin:
    """
    Mixin adding created_at and updated_at timestamps to models.
    """
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
