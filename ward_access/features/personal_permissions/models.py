"""
Personal permission profile model.
"""
from sqlalchemy import String, ForeignKey, JSON
from sqlalchemy.orm import Mapped, mapped_column

from ward_access.core.database.base import Base, TimestampMixin, generate_ulid


class PersonalPermissionProfile(Base, TimestampMixin):
    """
    Delegation grid of one owner: ``{module: {action: bool}}``.

    Created on first save and overwritten on every later save.
    """
    __tablename__ = "personal_permission_profiles"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    owner_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True
    )
    permissions: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<PersonalPermissionProfile(owner_id={self.owner_id}, modules={sorted(self.permissions or {})})>"
