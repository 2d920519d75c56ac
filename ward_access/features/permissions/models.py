"""
Persistence for administrator overrides, the permission-manager registry,
assignment policies and the audit log.

Overrides are stored one row per (email, module): the row's presence means
"this module is overridden", its nullable flag columns hold the partial flag
set and ``restricted_features`` lists features that need an approved access
request.
"""
from typing import Any, Dict
from sqlalchemy import String, ForeignKey, JSON, Boolean, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ward_access.core.database.base import Base, TimestampMixin, generate_ulid


class PermissionOverride(Base, TimestampMixin):
    """
    Administrator override of one module's permissions for one email.
    """
    __tablename__ = "permission_overrides"
    __table_args__ = (
        UniqueConstraint("email", "module", name="uq_permission_overrides_email_module"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Normalized (trimmed, lower-cased) email; need not belong to an existing user
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    module: Mapped[str] = mapped_column(String(50), nullable=False)

    # None = not set by the administrator (resolves as False)
    can_view: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    can_create: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    can_edit: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    can_delete: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    restricted_features: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    updated_by_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    def __repr__(self) -> str:
        return f"<PermissionOverride(email={self.email!r}, module={self.module})>"


class PermissionManager(Base, TimestampMixin):
    """
    Registry entry for an email allowed to edit overrides and review access
    requests. Super admins are managers without an entry.
    """
    __tablename__ = "permission_managers"

    email: Mapped[str] = mapped_column(String(255), primary_key=True)
    added_by_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    def __repr__(self) -> str:
        return f"<PermissionManager(email={self.email!r})>"


class AssignmentPolicy(Base, TimestampMixin):
    """
    Which roles may assign floors, rooms or patients, and which roles may be
    assigned. An empty list allows any role.
    """
    __tablename__ = "assignment_policies"

    assignment_type: Mapped[str] = mapped_column(String(20), primary_key=True)
    assigner_roles: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    assignee_roles: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"<AssignmentPolicy(type={self.assignment_type})>"


class AuditLog(Base, TimestampMixin):
    """
    Audit log for permission-related actions.

    Tracks who did what, when, and from where.
    """
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Actor
    user_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Action details
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    details: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, user_id={self.user_id}, action={self.action}, resource={self.resource_type})>"
