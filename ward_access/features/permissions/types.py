"""
Value types shared by the permission matrix, resolver and stores.

Roles, modules and features are closed enumerations. Parsing helpers return
``None`` for unknown values so that resolution can fail closed instead of
raising.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import EmailStr, TypeAdapter, ValidationError

from ward_access.core.errors import InvalidInput


class _LenientEnum(str, Enum):
    @classmethod
    def parse(cls, value) -> Optional["_LenientEnum"]:
        """Case-insensitive lookup; ``None`` when the value is not a member."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    @classmethod
    def require(cls, value, label: str):
        """Like ``parse`` but raises InvalidInput for unknown values."""
        parsed = cls.parse(value)
        if parsed is None:
            raise InvalidInput(f"Unknown {label}: {value!r}")
        return parsed


class Role(_LenientEnum):
    SUPER_ADMIN = "super_admin"
    HOSPITAL_ADMIN = "hospital_admin"
    HEAD_NURSE = "head_nurse"
    DOCTOR = "doctor"
    NURSE = "nurse"
    RECEPTIONIST = "receptionist"
    BILLING_STAFF = "billing_staff"


class Module(_LenientEnum):
    DASHBOARD = "dashboard"
    BEDS = "beds"
    ADMISSIONS = "admissions"
    PATIENTS = "patients"
    DOCTORS = "doctors"
    NURSES = "nurses"
    APPOINTMENTS = "appointments"
    FACILITIES = "facilities"
    BILLING = "billing"
    REPORTS = "reports"
    NOTIFICATIONS = "notifications"
    SETTINGS = "settings"
    TASKS = "tasks"
    LAB = "lab"
    PHARMACY = "pharmacy"
    VITALS = "vitals"


class Feature(_LenientEnum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"


FEATURE_FLAGS: dict[Feature, str] = {
    Feature.VIEW: "can_view",
    Feature.CREATE: "can_create",
    Feature.EDIT: "can_edit",
    Feature.DELETE: "can_delete",
}


def flag_for(feature) -> str:
    """Name of the flag gating ``feature``; unmapped features use ``can_view``."""
    parsed = Feature.parse(feature)
    return FEATURE_FLAGS[parsed] if parsed is not None else "can_view"


@dataclass(frozen=True)
class PermissionFlags:
    """Four independent booleans. No flag implies another."""
    can_view: bool = False
    can_create: bool = False
    can_edit: bool = False
    can_delete: bool = False

    def allows(self, feature) -> bool:
        return bool(getattr(self, flag_for(feature)))

    def as_dict(self) -> dict[str, bool]:
        return {
            "can_view": self.can_view,
            "can_create": self.can_create,
            "can_edit": self.can_edit,
            "can_delete": self.can_delete,
        }


NO_ACCESS = PermissionFlags()


_email_adapter = TypeAdapter(EmailStr)


class NormalizedEmail(str):
    """
    Trimmed, case-folded email address.

    Build one with ``NormalizedEmail.parse`` at the boundary; downstream code
    compares instances directly and never re-normalizes.
    """

    @classmethod
    def parse(cls, value) -> "NormalizedEmail":
        if isinstance(value, cls):
            return value
        if not isinstance(value, str) or not value.strip():
            raise InvalidInput("Email is required")
        candidate = value.strip()
        try:
            _email_adapter.validate_python(candidate)
        except ValidationError:
            raise InvalidInput(f"Malformed email: {value!r}")
        return cls(candidate.casefold())

    @classmethod
    def trusted(cls, value) -> "NormalizedEmail":
        """
        Trim and case-fold an address that was already verified upstream
        (the identity provider), without syntax or domain checks.
        """
        if isinstance(value, cls):
            return value
        return cls(str(value or "").strip().casefold())


@dataclass(frozen=True)
class Identity:
    """An already-authenticated caller as handed to the engine."""
    user_id: Optional[str]
    role: Optional[Role]
    email: NormalizedEmail

    @classmethod
    def build(cls, role, email, user_id: Optional[str] = None) -> "Identity":
        return cls(user_id=user_id, role=Role.parse(role), email=NormalizedEmail.parse(email))

    @classmethod
    def authenticated(cls, role, email, user_id: Optional[str] = None) -> "Identity":
        """Identity for a signed-in user; the stored email is trusted as is."""
        return cls(user_id=user_id, role=Role.parse(role), email=NormalizedEmail.trusted(email))
