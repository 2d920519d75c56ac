"""
Pydantic schemas for permission resolution and administration.
"""
from datetime import datetime
from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field, ConfigDict, EmailStr

from ward_access.features.permissions.resolver import ModuleOverride, OverrideEntry
from ward_access.features.permissions.types import Feature, Module, PermissionFlags


# ============================================================================
# Resolution Schemas
# ============================================================================

class FlagsResponse(BaseModel):
    """Effective permission flags for one module."""
    can_view: bool
    can_create: bool
    can_edit: bool
    can_delete: bool

    @classmethod
    def from_flags(cls, flags: PermissionFlags) -> "FlagsResponse":
        return cls(**flags.as_dict())


class ModulePermissionResponse(BaseModel):
    """Effective permissions of the caller on one module."""
    module: Module
    flags: FlagsResponse
    restricted_features: List[Feature] = []
    usable_features: List[Feature] = []
    has_override: bool = False


class MyPermissionsResponse(BaseModel):
    """Effective permissions of the caller on every module."""
    email: str
    role: Optional[str]
    is_permission_manager: bool
    modules: List[ModulePermissionResponse]


class FeatureCheckResponse(BaseModel):
    """Result of a feature check; ``can_request_access`` drives the request affordance."""
    module: str
    feature: str
    allowed: bool
    flag_granted: bool
    restricted: bool
    can_request_access: bool


class ModuleCatalogEntry(BaseModel):
    module: Module
    features: List[Feature]


# ============================================================================
# Override Schemas
# ============================================================================

class OverrideUpdate(BaseModel):
    """
    Override for one module. Flags left out (or null) resolve as false;
    the override replaces the role default for this module entirely.
    """
    can_view: Optional[bool] = None
    can_create: Optional[bool] = None
    can_edit: Optional[bool] = None
    can_delete: Optional[bool] = None
    restricted_features: List[str] = Field(default_factory=list, description="Features that need an approved access request")

    def flags(self) -> Dict[str, Optional[bool]]:
        return self.model_dump(include={"can_view", "can_create", "can_edit", "can_delete"})


class ModuleOverrideResponse(BaseModel):
    module: Module
    can_view: Optional[bool] = None
    can_create: Optional[bool] = None
    can_edit: Optional[bool] = None
    can_delete: Optional[bool] = None
    restricted_features: List[Feature] = []

    @classmethod
    def build(cls, module: Module, override: ModuleOverride) -> "ModuleOverrideResponse":
        return cls(
            module=module,
            can_view=override.can_view,
            can_create=override.can_create,
            can_edit=override.can_edit,
            can_delete=override.can_delete,
            restricted_features=sorted(override.restricted_features, key=lambda f: f.value),
        )


class OverrideEntryResponse(BaseModel):
    email: str
    modules: List[ModuleOverrideResponse] = []

    @classmethod
    def build(cls, entry: Optional[OverrideEntry], email: str) -> "OverrideEntryResponse":
        if entry is None:
            return cls(email=email, modules=[])
        return cls(
            email=entry.email,
            modules=[
                ModuleOverrideResponse.build(module, override)
                for module, override in sorted(entry.modules.items(), key=lambda item: item[0].value)
            ],
        )


# ============================================================================
# Manager Schemas
# ============================================================================

class ManagerCreate(BaseModel):
    email: EmailStr


class ManagerListResponse(BaseModel):
    managers: List[str]


# ============================================================================
# Assignment Policy Schemas
# ============================================================================

class AssignmentPolicySchema(BaseModel):
    assigner_roles: List[str] = []
    assignee_roles: List[str] = []


class AssignmentPolicyCheck(BaseModel):
    assignment_type: str
    assignee_role: Optional[str] = None


class AssignmentPolicyCheckResponse(BaseModel):
    allowed: bool
    reason: Optional[str] = None


# ============================================================================
# Audit Log Schemas
# ============================================================================

class AuditLogResponse(BaseModel):
    """Schema for audit log response."""
    id: str
    user_id: Optional[str]
    action: str
    resource_type: str
    resource_id: Optional[str]
    details: Optional[Dict[str, Any]]
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuditLogListResponse(BaseModel):
    """Schema for paginated audit log list."""
    items: List[AuditLogResponse]
    total: int
    page: int
    page_size: int
    pages: int
