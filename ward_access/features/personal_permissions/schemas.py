"""
Pydantic schemas for personal permission delegation.
"""
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class PersonalPermissionsUpdate(BaseModel):
    """Full replacement of the caller's delegation grid."""
    permissions: Dict[str, Dict[str, bool]] = Field(default_factory=dict)


class PersonalPermissionsResponse(BaseModel):
    owner_id: str
    role: Optional[str]
    permissions: Dict[str, Dict[str, bool]]


class CatalogModule(BaseModel):
    module: str
    actions: List[str]


class PersonalCatalogResponse(BaseModel):
    role: Optional[str]
    modules: List[CatalogModule]


class DelegationCheckResponse(BaseModel):
    owner_id: str
    module: str
    action: str
    delegated: bool
    allowed: bool
