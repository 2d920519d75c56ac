"""
Pydantic schemas for access requests.
"""
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field

from ward_access.features.access_requests.models import AccessRequestStatus


class AccessRequestCreate(BaseModel):
    """Schema for requesting access to a restricted feature."""
    module: str = Field(..., description="Module the feature belongs to")
    feature: str = Field(..., description="view, create, edit or delete")
    reason: str | None = Field(None, max_length=1000, description="Optional note for the reviewer")


class ReviewDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class AccessRequestReview(BaseModel):
    """Schema for reviewing an access request (managers only)."""
    decision: ReviewDecision
    comment: str | None = Field(None, max_length=1000, description="Optional message to the requester")


class AccessRequestResponse(BaseModel):
    """Schema for access request responses."""
    id: str
    requester_id: str
    requester_email: str
    module: str
    feature: str
    reason: str
    status: AccessRequestStatus
    reviewed_by_id: str | None = None
    reviewed_at: datetime | None = None
    review_comment: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
