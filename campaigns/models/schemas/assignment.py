from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class AssignmentRequestModel(BaseModel):
    """Body of POST /campaigns/assign."""

    campaign_id: str = Field(..., min_length=1)
    visitor_id: str = Field(..., min_length=1)
    session_id: Optional[str] = None
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    referrer: Optional[str] = None


class AssignmentContext(BaseModel):
    """Request details stored alongside a new assignment."""

    session_id: Optional[str] = None
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    referrer: Optional[str] = None


class AssignmentModel(BaseModel):
    """A persistent visitor-to-variant assignment."""

    assignment_id: str
    campaign_id: str
    variant_id: str
    visitor_id: str
    assignment_method: str
    has_converted: bool
    conversion_value: Optional[float] = None
    assigned_at: datetime
    converted_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AssignedVariantModel(BaseModel):
    variant_id: str
    name: str
    landing_page_slug: str

    model_config = ConfigDict(from_attributes=True)


class AssignmentResponseModel(BaseModel):
    assignment: AssignmentModel
    variant: AssignedVariantModel
    created: bool = Field(..., description="False when an existing assignment was returned.")


class ConversionRequestModel(BaseModel):
    """Body of POST /campaigns/track."""

    campaign_id: str = Field(..., min_length=1)
    visitor_id: str = Field(..., min_length=1)
    conversion_value: Optional[float] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ConversionResponseModel(BaseModel):
    success: bool = True
    already_converted: bool
    message: str


class ResolvedLandingPageModel(BaseModel):
    """Response of GET /campaigns/resolve."""

    campaign_id: str
    variant_id: str
    visitor_id: str
    landing_page_slug: str
