from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from campaigns.models.orm.campaign import CampaignStatus


def normalise_campaign_url(value: str) -> str:
    """Campaign URLs are stored as paths with a leading slash."""
    value = value.strip()
    return value if value.startswith("/") else f"/{value}"


class VariantConfig(BaseModel):
    """Configuration for a single variant in a campaign."""

    name: str = Field(..., min_length=1)
    landing_page_slug: str = Field(
        ..., min_length=1, description="Path the campaign URL is served from, e.g. '/b'."
    )
    traffic_percentage: float = Field(
        ...,
        ge=0.0,
        le=100.0,
        description="Percentage of traffic allocated to this variant.",
    )
    is_control: bool = False


class CampaignCreateModel(BaseModel):
    """Schema for creating a campaign (API input). Campaigns start as drafts."""

    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    campaign_url: str = Field(..., min_length=1, description="e.g. '/life-insurance-offer'")
    conversion_goal: str = "form_submission"
    created_by: Optional[str] = None
    variants: List[VariantConfig]

    @field_validator("campaign_url")
    @classmethod
    def normalise_url(cls, value: str) -> str:
        return normalise_campaign_url(value)


class VariantResponseModel(BaseModel):
    variant_id: str
    name: str
    landing_page_slug: str
    traffic_percentage: float
    is_control: bool
    visitors: int
    conversions: int
    conversion_rate: float

    model_config = ConfigDict(from_attributes=True)


class CampaignResponseModel(BaseModel):
    campaign_id: str
    name: str
    description: Optional[str] = None
    campaign_url: str
    conversion_goal: str
    status: CampaignStatus
    created_by: Optional[str] = None
    created_at: datetime
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    total_visitors: int
    total_conversions: int
    conversion_rate: float
    variants: List[VariantResponseModel]

    model_config = ConfigDict(from_attributes=True)


# --- Reporting ---


class SignificanceModel(BaseModel):
    """Two-proportion z-test of a variant against the control."""

    control_variant_id: str
    conversion_rate_control: float
    conversion_rate_variant: float
    improvement: float
    improvement_percent: float
    z_score: float
    p_value: float
    confidence_level: float
    is_significant: bool


class VariantResultModel(BaseModel):
    variant_id: str
    name: str
    is_control: bool
    traffic_percentage: float
    visitors: int
    conversions: int
    conversion_rate: float
    traffic_share: float = Field(..., description="Share of campaign visitors, in percent.")
    significance: Optional[SignificanceModel] = None


class CampaignResultsModel(BaseModel):
    campaign_id: str
    name: str
    status: CampaignStatus
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    days_running: int
    total_visitors: int
    total_conversions: int
    conversion_rate: float
    event_counts: Dict[str, int]
    variants: List[VariantResultModel]
