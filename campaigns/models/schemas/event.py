from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class EventCreateModel(BaseModel):
    """Schema for recording a visitor tracking event (API input)."""

    visitor_id: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1, description="e.g. 'page_view', 'form_step', 'exit'")
    # Optional in the API input; the server sets it if missing.
    timestamp: Optional[datetime] = None
    properties: Dict = Field(default_factory=dict, description="Flexible JSON object.")
    campaign_id: Optional[str] = None
    variant_id: Optional[str] = None


class EventResponseModel(BaseModel):
    event_id: str
    campaign_id: Optional[str] = None


class EventRecordModel(BaseModel):
    """A stored event, as listed for a campaign."""

    event_id: str
    visitor_id: str
    type: str
    campaign_id: Optional[str] = None
    variant_id: Optional[str] = None
    timestamp: datetime
    properties: Dict

    model_config = ConfigDict(from_attributes=True)
