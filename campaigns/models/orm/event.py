from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from .base import JSON_TYPE, Base
from .campaign import CampaignORM


class CampaignEventORM(Base):
    """Append-only visitor tracking record."""

    __tablename__ = "campaign_events"

    event_id = Column(String, primary_key=True, index=True)

    visitor_id = Column(String, nullable=False, index=True)

    # "assignment", "conversion", or any page event name sent by the site
    type = Column(String, nullable=False, index=True)

    campaign_id = Column(
        String, ForeignKey("campaigns.campaign_id"), index=True, nullable=True
    )
    variant_id = Column(
        String, ForeignKey("campaign_variants.variant_id"), nullable=True
    )

    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    properties = Column(JSON_TYPE, default=dict, nullable=False)

    campaign = relationship(CampaignORM)
