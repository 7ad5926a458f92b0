from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import Base
from .campaign import CampaignORM, VariantORM


class AssignmentORM(Base):
    __tablename__ = "campaign_assignments"

    assignment_id = Column(String, primary_key=True)
    campaign_id = Column(
        String, ForeignKey("campaigns.campaign_id"), nullable=False, index=True
    )
    variant_id = Column(
        String, ForeignKey("campaign_variants.variant_id"), nullable=False, index=True
    )
    visitor_id = Column(String, nullable=False, index=True)

    assignment_method = Column(String, nullable=False, default="hash")

    # Request context captured on first assignment
    session_id = Column(String, nullable=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    referrer = Column(String, nullable=True)

    has_converted = Column(Boolean, default=False, nullable=False)
    conversion_value = Column(Float, nullable=True)

    assigned_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    converted_at = Column(DateTime, nullable=True)

    # One assignment per visitor per campaign; concurrent inserts for the same
    # pair are resolved by this constraint.
    __table_args__ = (
        UniqueConstraint("campaign_id", "visitor_id", name="uq_assignment_campaign_visitor"),
    )

    variant = relationship(VariantORM)

    campaign = relationship(CampaignORM)
