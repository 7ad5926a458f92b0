import enum
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Enum, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import Base


class CampaignStatus(enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


# --- Campaign Model ---
class CampaignORM(Base):
    __tablename__ = "campaigns"

    # --- Core Identifiers ---
    campaign_id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text)
    # Public path that visitors hit, e.g. "/summer-life-cover"
    campaign_url = Column(String, nullable=False, unique=True, index=True)
    conversion_goal = Column(String, nullable=False, default="form_submission")

    # --- Lifecycle ---
    status = Column(
        Enum(
            CampaignStatus,
            name="campaign_status",
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        default=CampaignStatus.DRAFT,
        nullable=False,
    )
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)

    # --- Aggregates (incremented in SQL, never rewritten wholesale) ---
    total_visitors = Column(Integer, default=0, nullable=False)
    total_conversions = Column(Integer, default=0, nullable=False)
    conversion_rate = Column(Float, default=0.0, nullable=False)

    variants = relationship(
        "VariantORM", back_populates="campaign", cascade="all, delete-orphan"
    )


# --- Variant Model ---
class VariantORM(Base):
    __tablename__ = "campaign_variants"

    variant_id = Column(String, primary_key=True)
    campaign_id = Column(
        String, ForeignKey("campaigns.campaign_id"), nullable=False, index=True
    )
    name = Column(String, nullable=False)
    landing_page_slug = Column(String, nullable=False)
    traffic_percentage = Column(Float, nullable=False)
    is_control = Column(Boolean, default=False, nullable=False)

    visitors = Column(Integer, default=0, nullable=False)
    conversions = Column(Integer, default=0, nullable=False)
    conversion_rate = Column(Float, default=0.0, nullable=False)

    campaign = relationship("CampaignORM", back_populates="variants")
