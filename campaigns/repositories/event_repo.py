import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from campaigns.core.errors import InvalidEventReference
from campaigns.models.orm.event import CampaignEventORM


class EventRepository:
    def __init__(self, db: Session):
        """Initializes the repository with a database session."""
        self.db = db

    def get_events_for_campaign(self, campaign_id: str, **kwargs) -> list[CampaignEventORM]:
        """
        Retrieves events for a specific campaign, applying optional filters
        for event type and time range.
        """
        stmt = select(CampaignEventORM).where(CampaignEventORM.campaign_id == campaign_id)

        if event_type := kwargs.get("event_type"):
            stmt = stmt.where(CampaignEventORM.type == event_type)

        if start_date := kwargs.get("start_date"):
            stmt = stmt.where(CampaignEventORM.timestamp >= start_date)

        if end_date := kwargs.get("end_date"):
            stmt = stmt.where(CampaignEventORM.timestamp <= end_date)

        return list(self.db.scalars(stmt.order_by(CampaignEventORM.timestamp)).all())

    def count_events_by_type(self, campaign_id: str) -> dict[str, int]:
        stmt = (
            select(CampaignEventORM.type, func.count(CampaignEventORM.event_id))
            .where(CampaignEventORM.campaign_id == campaign_id)
            .group_by(CampaignEventORM.type)
        )
        return {event_type: count for event_type, count in self.db.execute(stmt).all()}

    def create_event(
        self,
        visitor_id: str,
        event_type: str,
        campaign_id: Optional[str] = None,
        variant_id: Optional[str] = None,
        properties: Optional[dict[str, Any]] = None,
        timestamp: Optional[datetime] = None,
    ) -> CampaignEventORM:
        """
        Appends an event record to the session. Events are never updated.

        Returns:
            The created CampaignEventORM object (flushed, not committed).

        Raises:
            InvalidEventReference: the campaign or variant id does not exist.
        """
        db_event = CampaignEventORM(
            event_id=str(uuid.uuid4()),
            visitor_id=visitor_id,
            type=event_type,
            campaign_id=campaign_id,
            variant_id=variant_id,
            properties=properties or {},
            timestamp=timestamp or datetime.utcnow(),
        )
        try:
            self.db.add(db_event)
            self.db.flush()
        except IntegrityError as e:
            reason = str(e.orig).partition("\n")[0]
            raise InvalidEventReference(
                "Invalid event data: a required field is missing or a campaign or "
                f"variant reference is invalid. Details: {reason}"
            ) from e

        return db_event
