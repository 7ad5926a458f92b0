# services/event_service.py
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from campaigns.core.db import unit_of_work
from campaigns.core.logging_config import get_logger
from campaigns.models.schemas.event import (
    EventCreateModel,
    EventRecordModel,
    EventResponseModel,
)
from campaigns.repositories.event_repo import EventRepository

logger = get_logger(__name__)


class EventService:
    def __init__(self, db: Session):
        """Initializes the service with the repositories it needs."""
        self.event_repo = EventRepository(db)
        self.db = db

    def record_event(self, event_data: EventCreateModel) -> EventResponseModel:
        """Appends a visitor tracking event sent by the site."""
        with unit_of_work(self.db):
            recorded_event = self.event_repo.create_event(
                visitor_id=event_data.visitor_id,
                event_type=event_data.type,
                campaign_id=event_data.campaign_id,
                variant_id=event_data.variant_id,
                properties=event_data.properties,
                timestamp=event_data.timestamp,
            )
            response = EventResponseModel(
                event_id=recorded_event.event_id, campaign_id=recorded_event.campaign_id
            )

        logger.debug("event_recorded", event_id=response.event_id, type=event_data.type)
        return response

    def list_events_for_campaign(
        self,
        campaign_id: str,
        event_type: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> list[EventRecordModel]:
        with unit_of_work(self.db):
            events = self.event_repo.get_events_for_campaign(
                campaign_id, event_type=event_type, start_date=start_date, end_date=end_date
            )
            return [EventRecordModel.model_validate(event) for event in events]
