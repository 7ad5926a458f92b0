# services/assignment_service.py
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from campaigns.core.db import unit_of_work
from campaigns.core.errors import (
    AssignmentNotFound,
    CampaignNotActive,
    CampaignNotFound,
    NoVariantsAvailable,
    StorageConflict,
)
from campaigns.core.logging_config import get_logger
from campaigns.models.orm.assignment import AssignmentORM
from campaigns.models.orm.campaign import CampaignStatus
from campaigns.models.schemas.assignment import (
    AssignedVariantModel,
    AssignmentContext,
    AssignmentModel,
    AssignmentResponseModel,
    ConversionResponseModel,
)
from campaigns.repositories.assignment_repo import AssignmentRepository
from campaigns.repositories.campaign_repo import CampaignRepository
from campaigns.repositories.event_repo import EventRepository
from campaigns.services.bucketing import bucket_for, select_variant
from campaigns.services.statistics import conversion_rate

logger = get_logger(__name__)

ASSIGNMENT_METHOD = "hash"
DEFAULT_CONVERSION_VALUE = 1.0


class AssignmentService:
    """
    Sticky, weighted assignment of visitors to campaign variants, and
    conversion tracking against those assignments.

    Every call runs in a single transaction: the assignment row, the counter
    increments and the event log entry are committed together or not at all.
    """

    def __init__(self, db: Session):
        self.assignment_repo = AssignmentRepository(db)
        self.campaign_repo = CampaignRepository(db)
        self.event_repo = EventRepository(db)
        self.db = db

    def assign(
        self,
        campaign_id: str,
        visitor_id: str,
        context: Optional[AssignmentContext] = None,
    ) -> AssignmentResponseModel:
        """
        Gets a visitor's variant for a campaign, assigning one on first sight.

        1. Return the existing assignment if there is one (no counter changes).
        2. Otherwise the campaign must exist, be active and have variants.
        3. Bucket the visitor id and walk the cumulative traffic weights.
        4. Persist the assignment and bump the visitor counters.

        A concurrent request that assigned the same visitor first wins; its
        assignment is re-read and returned.
        """
        try:
            with unit_of_work(self.db):
                existing = self.assignment_repo.find_assignment(campaign_id, visitor_id)
                if existing:
                    logger.debug(
                        "assignment_reused",
                        campaign_id=campaign_id,
                        visitor_id=visitor_id,
                        variant_id=existing.variant_id,
                    )
                    return self._to_response(existing, created=False)

                assignment = self._create_assignment(campaign_id, visitor_id, context)
        except StorageConflict as e:
            logger.warning(
                "assignment_conflict_recovered",
                campaign_id=campaign_id,
                visitor_id=visitor_id,
                reason=e.detail,
            )
            with unit_of_work(self.db):
                existing = self.assignment_repo.find_assignment(campaign_id, visitor_id)
                if existing is None:
                    raise
                return self._to_response(existing, created=False)

        return self._to_response(assignment, created=True)

    def _create_assignment(
        self, campaign_id: str, visitor_id: str, context: Optional[AssignmentContext]
    ) -> AssignmentORM:
        campaign = self.campaign_repo.find_campaign(campaign_id)
        if campaign is None:
            raise CampaignNotFound(f"Campaign {campaign_id} not found.")

        if campaign.status != CampaignStatus.ACTIVE:
            raise CampaignNotActive(
                f"Campaign {campaign_id} is {campaign.status.value}, not active."
            )

        if not campaign.variants:
            raise NoVariantsAvailable(f"Campaign {campaign_id} has no variants.")

        bucket = bucket_for(visitor_id)
        variant = select_variant(campaign.variants, bucket)

        fields: dict[str, Any] = {
            "campaign_id": campaign_id,
            "visitor_id": visitor_id,
            "variant_id": variant.variant_id,
            "assignment_method": ASSIGNMENT_METHOD,
        }
        if context is not None:
            fields.update(context.model_dump(exclude_none=True))

        assignment = self.assignment_repo.create_assignment(fields)

        self.campaign_repo.increment_variant_visitors(variant.variant_id)
        self.campaign_repo.increment_campaign_visitors(campaign_id)

        self.event_repo.create_event(
            visitor_id=visitor_id,
            event_type="assignment",
            campaign_id=campaign_id,
            variant_id=variant.variant_id,
            properties={"bucket": bucket, "method": ASSIGNMENT_METHOD},
        )

        logger.info(
            "visitor_assigned",
            campaign_id=campaign_id,
            visitor_id=visitor_id,
            variant_id=variant.variant_id,
            bucket=bucket,
        )
        return assignment

    def record_conversion(
        self,
        campaign_id: str,
        visitor_id: str,
        conversion_value: Optional[float] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> ConversionResponseModel:
        """
        Marks the visitor's assignment as converted and updates the variant and
        campaign conversion counters and rates.

        Repeat calls for an already converted assignment succeed without
        touching any counter.
        """
        with unit_of_work(self.db):
            assignment = self.assignment_repo.find_assignment(campaign_id, visitor_id)
            if assignment is None:
                raise AssignmentNotFound(
                    f"No assignment found for visitor {visitor_id} in campaign {campaign_id}."
                )

            if assignment.has_converted:
                return ConversionResponseModel(
                    already_converted=True, message="Conversion already tracked"
                )

            value = DEFAULT_CONVERSION_VALUE if conversion_value is None else conversion_value
            flipped = self.assignment_repo.update_assignment(
                assignment.assignment_id,
                {
                    "has_converted": True,
                    "converted_at": datetime.utcnow(),
                    "conversion_value": value,
                },
                only_if_unconverted=True,
            )
            if not flipped:
                # A concurrent request converted this assignment first
                return ConversionResponseModel(
                    already_converted=True, message="Conversion already tracked"
                )

            variant_id = assignment.variant_id
            self.campaign_repo.increment_variant_conversions(variant_id)
            self.campaign_repo.increment_campaign_conversions(campaign_id)

            visitors, conversions = self.campaign_repo.get_variant_counters(variant_id)
            self.campaign_repo.set_variant_conversion_rate(
                variant_id, conversion_rate(conversions, visitors)
            )

            total_visitors, total_conversions = self.campaign_repo.get_campaign_counters(
                campaign_id
            )
            self.campaign_repo.set_campaign_conversion_rate(
                campaign_id, conversion_rate(total_conversions, total_visitors)
            )

            self.event_repo.create_event(
                visitor_id=visitor_id,
                event_type="conversion",
                campaign_id=campaign_id,
                variant_id=variant_id,
                properties={"value": value, "metadata": metadata or {}},
            )

        logger.info(
            "conversion_recorded",
            campaign_id=campaign_id,
            visitor_id=visitor_id,
            variant_id=variant_id,
            value=value,
        )
        return ConversionResponseModel(
            already_converted=False, message="Conversion tracked successfully"
        )

    def _to_response(self, assignment: AssignmentORM, created: bool) -> AssignmentResponseModel:
        return AssignmentResponseModel(
            assignment=AssignmentModel.model_validate(assignment),
            variant=AssignedVariantModel.model_validate(assignment.variant),
            created=created,
        )
