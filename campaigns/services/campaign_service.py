# services/campaign_service.py
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from campaigns.core.db import unit_of_work
from campaigns.core.errors import (
    CampaignNotFound,
    CampaignUrlTaken,
    CampaignValidationError,
    InvalidStatusAction,
    InvalidStatusTransition,
)
from campaigns.core.logging_config import get_logger
from campaigns.core.settings import config_settings
from campaigns.models.orm.campaign import CampaignORM, CampaignStatus, VariantORM
from campaigns.models.schemas.campaign import (
    CampaignCreateModel,
    CampaignResponseModel,
    CampaignResultsModel,
    SignificanceModel,
    VariantResponseModel,
    VariantResultModel,
    normalise_campaign_url,
)
from campaigns.repositories.campaign_repo import CampaignRepository
from campaigns.repositories.event_repo import EventRepository
from campaigns.services.bucketing import order_variants
from campaigns.services.statistics import calculate_significance

logger = get_logger(__name__)

MIN_VARIANTS = 2
TOTAL_TRAFFIC = 100.0

# action -> (target status, statuses it may be applied from)
STATUS_ACTIONS = {
    "start": (CampaignStatus.ACTIVE, {CampaignStatus.DRAFT, CampaignStatus.PAUSED, CampaignStatus.ACTIVE}),
    "pause": (CampaignStatus.PAUSED, {CampaignStatus.ACTIVE, CampaignStatus.PAUSED}),
    "stop": (
        CampaignStatus.COMPLETED,
        {CampaignStatus.DRAFT, CampaignStatus.ACTIVE, CampaignStatus.PAUSED, CampaignStatus.COMPLETED},
    ),
}


class CampaignService:
    def __init__(self, db: Session):
        self.campaign_repo = CampaignRepository(db)
        self.event_repo = EventRepository(db)
        self.db = db

    def create_campaign(self, campaign_data: CampaignCreateModel) -> CampaignResponseModel:
        """
        Validates and stores a new draft campaign.

        Traffic percentages must add up to exactly 100 and the campaign URL
        must not be used by another campaign.
        """
        self._validate_variants(campaign_data)

        with unit_of_work(self.db):
            if self.campaign_repo.find_by_url(campaign_data.campaign_url):
                raise CampaignUrlTaken(
                    f"Campaign URL {campaign_data.campaign_url} already exists."
                )
            campaign = self.campaign_repo.create_campaign(campaign_data)
            campaign_id = campaign.campaign_id

        logger.info(
            "campaign_created",
            campaign_id=campaign_id,
            campaign_url=campaign_data.campaign_url,
            variants=len(campaign_data.variants),
        )
        return self.get_campaign(campaign_id)

    def _validate_variants(self, campaign_data: CampaignCreateModel) -> None:
        variants = campaign_data.variants
        if len(variants) < MIN_VARIANTS:
            raise CampaignValidationError(
                f"At least {MIN_VARIANTS} variants are required. Got: {len(variants)}"
            )

        total = sum(v.traffic_percentage for v in variants)
        if abs(total - TOTAL_TRAFFIC) > 1e-9:
            raise CampaignValidationError(
                f"Traffic percentages must add up to 100%. Got: {total}%"
            )

        names = [v.name for v in variants]
        if len(set(names)) != len(names):
            raise CampaignValidationError("Variant names must be unique within a campaign.")

        if sum(1 for v in variants if v.is_control) > 1:
            raise CampaignValidationError("At most one variant can be the control.")

    def get_campaign(self, campaign_id: str) -> CampaignResponseModel:
        with unit_of_work(self.db):
            campaign = self.campaign_repo.find_campaign(campaign_id)
            if campaign is None:
                raise CampaignNotFound(f"Campaign {campaign_id} not found.")
            return self._to_response(campaign)

    def list_campaigns(self) -> list[CampaignResponseModel]:
        with unit_of_work(self.db):
            campaigns = self.campaign_repo.list_campaigns()
            return [self._to_response(c) for c in campaigns]

    def get_active_campaign_for_url(self, campaign_url: str) -> CampaignResponseModel:
        campaign_url = normalise_campaign_url(campaign_url)
        with unit_of_work(self.db):
            campaign = self.campaign_repo.find_active_by_url(campaign_url)
            if campaign is None:
                raise CampaignNotFound(f"No active campaign found for URL {campaign_url}.")
            return self._to_response(campaign)

    def change_status(self, campaign_id: str, action: str) -> CampaignResponseModel:
        """
        Applies an operator action: ``start`` (activate), ``pause`` or ``stop``
        (complete). Completed campaigns stay completed.
        """
        if action not in STATUS_ACTIONS:
            raise InvalidStatusAction(
                f"Invalid action {action!r}. Expected one of: {', '.join(STATUS_ACTIONS)}"
            )
        target, allowed_from = STATUS_ACTIONS[action]

        with unit_of_work(self.db):
            campaign = self.campaign_repo.find_campaign(campaign_id)
            if campaign is None:
                raise CampaignNotFound(f"Campaign {campaign_id} not found.")

            previous = campaign.status
            if previous not in allowed_from:
                raise InvalidStatusTransition(
                    f"Cannot {action} a campaign that is {previous.value}."
                )

            now = datetime.utcnow()
            if target == CampaignStatus.ACTIVE and campaign.start_date is None:
                campaign.start_date = now
            if target == CampaignStatus.COMPLETED and campaign.end_date is None:
                campaign.end_date = now
            campaign.status = target

        logger.info(
            "campaign_status_changed",
            campaign_id=campaign_id,
            action=action,
            previous=previous.value,
            status=target.value,
        )
        return self.get_campaign(campaign_id)

    def get_campaign_results(self, campaign_id: str) -> CampaignResultsModel:
        """
        Report for the admin dashboard:

        - campaign totals and days running
        - per variant: visitors, conversions, conversion rate, realised share
          of campaign traffic
        - per non-control variant: z-test against the control variant
        - event counts by type from the visitor event log
        """
        confidence_level = config_settings.SIGNIFICANCE_CONFIDENCE_LEVEL

        with unit_of_work(self.db):
            campaign = self.campaign_repo.find_campaign(campaign_id)
            if campaign is None:
                raise CampaignNotFound(f"Campaign {campaign_id} not found.")

            event_counts = self.event_repo.count_events_by_type(campaign_id)
            variants = order_variants(campaign.variants)
            control = self._control_variant(variants)

            variant_results = []
            for variant in variants:
                significance = None
                if control is not None and variant.variant_id != control.variant_id:
                    stats = calculate_significance(
                        control.conversions,
                        control.visitors,
                        variant.conversions,
                        variant.visitors,
                        confidence_level,
                    )
                    if stats is not None:
                        significance = SignificanceModel(
                            control_variant_id=control.variant_id, **stats
                        )

                traffic_share = (
                    variant.visitors / campaign.total_visitors * 100
                    if campaign.total_visitors
                    else 0.0
                )
                variant_results.append(
                    VariantResultModel(
                        variant_id=variant.variant_id,
                        name=variant.name,
                        is_control=variant.is_control,
                        traffic_percentage=variant.traffic_percentage,
                        visitors=variant.visitors,
                        conversions=variant.conversions,
                        conversion_rate=variant.conversion_rate,
                        traffic_share=traffic_share,
                        significance=significance,
                    )
                )

            return CampaignResultsModel(
                campaign_id=campaign.campaign_id,
                name=campaign.name,
                status=campaign.status,
                start_date=campaign.start_date,
                end_date=campaign.end_date,
                days_running=self._days_running(campaign),
                total_visitors=campaign.total_visitors,
                total_conversions=campaign.total_conversions,
                conversion_rate=campaign.conversion_rate,
                event_counts=event_counts,
                variants=variant_results,
            )

    @staticmethod
    def _control_variant(variants: list[VariantORM]) -> Optional[VariantORM]:
        """The flagged control, else the first variant in walk order."""
        for variant in variants:
            if variant.is_control:
                return variant
        return variants[0] if variants else None

    @staticmethod
    def _days_running(campaign: CampaignORM) -> int:
        if campaign.start_date is None:
            return 0
        end = campaign.end_date or datetime.utcnow()
        return max((end - campaign.start_date).days, 0)

    @staticmethod
    def _to_response(campaign: CampaignORM) -> CampaignResponseModel:
        response = CampaignResponseModel.model_validate(campaign)
        # Same order the assignment walk uses
        response.variants = [
            VariantResponseModel.model_validate(v) for v in order_variants(campaign.variants)
        ]
        return response
