import uuid
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session, joinedload

from campaigns.models.orm.campaign import CampaignORM, CampaignStatus, VariantORM
from campaigns.models.schemas.campaign import CampaignCreateModel


class CampaignRepository:
    """
    Campaign and variant persistence. Methods flush but never commit; the
    calling service owns the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def create_campaign(self, campaign_data: CampaignCreateModel) -> CampaignORM:
        """
        Adds a draft campaign and its variants to the session.

        Campaign-level fields are copied from the model; each VariantConfig
        becomes a VariantORM linked to the new campaign id.
        """
        campaign_id = str(uuid.uuid4())

        campaign_dict = campaign_data.model_dump(exclude={"variants"})
        campaign_dict["campaign_id"] = campaign_id
        campaign_dict["status"] = CampaignStatus.DRAFT

        db_campaign = CampaignORM(**campaign_dict)
        self.db.add(db_campaign)

        for variant_data in campaign_data.variants:
            variant_dict = variant_data.model_dump()
            variant_dict["variant_id"] = str(uuid.uuid4())
            variant_dict["campaign_id"] = campaign_id
            db_campaign.variants.append(VariantORM(**variant_dict))

        self.db.flush()
        return db_campaign

    def find_campaign(self, campaign_id: str) -> Optional[CampaignORM]:
        """
        Fetches a single campaign and eagerly loads its variants in the same
        query. Counters are refreshed even if the objects are already in the
        session, since increments bypass the ORM.
        """
        stmt = (
            select(CampaignORM)
            .where(CampaignORM.campaign_id == campaign_id)
            .options(joinedload(CampaignORM.variants))
            .execution_options(populate_existing=True)
        )
        return self.db.scalars(stmt).unique().one_or_none()

    def find_by_url(self, campaign_url: str) -> Optional[CampaignORM]:
        stmt = select(CampaignORM).where(CampaignORM.campaign_url == campaign_url)
        return self.db.scalars(stmt).one_or_none()

    def find_active_by_url(self, campaign_url: str) -> Optional[CampaignORM]:
        stmt = (
            select(CampaignORM)
            .where(
                CampaignORM.campaign_url == campaign_url,
                CampaignORM.status == CampaignStatus.ACTIVE,
            )
            .options(joinedload(CampaignORM.variants))
            .execution_options(populate_existing=True)
        )
        return self.db.scalars(stmt).unique().one_or_none()

    def list_campaigns(self) -> list[CampaignORM]:
        stmt = (
            select(CampaignORM)
            .options(joinedload(CampaignORM.variants))
            .order_by(CampaignORM.created_at.desc())
        )
        return list(self.db.scalars(stmt).unique().all())

    # --- Aggregate counters ---
    # Single UPDATE ... SET x = x + 1 statements, so concurrent increments
    # from different requests are never lost.

    def increment_variant_visitors(self, variant_id: str) -> None:
        self._increment(VariantORM, VariantORM.variant_id == variant_id, VariantORM.visitors)

    def increment_campaign_visitors(self, campaign_id: str) -> None:
        self._increment(
            CampaignORM, CampaignORM.campaign_id == campaign_id, CampaignORM.total_visitors
        )

    def increment_variant_conversions(self, variant_id: str) -> None:
        self._increment(VariantORM, VariantORM.variant_id == variant_id, VariantORM.conversions)

    def increment_campaign_conversions(self, campaign_id: str) -> None:
        self._increment(
            CampaignORM, CampaignORM.campaign_id == campaign_id, CampaignORM.total_conversions
        )

    def get_variant_counters(self, variant_id: str) -> tuple[int, int]:
        """Returns ``(visitors, conversions)`` as currently stored."""
        stmt = select(VariantORM.visitors, VariantORM.conversions).where(
            VariantORM.variant_id == variant_id
        )
        visitors, conversions = self.db.execute(stmt).one()
        return visitors, conversions

    def get_campaign_counters(self, campaign_id: str) -> tuple[int, int]:
        """Returns ``(total_visitors, total_conversions)`` as currently stored."""
        stmt = select(CampaignORM.total_visitors, CampaignORM.total_conversions).where(
            CampaignORM.campaign_id == campaign_id
        )
        visitors, conversions = self.db.execute(stmt).one()
        return visitors, conversions

    def set_variant_conversion_rate(self, variant_id: str, rate: float) -> None:
        self.db.execute(
            update(VariantORM)
            .where(VariantORM.variant_id == variant_id)
            .values(conversion_rate=rate)
            .execution_options(synchronize_session=False)
        )

    def set_campaign_conversion_rate(self, campaign_id: str, rate: float) -> None:
        self.db.execute(
            update(CampaignORM)
            .where(CampaignORM.campaign_id == campaign_id)
            .values(conversion_rate=rate)
            .execution_options(synchronize_session=False)
        )

    def _increment(self, model, criterion, column) -> None:
        stmt = (
            update(model)
            .where(criterion)
            .values({column.key: column + 1})
            .execution_options(synchronize_session=False)
        )
        self.db.execute(stmt)
