"""Tests for campaign management and the results report."""

import pytest

from campaigns.core.errors import (
    CampaignNotFound,
    CampaignUrlTaken,
    CampaignValidationError,
    InvalidStatusAction,
    InvalidStatusTransition,
)
from campaigns.models.orm.campaign import CampaignStatus
from campaigns.models.schemas.campaign import CampaignCreateModel, VariantConfig
from campaigns.services.assignment_service import AssignmentService
from campaigns.services.campaign_service import CampaignService


def campaign_payload(url="/life-offer", weights=(50, 50), control=0):
    return CampaignCreateModel(
        name="Life insurance offer",
        description="Hero copy test",
        campaign_url=url,
        variants=[
            VariantConfig(
                name=f"variant-{index}",
                landing_page_slug=f"/{chr(ord('b') + index)}",
                traffic_percentage=weight,
                is_control=index == control,
            )
            for index, weight in enumerate(weights)
        ],
    )


class TestCreateCampaign:
    def test_creates_draft_campaign(self, db):
        created = CampaignService(db).create_campaign(campaign_payload(weights=(70, 30)))

        assert created.status == CampaignStatus.DRAFT
        assert created.campaign_url == "/life-offer"
        assert created.total_visitors == 0
        assert [v.traffic_percentage for v in created.variants] == [70, 30]
        assert created.variants[0].is_control is True

    def test_url_is_normalised(self, db):
        created = CampaignService(db).create_campaign(campaign_payload(url="life-offer"))
        assert created.campaign_url == "/life-offer"

    @pytest.mark.parametrize("weights", [(50, 40), (60, 50), (100,)])
    def test_rejects_invalid_allocations(self, db, weights):
        with pytest.raises(CampaignValidationError):
            CampaignService(db).create_campaign(campaign_payload(weights=weights))

    def test_rejects_duplicate_url(self, db):
        service = CampaignService(db)
        service.create_campaign(campaign_payload())
        with pytest.raises(CampaignUrlTaken):
            service.create_campaign(campaign_payload())

    def test_list_campaigns(self, db):
        service = CampaignService(db)
        service.create_campaign(campaign_payload(url="/one"))
        service.create_campaign(campaign_payload(url="/two"))

        urls = {c.campaign_url for c in service.list_campaigns()}
        assert urls == {"/one", "/two"}


class TestStatusChanges:
    def test_start_pause_stop(self, db):
        service = CampaignService(db)
        campaign_id = service.create_campaign(campaign_payload()).campaign_id

        started = service.change_status(campaign_id, "start")
        assert started.status == CampaignStatus.ACTIVE
        assert started.start_date is not None

        paused = service.change_status(campaign_id, "pause")
        assert paused.status == CampaignStatus.PAUSED
        assert paused.start_date == started.start_date

        stopped = service.change_status(campaign_id, "stop")
        assert stopped.status == CampaignStatus.COMPLETED
        assert stopped.end_date is not None

    def test_completed_campaign_cannot_restart(self, db):
        service = CampaignService(db)
        campaign_id = service.create_campaign(campaign_payload()).campaign_id
        service.change_status(campaign_id, "stop")

        with pytest.raises(InvalidStatusTransition):
            service.change_status(campaign_id, "start")

    def test_cannot_pause_a_draft(self, db):
        service = CampaignService(db)
        campaign_id = service.create_campaign(campaign_payload()).campaign_id
        with pytest.raises(InvalidStatusTransition):
            service.change_status(campaign_id, "pause")

    def test_unknown_action(self, db):
        service = CampaignService(db)
        campaign_id = service.create_campaign(campaign_payload()).campaign_id
        with pytest.raises(InvalidStatusAction):
            service.change_status(campaign_id, "archive")

    def test_unknown_campaign(self, db):
        with pytest.raises(CampaignNotFound):
            CampaignService(db).change_status("missing", "start")


class TestActiveCampaignLookup:
    def test_only_active_campaigns_resolve(self, db, make_campaign):
        make_campaign(url="/paused", status=CampaignStatus.PAUSED)
        active_id = make_campaign(url="/active")

        service = CampaignService(db)
        assert service.get_active_campaign_for_url("/active").campaign_id == active_id
        with pytest.raises(CampaignNotFound):
            service.get_active_campaign_for_url("/paused")
        with pytest.raises(CampaignNotFound):
            service.get_active_campaign_for_url("/nowhere")

    def test_lookup_normalises_url(self, db, make_campaign):
        active_id = make_campaign(url="/active")

        service = CampaignService(db)
        assert service.get_active_campaign_for_url("active").campaign_id == active_id
        assert service.get_active_campaign_for_url("  /active ").campaign_id == active_id


class TestCampaignResults:
    def test_results_report(self, db, make_campaign):
        campaign_id = make_campaign(weights=(50, 50))
        assignments = AssignmentService(db)

        by_variant = {}
        for i in range(200):
            visitor_id = f"visitor-{i}"
            result = assignments.assign(campaign_id, visitor_id)
            by_variant.setdefault(result.variant.variant_id, []).append(visitor_id)
        for visitors in by_variant.values():
            for visitor_id in visitors[:10]:
                assignments.record_conversion(campaign_id, visitor_id)

        report = CampaignService(db).get_campaign_results(campaign_id)

        assert report.total_visitors == 200
        assert report.total_conversions == 20
        assert report.conversion_rate == pytest.approx(10.0)
        assert report.event_counts == {"assignment": 200, "conversion": 20}
        assert sum(v.visitors for v in report.variants) == 200
        assert sum(v.traffic_share for v in report.variants) == pytest.approx(100.0)

        control = next(v for v in report.variants if v.is_control)
        challenger = next(v for v in report.variants if not v.is_control)
        assert control.significance is None
        assert challenger.significance is not None
        assert challenger.significance.control_variant_id == control.variant_id
        assert 0.0 <= challenger.significance.p_value <= 1.0

    def test_results_for_campaign_without_traffic(self, db, make_campaign):
        campaign_id = make_campaign(weights=(50, 50))
        report = CampaignService(db).get_campaign_results(campaign_id)

        assert report.total_visitors == 0
        assert report.event_counts == {}
        assert all(v.traffic_share == 0.0 for v in report.variants)
        assert all(v.significance is None for v in report.variants)

    def test_results_unknown_campaign(self, db):
        with pytest.raises(CampaignNotFound):
            CampaignService(db).get_campaign_results("missing")
