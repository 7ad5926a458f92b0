from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Path, Query, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette import status

from campaigns.core.auth import require_auth_token
from campaigns.core.db import engine, get_db
from campaigns.core.errors import CampaignServiceError
from campaigns.core.logging_config import get_logger, setup_logging
from campaigns.core.settings import config_settings
from campaigns.core.visitor import (
    get_or_create_visitor_id,
    read_campaign_cookie,
    set_campaign_cookie,
    set_visitor_cookie,
)
from campaigns.models.orm.base import Base
from campaigns.models.orm import assignment, campaign, event  # noqa: F401  (register tables)
from campaigns.models.schemas.assignment import (
    AssignmentContext,
    AssignmentRequestModel,
    AssignmentResponseModel,
    ConversionRequestModel,
    ConversionResponseModel,
    ResolvedLandingPageModel,
)
from campaigns.models.schemas.campaign import (
    CampaignCreateModel,
    CampaignResponseModel,
    CampaignResultsModel,
)
from campaigns.models.schemas.event import (
    EventCreateModel,
    EventRecordModel,
    EventResponseModel,
)
from campaigns.services.assignment_service import AssignmentService
from campaigns.services.campaign_service import CampaignService
from campaigns.services.event_service import EventService

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    if config_settings.AUTO_CREATE_TABLES:
        Base.metadata.create_all(bind=engine)
    logger.info("service_started", environment=config_settings.ENVIRONMENT)
    yield


app = FastAPI(
    title="Campaigns",
    description="Landing-page A/B campaigns: sticky variant assignment and conversion tracking.",
    version="0.1.0",
    lifespan=lifespan,
)

# Operator endpoints (back-office)
admin_router = APIRouter(tags=["admin"], dependencies=[Depends(require_auth_token)])

# Endpoints called by the public site for every visitor
public_router = APIRouter(tags=["public"])


@app.exception_handler(CampaignServiceError)
async def campaign_service_error_handler(request: Request, exc: CampaignServiceError):
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=type(exc).__name__, detail=exc.detail)
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": type(exc).__name__},
        headers=headers,
    )


@admin_router.post(
    "/campaigns",
    response_model=CampaignResponseModel,
    status_code=status.HTTP_201_CREATED,
    summary="Create a draft campaign",
)
def post_campaigns(campaign_data: CampaignCreateModel, db: Session = Depends(get_db)):
    return CampaignService(db).create_campaign(campaign_data)


@admin_router.get(
    "/campaigns",
    response_model=List[CampaignResponseModel],
    summary="List campaigns, newest first",
)
def get_campaigns(db: Session = Depends(get_db)):
    return CampaignService(db).list_campaigns()


@public_router.get(
    "/campaigns/active",
    response_model=CampaignResponseModel,
    summary="Get the active campaign for a URL",
)
def get_active_campaign(
    url: str = Query(..., min_length=1, description="Campaign URL path, e.g. '/life'."),
    db: Session = Depends(get_db),
):
    return CampaignService(db).get_active_campaign_for_url(url)


@public_router.get(
    "/campaigns/resolve",
    response_model=ResolvedLandingPageModel,
    summary="Resolve a campaign URL to the visitor's landing page",
)
def resolve_landing_page(
    request: Request,
    response: Response,
    url: str = Query(..., min_length=1, description="Campaign URL path, e.g. '/life'."),
    db: Session = Depends(get_db),
):
    """
    Reads the visitor cookie (minting one for first-time visitors), assigns
    the visitor to a variant of the active campaign for ``url`` and returns
    the landing page to serve. Sets the visitor and campaign cookies plus
    X-Campaign-ID, X-Variant-ID, X-Visitor-ID and X-Landing-Page headers.

    The stored assignment wins over the campaign cookie; the cookie is only
    rewritten when it is missing or disagrees.
    """
    active = CampaignService(db).get_active_campaign_for_url(url)
    visitor_id, is_new_visitor = get_or_create_visitor_id(request)
    cookie_variant_id = read_campaign_cookie(request, active.campaign_id)

    result = AssignmentService(db).assign(
        active.campaign_id, visitor_id, _request_context(request)
    )
    variant = result.variant

    if is_new_visitor:
        set_visitor_cookie(response, visitor_id)
    if cookie_variant_id != variant.variant_id:
        if cookie_variant_id is not None:
            logger.info(
                "campaign_cookie_replaced",
                campaign_id=active.campaign_id,
                visitor_id=visitor_id,
                cookie_variant_id=cookie_variant_id,
                variant_id=variant.variant_id,
            )
        set_campaign_cookie(response, active.campaign_id, variant.variant_id)

    response.headers["X-Campaign-ID"] = active.campaign_id
    response.headers["X-Variant-ID"] = variant.variant_id
    response.headers["X-Visitor-ID"] = visitor_id
    response.headers["X-Landing-Page"] = variant.landing_page_slug

    return ResolvedLandingPageModel(
        campaign_id=active.campaign_id,
        variant_id=variant.variant_id,
        visitor_id=visitor_id,
        landing_page_slug=variant.landing_page_slug,
    )


@admin_router.get(
    "/campaigns/{campaign_id}",
    response_model=CampaignResponseModel,
    summary="Get a campaign with its variants",
)
def get_campaign(
    campaign_id: str = Path(..., description="The ID of the campaign."),
    db: Session = Depends(get_db),
):
    return CampaignService(db).get_campaign(campaign_id)


@admin_router.put(
    "/campaigns/{campaign_id}/status",
    response_model=CampaignResponseModel,
    summary="Start, pause or stop a campaign",
)
def put_campaign_status(
    campaign_id: str = Path(..., description="The ID of the campaign."),
    action: str = Query(..., description="'start', 'pause' or 'stop'"),
    db: Session = Depends(get_db),
):
    return CampaignService(db).change_status(campaign_id, action)


@admin_router.get(
    "/campaigns/{campaign_id}/results",
    response_model=CampaignResultsModel,
    summary="Get statistics for a campaign",
)
def get_campaign_results(campaign_id: str, db: Session = Depends(get_db)):
    return CampaignService(db).get_campaign_results(campaign_id)


@admin_router.get(
    "/campaigns/{campaign_id}/events",
    response_model=List[EventRecordModel],
    summary="List visitor events recorded for a campaign",
)
def get_campaign_events(
    campaign_id: str,
    event_type: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
):
    return EventService(db).list_events_for_campaign(
        campaign_id, event_type=event_type, start_date=start_date, end_date=end_date
    )


@public_router.post(
    "/campaigns/assign",
    response_model=AssignmentResponseModel,
    summary="Assign a visitor to a campaign variant",
)
def post_assignment(assignment_request: AssignmentRequestModel, db: Session = Depends(get_db)):
    """
    Returns the visitor's existing assignment, or creates one based on the
    campaign's traffic allocation.
    """
    context = AssignmentContext(
        **assignment_request.model_dump(include={"session_id", "user_agent", "ip_address", "referrer"})
    )
    return AssignmentService(db).assign(
        assignment_request.campaign_id, assignment_request.visitor_id, context
    )


@public_router.post(
    "/campaigns/track",
    response_model=ConversionResponseModel,
    summary="Record a conversion for an assigned visitor",
)
def post_conversion(conversion: ConversionRequestModel, db: Session = Depends(get_db)):
    return AssignmentService(db).record_conversion(
        conversion.campaign_id,
        conversion.visitor_id,
        conversion_value=conversion.conversion_value,
        metadata=conversion.metadata,
    )


@public_router.post(
    "/events",
    response_model=EventResponseModel,
    status_code=status.HTTP_201_CREATED,
    summary="Record a visitor tracking event",
)
def post_events(event_data: EventCreateModel, db: Session = Depends(get_db)):
    return EventService(db).record_event(event_data)


@public_router.get("/health", summary="Liveness probe")
def health():
    return {"status": "ok"}


def _request_context(request: Request) -> AssignmentContext:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        ip_address = forwarded_for.split(",")[0].strip()
    else:
        ip_address = request.client.host if request.client else None

    return AssignmentContext(
        session_id=request.cookies.get("session_id"),
        user_agent=request.headers.get("user-agent"),
        ip_address=ip_address,
        referrer=request.headers.get("referer"),
    )


# Router order matters: /campaigns/active and /campaigns/resolve (public)
# must be registered before /campaigns/{campaign_id} (admin).
app.include_router(public_router)
app.include_router(admin_router)


if __name__ == "__main__":
    uvicorn.run("campaigns.main:app", host="0.0.0.0", port=8000, reload=True)
