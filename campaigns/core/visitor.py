"""Visitor identity cookies.

Plain functions over the incoming request and outgoing response; nothing here
keeps state between requests.
"""

import secrets
import string
import time
from typing import Optional

from starlette.requests import Request
from starlette.responses import Response

from .settings import config_settings

VISITOR_COOKIE = "visitor_id"
CAMPAIGN_COOKIE_PREFIX = "campaign_"

VISITOR_COOKIE_MAX_AGE = 30 * 24 * 60 * 60  # seconds
CAMPAIGN_COOKIE_MAX_AGE = 24 * 60 * 60

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_visitor_id() -> str:
    """Mint an id of the form ``visitor_<epoch-ms>_<9 random chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"visitor_{int(time.time() * 1000)}_{suffix}"


def read_visitor_id(request: Request) -> Optional[str]:
    visitor_id = request.cookies.get(VISITOR_COOKIE)
    return visitor_id or None


def get_or_create_visitor_id(request: Request) -> tuple[str, bool]:
    """Returns ``(visitor_id, is_new)``."""
    existing = read_visitor_id(request)
    if existing:
        return existing, False
    return new_visitor_id(), True


def campaign_cookie_name(campaign_id: str) -> str:
    return f"{CAMPAIGN_COOKIE_PREFIX}{campaign_id}"


def read_campaign_cookie(request: Request, campaign_id: str) -> Optional[str]:
    """The variant id the browser last stored for this campaign, if any."""
    return request.cookies.get(campaign_cookie_name(campaign_id)) or None


def set_visitor_cookie(response: Response, visitor_id: str) -> None:
    response.set_cookie(
        VISITOR_COOKIE,
        visitor_id,
        max_age=VISITOR_COOKIE_MAX_AGE,
        httponly=True,
        secure=config_settings.is_production,
        samesite="lax",
    )


def set_campaign_cookie(response: Response, campaign_id: str, variant_id: str) -> None:
    response.set_cookie(
        campaign_cookie_name(campaign_id),
        variant_id,
        max_age=CAMPAIGN_COOKIE_MAX_AGE,
        httponly=True,
        secure=config_settings.is_production,
        samesite="lax",
    )
