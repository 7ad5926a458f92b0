import re
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.requests import Request

from campaigns.core.db import unit_of_work
from campaigns.core.errors import CampaignNotFound, StorageConflict, StorageUnavailable
from campaigns.core.visitor import (
    VISITOR_COOKIE,
    campaign_cookie_name,
    get_or_create_visitor_id,
    new_visitor_id,
)


def make_request(cookie_header: str = "") -> Request:
    headers = [(b"cookie", cookie_header.encode())] if cookie_header else []
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers})


class TestUnitOfWork:
    def test_commits_on_success(self):
        session = MagicMock()
        with unit_of_work(session):
            pass
        session.commit.assert_called_once()
        session.rollback.assert_not_called()

    def test_operational_error_is_retryable_unavailability(self):
        session = MagicMock()
        with pytest.raises(StorageUnavailable) as exc_info:
            with unit_of_work(session):
                raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        assert exc_info.value.retryable is True
        assert exc_info.value.status_code == 503
        session.rollback.assert_called_once()
        session.commit.assert_not_called()

    def test_integrity_error_is_conflict(self):
        session = MagicMock()
        with pytest.raises(StorageConflict):
            with unit_of_work(session):
                raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))
        session.rollback.assert_called_once()

    def test_service_errors_pass_through(self):
        session = MagicMock()
        with pytest.raises(CampaignNotFound):
            with unit_of_work(session):
                raise CampaignNotFound("nope")
        session.rollback.assert_called_once()
        session.commit.assert_not_called()


class TestVisitorIdentity:
    def test_new_visitor_id_format(self):
        visitor_id = new_visitor_id()
        assert re.fullmatch(r"visitor_\d{13}_[a-z0-9]{9}", visitor_id)

    def test_new_visitor_ids_differ(self):
        assert len({new_visitor_id() for _ in range(50)}) == 50

    def test_existing_cookie_is_reused(self):
        request = make_request(f"{VISITOR_COOKIE}=visitor_123_abc; other=1")
        assert get_or_create_visitor_id(request) == ("visitor_123_abc", False)

    def test_missing_cookie_mints_id(self):
        visitor_id, is_new = get_or_create_visitor_id(make_request())
        assert is_new is True
        assert visitor_id.startswith("visitor_")

    def test_campaign_cookie_name(self):
        assert campaign_cookie_name("abc-123") == "campaign_abc-123"
