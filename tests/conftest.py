"""Shared test configuration and fixtures."""

import os
import uuid

# Must be set before campaigns.core.settings is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTH_TOKENS"] = '["test-token"]'

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from campaigns.core.db import get_db
from campaigns.main import app
from campaigns.models.orm.base import Base
from campaigns.models.orm.campaign import CampaignStatus
from campaigns.models.schemas.campaign import CampaignCreateModel, VariantConfig
from campaigns.repositories.campaign_repo import CampaignRepository

TEST_TOKEN = "test-token"


@pytest.fixture
def engine():
    """In-memory SQLite shared by every connection of the test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_campaign(db):
    """
    Factory that stores a campaign straight through the repository, bypassing
    creation-time validation so tests can build campaigns with any weights.
    Returns the campaign id.
    """

    def _make(weights=(50, 50), status=CampaignStatus.ACTIVE, url=None, name="Life cover"):
        campaign_data = CampaignCreateModel(
            name=name,
            campaign_url=url or f"/life-{uuid.uuid4().hex[:8]}",
            variants=[
                VariantConfig(
                    name=f"variant-{index}",
                    landing_page_slug=f"/landing-{index}",
                    traffic_percentage=weight,
                    is_control=index == 0,
                )
                for index, weight in enumerate(weights)
            ],
        )
        campaign = CampaignRepository(db).create_campaign(campaign_data)
        campaign.status = status
        campaign_id = campaign.campaign_id
        db.commit()
        return campaign_id

    return _make


@pytest.fixture
def client(db):
    """TestClient whose requests use the test session."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {TEST_TOKEN}"}


@pytest.fixture
def foreign_keys(engine):
    """SQLite only checks foreign keys when asked to, unlike PostgreSQL."""
    with engine.connect() as connection:
        connection.exec_driver_sql("PRAGMA foreign_keys=ON")
