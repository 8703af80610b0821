import os
# Settings are read at import time; pin a test environment BEFORE any app imports
os.environ["TESTING"] = "True"
os.environ["DEBUG"] = "False"
os.environ.pop("SAVED_PROFILES_PATH", None)

import pytest
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport

from app.core.config import Settings
from app.schemas.base import CloudProvider
from app.schemas.connections import Credential


@pytest.fixture
def settings() -> Settings:
    return Settings(
        TESTING=True,
        PROVIDER_TIMEOUT_SECONDS=1,
        REGION_SCAN_TIMEOUT_SECONDS=1,
        AWS_PROFILES=["default"],
        AZURE_PROFILES=["default"],
        GCP_MONTHLY_INSTANCE_COST=50.0,
    )


@pytest.fixture
def aws_credential() -> Credential:
    return Credential(
        profile_name="prod",
        provider=CloudProvider.AWS,
        region="us-east-1",
        values={"aws_access_key_id": "AKIATEST", "aws_secret_access_key": "secret"},
        source="saved",
    )


@pytest.fixture
def azure_credential() -> Credential:
    return Credential(
        profile_name="default",
        provider=CloudProvider.AZURE,
        values={
            "subscription_id": "sub-id",
            "tenant_id": "az-tenant-id",
            "client_id": "client-id",
            "client_secret": "secret",
        },
        source="ambient",
    )


@pytest.fixture
def gcp_credential() -> Credential:
    return Credential(
        profile_name="my-project",
        provider=CloudProvider.GCP,
        values={"project_id": "my-project"},
        source="request",
    )


@pytest.fixture
async def ac() -> AsyncGenerator[AsyncClient, None]:
    """Async client fixture for testing API endpoints."""
    from app.main import app
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
