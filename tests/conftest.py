from __future__ import annotations

import os

os.environ.setdefault("JOBBOARD_OTEL_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from app.core.config import get_settings
from app.main import app
from app.services.repository import get_repository
from tests.fakes import TEST_BASE_URL, TEST_SECRET, FakeJobBoardRepository


@pytest.fixture
def fake_repo() -> FakeJobBoardRepository:
    return FakeJobBoardRepository()


@pytest.fixture
def api_client(fake_repo: FakeJobBoardRepository) -> TestClient:
    os.environ["JOBBOARD_APP_SECRET"] = TEST_SECRET
    os.environ["JOBBOARD_BASE_URL"] = TEST_BASE_URL
    os.environ.pop("JOBBOARD_DATABASE_URL", None)
    get_settings.cache_clear()

    app.dependency_overrides[get_repository] = lambda: fake_repo

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
    os.environ.pop("JOBBOARD_APP_SECRET", None)
    os.environ.pop("JOBBOARD_BASE_URL", None)
    get_settings.cache_clear()
