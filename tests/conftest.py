"""
Shared fixtures for the API test suite.

Applications are built with an unreachable MongoDB target and short
timeouts, so the background connection attempt settles quickly and no
test depends on a running database.
"""

import pytest
from typing import Callable, Iterator, Mapping, Optional

from fastapi import APIRouter, FastAPI
from fastapi.testclient import TestClient

from api.src.app import create_app
from api.src.config import Settings, clear_settings_cache

UNREACHABLE_MONGODB_URI = "mongodb://127.0.0.1:1/food-delivery"


@pytest.fixture(autouse=True)
def isolated_settings_cache() -> Iterator[None]:
    """Every test starts with a fresh settings cache."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def settings() -> Settings:
    """Settings for an application that never reaches a database."""
    return Settings(
        environment="development",
        mongodb_uri=UNREACHABLE_MONGODB_URI,
        mongodb_server_selection_timeout_ms=200,
        mongodb_connect_timeout_ms=200,
    )


@pytest.fixture
def app_factory(settings: Settings) -> Callable[..., FastAPI]:
    """Build applications from the test settings plus overrides."""

    def factory(
        routers: Optional[Mapping[str, APIRouter]] = None,
        **overrides,
    ) -> FastAPI:
        app_settings = settings.model_copy(update=overrides) if overrides else settings
        return create_app(app_settings, routers=routers)

    return factory


@pytest.fixture
def app(app_factory: Callable[..., FastAPI]) -> FastAPI:
    return app_factory()


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    """Test client with the application lifespan running."""
    with TestClient(app) as test_client:
        yield test_client
