"""Container fixtures for integration tests.

The MongoDB container is started once per session and only by the tests that
need a live server; they are skipped when Docker is not available.
"""

from typing import Iterator

import pytest
from testcontainers.mongodb import MongoDbContainer

from mongo_containers import start_mongodb_container


@pytest.fixture(scope="session")
def mongodb_container() -> Iterator[MongoDbContainer]:
    """Standalone MongoDB server.

    Yields:
        Started container; use get_connection_url() for the URI
    """
    container = start_mongodb_container()
    try:
        yield container
    finally:
        container.stop()


@pytest.fixture
def mongodb_uri(mongodb_container: MongoDbContainer) -> str:
    return mongodb_container.get_connection_url()
