"""
MongoDB connection lifecycle.

The connection attempt is launched as a background task at startup so the
HTTP listener never waits on the data store. The attempt runs once; its
outcome is logged and kept as queryable status for route handlers.
"""

import asyncio
from enum import Enum
from typing import Any, Callable, Optional

from pymongo import AsyncMongoClient

from api.src.config import Settings
from api.src.errors import DatabaseUnavailableError
from shared.logging import LoggerMixin


class DatabaseStatus(str, Enum):
    """Connection state of the data store."""

    PENDING = "pending"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"
    CLOSED = "closed"


def redact_uri(uri: str) -> str:
    """Strip scheme and credentials from a connection URI for logging."""
    return uri.split("@")[-1].split("://")[-1]


class MongoDatabase(LoggerMixin):
    """Process-scoped MongoDB connection handle."""

    def __init__(
        self,
        uri: str,
        default_database: str,
        server_selection_timeout_ms: int = 30000,
        connect_timeout_ms: int = 10000,
        app_name: Optional[str] = None,
        client_factory: Callable[..., Any] = AsyncMongoClient,
    ):
        """
        Initialize the connection handle without touching the network.

        Args:
            uri: MongoDB connection URI
            default_database: Database used when the URI names none
            server_selection_timeout_ms: Server selection timeout for the attempt
            connect_timeout_ms: Socket connect timeout
            app_name: Application name reported to the server
            client_factory: Client constructor (AsyncMongoClient)
        """
        self.uri = uri
        self.default_database = default_database
        self.server_selection_timeout_ms = server_selection_timeout_ms
        self.connect_timeout_ms = connect_timeout_ms
        self.app_name = app_name
        self._client_factory = client_factory

        self.client: Optional[Any] = None
        self.status = DatabaseStatus.PENDING
        self.error: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "MongoDatabase":
        return cls(
            uri=settings.mongodb_uri,
            default_database=settings.mongodb_database,
            server_selection_timeout_ms=settings.mongodb_server_selection_timeout_ms,
            connect_timeout_ms=settings.mongodb_connect_timeout_ms,
            app_name=settings.app_name,
        )

    @property
    def is_connected(self) -> bool:
        return self.status == DatabaseStatus.CONNECTED

    def start(self) -> asyncio.Task:
        """
        Launch the connection attempt in the background.

        Must be called from a running event loop. Calling it again returns
        the task of the first attempt.

        Returns:
            The task running the attempt
        """
        if self._task is None:
            self.status = DatabaseStatus.CONNECTING
            self.logger.info("mongodb_connecting", host=redact_uri(self.uri))
            self._task = asyncio.create_task(self._connect(), name="mongodb-connect")
        return self._task

    async def wait(self) -> DatabaseStatus:
        """Wait for the connection attempt to settle and return the status."""
        if self._task is not None and not self._task.done():
            await asyncio.shield(self._task)
        return self.status

    async def _connect(self) -> DatabaseStatus:
        try:
            self.client = self._client_factory(
                self.uri,
                serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                connectTimeoutMS=self.connect_timeout_ms,
                appname=self.app_name,
            )
            await self.client.admin.command("ping")
        except Exception as e:
            self.status = DatabaseStatus.FAILED
            self.error = str(e)
            self.logger.error(
                "mongodb_connection_failed",
                host=redact_uri(self.uri),
                error=str(e)
            )
            return self.status

        self.status = DatabaseStatus.CONNECTED
        self.logger.info(
            "mongodb_connected",
            host=redact_uri(self.uri),
            database=self.get_database().name
        )
        return self.status

    def get_database(self) -> Any:
        """
        Get the default database of the established connection.

        Returns:
            pymongo AsyncDatabase

        Raises:
            DatabaseUnavailableError: If the connection is not established
        """
        if self.client is None or self.status != DatabaseStatus.CONNECTED:
            raise DatabaseUnavailableError()
        return self.client.get_default_database(default=self.default_database)

    async def close(self) -> None:
        """Cancel a pending attempt and close the client."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        if self.client is not None:
            await self.client.close()
            self.client = None
            self.logger.info("mongodb_connection_closed")

        self.status = DatabaseStatus.CLOSED
