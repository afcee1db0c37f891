"""
Service container for dependency injection and initialization.

This module centralizes creation and wiring of the store, the identity
provider and the lobby services.

Usage:
    container = ServiceContainer(config)
    await container.initialize()

    # Access services
    lifecycle = container.lifecycle_service
    views = container.view_service
"""

import logging
from dataclasses import dataclass
from typing import Any

from config import (
    AUTH_RETRY_DELAY_SECONDS,
    LOBBY_CODE_MAX_RETRIES,
    LOBBY_CREATE_ATTEMPTS,
    RECONNECTING_CLEAR_SECONDS,
    STORE_LATENCY_SECONDS,
)
from repositories.memory_identity import InMemoryIdentityProvider
from repositories.memory_store import InMemoryDatabase, InMemoryLobbyStore
from utils.clock import MonotonicMillisClock

logger = logging.getLogger("lobby_sync.infrastructure.container")


@dataclass
class ServiceConfig:
    """Configuration for service initialization."""

    # Store
    store_latency: float = STORE_LATENCY_SECONDS

    # Lobby codes
    max_code_retries: int = LOBBY_CODE_MAX_RETRIES
    create_attempts: int = LOBBY_CREATE_ATTEMPTS

    # Session
    auth_retry_delay: float = AUTH_RETRY_DELAY_SECONDS
    reconnecting_clear_seconds: float = RECONNECTING_CLEAR_SECONDS

    client_id: str | None = None


class ServiceContainer:
    """
    Central container for one client's services.

    Handles initialization order and dependency injection. A shared
    InMemoryDatabase may be passed in so several containers act as separate
    clients of the same backend.

    Example:
        container = ServiceContainer(config)
        await container.initialize()
        result = await container.lifecycle_service.create_lobby(uid)
    """

    def __init__(
        self,
        config: ServiceConfig | None = None,
        database: InMemoryDatabase | None = None,
    ):
        self.config = config or ServiceConfig()
        self._database = database
        self._initialized = False
        self._store: InMemoryLobbyStore | None = None
        self._identity_provider: InMemoryIdentityProvider | None = None
        self._services: dict[str, Any] = {}

    @property
    def is_initialized(self) -> bool:
        """Check if container has been initialized."""
        return self._initialized

    async def initialize(self) -> None:
        """
        Initialize store and services in order.

        This method is idempotent - calling it multiple times has no effect.
        """
        if self._initialized:
            logger.debug("ServiceContainer already initialized, skipping")
            return

        logger.info("Initializing ServiceContainer...")
        self._init_store()
        self._init_services()
        await self._services["connection_status"].start()
        self._initialized = True
        logger.info("ServiceContainer initialization complete")

    def _init_store(self) -> None:
        logger.debug("Initializing in-memory store")
        if self._database is None:
            self._database = InMemoryDatabase(MonotonicMillisClock())
        self._store = InMemoryLobbyStore(
            self._database,
            latency=self.config.store_latency,
            client_id=self.config.client_id,
        )
        self._identity_provider = InMemoryIdentityProvider(latency=self.config.store_latency)

    def _init_services(self) -> None:
        logger.debug("Initializing services")

        from services.connection_status_service import ConnectionStatusMonitor
        from services.identity_service import IdentityService
        from services.lobby_lifecycle_service import LobbyLifecycleService
        from services.lobby_view_service import LobbyViewService
        from services.presence_service import PresenceService

        self._services["lifecycle"] = LobbyLifecycleService(
            self._store,
            clock=self._database.clock,
            max_code_retries=self.config.max_code_retries,
            create_attempts=self.config.create_attempts,
        )
        self._services["view"] = LobbyViewService(self._store)
        self._services["presence"] = PresenceService(self._store)
        self._services["identity"] = IdentityService(
            self._identity_provider,
            self._services["presence"],
            retry_delay=self.config.auth_retry_delay,
        )
        self._services["connection_status"] = ConnectionStatusMonitor(
            self._store, clear_after=self.config.reconnecting_clear_seconds
        )

    async def shutdown(self) -> None:
        """Release listeners and close the store connection."""
        if not self._initialized:
            return
        logger.info("Shutting down ServiceContainer...")
        self._services["identity"].close()
        self._services["connection_status"].stop()
        await self._store.close()
        self._services.clear()
        self._initialized = False

    def _require(self, name: str) -> Any:
        if not self._initialized:
            raise RuntimeError("ServiceContainer not initialized. Call initialize() first.")
        return self._services[name]

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def database(self) -> InMemoryDatabase | None:
        return self._database

    @property
    def store(self) -> InMemoryLobbyStore:
        if self._store is None:
            raise RuntimeError("ServiceContainer not initialized. Call initialize() first.")
        return self._store

    @property
    def identity_provider(self) -> InMemoryIdentityProvider:
        if self._identity_provider is None:
            raise RuntimeError("ServiceContainer not initialized. Call initialize() first.")
        return self._identity_provider

    @property
    def lifecycle_service(self):
        return self._require("lifecycle")

    @property
    def view_service(self):
        return self._require("view")

    @property
    def presence_service(self):
        return self._require("presence")

    @property
    def identity_service(self):
        return self._require("identity")

    @property
    def connection_status(self):
        return self._require("connection_status")
