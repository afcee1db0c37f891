"""
Application services layer.

Services orchestrate lobby operations on top of the store interfaces.
"""

from services.connection_status_service import ConnectionStatusMonitor
from services.identity_service import IdentityService

# Service interfaces (ABCs)
from services.interfaces import (
    ILobbyLifecycleService,
    ILobbyViewService,
    IPresenceService,
)
from services.lobby_lifecycle_service import LobbyLifecycleService
from services.lobby_view_service import LobbyView, LobbyViewService
from services.presence_service import PresenceRegistration, PresenceService, PresenceWatch

# Result type for consistent error handling
from services.result import Result

__all__ = [
    # Concrete services
    "LobbyLifecycleService",
    "LobbyViewService",
    "LobbyView",
    "PresenceService",
    "PresenceRegistration",
    "PresenceWatch",
    "ConnectionStatusMonitor",
    "IdentityService",
    # Result type
    "Result",
    # Interfaces
    "ILobbyLifecycleService",
    "ILobbyViewService",
    "IPresenceService",
]
