"""
Service layer interfaces (ABCs).

These abstract base classes define the contracts for the lobby services.
UI handlers and tests depend on these, not on the concrete classes.

Usage:
    class LobbyLifecycleService(ILobbyLifecycleService):
        async def create_lobby(self, user_id: str, name: str | None = None) -> Result[str]:
            ...
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from domain.models.lobby import Lobby
    from services.lobby_view_service import LobbyView
    from services.presence_service import PresenceRegistration, PresenceWatch
    from services.result import Result


class ILobbyLifecycleService(ABC):
    """Create, join and leave lobbies while keeping membership invariants."""

    @abstractmethod
    async def create_lobby(self, user_id: str, name: str | None = None) -> "Result[str]":
        """Create a lobby led by ``user_id``; the value is the new code."""
        ...

    @abstractmethod
    async def join_lobby(self, code: str, user_id: str, name: str | None = None) -> "Result[None]":
        """Join, or reconnect to, an existing lobby."""
        ...

    @abstractmethod
    async def leave_lobby(self, code: str, user_id: str) -> "Result[None]":
        """Leave a lobby, handing on leadership or deleting the lobby as needed."""
        ...

    @abstractmethod
    async def start_game(self, code: str, user_id: str) -> "Result[None]":
        """Leader-only transition from waiting to playing."""
        ...

    @abstractmethod
    async def set_connected(self, code: str, user_id: str, connected: bool) -> "Result[None]":
        """Flip a member's connection flag without touching membership."""
        ...

    @abstractmethod
    async def get_lobby(self, code: str) -> "Result[Lobby]":
        """One-shot read of a lobby."""
        ...


class ILobbyViewService(ABC):
    """Live, self-consistent snapshots of a single lobby."""

    @abstractmethod
    async def subscribe_lobby(
        self,
        code: str,
        on_snapshot: Callable[["Lobby"], None],
        on_error: Callable[["Result"], None] | None = None,
    ) -> Callable[[], None]:
        """Read ``code`` now, then stream snapshots; returns an idempotent unsubscribe."""
        ...

    @abstractmethod
    async def refetch_lobby(self, code: str) -> "Result[Lobby]":
        """Point read outside any live subscription."""
        ...

    @abstractmethod
    async def open_view(
        self, code: str, on_update: Callable[["LobbyView"], None] | None = None
    ) -> "LobbyView":
        """Open a stateful view (lobby, loading, error) on ``code``."""
        ...


class IPresenceService(ABC):
    """Online/offline tracking driven by transport connectivity."""

    @abstractmethod
    async def setup_presence(self, identity_id: str) -> "PresenceRegistration":
        """Publish presence for ``identity_id`` until the registration is closed."""
        ...

    @abstractmethod
    async def watch_presence(
        self,
        identity_ids: list[str],
        on_change: Callable[["PresenceWatch"], None] | None = None,
    ) -> "PresenceWatch":
        """Track presence of each id independently."""
        ...
