"""
LobbyViewService: live snapshots of a single lobby.

A LobbyView subscribes to /lobbies/{code} and always holds a whole Lobby
value taken from one store read or one change notification, never a mix of
fields from two writes. Store errors are translated into Result-style error
codes on the view.
"""

import logging
from collections.abc import Callable
from typing import Any

from domain.models.lobby import Lobby
from repositories.interfaces import ILobbyStore, StoreConnectionError, StoreError
from repositories.paths import lobby_path
from services import error_codes
from services.interfaces import ILobbyViewService
from services.result import Result
from utils.lobby_code import normalize_lobby_code, validate_lobby_code

logger = logging.getLogger("lobby_sync.services.lobby_view")

CONNECTION_ERROR_MESSAGE = "Connection error. Please check your network."


class LobbyView:
    """
    Current state of one lobby as seen by a client.

    Attributes:
        lobby: Latest snapshot, or None before the first read / after deletion
        loading: True until the first read or notification resolves
        error: Human-readable error, None when healthy
        error_code: Code from services.error_codes matching ``error``

    A connection error keeps the last good ``lobby`` so the caller can decide
    how to present a retry. ``close()`` releases the store listener at once;
    no callbacks run after it returns.
    """

    def __init__(
        self,
        store: ILobbyStore,
        code: str,
        on_update: Callable[["LobbyView"], None] | None = None,
    ):
        self.store = store
        self.code = normalize_lobby_code(code)
        self.on_update = on_update
        self.lobby: Lobby | None = None
        self.loading = True
        self.error: str | None = None
        self.error_code: str | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._closed = False
        self._version = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_active(self) -> bool:
        return self._unsubscribe is not None and not self._closed

    def as_result(self) -> Result[Lobby]:
        if self.error:
            return Result.fail(self.error, code=self.error_code)
        return Result.ok(self.lobby)

    async def start(self) -> None:
        """Attach the listener, then issue the initial point read."""
        if self._closed or self._unsubscribe is not None:
            return
        if not validate_lobby_code(self.code):
            self._set_error("Invalid lobby code", error_codes.VALIDATION_ERROR, keep_lobby=False)
            return

        self._unsubscribe = self.store.subscribe(
            lobby_path(self.code), self._handle_value, self._handle_error
        )
        version = self._version
        try:
            data = await self.store.get(lobby_path(self.code))
        except StoreError as exc:
            if version == self._version:
                self._handle_error(exc)
            return
        # A notification that arrived while the read was in flight is newer
        if version == self._version:
            self._apply(data)

    async def refetch(self) -> Result[Lobby]:
        """One-shot pull outside of the listener."""
        if self._closed:
            return Result.fail("View is closed", code=error_codes.VALIDATION_ERROR)
        if not validate_lobby_code(self.code):
            return Result.fail("Invalid lobby code", code=error_codes.VALIDATION_ERROR)
        self.loading = True
        self.error = None
        self.error_code = None
        version = self._version
        try:
            data = await self.store.get(lobby_path(self.code))
        except StoreError as exc:
            if version == self._version:
                self._handle_error(exc)
            return self.as_result()
        # A notification delivered during the read already holds newer data
        if version == self._version:
            self._version += 1
            self._apply(data)
        return self.as_result()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            logger.debug(f"Released listener for lobby {self.code}")

    # -- Store callbacks --

    def _handle_value(self, data: Any) -> None:
        self._version += 1
        self._apply(data)

    def _handle_error(self, exc: Exception) -> None:
        if self._closed:
            return
        logger.warning(f"Listener error for lobby {self.code}: {exc}")
        if isinstance(exc, StoreConnectionError):
            self._set_error(CONNECTION_ERROR_MESSAGE, error_codes.CONNECTION_ERROR)
        else:
            self._set_error("Failed to load lobby data", error_codes.STORE_ERROR)

    def _apply(self, data: Any) -> None:
        if self._closed:
            return
        if data is None:
            self._set_error("Lobby not found", error_codes.LOBBY_NOT_FOUND, keep_lobby=False)
            return
        self.lobby = Lobby.from_dict(data, self.code)
        self.loading = False
        self.error = None
        self.error_code = None
        self._emit()

    def _set_error(self, message: str, code: str, keep_lobby: bool = True) -> None:
        if not keep_lobby:
            self.lobby = None
        self.loading = False
        self.error = message
        self.error_code = code
        self._emit()

    def _emit(self) -> None:
        if self.on_update is not None and not self._closed:
            self.on_update(self)


class LobbyViewService(ILobbyViewService):
    """Opens LobbyViews and offers the callback-style subscribe API."""

    def __init__(self, store: ILobbyStore):
        self.store = store

    async def open_view(
        self, code: str, on_update: Callable[[LobbyView], None] | None = None
    ) -> LobbyView:
        view = LobbyView(self.store, code, on_update=on_update)
        await view.start()
        return view

    async def subscribe_lobby(
        self,
        code: str,
        on_snapshot: Callable[[Lobby], None],
        on_error: Callable[[Result], None] | None = None,
    ) -> Callable[[], None]:
        """
        Deliver the current snapshot, then a full snapshot after every change.

        Errors (not found, connection) go to ``on_error`` as failed Results.
        The returned callable unsubscribes and is safe to call twice.
        """

        def relay(view: LobbyView) -> None:
            if view.error:
                if on_error is not None:
                    on_error(Result.fail(view.error, code=view.error_code))
            elif view.lobby is not None:
                on_snapshot(view.lobby)

        view = await self.open_view(code, on_update=relay)
        return view.close

    async def refetch_lobby(self, code: str) -> Result[Lobby]:
        code = normalize_lobby_code(code)
        if not validate_lobby_code(code):
            return Result.fail("Invalid lobby code", code=error_codes.VALIDATION_ERROR)
        try:
            data = await self.store.get(lobby_path(code))
        except StoreConnectionError as exc:
            logger.warning(f"Refetch of lobby {code} failed: {exc}")
            return Result.fail(CONNECTION_ERROR_MESSAGE, code=error_codes.CONNECTION_ERROR)
        except StoreError as exc:
            logger.error(f"Refetch of lobby {code} failed: {exc}", exc_info=True)
            return Result.fail("Failed to load lobby data", code=error_codes.STORE_ERROR)
        if data is None:
            return Result.fail("Lobby not found", code=error_codes.LOBBY_NOT_FOUND)
        return Result.ok(Lobby.from_dict(data, code))
