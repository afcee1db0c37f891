"""
Connection status for banners and retry prompts.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from config import RECONNECTING_CLEAR_SECONDS
from repositories.interfaces import CONNECTED_PATH, ILobbyStore

logger = logging.getLogger("lobby_sync.services.connection_status")


class ConnectionStatusMonitor:
    """
    Tracks /.info/connected for one client.

    ``is_reconnecting`` turns true on a disconnected -> connected transition
    and clears itself ``clear_after`` seconds later. The monitor assumes a
    connected client until the first reading says otherwise.
    """

    def __init__(
        self,
        store: ILobbyStore,
        clear_after: float | None = None,
        on_change: Callable[["ConnectionStatusMonitor"], None] | None = None,
    ):
        self.store = store
        self.clear_after = clear_after if clear_after is not None else RECONNECTING_CLEAR_SECONDS
        self.on_change = on_change
        self.is_connected = True
        self.is_reconnecting = False
        self._unsubscribe: Callable[[], None] | None = None
        self._clear_handle: asyncio.TimerHandle | None = None

    @property
    def running(self) -> bool:
        return self._unsubscribe is not None

    async def start(self) -> None:
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self.store.subscribe(CONNECTED_PATH, self._handle_value)
        self._handle_value(await self.store.get(CONNECTED_PATH))

    def _handle_value(self, value: Any) -> None:
        if self._unsubscribe is None:
            return
        connected = value is True
        reconnecting = not self.is_connected and connected
        if connected != self.is_connected:
            logger.info(f"Connection {'restored' if connected else 'lost'}")
        self.is_connected = connected
        self.is_reconnecting = reconnecting
        self._cancel_clear()
        if connected:
            loop = asyncio.get_running_loop()
            self._clear_handle = loop.call_later(self.clear_after, self._clear_reconnecting)
        self._emit()

    def _clear_reconnecting(self) -> None:
        self._clear_handle = None
        if self.is_reconnecting:
            self.is_reconnecting = False
            self._emit()

    def _cancel_clear(self) -> None:
        if self._clear_handle is not None:
            self._clear_handle.cancel()
            self._clear_handle = None

    def _emit(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    def stop(self) -> None:
        self._cancel_clear()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
