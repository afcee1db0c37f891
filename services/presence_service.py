"""
PresenceService: online/offline markers driven by transport connectivity.

Publishing side: every time /.info/connected turns true, the client queues a
server-side on-disconnect write of {state: offline} and then writes
{state: online}, both stamped with the server clock. The on-disconnect write
does not survive a reconnect, so it is queued again on every transition.

Watching side: each identity under /status/{id} gets its own listener and
its own record.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from domain.models.presence import OFFLINE, ONLINE, Presence
from repositories.interfaces import CONNECTED_PATH, SERVER_TIMESTAMP, ILobbyStore, StoreError
from repositories.paths import status_path
from services.interfaces import IPresenceService

logger = logging.getLogger("lobby_sync.services.presence")

ONLINE_RECORD = {"state": ONLINE, "last_changed": SERVER_TIMESTAMP}
OFFLINE_RECORD = {"state": OFFLINE, "last_changed": SERVER_TIMESTAMP}


class PresenceRegistration:
    """
    Keeps one identity's /status record in step with connectivity.

    ``close()`` stops listening for connectivity changes; the on-disconnect
    write already queued on the server stays armed.
    """

    def __init__(self, store: ILobbyStore, identity_id: str):
        self.store = store
        self.identity_id = identity_id
        self.arm_count = 0
        self._unsubscribe: Callable[[], None] | None = None
        self._pending: set[asyncio.Task] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> None:
        self._unsubscribe = self.store.subscribe(CONNECTED_PATH, self._handle_connected)
        if await self.store.get(CONNECTED_PATH) is True:
            await self._mark_online()

    def _handle_connected(self, value: Any) -> None:
        if value is not True or self._closed:
            return
        task = asyncio.get_running_loop().create_task(self._mark_online())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _mark_online(self) -> None:
        path = status_path(self.identity_id)
        try:
            await self.store.on_disconnect(path).set(dict(OFFLINE_RECORD))
            await self.store.set(path, dict(ONLINE_RECORD))
        except StoreError as exc:
            # The next transition to connected tries again
            logger.warning(f"Could not publish presence for {self.identity_id}: {exc}")
            return
        self.arm_count += 1
        logger.debug(f"Presence armed for {self.identity_id} ({self.arm_count})")

    async def settle(self) -> None:
        """Wait for presence writes triggered by connectivity callbacks."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()


class PresenceWatch:
    """
    Presence of a fixed roster of identities.

    A missing /status record reads as offline with no last-seen time.
    """

    def __init__(
        self,
        store: ILobbyStore,
        identity_ids: list[str],
        on_change: Callable[["PresenceWatch"], None] | None = None,
    ):
        self.store = store
        self.identity_ids = list(dict.fromkeys(identity_ids))
        self.on_change = on_change
        self._records: dict[str, Presence | None] = {uid: None for uid in self.identity_ids}
        self._versions: dict[str, int] = {uid: 0 for uid in self.identity_ids}
        self._unsubscribes: list[Callable[[], None]] = []
        self._closed = False

    @property
    def presence_data(self) -> dict[str, Presence]:
        return {uid: record for uid, record in self._records.items() if record is not None}

    def is_online(self, identity_id: str) -> bool:
        record = self._records.get(identity_id)
        return record is not None and record.is_online

    def last_seen(self, identity_id: str) -> datetime | None:
        record = self._records.get(identity_id)
        if record is None:
            return None
        return record.last_changed_at

    async def start(self) -> None:
        for uid in self.identity_ids:
            self._unsubscribes.append(
                self.store.subscribe(
                    status_path(uid), lambda value, uid=uid: self._handle_value(uid, value)
                )
            )
        for uid in self.identity_ids:
            version = self._versions[uid]
            try:
                value = await self.store.get(status_path(uid))
            except StoreError as exc:
                logger.warning(f"Initial presence read for {uid} failed: {exc}")
                continue
            if version == self._versions[uid]:
                self._apply(uid, value)

    def _handle_value(self, identity_id: str, value: Any) -> None:
        self._versions[identity_id] += 1
        self._apply(identity_id, value)

    def _apply(self, identity_id: str, value: Any) -> None:
        if self._closed:
            return
        self._records[identity_id] = Presence.from_dict(value) if value else None
        if self.on_change is not None:
            self.on_change(self)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes.clear()


class PresenceService(IPresenceService):
    def __init__(self, store: ILobbyStore):
        self.store = store

    async def setup_presence(self, identity_id: str) -> PresenceRegistration:
        registration = PresenceRegistration(self.store, identity_id)
        await registration.start()
        logger.info(f"Presence tracking started for {identity_id}")
        return registration

    async def watch_presence(
        self,
        identity_ids: list[str],
        on_change: Callable[[PresenceWatch], None] | None = None,
    ) -> PresenceWatch:
        watch = PresenceWatch(self.store, identity_ids, on_change=on_change)
        await watch.start()
        return watch
