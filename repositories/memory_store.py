"""
In-memory realtime store.

InMemoryDatabase holds the shared tree and the listener registry. Each
InMemoryLobbyStore is one client connection to it, with its own connectivity
flag and its own queue of on-disconnect writes, so several simulated clients
can share one database the way browsers share a hosted realtime database.

Every client call yields to the event loop before touching the tree, which
stands in for the network round trip. The mutation itself is applied without
further suspension, so a single call (including a transaction) is atomic.
"""

import asyncio
import copy
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from repositories.interfaces import (
    CONNECTED_PATH,
    SERVER_TIMESTAMP,
    TRANSACTION_ABORT,
    ILobbyStore,
    IOnDisconnect,
    StoreConnectionError,
    StoreError,
    TransactionResult,
    Unsubscribe,
)
from repositories.paths import join_path, split_path
from utils.clock import MonotonicMillisClock

logger = logging.getLogger("lobby_sync.repositories.memory_store")

_CONNECTED_SEGMENTS = split_path(CONNECTED_PATH)
_client_ids = itertools.count(1)


def _resolve_server_values(value: Any, now_ms: int) -> Any:
    if isinstance(value, dict):
        if value == SERVER_TIMESTAMP:
            return now_ms
        return {key: _resolve_server_values(child, now_ms) for key, child in value.items()}
    return value


def _prune(value: Any) -> Any:
    """Drop None leaves and empty nodes, as a tree store does."""
    if isinstance(value, dict):
        pruned = {}
        for key, child in value.items():
            child = _prune(child)
            if child is not None:
                pruned[str(key)] = child
        return pruned or None
    return value


def _related(a: list[str], b: list[str]) -> bool:
    """True if one path is an ancestor of (or equal to) the other."""
    shortest = min(len(a), len(b))
    return a[:shortest] == b[:shortest]


@dataclass
class _Subscription:
    id: int
    segments: list[str]
    client: "InMemoryLobbyStore"
    on_change: Callable[[Any], None]
    on_error: Callable[[Exception], None] | None
    last_value: Any = None
    active: bool = True


class InMemoryDatabase:
    """The shared tree plus every client's listeners."""

    def __init__(self, clock: MonotonicMillisClock | None = None):
        self.clock = clock or MonotonicMillisClock()
        self._root: dict = {}
        self._subscriptions: dict[int, _Subscription] = {}
        self._ids = itertools.count(1)

    # -- Reads --

    def _node(self, segments: list[str]) -> Any:
        node: Any = self._root
        for segment in segments:
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        return node

    def read(self, segments: list[str]) -> Any:
        node = self._node(segments)
        if node == {}:
            return None
        return copy.deepcopy(node)

    def snapshot(self) -> dict:
        """Copy of the whole tree, for inspection in tests and tooling."""
        return copy.deepcopy(self._root)

    # -- Writes --

    def _put(self, segments: list[str], value: Any) -> bool:
        value = _prune(_resolve_server_values(copy.deepcopy(value), self.clock.now_ms()))
        if self.read(segments) == value:
            return False
        if not segments:
            self._root = value if isinstance(value, dict) else {}
            return True
        if value is None:
            self._delete(segments)
            return True
        node = self._root
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = {}
                node[segment] = child
            node = child
        node[segments[-1]] = value
        return True

    def _delete(self, segments: list[str]) -> None:
        trail = [self._root]
        for segment in segments[:-1]:
            child = trail[-1].get(segment)
            if not isinstance(child, dict):
                return
            trail.append(child)
        trail[-1].pop(segments[-1], None)
        # Remove parents left without children
        for depth in range(len(trail) - 1, 0, -1):
            if trail[depth]:
                break
            del trail[depth - 1][segments[depth - 1]]

    def write(self, segments: list[str], value: Any) -> bool:
        changed = self._put(segments, value)
        if changed:
            self._notify([segments])
        return changed

    def write_many(self, segments: list[str], values: dict[str, Any]) -> bool:
        changed_paths = []
        for relative, value in values.items():
            target = segments + split_path(relative)
            if self._put(target, value):
                changed_paths.append(target)
        if changed_paths:
            self._notify(changed_paths)
        return bool(changed_paths)

    # -- Listeners --

    def add_subscription(
        self,
        segments: list[str],
        client: "InMemoryLobbyStore",
        on_change: Callable[[Any], None],
        on_error: Callable[[Exception], None] | None,
    ) -> _Subscription:
        subscription = _Subscription(
            id=next(self._ids),
            segments=segments,
            client=client,
            on_change=on_change,
            on_error=on_error,
            last_value=self.read(segments),
        )
        self._subscriptions[subscription.id] = subscription
        return subscription

    def remove_subscription(self, subscription_id: int) -> None:
        subscription = self._subscriptions.pop(subscription_id, None)
        if subscription:
            subscription.active = False

    def subscriptions_for(self, client: "InMemoryLobbyStore") -> list[_Subscription]:
        return [s for s in self._subscriptions.values() if s.client is client]

    def listener_count(self, path: str | None = None) -> int:
        if path is None:
            return len(self._subscriptions)
        segments = split_path(path)
        return sum(1 for s in self._subscriptions.values() if s.segments == segments)

    def _notify(self, changed_paths: list[list[str]]) -> None:
        for subscription in list(self._subscriptions.values()):
            if any(_related(subscription.segments, path) for path in changed_paths):
                subscription.client._deliver(subscription)


class _InMemoryOnDisconnect(IOnDisconnect):
    def __init__(self, client: "InMemoryLobbyStore", segments: list[str]):
        self._client = client
        self._segments = segments

    async def set(self, value: Any) -> None:
        await self._client._round_trip()
        self._client._pending_on_disconnect[tuple(self._segments)] = copy.deepcopy(value)

    async def cancel(self) -> None:
        await self._client._round_trip()
        self._client._pending_on_disconnect.pop(tuple(self._segments), None)


class InMemoryLobbyStore(ILobbyStore):
    """
    One client connection to an InMemoryDatabase.

    Besides the ILobbyStore contract it exposes simulation hooks:
    ``disconnect()`` (connection loss, runs queued on-disconnect writes),
    ``connect()`` (re-establish, catch listeners up), ``close()`` and
    ``fail_listeners()``.
    """

    def __init__(
        self,
        database: InMemoryDatabase | None = None,
        latency: float = 0.0,
        client_id: str | None = None,
    ):
        self.database = database or InMemoryDatabase()
        self.latency = latency
        self.client_id = client_id or f"client-{next(_client_ids)}"
        self._connected = True
        self._pending_on_disconnect: dict[tuple[str, ...], Any] = {}
        self._connected_listeners: dict[int, Callable[[Any], None]] = {}
        self._listener_ids = itertools.count(1)

    @property
    def connected(self) -> bool:
        return self._connected

    async def _round_trip(self) -> None:
        await asyncio.sleep(self.latency)
        if not self._connected:
            raise StoreConnectionError(f"{self.client_id} is offline")

    @staticmethod
    def _writable(path: str) -> list[str]:
        segments = split_path(path)
        if segments and segments[0] == ".info":
            raise StoreError(f"Permission denied: {join_path(*segments)} is read-only")
        return segments

    # -- ILobbyStore --

    async def get(self, path: str) -> Any:
        segments = split_path(path)
        if segments == _CONNECTED_SEGMENTS:
            await asyncio.sleep(self.latency)
            return self._connected
        await self._round_trip()
        return self.database.read(segments)

    async def exists(self, path: str) -> bool:
        return await self.get(path) is not None

    async def set(self, path: str, value: Any) -> None:
        segments = self._writable(path)
        await self._round_trip()
        self.database.write(segments, value)

    async def update(self, path: str, values: dict[str, Any]) -> None:
        if not isinstance(values, dict):
            raise StoreError("update() requires a mapping of child paths to values")
        segments = self._writable(path)
        await self._round_trip()
        self.database.write_many(segments, values)

    async def remove(self, path: str) -> None:
        await self.set(path, None)

    async def transaction(
        self, path: str, update_fn: Callable[[Any], Any]
    ) -> TransactionResult:
        segments = self._writable(path)
        await self._round_trip()
        current = self.database.read(segments)
        new_value = update_fn(current)
        if new_value is TRANSACTION_ABORT:
            return TransactionResult(committed=False, value=current)
        self.database.write(segments, new_value)
        return TransactionResult(committed=True, value=self.database.read(segments))

    def subscribe(
        self,
        path: str,
        on_change: Callable[[Any], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> Unsubscribe:
        segments = split_path(path)
        if segments == _CONNECTED_SEGMENTS:
            listener_id = next(self._listener_ids)
            self._connected_listeners[listener_id] = on_change

            def unsubscribe_connected() -> None:
                self._connected_listeners.pop(listener_id, None)

            return unsubscribe_connected

        subscription = self.database.add_subscription(segments, self, on_change, on_error)

        def unsubscribe() -> None:
            self.database.remove_subscription(subscription.id)

        return unsubscribe

    def on_disconnect(self, path: str) -> IOnDisconnect:
        return _InMemoryOnDisconnect(self, self._writable(path))

    # -- Delivery --

    def _deliver(self, subscription: _Subscription) -> None:
        if not subscription.active or not self._connected:
            return
        value = self.database.read(subscription.segments)
        if value == subscription.last_value:
            return
        subscription.last_value = copy.deepcopy(value)
        try:
            subscription.on_change(value)
        except Exception:
            logger.exception(
                f"Listener on {join_path(*subscription.segments)} raised; continuing fan-out"
            )

    def _emit_connected(self, value: bool) -> None:
        for listener in list(self._connected_listeners.values()):
            try:
                listener(value)
            except Exception:
                logger.exception("Connectivity listener raised; continuing fan-out")

    # -- Simulation hooks --

    @property
    def pending_on_disconnect(self) -> dict[str, Any]:
        return {join_path(*segments): value for segments, value in self._pending_on_disconnect.items()}

    async def disconnect(self) -> None:
        """Drop the connection as a crash or network loss would."""
        if not self._connected:
            return
        self._connected = False
        pending = list(self._pending_on_disconnect.items())
        self._pending_on_disconnect.clear()
        logger.info(f"{self.client_id} disconnected; running {len(pending)} on-disconnect write(s)")
        for segments, value in pending:
            self.database.write(list(segments), value)
        self._emit_connected(False)

    async def connect(self) -> None:
        """Re-establish the connection and deliver anything missed while offline."""
        if self._connected:
            return
        self._connected = True
        logger.info(f"{self.client_id} reconnected")
        self._emit_connected(True)
        for subscription in self.database.subscriptions_for(self):
            self._deliver(subscription)

    def fail_listeners(self, error: Exception, path: str | None = None) -> int:
        """
        Report a listener-level failure to this client's subscribers.

        Listeners stay registered. Returns the number of listeners notified.
        """
        target = split_path(path) if path is not None else None
        notified = 0
        for subscription in self.database.subscriptions_for(self):
            if target is not None and not _related(subscription.segments, target):
                continue
            if subscription.on_error:
                subscription.on_error(error)
                notified += 1
        return notified

    async def close(self) -> None:
        """Tear the client down: run on-disconnect writes and release every listener."""
        await self.disconnect()
        for subscription in self.database.subscriptions_for(self):
            self.database.remove_subscription(subscription.id)
        self._connected_listeners.clear()
