"""
Abstract interfaces for the realtime store and the identity provider.

These interfaces define the contracts the lobby services are written against.
Concrete backends (the in-memory store, or an adapter for a hosted realtime
database) implement them.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

# Placeholder resolved to the store's clock (milliseconds) at write time
SERVER_TIMESTAMP = {".sv": "timestamp"}

# Return this from a transaction update function to leave the value untouched
TRANSACTION_ABORT = object()

CONNECTED_PATH = "/.info/connected"

Unsubscribe = Callable[[], None]


class StoreError(Exception):
    """The store rejected or failed an operation."""


class StoreConnectionError(StoreError):
    """The store could not be reached."""


class IdentityError(Exception):
    """Anonymous identity could not be acquired."""


@dataclass(frozen=True)
class TransactionResult:
    """Outcome of ILobbyStore.transaction."""

    committed: bool
    value: Any = None


class IOnDisconnect(ABC):
    """Write queued on the server, executed when this client's connection drops."""

    @abstractmethod
    async def set(self, value: Any) -> None: ...

    @abstractmethod
    async def cancel(self) -> None: ...


class ILobbyStore(ABC):
    """
    Tree-shaped key-value store with point reads, point writes and change
    subscriptions.

    Paths are slash-separated (``/lobbies/ABC123/players/u1``). Writing None
    deletes, and a node with no children does not exist. Writes to a single
    path are observed by every subscriber in commit order.
    """

    @abstractmethod
    async def get(self, path: str) -> Any:
        """Return a copy of the value at ``path``, or None if absent."""
        ...

    @abstractmethod
    async def exists(self, path: str) -> bool: ...

    @abstractmethod
    async def set(self, path: str, value: Any) -> None:
        """Replace the value at ``path``."""
        ...

    @abstractmethod
    async def update(self, path: str, values: dict[str, Any]) -> None:
        """Merge ``values`` into the node at ``path``; keys may be relative sub-paths."""
        ...

    @abstractmethod
    async def remove(self, path: str) -> None: ...

    @abstractmethod
    async def transaction(
        self, path: str, update_fn: Callable[[Any], Any]
    ) -> TransactionResult:
        """
        Atomically read-modify-write the value at ``path``.

        ``update_fn`` receives the current value (None if absent) and returns
        the new value, None to delete, or TRANSACTION_ABORT to leave it alone.
        It may be invoked more than once and must not have side effects
        beyond recording its decision.
        """
        ...

    @abstractmethod
    def subscribe(
        self,
        path: str,
        on_change: Callable[[Any], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> Unsubscribe:
        """
        Call ``on_change`` with the new value every time the value at ``path``
        changes. Does not fire for the value current at subscription time.
        The returned callable releases the listener and is idempotent.
        """
        ...

    @abstractmethod
    def on_disconnect(self, path: str) -> IOnDisconnect: ...


class IIdentityProvider(ABC):
    @abstractmethod
    async def sign_in_anonymously(self) -> str:
        """Acquire an anonymous identity and return its id. Raises IdentityError."""
        ...

    @property
    @abstractmethod
    def current_identity(self) -> str | None: ...
