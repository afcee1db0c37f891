"""
Pytest fixtures for tests.

Every fixture builds on one InMemoryDatabase driven by a controllable clock,
so server timestamps and joinedAt values are predictable. Stores created from
the same ``database`` fixture behave like separate devices on one backend.
"""

import pytest

from repositories.memory_store import InMemoryDatabase, InMemoryLobbyStore
from services.lobby_lifecycle_service import LobbyLifecycleService
from services.lobby_view_service import LobbyViewService
from services.presence_service import PresenceService
from utils.clock import MonotonicMillisClock
from utils.lobby_code import ALPHABET


# =============================================================================
# CENTRALIZED CONSTANTS
# =============================================================================

FIXED_EPOCH_SECONDS = 1_700_000_000.0
"""Wall-clock start for the fake clock (2023-11-14T22:13:20Z)."""

HOST_ID = "host-uid"
GUEST_ID = "guest-uid"
THIRD_ID = "third-uid"


class FakeTime:
    """Callable time source; advance() moves it forward in seconds."""

    def __init__(self, start: float = FIXED_EPOCH_SECONDS):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def code_bytes(*codes: str):
    """
    Random source that produces ``codes`` in order.

    Each code is encoded as the alphabet indices its characters map to.
    """
    queue = [bytes(ALPHABET.index(ch) for ch in code) for code in codes]

    def random_bytes(n: int) -> bytes:
        assert n == 6
        return queue.pop(0)

    return random_bytes


@pytest.fixture
def fake_time():
    return FakeTime()


@pytest.fixture
def clock(fake_time):
    return MonotonicMillisClock(fake_time)


@pytest.fixture
def database(clock):
    return InMemoryDatabase(clock)


@pytest.fixture
def store(database):
    """The client connection used by the host."""
    return InMemoryLobbyStore(database, client_id="host-device")


@pytest.fixture
def guest_store(database):
    """A second device on the same backend."""
    return InMemoryLobbyStore(database, client_id="guest-device")


@pytest.fixture
def lifecycle(store, clock):
    return LobbyLifecycleService(store, clock=clock)


@pytest.fixture
def guest_lifecycle(guest_store, clock):
    return LobbyLifecycleService(guest_store, clock=clock)


@pytest.fixture
def view_service(store):
    return LobbyViewService(store)


@pytest.fixture
def presence_service(store):
    return PresenceService(store)
