"""
Tests for concurrent lobby operations.

Each store call yields to the event loop, so operations started together
with asyncio.gather interleave between their reads and writes.
"""

import asyncio

import pytest

from domain.models.lobby import Lobby
from repositories.memory_store import InMemoryLobbyStore
from repositories.paths import lobby_path
from services import error_codes
from services.lobby_lifecycle_service import LobbyLifecycleService
from tests.conftest import GUEST_ID, HOST_ID, THIRD_ID, code_bytes


async def make_lobby(lifecycle, *members):
    code = (await lifecycle.create_lobby(members[0])).unwrap()
    for member in members[1:]:
        assert (await lifecycle.join_lobby(code, member)).success
    return code


@pytest.mark.asyncio
async def test_leader_and_successor_leave_together(lifecycle, guest_lifecycle, store):
    """The elected leader is always still a member after simultaneous leaves."""
    code = await make_lobby(lifecycle, HOST_ID, GUEST_ID, THIRD_ID)

    results = await asyncio.gather(
        lifecycle.leave_lobby(code, HOST_ID),
        guest_lifecycle.leave_lobby(code, GUEST_ID),
    )

    assert all(r.success for r in results)
    lobby = Lobby.from_dict(await store.get(lobby_path(code)), code)
    assert list(lobby.players) == [THIRD_ID]
    assert lobby.leader_id == THIRD_ID
    assert lobby.check_invariants() == []


@pytest.mark.asyncio
async def test_everyone_leaves_together(database, clock, lifecycle, store):
    code = await make_lobby(lifecycle, HOST_ID, GUEST_ID, THIRD_ID)
    services = [
        LobbyLifecycleService(InMemoryLobbyStore(database), clock=clock) for _ in range(3)
    ]

    results = await asyncio.gather(
        *(svc.leave_lobby(code, uid) for svc, uid in zip(services, [HOST_ID, GUEST_ID, THIRD_ID]))
    )

    assert all(r.success for r in results)
    assert await store.get(lobby_path(code)) is None
    assert database.snapshot() == {}


@pytest.mark.asyncio
async def test_duplicate_leave_only_succeeds_once(lifecycle, guest_lifecycle):
    code = await make_lobby(lifecycle, HOST_ID, GUEST_ID)

    results = await asyncio.gather(
        lifecycle.leave_lobby(code, GUEST_ID),
        guest_lifecycle.leave_lobby(code, GUEST_ID),
    )

    codes = sorted(str(r.error_code) for r in results)
    assert codes == sorted([str(None), error_codes.NOT_MEMBER])


@pytest.mark.asyncio
async def test_concurrent_joins_all_land(database, clock, lifecycle, store):
    code = await make_lobby(lifecycle, HOST_ID)
    joiners = [f"player-{i}" for i in range(5)]
    services = [LobbyLifecycleService(InMemoryLobbyStore(database), clock=clock) for _ in joiners]

    results = await asyncio.gather(
        *(svc.join_lobby(code, uid) for svc, uid in zip(services, joiners))
    )

    assert all(r.success for r in results)
    lobby = Lobby.from_dict(await store.get(lobby_path(code)), code)
    assert lobby.get_player_count() == 6
    assert len({p.joined_at for p in lobby.players.values()}) == 6
    assert sorted(p.name for p in lobby.players.values()) == [
        "Player 1",
        "Player 2",
        "Player 3",
        "Player 4",
        "Player 5",
        "Player 6",
    ]


@pytest.mark.asyncio
async def test_two_clients_draw_same_code(store, guest_store, clock):
    """Only one create claims a code; the other retries with a new one."""
    first = LobbyLifecycleService(store, clock=clock, random_bytes=code_bytes("AAAAAA"))
    second = LobbyLifecycleService(
        guest_store, clock=clock, random_bytes=code_bytes("AAAAAA", "BBBBBB")
    )

    results = await asyncio.gather(
        first.create_lobby(HOST_ID),
        second.create_lobby(GUEST_ID),
    )

    assert all(r.success for r in results)
    assert {r.value for r in results} == {"AAAAAA", "BBBBBB"}
    assert (await store.get(lobby_path("AAAAAA")))["leaderId"] == HOST_ID
    assert (await store.get(lobby_path("BBBBBB")))["leaderId"] == GUEST_ID


@pytest.mark.asyncio
async def test_join_racing_last_leave_never_leaves_fragment(lifecycle, guest_lifecycle, store):
    """Either the join lands first and survives, or the lobby is gone and the join fails."""
    code = await make_lobby(lifecycle, HOST_ID)

    left, joined = await asyncio.gather(
        lifecycle.leave_lobby(code, HOST_ID),
        guest_lifecycle.join_lobby(code, GUEST_ID),
    )

    assert left.success
    data = await store.get(lobby_path(code))
    if joined.success:
        lobby = Lobby.from_dict(data, code)
        assert list(lobby.players) == [GUEST_ID]
        assert lobby.leader_id == GUEST_ID
    else:
        assert joined.error_code == error_codes.LOBBY_NOT_FOUND
        assert data is None
