"""
Run a scripted lobby session against the in-memory store.

Each simulated player is its own ServiceContainer (its own client
connection) on one shared database, so the run shows change fan-out,
presence and leader handoff the way separate devices would see them.

Usage:
    python simulate.py --players 4 --drop 2
"""

import argparse
import asyncio
import logging
import sys

from config import LOG_LEVEL, STORE_LATENCY_SECONDS
from domain.models.lobby import Lobby
from infrastructure.service_container import ServiceConfig, ServiceContainer
from repositories.memory_store import InMemoryDatabase

logger = logging.getLogger("lobby_sync.simulate")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Simulate a multiplayer lobby session.")
    parser.add_argument("--players", type=int, default=3, help="number of clients (>= 2)")
    parser.add_argument(
        "--drop",
        type=int,
        default=None,
        help="1-based index of a player whose connection drops mid-session",
    )
    parser.add_argument("--latency", type=float, default=STORE_LATENCY_SECONDS)
    parser.add_argument("--log-level", default=LOG_LEVEL)
    return parser.parse_args(argv)


def _describe(lobby: Lobby) -> str:
    roster = ", ".join(
        f"{p.name}{'*' if lobby.is_leader(p.id) else ''}{'' if p.is_connected else ' (away)'}"
        for p in sorted(lobby.players.values(), key=lambda p: (p.joined_at, p.id))
    )
    return f"[{lobby.code}] {lobby.game_state.value}: {roster}"


async def run_session(player_count: int, drop: int | None, latency: float) -> int:
    database = InMemoryDatabase()
    clients = [
        ServiceContainer(ServiceConfig(store_latency=latency, client_id=f"device-{i + 1}"), database)
        for i in range(player_count)
    ]
    for client in clients:
        await client.initialize()

    try:
        ids = []
        for client in clients:
            signed_in = await client.identity_service.sign_in()
            if not signed_in:
                print(f"Sign-in failed: {signed_in.error}", file=sys.stderr)
                return 1
            ids.append(signed_in.value)

        host = clients[0]
        created = await host.lifecycle_service.create_lobby(ids[0], "Host")
        if not created:
            print(f"Could not create lobby: {created.error}", file=sys.stderr)
            return 1
        code = created.value
        print(f"Lobby {code} created")

        view = await host.view_service.open_view(
            code, on_update=lambda v: print(f"  host sees {_describe(v.lobby)}") if v.lobby else None
        )
        watch = await host.presence_service.watch_presence(ids)

        for client, uid in zip(clients[1:], ids[1:]):
            joined = await client.lifecycle_service.join_lobby(code.lower(), uid)
            if not joined:
                print(f"Join failed for {uid}: {joined.error}", file=sys.stderr)
                return 1

        started = await host.lifecycle_service.start_game(code, ids[0])
        print(f"Start game: {'ok' if started else started.error}")

        if drop is not None and 1 <= drop <= player_count:
            dropped = clients[drop - 1]
            await dropped.store.disconnect()
            await host.lifecycle_service.set_connected(code, ids[drop - 1], False)
            await asyncio.sleep(0)
            print(f"Player {drop} dropped; online={watch.is_online(ids[drop - 1])}")
            await dropped.store.connect()
            await dropped.identity_service.presence.settle()
            await dropped.lifecycle_service.join_lobby(code, ids[drop - 1])
            print(f"Player {drop} back; online={watch.is_online(ids[drop - 1])}")

        left = await host.lifecycle_service.leave_lobby(code, ids[0])
        print(f"Host left: {'ok' if left else left.error}")
        view.close()

        for client, uid in zip(clients[1:], ids[1:]):
            current = await client.lifecycle_service.get_lobby(code)
            if current:
                print(f"  {_describe(current.value)}")
            await client.lifecycle_service.leave_lobby(code, uid)

        remaining = await host.view_service.refetch_lobby(code)
        print(f"After everyone left: {remaining.error or 'lobby still exists'}")
        watch.close()
        return 0
    finally:
        for client in clients:
            await client.shutdown()


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if args.players < 2:
        print("--players must be at least 2", file=sys.stderr)
        return 2
    return asyncio.run(run_session(args.players, args.drop, args.latency))


if __name__ == "__main__":
    sys.exit(main())
