"""
LobbyLifecycleService: create, join, leave and leader handoff.

Every mutation of a lobby record goes through a store transaction on
/lobbies/{code}. The transaction re-reads the current membership, so the
leader chosen on leave is always a player who is still present even when two
players leave at the same moment, and a lobby deleted mid-join is never
recreated as a fragment.
"""

import logging
import secrets
from collections.abc import Callable
from typing import Any

from config import LOBBY_CODE_MAX_RETRIES, LOBBY_CREATE_ATTEMPTS
from domain.models.lobby import GameState, Lobby
from domain.models.player import Player
from repositories.interfaces import (
    TRANSACTION_ABORT,
    ILobbyStore,
    StoreConnectionError,
    StoreError,
)
from repositories.paths import lobby_path, player_path
from services import error_codes
from services.interfaces import ILobbyLifecycleService
from services.result import Result
from utils.clock import MonotonicMillisClock
from utils.lobby_code import (
    CodeExhaustedError,
    generate_unique_lobby_code,
    normalize_lobby_code,
    validate_lobby_code,
)

logger = logging.getLogger("lobby_sync.services.lifecycle")


def store_failure(action: str, exc: StoreError) -> Result:
    """Map a store exception to a failed Result, logging it once."""
    logger.error(f"Store failure while trying to {action}: {exc}", exc_info=True)
    if isinstance(exc, StoreConnectionError):
        return Result.fail(
            "Connection error. Please check your network.",
            code=error_codes.CONNECTION_ERROR,
        )
    return Result.fail(f"Failed to {action}. Please try again.", code=error_codes.STORE_ERROR)


def _without_player(current: dict, player_id: str, leader_id: str) -> dict:
    """
    Raw lobby record minus one player.

    Only the departing player's entries are touched; other players' records
    keep every field as stored.
    """
    record = dict(current)
    players = dict(record.get("players") or {})
    players.pop(player_id, None)
    record["players"] = players
    record["leaderId"] = leader_id
    if record.get("currentTurn") == player_id:
        del record["currentTurn"]
    scores = record.get("scores")
    if isinstance(scores, dict) and player_id in scores:
        scores = {pid: score for pid, score in scores.items() if pid != player_id}
        if scores:
            record["scores"] = scores
        else:
            del record["scores"]
    return record


class LobbyLifecycleService(ILobbyLifecycleService):
    """
    Owns the lobby invariants:
    - codes are unique among live lobbies
    - a stored lobby always has at least one player
    - leaderId always names a current member

    Operations never raise for expected failures; they return a Result whose
    error_code comes from services.error_codes.
    """

    def __init__(
        self,
        store: ILobbyStore,
        clock: MonotonicMillisClock | None = None,
        max_code_retries: int | None = None,
        create_attempts: int | None = None,
        random_bytes: Callable[[int], bytes] = secrets.token_bytes,
    ):
        self.store = store
        self.clock = clock or MonotonicMillisClock()
        self.max_code_retries = (
            max_code_retries if max_code_retries is not None else LOBBY_CODE_MAX_RETRIES
        )
        self.create_attempts = (
            create_attempts if create_attempts is not None else LOBBY_CREATE_ATTEMPTS
        )
        self.random_bytes = random_bytes

    async def _code_exists(self, code: str) -> bool:
        return await self.store.exists(lobby_path(code))

    @staticmethod
    def _check_code(code: str | None) -> tuple[str, Result | None]:
        normalized = normalize_lobby_code(code)
        if not validate_lobby_code(normalized):
            return normalized, Result.fail(
                "Lobby code must be 6 letters or digits", code=error_codes.VALIDATION_ERROR
            )
        return normalized, None

    # =========================================================================
    # Create
    # =========================================================================

    async def create_lobby(self, user_id: str, name: str | None = None) -> Result[str]:
        """
        Create a lobby with ``user_id`` as its only player and leader.

        The record is written with a conditional create: if another client
        claimed the same code between the existence check and the write, a
        fresh code is generated, up to ``create_attempts`` times.

        Error codes:
            - VALIDATION_ERROR: user_id missing
            - CODE_EXHAUSTED: no free code within the retry ceilings
            - STORE_ERROR / CONNECTION_ERROR: backend failure
        """
        if not user_id:
            return Result.fail(
                "User ID is required to create a lobby", code=error_codes.VALIDATION_ERROR
            )

        for attempt in range(1, self.create_attempts + 1):
            try:
                code = await generate_unique_lobby_code(
                    self._code_exists, self.max_code_retries, self.random_bytes
                )
            except CodeExhaustedError as exc:
                logger.warning(f"Lobby creation for {user_id} gave up: {exc}")
                return Result.fail(
                    "Could not find a free lobby code. Please try again.",
                    code=error_codes.CODE_EXHAUSTED,
                )
            except StoreError as exc:
                return store_failure("create lobby", exc)

            now = self.clock.now_ms()
            lobby = Lobby(
                code=code,
                leader_id=user_id,
                created_at=now,
                game_state=GameState.WAITING,
                players={user_id: Player(id=user_id, name=name or "Player 1", joined_at=now)},
            )
            record = lobby.to_dict()

            def claim(current: Any) -> Any:
                return TRANSACTION_ABORT if current is not None else record

            try:
                outcome = await self.store.transaction(lobby_path(code), claim)
            except StoreError as exc:
                return store_failure("create lobby", exc)

            if outcome.committed:
                logger.info(f"Created lobby {code} led by {user_id}")
                return Result.ok(code)

            logger.warning(
                f"Lobby code {code} was claimed between check and write "
                f"(attempt {attempt}/{self.create_attempts})"
            )

        return Result.fail(
            "Could not find a free lobby code. Please try again.",
            code=error_codes.CODE_EXHAUSTED,
        )

    # =========================================================================
    # Join
    # =========================================================================

    async def join_lobby(self, code: str, user_id: str, name: str | None = None) -> Result[None]:
        """
        Add ``user_id`` to the lobby, or mark an existing member connected.

        Re-joining never duplicates a player and never resets joinedAt or the
        display name. New players without a name get "Player {n+1}".
        """
        code, invalid = self._check_code(code)
        if invalid is not None:
            return invalid
        if not user_id:
            return Result.fail(
                "Lobby code and user ID are required", code=error_codes.VALIDATION_ERROR
            )

        decision: dict[str, str] = {}

        def apply(current: Any) -> Any:
            if current is None:
                decision["status"] = "missing"
                return TRANSACTION_ABORT
            players = dict(current.get("players") or {})
            existing = players.get(user_id)
            if existing is not None:
                decision["status"] = "reconnected"
                if existing.get("isConnected") is True:
                    return TRANSACTION_ABORT
                players[user_id] = {**existing, "isConnected": True}
            else:
                decision["status"] = "joined"
                player = Player(
                    id=user_id,
                    name=name or Lobby.from_dict(current, code).default_player_name(),
                    joined_at=self.clock.now_ms(),
                )
                players[user_id] = player.to_dict()
            return {**current, "players": players}

        try:
            await self.store.transaction(lobby_path(code), apply)
        except StoreError as exc:
            return store_failure("join lobby", exc)

        status = decision.get("status")
        if status == "missing":
            return Result.fail("Lobby not found", code=error_codes.LOBBY_NOT_FOUND)

        if status == "reconnected":
            logger.info(f"{user_id} reconnected to lobby {code}")
        else:
            logger.info(f"{user_id} joined lobby {code}")
        return Result.ok()

    # =========================================================================
    # Leave
    # =========================================================================

    async def leave_lobby(self, code: str, user_id: str) -> Result[None]:
        """
        Remove ``user_id`` from the lobby.

        Removal, leader handoff and deletion of an emptied lobby happen in one
        transaction. The new leader is the earliest-joined remaining player
        (ties broken by id). A repeated leave fails with NOT_MEMBER and does
        not write.
        """
        code, invalid = self._check_code(code)
        if invalid is not None:
            return invalid
        if not user_id:
            return Result.fail(
                "Lobby code and user ID are required", code=error_codes.VALIDATION_ERROR
            )

        decision: dict[str, Any] = {}

        def apply(current: Any) -> Any:
            decision.clear()
            if current is None:
                decision["status"] = "missing"
                return TRANSACTION_ABORT
            lobby = Lobby.from_dict(current, code)
            previous_leader = lobby.leader_id
            if not lobby.remove_player(user_id):
                decision["status"] = "not_member"
                return TRANSACTION_ABORT
            if lobby.is_empty():
                decision["status"] = "deleted"
                return None
            decision["status"] = "left"
            if lobby.leader_id != previous_leader:
                decision["new_leader"] = lobby.leader_id
            return _without_player(current, user_id, lobby.leader_id)

        try:
            await self.store.transaction(lobby_path(code), apply)
        except StoreError as exc:
            return store_failure("leave lobby", exc)

        status = decision.get("status")
        if status == "missing":
            return Result.fail("Lobby not found", code=error_codes.LOBBY_NOT_FOUND)
        if status == "not_member":
            return Result.fail("User is not in this lobby", code=error_codes.NOT_MEMBER)

        if status == "deleted":
            logger.info(f"{user_id} left lobby {code}; lobby was empty and has been deleted")
        elif "new_leader" in decision:
            logger.info(
                f"{user_id} left lobby {code}; leadership transferred to {decision['new_leader']}"
            )
        else:
            logger.info(f"{user_id} left lobby {code}")
        return Result.ok()

    # =========================================================================
    # Leader actions and connection flags
    # =========================================================================

    async def start_game(self, code: str, user_id: str) -> Result[None]:
        """Move the lobby from waiting to playing. Only the leader may do this."""
        code, invalid = self._check_code(code)
        if invalid is not None:
            return invalid

        decision: dict[str, str] = {}

        def apply(current: Any) -> Any:
            if current is None:
                decision["status"] = "missing"
                return TRANSACTION_ABORT
            lobby = Lobby.from_dict(current, code)
            if not lobby.has_player(user_id):
                decision["status"] = "not_member"
                return TRANSACTION_ABORT
            if not lobby.is_leader(user_id):
                decision["status"] = "not_leader"
                return TRANSACTION_ABORT
            if lobby.game_state != GameState.WAITING:
                decision["status"] = "invalid_state"
                return TRANSACTION_ABORT
            decision["status"] = "started"
            return {**current, "gameState": GameState.PLAYING.value}

        try:
            await self.store.transaction(lobby_path(code), apply)
        except StoreError as exc:
            return store_failure("start game", exc)

        status = decision.get("status")
        if status == "missing":
            return Result.fail("Lobby not found", code=error_codes.LOBBY_NOT_FOUND)
        if status == "not_member":
            return Result.fail("User is not in this lobby", code=error_codes.NOT_MEMBER)
        if status == "not_leader":
            return Result.fail(
                "Only the lobby leader can start the game", code=error_codes.NOT_LEADER
            )
        if status == "invalid_state":
            return Result.fail(
                "The game has already started", code=error_codes.INVALID_STATE
            )
        logger.info(f"Lobby {code} started by {user_id}")
        return Result.ok()

    async def set_connected(self, code: str, user_id: str, connected: bool) -> Result[None]:
        """Flip a member's isConnected flag via a partial-path write."""
        code, invalid = self._check_code(code)
        if invalid is not None:
            return invalid

        def apply(current: Any) -> Any:
            if current is None:
                return TRANSACTION_ABORT
            return {**current, "isConnected": connected}

        try:
            outcome = await self.store.transaction(player_path(code, user_id), apply)
            if outcome.committed:
                return Result.ok()
            lobby_exists = await self.store.exists(lobby_path(code))
        except StoreError as exc:
            return store_failure("update connection status", exc)

        if not lobby_exists:
            return Result.fail("Lobby not found", code=error_codes.LOBBY_NOT_FOUND)
        return Result.fail("User is not in this lobby", code=error_codes.NOT_MEMBER)

    async def get_lobby(self, code: str) -> Result[Lobby]:
        code, invalid = self._check_code(code)
        if invalid is not None:
            return invalid
        try:
            data = await self.store.get(lobby_path(code))
        except StoreError as exc:
            return store_failure("load lobby", exc)
        if data is None:
            return Result.fail("Lobby not found", code=error_codes.LOBBY_NOT_FOUND)
        return Result.ok(Lobby.from_dict(data, code))
