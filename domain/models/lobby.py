"""
Lobby domain model.
"""

from dataclasses import dataclass, field
from enum import Enum

from domain.models.player import Player


class GameState(str, Enum):
    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"


def elect_leader(players: dict[str, Player]) -> str | None:
    """
    Pick the next leader from ``players``.

    Earliest ``joined_at`` wins; ties are broken by player id so every client
    computes the same answer from the same membership.
    """
    if not players:
        return None
    return min(players.values(), key=lambda p: (p.joined_at, p.id)).id


@dataclass
class Lobby:
    """Represents a lobby as stored at /lobbies/{code}."""

    code: str
    leader_id: str
    created_at: int
    game_state: GameState = GameState.WAITING
    players: dict[str, Player] = field(default_factory=dict)
    scores: dict[str, int] | None = None
    current_turn: str | None = None

    def has_player(self, player_id: str) -> bool:
        return player_id in self.players

    def get_player_count(self) -> int:
        return len(self.players)

    def is_leader(self, player_id: str) -> bool:
        return self.leader_id == player_id

    def default_player_name(self) -> str:
        """Name assigned to a new member who did not pick one."""
        return f"Player {self.get_player_count() + 1}"

    def remove_player(self, player_id: str) -> bool:
        """
        Remove a member, handing leadership on if the leader is gone.

        The leader is checked against the remaining membership rather than
        against ``player_id``, so a record whose leader already left is
        repaired too. Returns False if ``player_id`` was not a member.
        """
        if player_id not in self.players:
            return False
        del self.players[player_id]
        if self.current_turn == player_id:
            self.current_turn = None
        if self.scores and player_id in self.scores:
            del self.scores[player_id]
        if self.players and self.leader_id not in self.players:
            self.leader_id = elect_leader(self.players)
        return True

    def is_empty(self) -> bool:
        return not self.players

    def check_invariants(self) -> list[str]:
        """Return a list of violated invariants (empty when consistent)."""
        problems = []
        if not self.players:
            problems.append("lobby has no players")
        if self.leader_id not in self.players:
            problems.append(f"leader {self.leader_id!r} is not a member")
        if self.current_turn is not None and self.current_turn not in self.players:
            problems.append(f"current turn {self.current_turn!r} is not a member")
        return problems

    def to_dict(self) -> dict:
        data = {
            "code": self.code,
            "leaderId": self.leader_id,
            "createdAt": self.created_at,
            "gameState": self.game_state.value,
            "players": {pid: p.to_dict() for pid, p in self.players.items()},
        }
        if self.scores is not None:
            data["scores"] = dict(self.scores)
        if self.current_turn is not None:
            data["currentTurn"] = self.current_turn
        return data

    @classmethod
    def from_dict(cls, data: dict, code: str | None = None) -> "Lobby":
        raw_players = data.get("players") or {}
        players = {
            pid: Player.from_dict(pdata, player_id=pid)
            for pid, pdata in raw_players.items()
            if isinstance(pdata, dict)
        }
        try:
            game_state = GameState(data.get("gameState", GameState.WAITING.value))
        except ValueError:
            game_state = GameState.WAITING
        scores = data.get("scores")
        return cls(
            code=data.get("code") or code or "",
            leader_id=data.get("leaderId", ""),
            created_at=int(data.get("createdAt", 0)),
            game_state=game_state,
            players=players,
            scores={k: int(v) for k, v in scores.items()} if scores else None,
            current_turn=data.get("currentTurn"),
        )
