"""
Player domain model.
"""

from dataclasses import dataclass


@dataclass
class Player:
    """
    A member of a lobby.

    This is a pure domain model with no infrastructure dependencies.
    """

    id: str
    name: str
    joined_at: int  # Milliseconds since epoch, strictly increasing per process
    is_connected: bool = True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "joinedAt": self.joined_at,
            "isConnected": self.is_connected,
        }

    @classmethod
    def from_dict(cls, data: dict, player_id: str | None = None) -> "Player":
        return cls(
            id=data.get("id") or player_id or "",
            name=data.get("name", ""),
            joined_at=int(data.get("joinedAt", 0)),
            is_connected=bool(data.get("isConnected", False)),
        )
