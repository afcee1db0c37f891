"""
Presence domain model.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

ONLINE = "online"
OFFLINE = "offline"


@dataclass(frozen=True)
class Presence:
    """Online/offline marker for one identity, as stored under /status/{id}."""

    state: str
    last_changed: int  # Server-assigned milliseconds since epoch

    @property
    def is_online(self) -> bool:
        return self.state == ONLINE

    @property
    def last_changed_at(self) -> datetime:
        return datetime.fromtimestamp(self.last_changed / 1000, tz=timezone.utc)

    def to_dict(self) -> dict:
        return {"state": self.state, "last_changed": self.last_changed}

    @classmethod
    def from_dict(cls, data: dict | None, default_time: int = 0) -> "Presence":
        """A missing record reads as offline."""
        if not data:
            return cls(state=OFFLINE, last_changed=default_time)
        state = data.get("state")
        return cls(
            state=state if state in (ONLINE, OFFLINE) else OFFLINE,
            last_changed=int(data.get("last_changed", default_time)),
        )
