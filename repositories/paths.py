"""
Store path layout.

/lobbies/{code}                      lobby record
/lobbies/{code}/players/{playerId}   player record
/lobbies/{code}/leaderId             leader id
/status/{identityId}                 presence record
/.info/connected                     store-maintained connectivity flag
"""


def split_path(path: str) -> list[str]:
    """Split a slash path into segments, ignoring leading/trailing/double slashes."""
    return [segment for segment in path.split("/") if segment]


def join_path(*segments: str) -> str:
    parts = []
    for segment in segments:
        parts.extend(split_path(segment))
    return "/" + "/".join(parts)


def lobby_path(code: str) -> str:
    return join_path("lobbies", code)


def player_path(code: str, player_id: str) -> str:
    return join_path("lobbies", code, "players", player_id)


def leader_path(code: str) -> str:
    return join_path("lobbies", code, "leaderId")


def status_path(identity_id: str) -> str:
    return join_path("status", identity_id)
