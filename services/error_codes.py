"""
Standard error codes for the lobby services.

These codes let callers (UI handlers, the simulator) react to specific
failures without parsing message text. Validation and not-found errors are
user-correctable and never retried automatically; code exhaustion, store and
connection errors are safe to retry.

Usage:
    from services.error_codes import LOBBY_NOT_FOUND
    from services.result import Result

    if snapshot is None:
        return Result.fail("Lobby not found", code=LOBBY_NOT_FOUND)
"""

# Input errors (local, user-correctable)
VALIDATION_ERROR = "validation_error"

# Membership errors
LOBBY_NOT_FOUND = "lobby_not_found"
NOT_MEMBER = "not_member"
NOT_LEADER = "not_leader"
INVALID_STATE = "invalid_state"

# Code generation
CODE_EXHAUSTED = "code_exhausted"

# Transport/backend errors (retry affordance)
STORE_ERROR = "store_error"
CONNECTION_ERROR = "connection_error"
AUTH_FAILED = "auth_failed"

RETRYABLE_CODES = frozenset({CODE_EXHAUSTED, STORE_ERROR, CONNECTION_ERROR, AUTH_FAILED})


def is_retryable(code: str | None) -> bool:
    """True if repeating the whole failed call may succeed."""
    return code in RETRYABLE_CODES
