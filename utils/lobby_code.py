"""
Lobby code generation, normalization and validation.

Codes are 6 characters drawn from an alphabet without the visually ambiguous
0/O and 1/I/L. Validation of user-typed input is looser: any
uppercase letter or digit passes, only length and case are strict.
"""

from __future__ import annotations

import inspect
import logging
import re
import secrets
from collections.abc import Awaitable, Callable

ALPHABET = "23456789ABCDEFGHJKMNPQRSTUVWXYZ"
CODE_LENGTH = 6
DEFAULT_MAX_RETRIES = 10

# Draw attempts for a single code; the alphabet check cannot fail with modulo mapping
_MAX_DRAW_ATTEMPTS = 3

_CODE_PATTERN = re.compile(r"[A-Z0-9]{6}")

logger = logging.getLogger("lobby_sync.utils.lobby_code")

ExistsCheck = Callable[[str], bool | Awaitable[bool]]


class CodeExhaustedError(RuntimeError):
    """Raised when no unused lobby code was found within the retry ceiling."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Failed to generate unique lobby code after {attempts} attempts")


def _draw(random_bytes: Callable[[int], bytes]) -> str:
    # Modulo reduction, not rejection sampling: 256 % 31 leaves a negligible skew
    return "".join(ALPHABET[b % len(ALPHABET)] for b in random_bytes(CODE_LENGTH))


def generate_lobby_code(random_bytes: Callable[[int], bytes] = secrets.token_bytes) -> str:
    """
    Generate a 6-character lobby code from the restricted alphabet.

    Args:
        random_bytes: Source of random bytes, cryptographically secure by default

    Returns:
        A code such as "7KQ2ZX"
    """
    for _ in range(_MAX_DRAW_ATTEMPTS):
        code = _draw(random_bytes)
        if len(code) == CODE_LENGTH and all(ch in ALPHABET for ch in code):
            return code
    raise RuntimeError("Random source produced no valid lobby code")


async def generate_unique_lobby_code(
    exists_check: ExistsCheck,
    max_retries: int = DEFAULT_MAX_RETRIES,
    random_bytes: Callable[[int], bytes] = secrets.token_bytes,
) -> str:
    """
    Generate a code that ``exists_check`` reports as unused.

    The predicate may be a plain function or a coroutine function. It is
    called once per attempt; after ``max_retries`` calls that all report the
    code as taken, CodeExhaustedError is raised.

    There is no lock between the check and the caller's write. Callers that
    need stronger guarantees should create the lobby with a conditional write.
    """
    for attempt in range(1, max_retries + 1):
        code = generate_lobby_code(random_bytes)
        taken = exists_check(code)
        if inspect.isawaitable(taken):
            taken = await taken
        if not taken:
            return code
        logger.warning(f"Lobby code collision on attempt {attempt}/{max_retries}: {code}")
    raise CodeExhaustedError(max_retries)


def normalize_lobby_code(raw: str | None) -> str:
    """Trim whitespace and uppercase user-typed input."""
    if raw is None:
        return ""
    return raw.strip().upper()


def validate_lobby_code(code: object) -> bool:
    """True if ``code`` is exactly 6 uppercase letters or digits."""
    if not code or not isinstance(code, str):
        return False
    return _CODE_PATTERN.fullmatch(code) is not None
