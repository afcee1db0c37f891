"""
Result type returned by every lobby operation.

Expected failures (missing lobby, malformed code, not a member, exhausted
code retries, store outages) are values, not exceptions: a failed Result
carries a user-facing message and one of the codes in services.error_codes.

Usage:
    result = await lifecycle.join_lobby(code, uid)
    if not result:
        show_error(result.error, retry=result.retryable)

    code = (await lifecycle.create_lobby(uid)).unwrap()
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from services.error_codes import is_retryable

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a lobby operation.

    Attributes:
        success: Whether the operation took effect
        value: Payload on success (the new code for create_lobby, a Lobby for reads)
        error: Message suitable for showing to the player
        error_code: Constant from services.error_codes
    """

    success: bool
    value: T | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def ok(cls, value: T | None = None) -> "Result[T]":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: str, code: str | None = None) -> "Result[T]":
        return cls(success=False, error=error, error_code=code)

    def __bool__(self) -> bool:
        return self.success

    @property
    def retryable(self) -> bool:
        """True for failures where repeating the same call may succeed."""
        return not self.success and is_retryable(self.error_code)

    def unwrap(self) -> T:
        """
        Return the value, raising ValueError on failure.

        Raises:
            ValueError: If the result is a failure
        """
        if not self.success:
            raise ValueError(f"Cannot unwrap failed result ({self.error_code}): {self.error}")
        return self.value  # type: ignore

    def unwrap_or(self, default: T) -> T:
        return self.value if self.success else default  # type: ignore

    def map(self, fn: Callable[[T], "Result"]) -> "Result":
        """Feed a successful value into the next step; failures pass through."""
        if not self.success:
            return self
        return fn(self.value)  # type: ignore

    def to_dict(self) -> dict:
        """Shape handed to UI callers: {success, value?} or {success, error, errorCode}."""
        data: dict = {"success": self.success}
        if self.success and self.value is not None:
            data["value"] = self.value
        if not self.success:
            data["error"] = self.error
            data["errorCode"] = self.error_code
        return data
