"""
In-memory anonymous identity provider.
"""

import asyncio
import logging
import uuid

from repositories.interfaces import IdentityError, IIdentityProvider

logger = logging.getLogger("lobby_sync.repositories.identity")


class InMemoryIdentityProvider(IIdentityProvider):
    """
    Issues random opaque ids, the way an anonymous auth backend does.

    ``fail_times`` makes the next N sign-in attempts fail, for exercising
    the retry path.
    """

    def __init__(self, fail_times: int = 0, latency: float = 0.0):
        self.fail_times = fail_times
        self.latency = latency
        self.attempts = 0
        self._current: str | None = None

    @property
    def current_identity(self) -> str | None:
        return self._current

    async def sign_in_anonymously(self) -> str:
        self.attempts += 1
        await asyncio.sleep(self.latency)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise IdentityError("auth/network-request-failed")
        if self._current is None:
            self._current = uuid.uuid4().hex
            logger.info(f"Issued anonymous identity {self._current}")
        return self._current
