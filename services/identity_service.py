"""
IdentityService: anonymous sign-in plus presence attachment.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from config import AUTH_RETRY_DELAY_SECONDS
from repositories.interfaces import IdentityError, IIdentityProvider
from services import error_codes
from services.presence_service import PresenceRegistration, PresenceService
from services.result import Result

logger = logging.getLogger("lobby_sync.services.identity")


class IdentityService:
    """
    Holds the session's anonymous identity.

    Attributes:
        identity_id: Current identity, None until sign-in succeeds
        loading: True while a sign-in is in flight
        error: Last sign-in error message, None when healthy
    """

    def __init__(
        self,
        provider: IIdentityProvider,
        presence_service: PresenceService,
        retry_delay: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.provider = provider
        self.presence_service = presence_service
        self.retry_delay = retry_delay if retry_delay is not None else AUTH_RETRY_DELAY_SECONDS
        self._sleep = sleep
        self.identity_id: str | None = None
        self.loading = False
        self.error: str | None = None
        self._presence: PresenceRegistration | None = None

    @property
    def presence(self) -> PresenceRegistration | None:
        return self._presence

    async def _acquire(self) -> str:
        try:
            return await self.provider.sign_in_anonymously()
        except IdentityError as exc:
            logger.warning(f"Anonymous sign-in failed, retrying in {self.retry_delay}s: {exc}")
            await self._sleep(self.retry_delay)
            return await self.provider.sign_in_anonymously()

    async def _attach_presence(self, identity_id: str) -> None:
        self._detach_presence()
        self._presence = await self.presence_service.setup_presence(identity_id)

    def _detach_presence(self) -> None:
        if self._presence is not None:
            self._presence.close()
            self._presence = None

    async def sign_in(self) -> Result[str]:
        """
        Acquire an identity, retrying once after ``retry_delay`` seconds.

        Returns:
            Result with the identity id, or AUTH_FAILED if both attempts failed
        """
        existing = self.provider.current_identity
        self.loading = True
        self.error = None
        try:
            identity_id = existing or await self._acquire()
        except IdentityError as exc:
            logger.error(f"Anonymous sign-in failed after retry: {exc}")
            self.loading = False
            self.error = f"Sign-in failed ({exc}). Please try again."
            return Result.fail(self.error, code=error_codes.AUTH_FAILED)

        self.identity_id = identity_id
        self.loading = False
        await self._attach_presence(identity_id)
        logger.info(f"Signed in as {identity_id}")
        return Result.ok(identity_id)

    async def retry(self) -> Result[str]:
        return await self.sign_in()

    def close(self) -> None:
        self._detach_presence()
