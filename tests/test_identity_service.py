"""Tests for IdentityService: anonymous sign-in with one retry."""

from unittest.mock import AsyncMock

import pytest

from repositories.memory_identity import InMemoryIdentityProvider
from services import error_codes
from services.identity_service import IdentityService


def make_service(presence_service, fail_times=0):
    provider = InMemoryIdentityProvider(fail_times=fail_times)
    sleep = AsyncMock()
    service = IdentityService(provider, presence_service, retry_delay=1.0, sleep=sleep)
    return service, provider, sleep


class TestSignIn:
    """Tests for sign_in()."""

    @pytest.mark.asyncio
    async def test_success_attaches_presence(self, presence_service, store):
        service, provider, sleep = make_service(presence_service)

        result = await service.sign_in()

        assert result.success
        assert service.identity_id == result.value == provider.current_identity
        assert service.loading is False
        assert service.presence is not None
        assert (await store.get(f"/status/{result.value}"))["state"] == "online"
        sleep.assert_not_awaited()
        service.close()

    @pytest.mark.asyncio
    async def test_one_failure_is_retried(self, presence_service):
        service, provider, sleep = make_service(presence_service, fail_times=1)

        result = await service.sign_in()

        assert result.success
        assert provider.attempts == 2
        sleep.assert_awaited_once_with(1.0)
        service.close()

    @pytest.mark.asyncio
    async def test_two_failures_give_auth_failed(self, presence_service, database):
        service, provider, sleep = make_service(presence_service, fail_times=2)

        result = await service.sign_in()

        assert result.error_code == error_codes.AUTH_FAILED
        assert "auth/network-request-failed" in result.error
        assert provider.attempts == 2
        assert service.identity_id is None
        assert service.presence is None
        assert service.error == result.error
        assert database.snapshot() == {}

    @pytest.mark.asyncio
    async def test_manual_retry_after_failure(self, presence_service):
        service, provider, sleep = make_service(presence_service, fail_times=2)
        await service.sign_in()

        result = await service.retry()

        assert result.success
        assert service.error is None
        assert provider.attempts == 3
        service.close()

    @pytest.mark.asyncio
    async def test_existing_identity_is_reused(self, presence_service):
        service, provider, sleep = make_service(presence_service)
        first = await service.sign_in()
        first_registration = service.presence

        second = await service.sign_in()

        assert second.value == first.value
        assert provider.attempts == 1
        assert first_registration.closed
        assert service.presence is not first_registration
        service.close()

    @pytest.mark.asyncio
    async def test_close_detaches_presence(self, presence_service):
        service, provider, sleep = make_service(presence_service)
        await service.sign_in()
        registration = service.presence

        service.close()

        assert registration.closed
        assert service.presence is None
