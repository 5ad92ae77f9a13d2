import asyncio

import pytest

from fitcheck_client import AppSettings, SessionState, build_service
from fitcheck_client.storage import SessionStore


@pytest.fixture
def service(tmp_path, signed_in_store, notices):
    settings = AppSettings(
        base_url="http://fitcheck.test",
        timeout_seconds=3,
        retry_attempts=0,
        session_store_path=str(tmp_path / "session.bin"),
        remember_me_days=7,
        log_level="WARNING",
    )
    return build_service(settings, notify=notices.append, store=signed_in_store)


def test_features_share_one_coordinator_each(service):
    feed_coordinator = service.feed()._coordinator
    assert service.feed()._coordinator is feed_coordinator
    assert service.chat("chat-1")._coordinator is service.chats()._coordinator
    assert service.gyms()._coordinator is not feed_coordinator
    assert service.request_timeout_seconds == 3


def test_start_and_sign_out(service, signed_in_store):
    async def _run():
        state = await service.start()
        assert state is SessionState.AUTHENTICATED
        await service.sign_out()
        return service.auth_state()

    assert asyncio.run(_run()) is SessionState.UNAUTHENTICATED
    assert signed_in_store.get_item("token") is None


def test_close_resets_session_without_touching_storage(service, signed_in_store):
    async def _run():
        await service.start()
        await service.close()

    asyncio.run(_run())
    assert service.auth_state() is SessionState.UNINITIALIZED
    assert signed_in_store.get_item("token") == "tok-123"


def test_build_service_defaults_to_file_store(tmp_path):
    settings = AppSettings(
        base_url="http://fitcheck.test",
        timeout_seconds=3,
        retry_attempts=0,
        session_store_path=str(tmp_path / "store" / "session.bin"),
        remember_me_days=7,
    )
    service = build_service(settings)

    async def _run():
        return await service.start()

    assert asyncio.run(_run()) is SessionState.UNAUTHENTICATED
    assert isinstance(service.session._store, SessionStore)
