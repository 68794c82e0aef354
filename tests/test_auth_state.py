"""Tests for the protocol-client boundary."""

import os

import pytest

from authstate import (
    AuthStateRepository,
    InMemoryDocumentStore,
    SignalKeyStore,
    StoreConnectionError,
    use_auth_state,
    use_mongodb_auth_state,
)

pytestmark = pytest.mark.asyncio


class TestSignalKeyStore:
    """The key store view under the client's method names."""

    async def test_get_and_set(self, repository):
        keys = SignalKeyStore(repository)

        await keys.set({"pre-key": {"1": {"public": b"\x01" * 32, "private": b"\x02" * 32}}})
        result = await keys.get("pre-key", ["1", "2"])

        assert result == {"1": {"public": b"\x01" * 32, "private": b"\x02" * 32}, "2": None}

    async def test_set_none_deletes(self, repository):
        keys = SignalKeyStore(repository)

        await keys.set({"session": {"peer.0": os.urandom(64)}})
        await keys.set({"session": {"peer.0": None}})

        assert await keys.get("session", ["peer.0"]) == {"peer.0": None}


class TestUseAuthState:
    """Tests for loading the client-facing auth state."""

    async def test_state_and_save_creds(self, repository, store):
        """save_creds persists mutations the client made in place."""
        handle = await use_auth_state(repository)
        assert handle.state.creds.registered is False

        handle.state.creds.registered = True
        handle.state.creds.next_pre_key_id = 31
        await handle.save_creds()

        restarted = AuthStateRepository(store)
        await restarted.connect()
        reloaded = await restarted.load_credentials()

        assert reloaded.registered is True
        assert reloaded.next_pre_key_id == 31
        assert reloaded.signed_identity_key == handle.state.creds.signed_identity_key

    async def test_keys_share_repository(self, repository):
        """Keys written through the state are visible through the repository."""
        handle = await use_auth_state(repository)
        await handle.state.keys.set({"sender-key": {"g::u::0": b"\x07"}})

        assert await repository.get_keys("sender-key", ["g::u::0"]) == {"g::u::0": b"\x07"}

    async def test_close(self, repository, store):
        handle = await use_auth_state(repository)
        await handle.close()

        assert store.is_connected is False


class TestUseMongoDBAuthState:
    """Tests for the URL-based entry point."""

    async def test_memory_url(self):
        """A memory:// URL gives a working, bootstrapped state."""
        handle = await use_mongodb_auth_state("memory://")
        try:
            assert isinstance(handle.repository.store, InMemoryDocumentStore)
            assert handle.state.creds.registered is False
            assert await handle.repository.store.list_ids() == ["creds"]
        finally:
            await handle.close()

    async def test_unreachable_server_fails_startup(self):
        """No identity is produced when the store cannot be reached."""
        from datetime import timedelta

        with pytest.raises(StoreConnectionError):
            await use_mongodb_auth_state(
                "mongodb://127.0.0.1:1/authstate-test",
                connect_timeout=timedelta(milliseconds=300),
            )
