"""
Protocol-client boundary for authstate.

The protocol client expects an auth state made of the in-memory
credentials plus a key store with ``get``/``set``, and a callback to run
whenever it mutates the credentials.

Example usage:
    ```python
    handle = await use_mongodb_auth_state(os.environ["MONGO_URL"])

    socket = make_socket(auth=handle.state)
    socket.on("creds.update", lambda _: handle.save_creds())

    # on logout
    await handle.repository.reset()
    await handle.close()
    ```
"""

from dataclasses import dataclass
from typing import Any, Hashable, Iterable, Mapping

from .config import StoreConfig
from .models import AuthenticationCreds
from .repository import AuthStateRepository, CategoryLike


class SignalKeyStore:
    """Key store view of a repository, under the names the protocol client calls."""

    def __init__(self, repository: AuthStateRepository) -> None:
        self._repository = repository

    async def get(self, type: CategoryLike, ids: Iterable[Hashable]) -> dict[Hashable, Any]:
        """Fetch key records of one category; absent ids map to None."""
        return await self._repository.get_keys(type, ids)

    async def set(self, data: Mapping[CategoryLike, Mapping[Hashable, Any]]) -> None:
        """Store or delete key records; None or empty values delete."""
        await self._repository.set_keys(data)


@dataclass
class AuthenticationState:
    """The credentials and key store handed to the protocol client."""
    creds: AuthenticationCreds
    keys: SignalKeyStore


@dataclass
class AuthStateHandle:
    """A loaded auth state together with the repository that persists it."""
    state: AuthenticationState
    repository: AuthStateRepository

    async def save_creds(self) -> None:
        """Persist the in-memory credentials after the client mutated them."""
        await self.repository.save_credentials(self.state.creds)

    async def close(self) -> None:
        """Close the backing store connection."""
        await self.repository.close()


async def use_auth_state(repository: AuthStateRepository) -> AuthStateHandle:
    """
    Load (or bootstrap) credentials from a connected repository.

    Returns:
        Handle whose ``state`` is ready for the protocol client.
    """
    creds = await repository.load_credentials()
    return AuthStateHandle(
        state=AuthenticationState(creds=creds, keys=SignalKeyStore(repository)),
        repository=repository,
    )


async def use_mongodb_auth_state(url: str, **config: Any) -> AuthStateHandle:
    """
    Connect to MongoDB and load (or bootstrap) the auth state.

    The connection is confirmed before credentials are read, so a store
    that cannot be reached fails startup instead of triggering a bootstrap.

    Args:
        url: MongoDB connection string.
        **config: Further StoreConfig fields (database, collection,
            connect_timeout, retry).

    Raises:
        ConfigurationError: If the URL is not a valid connection string.
        StoreConnectionError: If the store could not be reached.
    """
    repository = AuthStateRepository.from_config(StoreConfig(url=url, **config))
    await repository.connect()
    try:
        return await use_auth_state(repository)
    except BaseException:
        await repository.close()
        raise
