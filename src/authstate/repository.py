"""
Key-material repository for authstate.

The repository is the only way the protocol client reads and writes its
durable secret state: the singleton credential record and the open-ended
set of key records addressed by ``(category, id)``. Every read goes to
the backing store; nothing is cached in front of it.
"""

import asyncio
import logging
import weakref
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Hashable, Iterable, Mapping, Optional, Union

from .bootstrap import init_auth_creds
from .codec import decode_document, encode_document
from .config import RetryPolicy, StoreConfig
from .models import (
    Absent,
    AuthenticationCreds,
    CredentialState,
    KeyCategory,
    KeyUpdate,
    Present,
    to_update,
)
from .signature import fingerprint
from .storage import DocumentStore, open_document_store
from .types import (
    CREDS_DOCUMENT_ID,
    CodecError,
    ConfigurationError,
    CorruptCredentialsError,
    IdentityGenerationError,
    InvalidStateTransitionError,
    KeyBatchError,
    NotConnectedError,
    StoreConnectionError,
)

logger = logging.getLogger(__name__)

CategoryLike = Union[KeyCategory, str]

# Errors that mean "this stored record cannot be turned back into a value"
_DECODE_ERRORS = (CodecError, KeyError, TypeError, ValueError)


@dataclass(frozen=True)
class _IdentitySnapshot:
    """The parts of a credential record that may only change in one direction."""
    identity_public: bytes
    registration_id: int
    registered: bool
    next_pre_key_id: int
    first_unuploaded_pre_key_id: int

    @classmethod
    def of(cls, creds: AuthenticationCreds) -> "_IdentitySnapshot":
        return cls(
            identity_public=bytes(creds.signed_identity_key.public),
            registration_id=creds.registration_id,
            registered=creds.registered,
            next_pre_key_id=creds.next_pre_key_id,
            first_unuploaded_pre_key_id=creds.first_unuploaded_pre_key_id,
        )


class AuthStateRepository:
    """
    Durable store for a device's credentials and key records.

    Example usage:
        ```python
        config = StoreConfig.from_env()
        async with AuthStateRepository.from_config(config) as repo:
            creds = await repo.load_credentials()

            sessions = await repo.get_keys("session", ["123.0"])
            await repo.set_keys({"pre-key": {"7": None}})

            creds.registered = True
            await repo.save_credentials(creds)
        ```
    """

    def __init__(
        self,
        store: DocumentStore,
        connect_timeout: timedelta = timedelta(seconds=10),
        retry: Optional[RetryPolicy] = None,
        bootstrap: Callable[[], AuthenticationCreds] = init_auth_creds,
    ) -> None:
        """
        Create a repository over a document store.

        Args:
            store: The backing document store (not yet connected).
            connect_timeout: Upper bound on each connection attempt.
            retry: Connection retry policy (default: a single attempt).
            bootstrap: Generator for a fresh identity when none is stored.
        """
        self._store = store
        self._connect_timeout = connect_timeout
        self._retry = retry or RetryPolicy()
        self._bootstrap = bootstrap
        self._credentials_lock = asyncio.Lock()
        self._write_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        self._known: Optional[_IdentitySnapshot] = None

    @classmethod
    def from_config(cls, config: StoreConfig, **kwargs: Any) -> "AuthStateRepository":
        """Create a repository over the store selected by ``config``."""
        return cls(
            open_document_store(config),
            connect_timeout=config.connect_timeout,
            retry=config.retry,
            **kwargs,
        )

    async def __aenter__(self) -> "AuthStateRepository":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def store(self) -> DocumentStore:
        """The backing document store."""
        return self._store

    @property
    def is_connected(self) -> bool:
        """Whether the backing store connection is confirmed."""
        return self._store.is_connected

    # MARK: - Connection

    async def connect(self) -> None:
        """
        Connect to the backing store, applying the retry policy.

        Each attempt is bounded by the connect timeout.

        Raises:
            ConfigurationError: If the store rejects its connection settings.
            StoreConnectionError: If no attempt succeeded.
        """
        attempts = self._retry.max_attempts
        timeout = self._connect_timeout.total_seconds()
        last_error: Optional[BaseException] = None

        for attempt in range(1, attempts + 1):
            try:
                await asyncio.wait_for(self._store.connect(), timeout=timeout)
                logger.info("Backing store connected (attempt %d/%d)", attempt, attempts)
                return
            except asyncio.TimeoutError as e:
                last_error = e
                logger.warning(
                    "Backing store connection timed out after %.1fs (attempt %d/%d)",
                    timeout, attempt, attempts,
                )
            except StoreConnectionError as e:
                last_error = e
                logger.warning(
                    "Backing store connection failed (attempt %d/%d): %s",
                    attempt, attempts, e,
                )
            except ConfigurationError:
                # Never retried
                await self._store.close()
                raise

            if attempt < attempts:
                await asyncio.sleep(self._retry.delay.total_seconds())

        await self._store.close()
        raise StoreConnectionError(
            f"Could not connect to backing store after {attempts} attempt(s)"
        ) from last_error

    async def close(self) -> None:
        """Close the backing store connection."""
        await self._store.close()
        self._known = None

    # MARK: - Credentials

    async def load_credentials(self) -> AuthenticationCreds:
        """
        Load the credential record, generating and persisting one if absent.

        The record is always read from the store. A freshly generated
        identity is persisted before this returns.

        Raises:
            NotConnectedError: If called before connect().
            CorruptCredentialsError: If the stored record cannot be decoded.
            IdentityGenerationError: If a new identity could not be generated.
            StorageError: If the store read or write failed.
        """
        self._require_connection()

        async with self._credentials_lock:
            creds = await self._read_credentials()
            if creds is None:
                logger.info("No stored credentials; bootstrapping a new identity")
                creds = self._generate_credentials()
                await self._write_credentials(creds)
                logger.info(
                    "Persisted new identity %s",
                    fingerprint(creds.signed_identity_key.public),
                )

            self._known = _IdentitySnapshot.of(creds)
            return creds

    async def save_credentials(self, creds: AuthenticationCreds) -> None:
        """
        Replace the stored credential record with ``creds``.

        Raises:
            NotConnectedError: If called before connect().
            InvalidStateTransitionError: If the update changes the identity,
                unregisters the device, or moves a pre-key counter backwards.
            StorageError: If the store write failed.
        """
        self._require_connection()
        self._check_transition(creds)
        await self._write_credentials(creds)
        self._known = _IdentitySnapshot.of(creds)

    async def credential_state(self) -> CredentialState:
        """Report whether the store holds no, an unregistered, or a registered identity."""
        self._require_connection()
        return CredentialState.of(await self._read_credentials())

    async def reset(self, include_keys: bool = True) -> None:
        """
        Delete the credential record and, by default, every key record.

        The next load_credentials() bootstraps a brand-new identity.
        """
        self._require_connection()

        async with self._credentials_lock:
            if include_keys:
                deleted = await self._store.delete_all()
                logger.info("Reset store: deleted %d document(s)", deleted)
            else:
                async with self._write_lock(CREDS_DOCUMENT_ID):
                    await self._store.delete(CREDS_DOCUMENT_ID)
                logger.info("Reset store: deleted credentials")
            self._known = None

    async def _read_credentials(self) -> Optional[AuthenticationCreds]:
        document = await self._store.find(CREDS_DOCUMENT_ID)
        if document is None:
            return None
        try:
            return AuthenticationCreds.from_dict(decode_document(document))
        except _DECODE_ERRORS as e:
            raise CorruptCredentialsError(f"Stored credentials cannot be decoded: {e}") from e

    async def _write_credentials(self, creds: AuthenticationCreds) -> None:
        document = encode_document(CREDS_DOCUMENT_ID, creds.to_dict())
        async with self._write_lock(CREDS_DOCUMENT_ID):
            await self._store.replace(CREDS_DOCUMENT_ID, document)

    def _generate_credentials(self) -> AuthenticationCreds:
        try:
            return self._bootstrap()
        except IdentityGenerationError:
            raise
        except Exception as e:
            raise IdentityGenerationError(f"Failed to generate identity: {e}") from e

    def _check_transition(self, creds: AuthenticationCreds) -> None:
        known = self._known
        if known is None:
            return

        if (
            bytes(creds.signed_identity_key.public) != known.identity_public
            or creds.registration_id != known.registration_id
        ):
            raise InvalidStateTransitionError(
                "Identity key and registration id cannot change; reset() first"
            )
        if known.registered and not creds.registered:
            raise InvalidStateTransitionError("A registered device can only be unregistered by reset()")
        if (
            creds.next_pre_key_id < known.next_pre_key_id
            or creds.first_unuploaded_pre_key_id < known.first_unuploaded_pre_key_id
        ):
            raise InvalidStateTransitionError("Pre-key counters cannot decrease")

    # MARK: - Keys

    async def get_keys(
        self,
        category: CategoryLike,
        ids: Iterable[Hashable],
    ) -> dict[Hashable, Any]:
        """
        Fetch key records of one category concurrently.

        Args:
            category: The key category.
            ids: Key ids within the category.

        Returns:
            Mapping of every requested id to its value, or None when the
            record is absent or cannot be decoded.

        Raises:
            ValueError: For an unknown category.
            NotConnectedError: If called before connect().
            StorageError: If a store read failed.
        """
        kind = KeyCategory.parse(category)
        self._require_connection()

        key_ids = list(dict.fromkeys(ids))
        values = await asyncio.gather(*(self._read_key(kind, key_id) for key_id in key_ids))
        return dict(zip(key_ids, values))

    async def set_keys(self, updates: Mapping[CategoryLike, Mapping[Hashable, Any]]) -> None:
        """
        Apply a batch of key updates concurrently.

        A ``Present`` value (or any non-empty raw value) replaces the
        record; ``Absent`` (or None / an empty value) deletes it.

        Raises:
            ValueError: For an unknown category, before any I/O.
            NotConnectedError: If called before connect().
            KeyBatchError: After every operation was attempted, if any failed.
        """
        operations: list[tuple[KeyCategory, Hashable, KeyUpdate]] = []
        for category, entries in updates.items():
            kind = KeyCategory.parse(category)
            for key_id, value in entries.items():
                operations.append((kind, key_id, to_update(value)))
        self._require_connection()

        results = await asyncio.gather(
            *(self._apply_update(kind, key_id, update) for kind, key_id, update in operations),
            return_exceptions=True,
        )

        failures: dict[tuple[str, Hashable], BaseException] = {}
        for (kind, key_id, _), result in zip(operations, results):
            if result is None:
                continue
            if not isinstance(result, Exception):
                raise result
            logger.error("Key operation on %s failed: %s", kind.document_id(key_id), result)
            failures[(kind.value, key_id)] = result

        if failures:
            raise KeyBatchError(failures)

    async def _read_key(self, kind: KeyCategory, key_id: Hashable) -> Any:
        doc_id = kind.document_id(key_id)
        document = await self._store.find(doc_id)
        if document is None:
            return None
        try:
            return kind.post_decode(decode_document(document))
        except _DECODE_ERRORS as e:
            logger.warning("Treating undecodable key record %s as absent: %s", doc_id, e)
            return None

    async def _apply_update(self, kind: KeyCategory, key_id: Hashable, update: KeyUpdate) -> None:
        doc_id = kind.document_id(key_id)
        if isinstance(update, Present):
            document = encode_document(doc_id, kind.pre_encode(update.value))
            async with self._write_lock(doc_id):
                await self._store.replace(doc_id, document)
        elif isinstance(update, Absent):
            async with self._write_lock(doc_id):
                await self._store.delete(doc_id)

    # MARK: - Helpers

    def _write_lock(self, doc_id: str) -> asyncio.Lock:
        lock = self._write_locks.get(doc_id)
        if lock is None:
            lock = asyncio.Lock()
            self._write_locks[doc_id] = lock
        return lock

    def _require_connection(self) -> None:
        if not self._store.is_connected:
            raise NotConnectedError()
