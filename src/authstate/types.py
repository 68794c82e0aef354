"""Type definitions and constants for authstate."""

from typing import Hashable


# Protocol constants
MIN_REGISTRATION_ID = 1
MAX_REGISTRATION_ID = 16383
KEY_SIZE = 32
SIGNATURE_SIZE = 64
ADV_SECRET_SIZE = 32
KEY_BUNDLE_TYPE = b"\x05"  # DJB key type prefix on signed public keys
INITIAL_PRE_KEY_ID = 1
SIGNED_PRE_KEY_ID = 1

# Document ids
CREDS_DOCUMENT_ID = "creds"

# Codec markers
BUFFER_TYPE_TAG = "Buffer"
WRAPPED_VALUE_FIELD = "_value"
LITERAL_MAPPING_FIELD = "_literal"
DOCUMENT_ID_FIELD = "_id"


# Exception types
class AuthStateError(Exception):
    """Base exception for authstate errors."""
    pass


class ConfigurationError(AuthStateError):
    """Store configuration is missing or invalid."""
    pass


class StoreConnectionError(AuthStateError):
    """Backing store is unreachable or the connection attempt timed out."""
    pass


class NotConnectedError(StoreConnectionError):
    """Repository used before its backing store connection was confirmed."""

    def __init__(self) -> None:
        super().__init__("Backing store is not connected; call connect() first")


class StorageError(AuthStateError):
    """A backing store read, write or delete failed."""
    pass


class CodecError(AuthStateError):
    """A record could not be encoded or decoded."""
    pass


class CorruptCredentialsError(AuthStateError):
    """The persisted credential record exists but cannot be decoded."""
    pass


class IdentityGenerationError(AuthStateError):
    """Fresh identity material could not be generated."""
    pass


class InvalidStateTransitionError(AuthStateError):
    """A credential update would violate the credential lifecycle."""
    pass


class KeyBatchError(AuthStateError):
    """
    One or more operations of a key batch failed.

    Every operation in the batch was attempted; ``failures`` maps each
    failed ``(category, id)`` pair to the exception it raised.
    """

    def __init__(self, failures: dict[tuple[str, Hashable], BaseException]) -> None:
        self.failures = dict(failures)
        keys = ", ".join(f"{category}-{key_id}" for category, key_id in self.failures)
        super().__init__(f"{len(self.failures)} key operation(s) failed: {keys}")

    @property
    def failed_keys(self) -> list[tuple[str, Hashable]]:
        """The ``(category, id)`` pairs whose operation failed."""
        return list(self.failures)
