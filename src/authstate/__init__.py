"""
authstate - Durable credential and key-material store

Persists the identity and session key material of an end-to-end encrypted
messaging client in a document store (MongoDB), with binary-exact
serialization and identity bootstrap via X25519 + Ed25519.
"""

from .codec import encode, decode, encode_document, decode_document, is_tagged_buffer
from .keys import generate_keypair, generate_identity_keypair, generate_random_bytes
from .signature import sign_pre_key, verify_pre_key, fingerprint, SignatureError
from .models import (
    KeyPair,
    SignedKeyPair,
    AccountSettings,
    AuthenticationCreds,
    CredentialState,
    AppStateSyncKeyFingerprint,
    AppStateSyncKeyData,
    KeyCategory,
    Present,
    Absent,
    KeyUpdate,
    to_update,
)
from .bootstrap import init_auth_creds, verify_auth_creds, generate_registration_id
from .config import RetryPolicy, StoreConfig
from .storage import (
    DocumentStore,
    InMemoryDocumentStore,
    MongoDocumentStore,
    open_document_store,
)
from .repository import AuthStateRepository
from .auth_state import (
    SignalKeyStore,
    AuthenticationState,
    AuthStateHandle,
    use_auth_state,
    use_mongodb_auth_state,
)
from .types import (
    MIN_REGISTRATION_ID,
    MAX_REGISTRATION_ID,
    AuthStateError,
    ConfigurationError,
    StoreConnectionError,
    NotConnectedError,
    StorageError,
    CodecError,
    CorruptCredentialsError,
    IdentityGenerationError,
    InvalidStateTransitionError,
    KeyBatchError,
)

__version__ = "0.1.0"

__all__ = [
    # Codec
    "encode",
    "decode",
    "encode_document",
    "decode_document",
    "is_tagged_buffer",
    # Keys
    "generate_keypair",
    "generate_identity_keypair",
    "generate_random_bytes",
    # Signature
    "sign_pre_key",
    "verify_pre_key",
    "fingerprint",
    "SignatureError",
    # Models
    "KeyPair",
    "SignedKeyPair",
    "AccountSettings",
    "AuthenticationCreds",
    "CredentialState",
    "AppStateSyncKeyFingerprint",
    "AppStateSyncKeyData",
    "KeyCategory",
    "Present",
    "Absent",
    "KeyUpdate",
    "to_update",
    # Bootstrap
    "init_auth_creds",
    "verify_auth_creds",
    "generate_registration_id",
    # Config
    "RetryPolicy",
    "StoreConfig",
    # Storage
    "DocumentStore",
    "InMemoryDocumentStore",
    "MongoDocumentStore",
    "open_document_store",
    # Repository
    "AuthStateRepository",
    # Auth state
    "SignalKeyStore",
    "AuthenticationState",
    "AuthStateHandle",
    "use_auth_state",
    "use_mongodb_auth_state",
    # Errors
    "AuthStateError",
    "ConfigurationError",
    "StoreConnectionError",
    "NotConnectedError",
    "StorageError",
    "CodecError",
    "CorruptCredentialsError",
    "IdentityGenerationError",
    "InvalidStateTransitionError",
    "KeyBatchError",
    # Constants
    "MIN_REGISTRATION_ID",
    "MAX_REGISTRATION_ID",
]
