"""Models for authstate credentials and key records."""

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Union


@dataclass
class KeyPair:
    """An asymmetric key pair as raw bytes."""
    public: bytes
    private: bytes

    def to_dict(self) -> dict[str, Any]:
        return {"public": self.public, "private": self.private}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KeyPair":
        return cls(public=bytes(data["public"]), private=bytes(data["private"]))


@dataclass
class SignedKeyPair:
    """A key pair whose public half is signed by the identity key."""
    key_pair: KeyPair
    signature: bytes
    key_id: int
    timestamp_s: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "keyPair": self.key_pair.to_dict(),
            "signature": self.signature,
            "keyId": self.key_id,
        }
        if self.timestamp_s is not None:
            data["timestampS"] = self.timestamp_s
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SignedKeyPair":
        return cls(
            key_pair=KeyPair.from_dict(data["keyPair"]),
            signature=bytes(data["signature"]),
            key_id=int(data["keyId"]),
            timestamp_s=data.get("timestampS"),
        )


@dataclass
class AccountSettings:
    """Account-level preferences synced with the protocol endpoint."""
    unarchive_chats: bool = False
    default_disappearing_mode: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"unarchiveChats": self.unarchive_chats}
        if self.default_disappearing_mode is not None:
            data["defaultDisappearingMode"] = self.default_disappearing_mode
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AccountSettings":
        return cls(
            unarchive_chats=bool(data.get("unarchiveChats", False)),
            default_disappearing_mode=data.get("defaultDisappearingMode"),
        )


# Optional session fields, persisted under these names when set.
_OPTIONAL_FIELDS = {
    "me": "me",
    "account": "account",
    "signal_identities": "signalIdentities",
    "my_app_state_key_id": "myAppStateKeyId",
    "platform": "platform",
    "last_account_sync_timestamp": "lastAccountSyncTimestamp",
    "pairing_code": "pairingCode",
    "last_prop_hash": "lastPropHash",
    "routing_info": "routingInfo",
    "additional_data": "additionalData",
}

_REQUIRED_FIELDS = {
    "noiseKey",
    "pairingEphemeralKeyPair",
    "signedIdentityKey",
    "signedPreKey",
    "registrationId",
    "advSecretKey",
}


@dataclass
class AuthenticationCreds:
    """
    The singleton credential record of a paired device.

    The protocol client mutates an instance in place; the repository
    persists it with ``save_credentials``. Registration id and long-term
    keys never change after the record is created.
    """

    # Identity material
    noise_key: KeyPair
    pairing_ephemeral_key_pair: KeyPair
    signed_identity_key: KeyPair
    signed_pre_key: SignedKeyPair
    registration_id: int
    adv_secret_key: str

    # Pre-key counters
    next_pre_key_id: int = 1
    first_unuploaded_pre_key_id: int = 1

    # Sync state
    processed_history_messages: list[Any] = field(default_factory=list)
    account_sync_counter: int = 0
    account_settings: AccountSettings = field(default_factory=AccountSettings)
    registered: bool = False

    # Session identity, filled in by the protocol client after pairing
    me: Optional[dict[str, Any]] = None
    account: Optional[dict[str, Any]] = None
    signal_identities: Optional[list[dict[str, Any]]] = None
    my_app_state_key_id: Optional[str] = None
    platform: Optional[str] = None
    last_account_sync_timestamp: Optional[int] = None
    pairing_code: Optional[str] = None
    last_prop_hash: Optional[str] = None
    routing_info: Optional[bytes] = None
    additional_data: Optional[Any] = None

    # Persisted fields this version does not model, kept verbatim
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def identity_key_pair(self) -> KeyPair:
        """The long-term identity key pair."""
        return self.signed_identity_key

    @property
    def adv_secret_key_bytes(self) -> bytes:
        """The application-state signing secret as raw bytes."""
        return base64.b64decode(self.adv_secret_key)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted record shape (bytes left raw for the codec)."""
        data: dict[str, Any] = dict(self.extra)
        data.update({
            "noiseKey": self.noise_key.to_dict(),
            "pairingEphemeralKeyPair": self.pairing_ephemeral_key_pair.to_dict(),
            "signedIdentityKey": self.signed_identity_key.to_dict(),
            "signedPreKey": self.signed_pre_key.to_dict(),
            "registrationId": self.registration_id,
            "advSecretKey": self.adv_secret_key,
            "nextPreKeyId": self.next_pre_key_id,
            "firstUnuploadedPreKeyId": self.first_unuploaded_pre_key_id,
            "processedHistoryMessages": list(self.processed_history_messages),
            "accountSyncCounter": self.account_sync_counter,
            "accountSettings": self.account_settings.to_dict(),
            "registered": self.registered,
        })
        for attr, name in _OPTIONAL_FIELDS.items():
            value = getattr(self, attr)
            if value is not None:
                data[name] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuthenticationCreds":
        """
        Build credentials from a decoded record.

        Raises:
            KeyError: If a required identity field is missing.
        """
        missing = _REQUIRED_FIELDS - set(data)
        if missing:
            raise KeyError(f"Credential record is missing fields: {sorted(missing)}")

        known = _REQUIRED_FIELDS | set(_OPTIONAL_FIELDS.values()) | {
            "nextPreKeyId",
            "firstUnuploadedPreKeyId",
            "processedHistoryMessages",
            "accountSyncCounter",
            "accountSettings",
            "registered",
        }
        optional = {attr: data.get(name) for attr, name in _OPTIONAL_FIELDS.items()}
        if optional["routing_info"] is not None:
            optional["routing_info"] = bytes(optional["routing_info"])

        return cls(
            noise_key=KeyPair.from_dict(data["noiseKey"]),
            pairing_ephemeral_key_pair=KeyPair.from_dict(data["pairingEphemeralKeyPair"]),
            signed_identity_key=KeyPair.from_dict(data["signedIdentityKey"]),
            signed_pre_key=SignedKeyPair.from_dict(data["signedPreKey"]),
            registration_id=int(data["registrationId"]),
            adv_secret_key=data["advSecretKey"],
            next_pre_key_id=int(data.get("nextPreKeyId", 1)),
            first_unuploaded_pre_key_id=int(data.get("firstUnuploadedPreKeyId", 1)),
            processed_history_messages=list(data.get("processedHistoryMessages") or []),
            account_sync_counter=int(data.get("accountSyncCounter", 0)),
            account_settings=AccountSettings.from_dict(data.get("accountSettings") or {}),
            registered=bool(data.get("registered", False)),
            extra={k: v for k, v in data.items() if k not in known},
            **optional,
        )


class CredentialState(Enum):
    """Lifecycle state of the credential record in a store."""
    ABSENT = "absent"
    UNREGISTERED = "unregistered"
    REGISTERED = "registered"

    @classmethod
    def of(cls, creds: Optional[AuthenticationCreds]) -> "CredentialState":
        if creds is None:
            return cls.ABSENT
        return cls.REGISTERED if creds.registered else cls.UNREGISTERED


# MARK: - App state sync keys


@dataclass
class AppStateSyncKeyFingerprint:
    """Fingerprint identifying which device issued an app-state sync key."""
    raw_id: Optional[int] = None
    current_index: Optional[int] = None
    device_indexes: list[int] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    _FIELDS = ("rawId", "currentIndex", "deviceIndexes")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.extra)
        data["deviceIndexes"] = list(self.device_indexes)
        if self.raw_id is not None:
            data["rawId"] = self.raw_id
        if self.current_index is not None:
            data["currentIndex"] = self.current_index
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppStateSyncKeyFingerprint":
        return cls(
            raw_id=data.get("rawId"),
            current_index=data.get("currentIndex"),
            device_indexes=[int(i) for i in data.get("deviceIndexes") or []],
            extra={k: v for k, v in data.items() if k not in cls._FIELDS},
        )


@dataclass
class AppStateSyncKeyData:
    """A versioned symmetric key for decrypting app-state sync patches."""
    key_data: bytes
    fingerprint: Optional[AppStateSyncKeyFingerprint] = None
    timestamp: Optional[int] = None
    extra: dict[str, Any] = field(default_factory=dict)

    _FIELDS = ("keyData", "fingerprint", "timestamp")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.extra)
        data["keyData"] = self.key_data
        if self.fingerprint is not None:
            data["fingerprint"] = self.fingerprint.to_dict()
        if self.timestamp is not None:
            data["timestamp"] = self.timestamp
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppStateSyncKeyData":
        fingerprint = data.get("fingerprint")
        timestamp = data.get("timestamp")
        return cls(
            key_data=bytes(data["keyData"]),
            fingerprint=AppStateSyncKeyFingerprint.from_dict(fingerprint) if fingerprint else None,
            timestamp=int(timestamp) if timestamp is not None else None,
            extra={k: v for k, v in data.items() if k not in cls._FIELDS},
        )


# MARK: - Key categories


def _passthrough(value: Any) -> Any:
    return value


def _app_state_sync_key_to_record(value: Any) -> Any:
    if isinstance(value, AppStateSyncKeyData):
        return value.to_dict()
    return value


def _app_state_sync_key_from_record(value: Any) -> AppStateSyncKeyData:
    if not isinstance(value, dict):
        raise TypeError(f"app-state-sync-key record must be a mapping, got {type(value).__name__}")
    return AppStateSyncKeyData.from_dict(value)


class KeyCategory(Enum):
    """The closed set of key record kinds the protocol client stores."""
    PRE_KEY = "pre-key"
    SESSION = "session"
    SENDER_KEY = "sender-key"
    SENDER_KEY_MEMORY = "sender-key-memory"
    APP_STATE_SYNC_KEY = "app-state-sync-key"
    APP_STATE_SYNC_VERSION = "app-state-sync-version"
    IDENTITY_KEY = "identity-key"
    LID_MAPPING = "lid-mapping"
    DEVICE_LIST = "device-list"
    TC_TOKEN = "tctoken"

    @classmethod
    def parse(cls, category: Union["KeyCategory", str]) -> "KeyCategory":
        """Resolve a category name, raising ValueError for unknown names."""
        if isinstance(category, cls):
            return category
        try:
            return cls(category)
        except ValueError:
            raise ValueError(f"Unknown key category: {category!r}") from None

    def document_id(self, key_id: Any) -> str:
        """The store document id for a key record in this category."""
        return f"{self.value}-{key_id}"

    def pre_encode(self, value: Any) -> Any:
        """Convert a structured value into a codec-ready record."""
        return _PRE_ENCODE.get(self, _passthrough)(value)

    def post_decode(self, value: Any) -> Any:
        """Convert a codec-decoded record into this category's value type."""
        return _POST_DECODE.get(self, _passthrough)(value)


_PRE_ENCODE: dict[KeyCategory, Callable[[Any], Any]] = {
    KeyCategory.APP_STATE_SYNC_KEY: _app_state_sync_key_to_record,
}

_POST_DECODE: dict[KeyCategory, Callable[[Any], Any]] = {
    KeyCategory.APP_STATE_SYNC_KEY: _app_state_sync_key_from_record,
}


# MARK: - Key updates


@dataclass(frozen=True)
class Present:
    """Update payload that stores ``value`` under a compound key."""
    value: Any


@dataclass(frozen=True)
class Absent:
    """Update payload that deletes the record under a compound key."""


KeyUpdate = Union[Present, Absent]


def to_update(value: Any) -> KeyUpdate:
    """
    Normalize a raw update value from the protocol client.

    ``None`` and empty values mean "delete"; anything else is stored.
    """
    if isinstance(value, (Present, Absent)):
        return value
    if value is None:
        return Absent()
    if isinstance(value, (bytes, bytearray, memoryview, str, dict, list, tuple)) and len(value) == 0:
        return Absent()
    return Present(value)
