"""Key generation and raw-byte conversion for authstate."""

import secrets

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey

from .models import KeyPair
from .types import KEY_BUNDLE_TYPE, KEY_SIZE


def generate_keypair() -> KeyPair:
    """
    Generate a random X25519 key pair.

    Used for the noise key, the pairing ephemeral key and pre-keys.

    Returns:
        KeyPair holding the raw 32-byte public and private keys.
    """
    private_key = X25519PrivateKey.generate()
    return KeyPair(
        public=private_key.public_key().public_bytes_raw(),
        private=private_key.private_bytes_raw(),
    )


def generate_identity_keypair() -> KeyPair:
    """
    Generate a random Ed25519 identity key pair.

    Returns:
        KeyPair holding the raw 32-byte public key and private seed.
    """
    private_key = Ed25519PrivateKey.generate()
    return KeyPair(
        public=private_key.public_key().public_bytes_raw(),
        private=private_key.private_bytes_raw(),
    )


def generate_random_bytes(length: int = KEY_SIZE) -> bytes:
    """Return ``length`` cryptographically secure random bytes."""
    if length <= 0:
        raise ValueError(f"Length must be positive, got {length}")
    return secrets.token_bytes(length)


def signal_public_key(public_key: bytes) -> bytes:
    """Prefix a raw 32-byte public key with the DJB key type byte."""
    if len(public_key) == KEY_SIZE + 1 and public_key[:1] == KEY_BUNDLE_TYPE:
        return public_key
    if len(public_key) != KEY_SIZE:
        raise ValueError(f"Public key must be {KEY_SIZE} bytes, got {len(public_key)}")
    return KEY_BUNDLE_TYPE + public_key


def x25519_private_key_from_bytes(data: bytes) -> X25519PrivateKey:
    """Create X25519 private key from raw bytes."""
    return X25519PrivateKey.from_private_bytes(data)


def ed25519_public_key_from_bytes(data: bytes) -> Ed25519PublicKey:
    """Create Ed25519 public key from raw bytes."""
    return Ed25519PublicKey.from_public_bytes(data)


def ed25519_private_key_from_bytes(data: bytes) -> Ed25519PrivateKey:
    """Create Ed25519 private key from its raw 32-byte seed."""
    return Ed25519PrivateKey.from_private_bytes(data)
