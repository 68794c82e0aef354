"""
Signed pre-key signatures for authstate identities.

The identity key signs the type-prefixed public half of the signed
pre-key. A remote endpoint checks that signature against the identity
public key before it accepts the pre-key, so a record whose signature does
not verify is unusable for a handshake.
"""

import hashlib

from cryptography.exceptions import InvalidSignature

from .keys import (
    ed25519_private_key_from_bytes,
    ed25519_public_key_from_bytes,
    signal_public_key,
)
from .models import KeyPair, SignedKeyPair
from .types import KEY_SIZE, SIGNATURE_SIZE, AuthStateError


class SignatureError(AuthStateError):
    """Error raised when signature operations fail."""
    pass


def sign_pre_key(identity_key: KeyPair, pre_key: KeyPair, key_id: int) -> SignedKeyPair:
    """
    Sign a pre-key with the identity key.

    Args:
        identity_key: The Ed25519 identity key pair.
        pre_key: The X25519 pre-key pair to sign.
        key_id: The numeric id of the signed pre-key.

    Returns:
        The signed pre-key.

    Raises:
        SignatureError: If a key has the wrong length.
    """
    if len(identity_key.private) != KEY_SIZE:
        raise SignatureError(
            f"Identity private key must be {KEY_SIZE} bytes, "
            f"got {len(identity_key.private)}"
        )
    if len(pre_key.public) != KEY_SIZE:
        raise SignatureError(
            f"Pre-key public key must be {KEY_SIZE} bytes, "
            f"got {len(pre_key.public)}"
        )

    signing_key = ed25519_private_key_from_bytes(identity_key.private)
    signature = signing_key.sign(signal_public_key(pre_key.public))
    return SignedKeyPair(key_pair=pre_key, signature=signature, key_id=key_id)


def verify_pre_key(identity_public_key: bytes, signed_pre_key: SignedKeyPair) -> bool:
    """
    Verify that a signed pre-key was signed by an identity key.

    Args:
        identity_public_key: The raw Ed25519 identity public key (32 bytes).
        signed_pre_key: The signed pre-key to check.

    Returns:
        True if the signature is valid, False otherwise.

    Raises:
        SignatureError: If the key or signature lengths are invalid.
    """
    if len(identity_public_key) != KEY_SIZE:
        raise SignatureError(
            f"Identity public key must be {KEY_SIZE} bytes, "
            f"got {len(identity_public_key)}"
        )
    if len(signed_pre_key.signature) != SIGNATURE_SIZE:
        raise SignatureError(
            f"Signature must be {SIGNATURE_SIZE} bytes, "
            f"got {len(signed_pre_key.signature)}"
        )
    if len(signed_pre_key.key_pair.public) != KEY_SIZE:
        raise SignatureError(
            f"Pre-key public key must be {KEY_SIZE} bytes, "
            f"got {len(signed_pre_key.key_pair.public)}"
        )

    try:
        verifying_key = ed25519_public_key_from_bytes(identity_public_key)
    except ValueError as e:
        raise SignatureError(f"Invalid Ed25519 public key: {e}") from e

    try:
        verifying_key.verify(
            signed_pre_key.signature,
            signal_public_key(signed_pre_key.key_pair.public),
        )
        return True
    except InvalidSignature:
        return False


def fingerprint(public_key: bytes) -> str:
    """
    Generate a human-readable fingerprint for a public key.

    Safe to log; the fingerprint is a truncated SHA-256 hash.

    Args:
        public_key: The public key bytes.

    Returns:
        A fingerprint string like "A7B3C9D1 E5F28A4B"
    """
    hash_bytes = hashlib.sha256(public_key).digest()

    hex_bytes = [f"{b:02X}" for b in hash_bytes[:8]]

    # Group into pairs of bytes (4 chars each), space separated
    groups = [hex_bytes[i] + hex_bytes[i + 1] for i in range(0, 8, 2)]

    return " ".join(groups)
