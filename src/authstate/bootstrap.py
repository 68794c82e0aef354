"""
Identity bootstrap for a device with no persisted credentials.

Every key field is produced by a real key generator; there is no
degraded mode. If generation fails the error propagates and no identity
is returned.
"""

import base64
import logging
import secrets

from .keys import (
    ed25519_private_key_from_bytes,
    generate_identity_keypair,
    generate_keypair,
    generate_random_bytes,
    x25519_private_key_from_bytes,
)
from .models import AccountSettings, AuthenticationCreds, KeyPair
from .signature import SignatureError, fingerprint, sign_pre_key, verify_pre_key
from .types import (
    ADV_SECRET_SIZE,
    INITIAL_PRE_KEY_ID,
    MAX_REGISTRATION_ID,
    MIN_REGISTRATION_ID,
    SIGNED_PRE_KEY_ID,
    IdentityGenerationError,
)

logger = logging.getLogger(__name__)


def generate_registration_id() -> int:
    """Draw a registration id uniformly from the accepted id range."""
    return MIN_REGISTRATION_ID + secrets.randbelow(MAX_REGISTRATION_ID - MIN_REGISTRATION_ID + 1)


def init_auth_creds() -> AuthenticationCreds:
    """
    Generate a fresh, unregistered credential record.

    Returns:
        New AuthenticationCreds with pre-key counters at 1 and
        ``registered`` False.

    Raises:
        IdentityGenerationError: If randomness or key generation fails.
    """
    try:
        identity_key = generate_identity_keypair()
        signed_pre_key = sign_pre_key(identity_key, generate_keypair(), SIGNED_PRE_KEY_ID)
        creds = AuthenticationCreds(
            noise_key=generate_keypair(),
            pairing_ephemeral_key_pair=generate_keypair(),
            signed_identity_key=identity_key,
            signed_pre_key=signed_pre_key,
            registration_id=generate_registration_id(),
            adv_secret_key=base64.b64encode(generate_random_bytes(ADV_SECRET_SIZE)).decode("ascii"),
            next_pre_key_id=INITIAL_PRE_KEY_ID,
            first_unuploaded_pre_key_id=INITIAL_PRE_KEY_ID,
            account_settings=AccountSettings(unarchive_chats=False),
            registered=False,
        )
    except Exception as e:
        raise IdentityGenerationError(f"Failed to generate identity: {e}") from e

    logger.info(
        "Generated identity %s (registration id %d)",
        fingerprint(identity_key.public),
        creds.registration_id,
    )
    return creds


def verify_auth_creds(creds: AuthenticationCreds) -> bool:
    """
    Check that a credential record is internally consistent.

    Verifies the signed pre-key signature against the identity key, that
    every public key matches its private key, and the registration id range.

    Returns:
        True if the record is usable for a handshake, False otherwise.
    """
    if not MIN_REGISTRATION_ID <= creds.registration_id <= MAX_REGISTRATION_ID:
        return False

    try:
        if not verify_pre_key(creds.signed_identity_key.public, creds.signed_pre_key):
            return False
        if not _identity_pair_matches(creds.signed_identity_key):
            return False
        x25519_pairs = (
            creds.noise_key,
            creds.pairing_ephemeral_key_pair,
            creds.signed_pre_key.key_pair,
        )
        return all(_x25519_pair_matches(pair) for pair in x25519_pairs)
    except (SignatureError, ValueError):
        return False


def _identity_pair_matches(pair: KeyPair) -> bool:
    private_key = ed25519_private_key_from_bytes(pair.private)
    return private_key.public_key().public_bytes_raw() == pair.public


def _x25519_pair_matches(pair: KeyPair) -> bool:
    private_key = x25519_private_key_from_bytes(pair.private)
    return private_key.public_key().public_bytes_raw() == pair.public
