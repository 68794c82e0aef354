"""Tests for signature module."""

import pytest

from authstate.keys import generate_identity_keypair, generate_keypair
from authstate.models import SignedKeyPair
from authstate.signature import (
    SignatureError,
    fingerprint,
    sign_pre_key,
    verify_pre_key,
)
from authstate.types import SIGNATURE_SIZE, AuthStateError


class TestSignAndVerify:
    """Tests for sign and verify roundtrip."""

    def test_sign_and_verify_roundtrip(self):
        """Test that a signed pre-key verifies against the identity key."""
        identity = generate_identity_keypair()
        signed = sign_pre_key(identity, generate_keypair(), key_id=1)

        assert len(signed.signature) == SIGNATURE_SIZE
        assert signed.key_id == 1
        assert verify_pre_key(identity.public, signed) is True

    def test_verify_wrong_identity_fails(self):
        """Test that verification fails with another identity key."""
        identity = generate_identity_keypair()
        other = generate_identity_keypair()
        signed = sign_pre_key(identity, generate_keypair(), key_id=1)

        assert verify_pre_key(other.public, signed) is False

    def test_verify_swapped_pre_key_fails(self):
        """Test that the signature does not cover a different pre-key."""
        identity = generate_identity_keypair()
        signed = sign_pre_key(identity, generate_keypair(), key_id=1)
        swapped = SignedKeyPair(
            key_pair=generate_keypair(),
            signature=signed.signature,
            key_id=signed.key_id,
        )

        assert verify_pre_key(identity.public, swapped) is False

    def test_verify_tampered_signature_fails(self):
        """Test that a modified signature fails."""
        identity = generate_identity_keypair()
        signed = sign_pre_key(identity, generate_keypair(), key_id=1)
        tampered = bytearray(signed.signature)
        tampered[0] ^= 0xFF
        signed.signature = bytes(tampered)

        assert verify_pre_key(identity.public, signed) is False


class TestValidation:
    """Tests for length validation."""

    def test_sign_rejects_short_identity_key(self):
        """Identity private keys must be 32 bytes."""
        identity = generate_identity_keypair()
        identity.private = identity.private[:16]

        with pytest.raises(SignatureError, match="32 bytes"):
            sign_pre_key(identity, generate_keypair(), key_id=1)

    def test_signature_errors_are_auth_state_errors(self):
        """SignatureError can be caught as AuthStateError."""
        identity = generate_identity_keypair()
        identity.private = b""

        with pytest.raises(AuthStateError):
            sign_pre_key(identity, generate_keypair(), key_id=1)

    def test_verify_rejects_short_signature(self):
        """Signatures must be 64 bytes."""
        identity = generate_identity_keypair()
        signed = sign_pre_key(identity, generate_keypair(), key_id=1)
        signed.signature = signed.signature[:10]

        with pytest.raises(SignatureError, match="64 bytes"):
            verify_pre_key(identity.public, signed)

    def test_verify_rejects_short_identity_public_key(self):
        """Identity public keys must be 32 bytes."""
        identity = generate_identity_keypair()
        signed = sign_pre_key(identity, generate_keypair(), key_id=1)

        with pytest.raises(SignatureError, match="32 bytes"):
            verify_pre_key(identity.public[:31], signed)


class TestFingerprint:
    """Tests for key fingerprints."""

    def test_fingerprint_format(self):
        """Test fingerprint is four space-separated groups of hex."""
        fp = fingerprint(bytes(32))
        groups = fp.split(" ")

        assert len(groups) == 4
        assert all(len(g) == 4 for g in groups)
        assert fp == fp.upper()

    def test_fingerprint_deterministic(self):
        """Test the same key always gives the same fingerprint."""
        key = generate_keypair().public
        assert fingerprint(key) == fingerprint(key)
        assert fingerprint(key) != fingerprint(generate_keypair().public)
