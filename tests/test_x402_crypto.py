# tests/test_x402_crypto.py
"""
Unit tests for SS58 addresses, the crypto context and local signers.
"""
import hashlib

import pytest

from dotpay.x402.crypto import (
    CryptoContext,
    KeypairSigner,
    blake2_256,
    decode_hex,
    ss58_decode,
    ss58_encode,
)

from tests.helpers import ALICE, ALICE_PUBLIC_KEY, BOB, BOB_PUBLIC_KEY


class TestSS58:
    """Test SS58 address encoding and decoding."""

    def test_decode_alice(self):
        """Well-known dev account decodes to its public key."""
        assert ss58_decode(ALICE).hex() == ALICE_PUBLIC_KEY

    def test_decode_bob(self):
        assert ss58_decode(BOB).hex() == BOB_PUBLIC_KEY

    def test_encode_generic_substrate(self):
        """Format 42 reproduces the familiar 5... address."""
        assert ss58_encode(bytes.fromhex(ALICE_PUBLIC_KEY)) == ALICE

    def test_two_byte_prefix(self):
        """Formats >= 64 use a two-byte prefix and still decode."""
        key = bytes.fromhex(BOB_PUBLIC_KEY)
        address = ss58_encode(key, ss58_format=2000)
        assert ss58_decode(address) == key
        assert ss58_decode(address, ss58_format=2000) == key

    def test_format_mismatch(self):
        """An explicit expected format must match the address prefix."""
        with pytest.raises(ValueError):
            ss58_decode(ALICE, ss58_format=0)

    def test_bad_checksum(self):
        """A corrupted character breaks the checksum."""
        corrupted = ALICE[:-1] + ("Z" if ALICE[-1] != "Z" else "Y")
        with pytest.raises(ValueError):
            ss58_decode(corrupted)

    def test_invalid_base58(self):
        """Characters outside the base58 alphabet are rejected."""
        with pytest.raises(ValueError):
            ss58_decode("0OIl" * 12)

    def test_hex_public_key_accepted(self):
        assert ss58_decode("0x" + ALICE_PUBLIC_KEY).hex() == ALICE_PUBLIC_KEY

    def test_short_hex_rejected(self):
        with pytest.raises(ValueError):
            ss58_decode("0xdeadbeef")

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            ss58_decode("")

    def test_encode_wrong_key_length(self):
        with pytest.raises(ValueError):
            ss58_encode(b"\x01" * 31)

    def test_encode_reserved_format(self):
        with pytest.raises(ValueError):
            ss58_encode(bytes.fromhex(ALICE_PUBLIC_KEY), ss58_format=46)


class TestHelpers:
    """Test hashing and hex helpers."""

    def test_blake2_256(self):
        assert blake2_256(b"abc") == hashlib.blake2b(b"abc", digest_size=32).digest()
        assert len(blake2_256(b"")) == 32

    def test_decode_hex_with_and_without_prefix(self):
        assert decode_hex("0x0a0b") == b"\x0a\x0b"
        assert decode_hex("0a0b") == b"\x0a\x0b"


class TestCryptoContext:
    """Test explicit crypto initialization."""

    def test_initialize_returns_ready_handle(self):
        crypto = CryptoContext.initialize()
        assert crypto.ready is True
        assert crypto.ss58_format == 42

    def test_uninitialized_handle_refuses_to_verify(self):
        """Using a handle that was never initialized is an error."""
        crypto = CryptoContext()
        assert crypto.ready is False
        with pytest.raises(RuntimeError):
            crypto.verify(b"msg", "0x" + "00" * 64, bytes(32))

    def test_uninitialized_handle_refuses_signer(self):
        with pytest.raises(RuntimeError):
            KeypairSigner.generate(CryptoContext())

    def test_encode_address_uses_context_format(self):
        crypto = CryptoContext.initialize(ss58_format=0)
        address = crypto.encode_address(bytes.fromhex(ALICE_PUBLIC_KEY))
        assert address != ALICE
        assert crypto.decode_address(address).hex() == ALICE_PUBLIC_KEY


class TestKeypairSigner:
    """Test local ed25519 signing."""

    def test_address_matches_public_key(self, crypto, payer):
        assert crypto.decode_address(payer.address) == payer.public_key

    def test_from_hex_seed(self, crypto, payer):
        """Hex and raw seeds give the same identity."""
        same = KeypairSigner.from_seed("0x" + bytes(range(32)).hex(), crypto)
        assert same.address == payer.address

    def test_seed_length_checked(self, crypto):
        with pytest.raises(ValueError):
            KeypairSigner.from_seed(b"short", crypto)

    def test_sign_and_verify(self, crypto, payer):
        """Signature is 0x-prefixed hex of 64 bytes and verifies."""
        result = payer.sign(b"\x01" * 32)
        assert result.signer == payer.address
        assert result.signature.startswith("0x")
        assert len(decode_hex(result.signature)) == 64
        assert crypto.verify(b"\x01" * 32, result.signature, payer.public_key) is True

    def test_verify_rejects_other_message(self, crypto, payer):
        result = payer.sign(b"\x01" * 32)
        assert crypto.verify(b"\x02" * 32, result.signature, payer.public_key) is False

    def test_verify_rejects_other_key(self, crypto, payer, other_signer):
        result = payer.sign(b"\x01" * 32)
        assert crypto.verify(b"\x01" * 32, result.signature, other_signer.public_key) is False

    def test_verify_rejects_wrong_length(self, crypto, payer):
        assert crypto.verify(b"\x01" * 32, "0x" + "ab" * 10, payer.public_key) is False
