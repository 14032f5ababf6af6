"""
Canonical byte encoding of a payment intent.

The signer and the verifier both derive the signed bytes with this encoder,
and the on-chain contract performs the same concatenation:

    from (32) | to (32) | amount u128 LE (16) | nonce UTF-8 text | validUntil u64 LE (8)

There are no separators or length prefixes. The nonce contributes the bytes of
its text exactly as generated (hex characters, no ``0x``), not the bytes the
hex would decode to.
"""
from dotpay.x402.crypto import CryptoContext
from dotpay.x402.types import PaymentIntent

AMOUNT_BYTES = 16
VALID_UNTIL_BYTES = 8


class CanonicalEncoder:
    """Deterministic serializer for PaymentIntents."""

    def __init__(self, crypto: CryptoContext):
        crypto.ensure_ready()
        self._crypto = crypto

    def encode(self, intent: PaymentIntent) -> bytes:
        """
        Encode an intent into the bytes a signature covers.

        Raises:
            ValueError: If an address cannot be decoded
            OverflowError: If amount or validUntil exceed their widths
        """
        from_bytes = self._crypto.decode_address(intent.from_)
        to_bytes = self._crypto.decode_address(intent.to)
        amount_bytes = intent.amount_value.to_bytes(AMOUNT_BYTES, "little")
        nonce_bytes = intent.nonce.encode("utf-8")
        valid_until_bytes = intent.valid_until.to_bytes(VALID_UNTIL_BYTES, "little")

        return b"".join((from_bytes, to_bytes, amount_bytes, nonce_bytes, valid_until_bytes))

    def digest(self, intent: PaymentIntent) -> bytes:
        """Blake2-256 hash of the canonical encoding."""
        return self._crypto.hash(self.encode(intent))
