"""
Server-side verification of signed payment intents.
"""
import logging
from typing import Optional

from dotpay.x402.crypto import CryptoContext
from dotpay.x402.encoding import CanonicalEncoder
from dotpay.x402.payload import now_ms
from dotpay.x402.types import PaymentIntent, SignedIntent

logger = logging.getLogger(__name__)


class SignatureVerifier:
    """
    Re-derives the canonical encoding of a received intent and checks its
    signature.

    Verification failure is a boolean outcome: malformed payloads, bad
    addresses and bad signatures all yield ``False``.
    """

    def __init__(self, crypto: CryptoContext):
        self._crypto = crypto
        self._encoder = CanonicalEncoder(crypto)

    def verify(self, signed: SignedIntent) -> bool:
        if not signed.signer_public_key:
            logger.warning("Payment carries no signer public key")
            return False

        try:
            intent = signed.parse_intent()
            digest = self._encoder.digest(intent)
            public_key = self._crypto.decode_address(signed.signer_public_key)
            is_valid = self._crypto.verify(digest, signed.signature, public_key)
        except Exception as e:
            logger.warning(f"Payment signature verification failed: {e}")
            return False

        logger.debug(f"Signature verification result: {is_valid}")

        # The signer must be the account whose funds are authorized.
        return is_valid and intent.from_ == signed.signer_public_key


def is_payment_expired(intent: PaymentIntent, now: Optional[int] = None) -> bool:
    """An intent is expired from the millisecond ``valid_until`` is reached."""
    now = now_ms() if now is None else now
    return now >= intent.valid_until
