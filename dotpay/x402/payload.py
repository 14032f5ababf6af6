"""
Helpers for constructing and signing payment intents.
"""
import logging
import secrets
import time
from typing import Optional

from dotpay.x402.crypto import CryptoContext, Signer
from dotpay.x402.encoding import CanonicalEncoder
from dotpay.x402.header import encode_payment_header
from dotpay.x402.types import (
    X402_VERSION,
    PaymentIntent,
    PaymentOffer,
    SignedIntent,
    TransportHeader,
)

logger = logging.getLogger(__name__)

NONCE_BYTES = 16
DEFAULT_VALIDITY_MINUTES = 5


def now_ms() -> int:
    """Current time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def generate_nonce() -> str:
    """Random nonce: 16 bytes as 32 lowercase hex characters, no ``0x``."""
    return secrets.token_hex(NONCE_BYTES)


def build_payment_intent(
    payer: str,
    offer: PaymentOffer,
    validity_minutes: int = DEFAULT_VALIDITY_MINUTES,
    *,
    now: Optional[int] = None,
    nonce: Optional[str] = None,
) -> PaymentIntent:
    """
    Build a time-bounded PaymentIntent answering an offer.

    Recipient, amount and asset are copied verbatim from the offer.

    Args:
        payer: Address of the paying account
        offer: The server's payment offer
        validity_minutes: How long the authorization stays valid
        now: Override for the current time in ms (tests)
        nonce: Override for the generated nonce (tests)

    Returns:
        A fresh PaymentIntent
    """
    now = now_ms() if now is None else now
    return PaymentIntent(
        from_=payer,
        to=offer.pay_to,
        amount=offer.max_amount_required,
        nonce=nonce if nonce is not None else generate_nonce(),
        valid_until=now + validity_minutes * 60_000,
        asset=offer.asset,
    )


def sign_payment_intent(
    intent: PaymentIntent,
    signer: Signer,
    crypto: CryptoContext,
) -> SignedIntent:
    """
    Sign the Blake2-256 digest of the intent's canonical encoding.
    """
    digest = CanonicalEncoder(crypto).digest(intent)
    result = signer.sign(digest)
    logger.debug(f"Signed payment intent nonce={intent.nonce} signer={result.signer}")

    return SignedIntent(
        payload=intent.to_json(),
        signature=result.signature,
        signer_public_key=result.signer,
    )


def create_transport_header(
    signed: SignedIntent,
    network: str,
    asset: Optional[str] = None,
    x402_version: int = X402_VERSION,
) -> TransportHeader:
    return TransportHeader(
        x402_version=x402_version,
        scheme="exact",
        network=network,
        payload=signed,
        asset=asset,
    )


def create_payment_header(
    signer: Signer,
    offer: PaymentOffer,
    crypto: CryptoContext,
    network: Optional[str] = None,
    validity_minutes: int = DEFAULT_VALIDITY_MINUTES,
    x402_version: int = X402_VERSION,
    *,
    now: Optional[int] = None,
) -> str:
    """
    Build, sign and encode a payment for an offer.

    Args:
        signer: Signing capability of the payer
        offer: The server's payment offer
        crypto: Initialized crypto context
        network: Explicit network override (defaults to the offer's network)
        validity_minutes: Authorization validity window
        x402_version: Protocol version to carry

    Returns:
        Value for the ``X-Payment`` header
    """
    intent = build_payment_intent(signer.address, offer, validity_minutes, now=now)
    signed = sign_payment_intent(intent, signer, crypto)
    header = create_transport_header(
        signed,
        network=network or offer.network,
        asset=offer.asset,
        x402_version=x402_version,
    )
    return encode_payment_header(header)
