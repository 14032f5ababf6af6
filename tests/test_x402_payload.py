# tests/test_x402_payload.py
"""
Unit tests for building and signing payment intents.
"""
import json
import re

from dotpay.x402.encoding import CanonicalEncoder
from dotpay.x402.header import decode_payment_header
from dotpay.x402.payload import (
    build_payment_intent,
    create_payment_header,
    generate_nonce,
    now_ms,
    sign_payment_intent,
)
from dotpay.x402.types import PaymentOffer

from tests.helpers import ALICE, NETWORK, NOW, PRICE


class TestNonce:
    """Test nonce generation."""

    def test_format(self):
        """32 lowercase hex characters, no 0x prefix."""
        assert re.fullmatch(r"[0-9a-f]{32}", generate_nonce())

    def test_unique(self):
        assert len({generate_nonce() for _ in range(100)}) == 100


class TestBuildPaymentIntent:
    """Test intent construction from an offer."""

    def test_copies_offer_terms(self, payer, offer):
        """Recipient, amount and asset come verbatim from the offer."""
        intent = build_payment_intent(payer.address, offer, now=NOW)

        assert intent.from_ == payer.address
        assert intent.to == ALICE
        assert intent.amount == PRICE
        assert intent.asset is None

    def test_validity_window(self, payer, offer):
        intent = build_payment_intent(payer.address, offer, validity_minutes=5, now=NOW)
        assert intent.valid_until == NOW + 300_000

    def test_asset_copied(self, payer):
        offer = PaymentOffer(
            network=NETWORK, pay_to=ALICE, max_amount_required="5", resource="r", asset="1984"
        )
        assert build_payment_intent(payer.address, offer, now=NOW).asset == "1984"

    def test_fresh_nonce_per_call(self, payer, offer):
        first = build_payment_intent(payer.address, offer, now=NOW)
        second = build_payment_intent(payer.address, offer, now=NOW)
        assert first.nonce != second.nonce

    def test_uses_current_time(self, payer, offer):
        before = now_ms()
        intent = build_payment_intent(payer.address, offer, validity_minutes=1)
        assert before + 60_000 <= intent.valid_until <= now_ms() + 60_000


class TestSignPaymentIntent:
    """Test signing."""

    def test_signed_intent(self, crypto, payer, offer):
        """Payload is the intent JSON; signature covers the canonical digest."""
        intent = build_payment_intent(payer.address, offer, now=NOW, nonce="abc")
        signed = sign_payment_intent(intent, payer, crypto)

        payload = json.loads(signed.payload)
        assert payload["from"] == payer.address
        assert payload["validUntil"] == NOW + 300_000
        assert signed.signer_public_key == payer.address

        digest = CanonicalEncoder(crypto).digest(intent)
        assert crypto.verify(digest, signed.signature, payer.public_key) is True

    def test_payload_round_trip(self, crypto, payer, offer):
        intent = build_payment_intent(payer.address, offer, now=NOW)
        assert sign_payment_intent(intent, payer, crypto).parse_intent() == intent


class TestCreatePaymentHeader:
    """Test the one-call header builder."""

    def test_header_preserves_offer_terms(self, crypto, payer, offer):
        """Decoded header keeps the offer's payTo, amount and network."""
        header = decode_payment_header(create_payment_header(payer, offer, crypto, now=NOW))

        assert header.x402_version == 1
        assert header.scheme == "exact"
        assert header.network == NETWORK
        intent = header.payload.parse_intent()
        assert intent.to == offer.pay_to
        assert intent.amount == offer.max_amount_required

    def test_network_override(self, crypto, payer, offer):
        header = decode_payment_header(
            create_payment_header(payer, offer, crypto, network="polkadot", now=NOW)
        )
        assert header.network == "polkadot"
