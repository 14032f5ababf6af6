# tests/test_x402_header.py
"""
Unit tests for the X-Payment and X-Payment-Response header codecs.
"""
import base64
import json

import pytest

from dotpay.x402.errors import MalformedHeader
from dotpay.x402.header import (
    decode_payment_header,
    decode_payment_response,
    encode_payment_header,
    encode_payment_response,
)
from dotpay.x402.payload import build_payment_intent, create_transport_header, sign_payment_intent
from dotpay.x402.types import FacilitatorResponse

from tests.helpers import NETWORK, NOW


def b64(data) -> str:
    return base64.b64encode(json.dumps(data).encode()).decode()


@pytest.fixture
def transport(crypto, payer, offer):
    intent = build_payment_intent(payer.address, offer, now=NOW)
    return create_transport_header(sign_payment_intent(intent, payer, crypto), network=NETWORK)


class TestPaymentHeader:
    """Test X-Payment encoding and decoding."""

    def test_round_trip(self, transport):
        assert decode_payment_header(encode_payment_header(transport)) == transport

    def test_wire_format(self, transport):
        """Header is base64 JSON with camelCase keys."""
        data = json.loads(base64.b64decode(encode_payment_header(transport)))
        assert data["x402Version"] == 1
        assert data["scheme"] == "exact"
        assert data["network"] == NETWORK
        assert set(data["payload"]) == {"payload", "signature", "signerPublicKey"}
        assert "asset" not in data

    def test_surrounding_whitespace_ignored(self, transport):
        assert decode_payment_header(f"  {encode_payment_header(transport)}\n") == transport

    def test_empty(self):
        with pytest.raises(MalformedHeader):
            decode_payment_header("")

    def test_invalid_base64(self):
        with pytest.raises(MalformedHeader):
            decode_payment_header("!!not-base64!!")

    def test_invalid_utf8(self):
        with pytest.raises(MalformedHeader):
            decode_payment_header(base64.b64encode(b"\xff\xfe\xfd").decode())

    def test_invalid_json(self):
        with pytest.raises(MalformedHeader):
            decode_payment_header(base64.b64encode(b"{not json").decode())

    def test_json_not_object(self):
        with pytest.raises(MalformedHeader):
            decode_payment_header(b64([1, 2, 3]))

    def test_missing_fields(self):
        """Structurally incomplete headers are malformed, not internal errors."""
        with pytest.raises(MalformedHeader):
            decode_payment_header(b64({"x402Version": 1, "scheme": "exact"}))

    def test_unknown_scheme(self, transport):
        data = transport.to_wire()
        data["scheme"] = "upto"
        with pytest.raises(MalformedHeader):
            decode_payment_header(b64(data))

    def test_malformed_header_status(self):
        try:
            decode_payment_header("")
        except MalformedHeader as e:
            assert e.status_code == 400
            assert e.code == "MALFORMED_HEADER"


class TestPaymentResponseHeader:
    """Test X-Payment-Response encoding and decoding."""

    def test_round_trip(self):
        settlement = FacilitatorResponse(ok=True, confirmed=True, block_hash="0xabc", extrinsic_hash="0xdef")
        assert decode_payment_response(encode_payment_response(settlement)) == settlement

    def test_wire_keys(self):
        settlement = FacilitatorResponse(ok=True, block_number=7, extrinsic_hash="0xdef")
        data = json.loads(base64.b64decode(encode_payment_response(settlement)))
        assert data == {"ok": True, "blockNumber": 7, "extrinsicHash": "0xdef"}

    def test_invalid(self):
        with pytest.raises(MalformedHeader):
            decode_payment_response("%%%")
