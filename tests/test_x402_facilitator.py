# tests/test_x402_facilitator.py
"""
Unit tests for the facilitator (settlement delegate) client.
"""
import json

import pytest
import requests
from unittest.mock import MagicMock

from dotpay.x402.errors import SettlementUnavailable
from dotpay.x402.facilitator import FacilitatorClient, build_execute_request
from dotpay.x402.types import PaymentIntent

from tests.helpers import ALICE, BOB, NETWORK, NOW

FACILITATOR_URL = "http://facilitator.local/execute"
SIGNATURE = "0x" + "ab" * 64


@pytest.fixture
def intent():
    return PaymentIntent(from_=BOB, to=ALICE, amount="1000", nonce="abc", valid_until=NOW)


def mock_session(payload=None, status_code=200, json_error=None):
    response = MagicMock()
    response.status_code = status_code
    response.text = "<html>oops</html>"
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    session = MagicMock()
    session.post.return_value = response
    return session


class TestBuildExecuteRequest:
    """Test the request body sent to the facilitator."""

    def test_body(self, intent):
        body = build_execute_request(intent, SIGNATURE, NETWORK)
        assert body == {
            "from": BOB,
            "to": ALICE,
            "amount": "1000",
            "nonce": "abc",
            "validUntil": NOW,
            "signature": SIGNATURE,
            "network": NETWORK,
        }

    def test_asset_included_when_set(self, intent):
        body = build_execute_request(intent.model_copy(update={"asset": "1984"}), SIGNATURE, NETWORK)
        assert body["asset"] == "1984"


class TestFacilitatorClient:
    """Test settlement calls."""

    def test_settled(self, intent):
        session = mock_session({"ok": True, "confirmed": True, "blockHash": "0x01", "extrinsicHash": "0x02"})
        client = FacilitatorClient(FACILITATOR_URL, timeout=5, session=session)

        result = client.execute(intent, SIGNATURE, NETWORK)

        assert result.ok is True
        assert result.confirmed is True
        assert result.block_hash == "0x01"
        assert result.extrinsic_hash == "0x02"
        session.post.assert_called_once()
        args, kwargs = session.post.call_args
        assert args[0] == FACILITATOR_URL
        assert kwargs["timeout"] == 5
        assert kwargs["json"]["signature"] == SIGNATURE

    def test_rejected_is_returned(self, intent):
        """A rejection is a result, not an exception."""
        session = mock_session({"ok": False, "error": "insufficient balance"})
        result = FacilitatorClient(FACILITATOR_URL, session=session).execute(intent, SIGNATURE, NETWORK)
        assert result.ok is False
        assert result.error == "insufficient balance"

    def test_ok_flag_authoritative_over_status(self, intent):
        """HTTP status is not interpreted."""
        session = mock_session({"ok": True}, status_code=500)
        result = FacilitatorClient(FACILITATOR_URL, session=session).execute(intent, SIGNATURE, NETWORK)
        assert result.ok is True

    def test_missing_ok_means_not_settled(self, intent):
        session = mock_session({"message": "accepted"})
        result = FacilitatorClient(FACILITATOR_URL, session=session).execute(intent, SIGNATURE, NETWORK)
        assert result.ok is False

    def test_transport_failure(self, intent):
        session = MagicMock()
        session.post.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(SettlementUnavailable):
            FacilitatorClient(FACILITATOR_URL, session=session).execute(intent, SIGNATURE, NETWORK)

    def test_timeout(self, intent):
        session = MagicMock()
        session.post.side_effect = requests.exceptions.Timeout("slow")
        with pytest.raises(SettlementUnavailable):
            FacilitatorClient(FACILITATOR_URL, session=session).execute(intent, SIGNATURE, NETWORK)

    def test_non_json_response(self, intent):
        session = mock_session(json_error=json.JSONDecodeError("Expecting value", "<html>", 0))
        with pytest.raises(SettlementUnavailable):
            FacilitatorClient(FACILITATOR_URL, session=session).execute(intent, SIGNATURE, NETWORK)

    def test_non_object_response(self, intent):
        session = mock_session(["ok"])
        with pytest.raises(SettlementUnavailable):
            FacilitatorClient(FACILITATOR_URL, session=session).execute(intent, SIGNATURE, NETWORK)

    def test_invalid_field_types(self, intent):
        session = mock_session({"ok": "maybe"})
        with pytest.raises(SettlementUnavailable):
            FacilitatorClient(FACILITATOR_URL, session=session).execute(intent, SIGNATURE, NETWORK)

    def test_unavailable_status(self):
        assert SettlementUnavailable().status_code == 502
        assert SettlementUnavailable().message == "Payment verification service unavailable."
