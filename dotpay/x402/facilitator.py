"""
HTTP client for the settlement delegate (facilitator).

The facilitator executes an authorized transfer on-chain and reports the
outcome. Its JSON ``ok`` flag is authoritative; HTTP status codes are not
interpreted.
"""
import json
import logging
from typing import Any, Dict, Optional

import requests
from pydantic import ValidationError as PydanticValidationError
from requests.exceptions import RequestException

from dotpay.x402.errors import SettlementUnavailable
from dotpay.x402.types import FacilitatorResponse, PaymentIntent

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


def build_execute_request(intent: PaymentIntent, signature: str, network: str) -> Dict[str, Any]:
    """Request body: the intent fields plus signature and network."""
    body = intent.to_wire()
    body["signature"] = signature
    body["network"] = network
    return body


class FacilitatorClient:
    """
    Thin wrapper around the facilitator's execute endpoint.
    """

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def execute(self, intent: PaymentIntent, signature: str, network: str) -> FacilitatorResponse:
        """
        Submit a signed intent for settlement.

        Returns:
            The facilitator's report, successful or not

        Raises:
            SettlementUnavailable: On transport failure or a non-JSON response
        """
        body = build_execute_request(intent, signature, network)
        logger.info(f"Submitting payment nonce={intent.nonce} to facilitator at {self.url}")

        try:
            response = self.session.post(self.url, json=body, timeout=self.timeout)
        except RequestException as e:
            logger.error(f"Facilitator request failed ({self.url}): {e}")
            raise SettlementUnavailable() from e

        try:
            payload = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            logger.error(
                f"Failed to parse JSON from facilitator at {self.url} "
                f"(status {response.status_code}): {response.text[:200]}"
            )
            raise SettlementUnavailable() from e

        if not isinstance(payload, dict):
            logger.error(f"Unexpected facilitator response type: {type(payload)}")
            raise SettlementUnavailable()

        try:
            result = FacilitatorResponse.model_validate(payload)
        except PydanticValidationError as e:
            logger.error(f"Malformed facilitator response: {e}")
            raise SettlementUnavailable() from e

        if result.ok:
            logger.info(
                f"Facilitator settled payment nonce={intent.nonce} "
                f"block={result.block_hash} extrinsic={result.extrinsic_hash}"
            )
        else:
            logger.warning(f"Facilitator rejected payment nonce={intent.nonce}: {result.error}")
        return result
