"""
Client-side payment negotiation.

Wraps a ``requests.Session`` so that a call answered with HTTP 402 is paid
and retried exactly once:

    IDLE -> AWAITING_FIRST_RESPONSE -> DONE                (no payment asked)
                                    -> NEGOTIATING_PAYMENT
                                    -> AWAITING_SECOND_RESPONSE -> DONE

Negotiation state lives in the call, never on the negotiator, so one
negotiator can serve concurrent calls.
"""
import json
import logging
from enum import Enum
from typing import Any, Dict, Optional, Union

import requests
from pydantic import ValidationError as PydanticValidationError

from dotpay.x402.crypto import CryptoContext, Signer
from dotpay.x402.errors import MalformedOffer, PaymentRejected, PaymentTooExpensive
from dotpay.x402.payload import DEFAULT_VALIDITY_MINUTES, create_payment_header
from dotpay.x402.types import X402_VERSION, X_PAYMENT_HEADER, PaymentOffer

logger = logging.getLogger(__name__)

PAYMENT_REQUIRED_STATUS = 402


class NegotiationState(Enum):
    IDLE = "idle"
    AWAITING_FIRST_RESPONSE = "awaiting_first_response"
    NEGOTIATING_PAYMENT = "negotiating_payment"
    AWAITING_SECOND_RESPONSE = "awaiting_second_response"
    DONE = "done"


def parse_payment_offer(response: requests.Response) -> PaymentOffer:
    """
    Extract the first offer from a 402 response body.

    Raises:
        MalformedOffer: If the body is not JSON or carries no usable ``accepts``
    """
    try:
        body = response.json()
    except (json.JSONDecodeError, ValueError) as e:
        raise MalformedOffer("Received 402 with a non-JSON body") from e

    accepts = body.get("accepts") if isinstance(body, dict) else None
    if not isinstance(accepts, list) or not accepts:
        raise MalformedOffer()

    try:
        return PaymentOffer.model_validate(accepts[0])
    except PydanticValidationError as e:
        raise MalformedOffer(f"Invalid payment offer: {e.error_count()} field error(s)") from e


class PaymentNegotiator:
    """
    HTTP client that pays for 402-gated resources.

    Args:
        signer: Signing capability of the payer
        crypto: Initialized crypto context
        session: Session used for both attempts (a new one by default)
        network: Network the payer expects to pay on (mismatches are logged)
        max_payment: Upper bound on any single payment, smallest unit
        validity_minutes: Validity window of each authorization
        x402_version: Protocol version to send
    """

    def __init__(
        self,
        signer: Signer,
        crypto: CryptoContext,
        session: Optional[requests.Session] = None,
        network: Optional[str] = None,
        max_payment: Optional[Union[str, int]] = None,
        validity_minutes: int = DEFAULT_VALIDITY_MINUTES,
        x402_version: int = X402_VERSION,
    ):
        crypto.ensure_ready()
        self.signer = signer
        self.crypto = crypto
        self.session = session or requests.Session()
        self.network = network
        self.max_payment = int(max_payment) if max_payment is not None else None
        self.validity_minutes = validity_minutes
        self.x402_version = x402_version

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        """
        Send a request, paying once if the server answers 402.

        Keyword arguments are passed to ``requests.Session.request`` on both
        attempts; caller headers are preserved on the retry.

        Returns:
            The first non-402 response, or the retried response

        Raises:
            MalformedOffer: The 402 body has no usable offer
            PaymentTooExpensive: The offer exceeds ``max_payment``
            PaymentRejected: The paid retry was answered with 402 again
        """
        state = NegotiationState.IDLE
        state = self._transition(state, NegotiationState.AWAITING_FIRST_RESPONSE, url)
        response = self.session.request(method, url, **kwargs)

        if response.status_code != PAYMENT_REQUIRED_STATUS:
            self._transition(state, NegotiationState.DONE, url)
            return response

        state = self._transition(state, NegotiationState.NEGOTIATING_PAYMENT, url)
        offer = parse_payment_offer(response)
        payment_header = self._pay(offer)

        retry_kwargs = dict(kwargs)
        headers: Dict[str, str] = dict(kwargs.get("headers") or {})
        headers[X_PAYMENT_HEADER] = payment_header
        retry_kwargs["headers"] = headers

        state = self._transition(state, NegotiationState.AWAITING_SECOND_RESPONSE, url)
        retry = self.session.request(method, url, **retry_kwargs)
        self._transition(state, NegotiationState.DONE, url)

        if retry.status_code == PAYMENT_REQUIRED_STATUS:
            logger.warning(f"Payment for {url} rejected by server")
            raise PaymentRejected()

        logger.info(f"Paid {offer.max_amount_required} to {offer.pay_to} for {url}: HTTP {retry.status_code}")
        return retry

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> requests.Response:
        return self.request("POST", url, **kwargs)

    def _pay(self, offer: PaymentOffer) -> str:
        required = int(offer.max_amount_required)
        if self.max_payment is not None and required > self.max_payment:
            raise PaymentTooExpensive(required=required, maximum=self.max_payment)

        if self.network and self.network != offer.network:
            logger.warning(
                f"Configured network {self.network} differs from offer network {offer.network}; "
                f"paying on {offer.network}"
            )

        return create_payment_header(
            self.signer,
            offer,
            self.crypto,
            validity_minutes=self.validity_minutes,
            x402_version=self.x402_version,
        )

    @staticmethod
    def _transition(current: NegotiationState, new: NegotiationState, url: str) -> NegotiationState:
        logger.debug(f"x402 negotiation {url}: {current.value} -> {new.value}")
        return new


def wrap_session_with_payment(
    session: requests.Session,
    signer: Signer,
    crypto: CryptoContext,
    **options: Any,
) -> PaymentNegotiator:
    """
    Wrap an existing session with automatic 402 handling.

    Example:
        client = wrap_session_with_payment(requests.Session(), signer, crypto, max_payment="1000")
        response = client.get("https://api.example.com/premium")
    """
    return PaymentNegotiator(signer, crypto, session=session, **options)
