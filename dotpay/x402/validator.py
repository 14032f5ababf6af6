"""
Server-side payment validation pipeline.

The pipeline gates a protected handler with an ordered sequence of checks.
Each check either passes control on or raises an ``X402Error`` carrying the
HTTP status the server answers with:

1. payment header present       -> else 402 with the payment offer
2. header decodes               -> else 400
3. network matches              -> else 400
4. asset matches (if set)       -> else 400
5. signature verifies           -> else 403
6. intent not expired           -> else 400
7. recipient matches            -> else 400
8. amount covers the price      -> else 400 (unless test payments allowed)
9. validity window acceptable   -> else 400
10. custom predicate (if set)   -> else 403
11. facilitator settlement      -> 402 on rejection, 502 when unreachable

Checks operate on an immutable RequestContext and the outcome is returned to
the caller rather than attached to a framework request object.
"""
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from starlette.concurrency import run_in_threadpool

from dotpay.x402.crypto import CryptoContext
from dotpay.x402.errors import (
    AssetMismatch,
    CustomValidationFailed,
    Expired,
    InsufficientAmount,
    InternalPaymentError,
    InvalidSignature,
    NetworkMismatch,
    PaymentRequired,
    RecipientMismatch,
    SettlementRejected,
    SettlementUnavailable,
    StalePayment,
    X402Error,
)
from dotpay.x402.facilitator import DEFAULT_TIMEOUT_SECONDS, FacilitatorClient
from dotpay.x402.header import decode_payment_header
from dotpay.x402.payload import now_ms
from dotpay.x402.pricing import Price, resolve_price
from dotpay.x402.types import (
    X402_VERSION,
    X_PAYMENT_HEADER,
    FacilitatorResponse,
    OutputSchema,
    PaymentIntent,
    PaymentOffer,
    PaymentRequiredResponse,
    RequestContext,
    TransportHeader,
    ValidationOutcome,
)
from dotpay.x402.verify import SignatureVerifier, is_payment_expired

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAYMENT_AGE_MS = 300_000  # 5 minutes
DEFAULT_CLOCK_SKEW_MS = 30_000
DEFAULT_MAX_TIMEOUT_SECONDS = 300

CustomValidator = Callable[[PaymentIntent, RequestContext], Union[bool, Awaitable[bool]]]


@dataclass
class PaymentGateConfig:
    """
    How a protected resource expects to be paid.

    ``require_facilitator_confirmation`` defaults to True whenever a
    facilitator URL is configured. ``error_messages`` may override the text
    for the keys ``payment_required``, ``invalid_signature``,
    ``payment_expired``, ``facilitator_rejected`` and ``invalid_amount``.
    """
    network: str
    recipient_address: str
    price_per_request: Price
    asset: Optional[str] = None
    facilitator_url: Optional[str] = None
    require_facilitator_confirmation: Optional[bool] = None
    facilitator_timeout: float = DEFAULT_TIMEOUT_SECONDS
    custom_validator: Optional[CustomValidator] = None
    max_payment_age_ms: int = DEFAULT_MAX_PAYMENT_AGE_MS
    clock_skew_ms: int = DEFAULT_CLOCK_SKEW_MS
    allow_test_payments: bool = False
    description: str = ""
    mime_type: str = "application/json"
    max_timeout_seconds: int = DEFAULT_MAX_TIMEOUT_SECONDS
    output_schema: Optional[OutputSchema] = None
    extra: Optional[Dict[str, Any]] = None
    error_messages: Dict[str, str] = field(default_factory=dict)
    x402_version: int = X402_VERSION

    def __post_init__(self):
        if self.require_facilitator_confirmation is None:
            self.require_facilitator_confirmation = bool(self.facilitator_url)

    @classmethod
    def from_settings(cls, settings: Any, **overrides: Any) -> "PaymentGateConfig":
        """Build a config from the application Settings object."""
        values = dict(
            network=settings.X402_NETWORK,
            recipient_address=settings.X402_RECIPIENT_ADDRESS,
            price_per_request=settings.X402_PRICE_PER_REQUEST,
            asset=settings.X402_ASSET,
            facilitator_url=str(settings.X402_FACILITATOR_URL) if settings.X402_FACILITATOR_URL else None,
            require_facilitator_confirmation=settings.X402_REQUIRE_FACILITATOR_CONFIRMATION,
            facilitator_timeout=settings.X402_FACILITATOR_TIMEOUT,
            max_payment_age_ms=settings.X402_MAX_PAYMENT_AGE_MS,
            clock_skew_ms=settings.X402_CLOCK_SKEW_MS,
            allow_test_payments=settings.X402_ALLOW_TEST_PAYMENTS,
            max_timeout_seconds=settings.X402_MAX_TIMEOUT_SECONDS,
        )
        values.update(overrides)
        return cls(**values)

    def message(self, key: str, default: str) -> str:
        return self.error_messages.get(key) or default


class PaymentValidator:
    """
    Runs the validation pipeline for one protected resource.

    The validator holds configuration only; every call re-derives everything
    from the request it is given.
    """

    def __init__(
        self,
        config: PaymentGateConfig,
        crypto: CryptoContext,
        facilitator: Optional[FacilitatorClient] = None,
    ):
        self.config = config
        self._verifier = SignatureVerifier(crypto)
        if facilitator is None and config.facilitator_url:
            facilitator = FacilitatorClient(config.facilitator_url, timeout=config.facilitator_timeout)
        self.facilitator = facilitator

    async def build_offer(self, context: RequestContext) -> PaymentOffer:
        """Price quote for the requested resource."""
        price = await resolve_price(self.config.price_per_request, context)
        return PaymentOffer(
            scheme="exact",
            network=self.config.network,
            pay_to=self.config.recipient_address,
            max_amount_required=price,
            asset=self.config.asset,
            resource=context.resource_url,
            description=self.config.description,
            mime_type=self.config.mime_type,
            max_timeout_seconds=self.config.max_timeout_seconds,
            output_schema=self.config.output_schema,
            extra=self.config.extra,
        )

    async def payment_required(self, context: RequestContext) -> PaymentRequired:
        offer = await self.build_offer(context)
        return PaymentRequired(
            PaymentRequiredResponse(
                x402_version=self.config.x402_version,
                accepts=[offer],
                error=self.config.message("payment_required", "Payment Required"),
            )
        )

    async def validate(self, context: RequestContext, now: Optional[int] = None) -> ValidationOutcome:
        """
        Validate the payment carried by a request.

        Args:
            context: The incoming request
            now: Override for the current time in ms (tests)

        Returns:
            ValidationOutcome for the admitted request

        Raises:
            X402Error: The first failing check, mapped to its HTTP status
        """
        try:
            return await self._run_pipeline(context, now)
        except X402Error:
            raise
        except Exception as e:
            logger.exception(f"x402: Unexpected error validating payment for {context.path}: {e}")
            raise InternalPaymentError() from e

    async def _run_pipeline(self, context: RequestContext, now: Optional[int]) -> ValidationOutcome:
        config = self.config

        header_value = context.header(X_PAYMENT_HEADER)
        if not header_value:
            raise await self.payment_required(context)

        payment = decode_payment_header(header_value)

        if payment.network != config.network:
            raise NetworkMismatch(f"Invalid network: expected {config.network}, got {payment.network}")

        if config.asset and payment.asset != config.asset:
            raise AssetMismatch(f"Invalid asset: expected {config.asset}, got {payment.asset}")

        if not self._verifier.verify(payment.payload):
            raise InvalidSignature(config.message("invalid_signature", "Invalid payment signature"))

        # The signature check parsed the payload already, so it is well-formed.
        intent = payment.payload.parse_intent()
        now = now_ms() if now is None else now

        if is_payment_expired(intent, now):
            raise Expired(config.message("payment_expired", "Payment has expired"))

        if intent.to != config.recipient_address:
            raise RecipientMismatch(
                f"Invalid recipient: expected {config.recipient_address}, got {intent.to}"
            )

        expected = int(await resolve_price(config.price_per_request, context))
        if not config.allow_test_payments and intent.amount_value < expected:
            raise InsufficientAmount(
                config.message(
                    "invalid_amount",
                    f"Insufficient payment: expected {expected}, got {intent.amount_value}",
                )
            )

        # Payer and server clocks may disagree by up to clock_skew_ms.
        if intent.valid_until - now > config.max_payment_age_ms + config.clock_skew_ms:
            raise StalePayment(
                f"Payment validity window exceeds {config.max_payment_age_ms} ms"
            )

        if config.custom_validator is not None:
            accepted = config.custom_validator(intent, context)
            if inspect.isawaitable(accepted):
                accepted = await accepted
            if not accepted:
                raise CustomValidationFailed()

        settlement = await self._settle(payment, intent)

        return ValidationOutcome(
            verified=True,
            confirmed_on_chain=settlement.confirmed if settlement else None,
            settlement=settlement,
            payment=payment,
            intent=intent,
        )

    async def _settle(self, payment: TransportHeader, intent: PaymentIntent) -> Optional[FacilitatorResponse]:
        if self.facilitator is None:
            return None

        required = self.config.require_facilitator_confirmation
        try:
            result = await run_in_threadpool(
                self.facilitator.execute,
                intent,
                payment.payload.signature,
                payment.network,
            )
        except SettlementUnavailable:
            if required:
                raise
            logger.warning("x402: Facilitator unavailable, continuing without settlement")
            return None

        if required and not result.ok:
            raise SettlementRejected(
                self.config.message("facilitator_rejected", result.error or "Payment not settled")
            )
        return result
