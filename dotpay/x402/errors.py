"""
Error taxonomy for the x402 payment protocol.

Every error carries the HTTP status the server pipeline answers with and a
stable machine-readable code. Client-side errors (``PaymentError``) are
terminal failures of a negotiation; server-side errors (``ValidationError``
and ``SettlementError``) short-circuit the validator pipeline.
"""
from typing import Any, Dict, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from dotpay.x402.types import PaymentRequiredResponse


class X402Error(Exception):
    """Base error for the x402 protocol."""
    status_code: int = 500
    code: str = "X402_ERROR"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = str(self.args[0])

    def to_response_body(self) -> Dict[str, Any]:
        """JSON body sent back to the client for this error."""
        return {"error": self.message, "code": self.code}


# --- Client side -------------------------------------------------------------

class PaymentError(X402Error):
    """Client-side payment negotiation failure."""
    code = "PAYMENT_ERROR"


class MalformedOffer(PaymentError):
    """Received 402 without a usable accepts array."""
    status_code = 402
    code = "MALFORMED_OFFER"


class PaymentTooExpensive(PaymentError):
    """Required payment exceeds the configured maximum."""
    status_code = 402
    code = "PAYMENT_TOO_EXPENSIVE"

    def __init__(self, required: int, maximum: int):
        super().__init__(
            f"Payment required ({required}) exceeds maximum allowed ({maximum})"
        )
        self.required = required
        self.maximum = maximum


class PaymentRejected(PaymentError):
    """Payment was rejected by the server."""
    status_code = 402
    code = "PAYMENT_REJECTED"


# --- Server side -------------------------------------------------------------

class ValidationError(X402Error):
    """Payment validation failure."""
    status_code = 400
    code = "VALIDATION_ERROR"


class MalformedHeader(ValidationError):
    """Invalid payment header format."""
    code = "MALFORMED_HEADER"


class NetworkMismatch(ValidationError):
    """Payment was made on a different network."""
    code = "NETWORK_MISMATCH"


class AssetMismatch(ValidationError):
    """Payment was made in a different asset."""
    code = "ASSET_MISMATCH"


class InvalidSignature(ValidationError):
    """Invalid payment signature."""
    status_code = 403
    code = "INVALID_SIGNATURE"


class Expired(ValidationError):
    """Payment has expired."""
    code = "EXPIRED_PAYMENT"


class RecipientMismatch(ValidationError):
    """Payment is addressed to a different recipient."""
    code = "RECIPIENT_MISMATCH"


class InsufficientAmount(ValidationError):
    """Insufficient payment."""
    code = "INSUFFICIENT_AMOUNT"


class StalePayment(ValidationError):
    """Payment authorization window is longer than accepted."""
    code = "STALE_PAYMENT"


class CustomValidationFailed(ValidationError):
    """Custom validation failed."""
    status_code = 403
    code = "CUSTOM_VALIDATION_FAILED"


class SettlementError(X402Error):
    """Settlement delegate failure."""
    code = "SETTLEMENT_ERROR"


class SettlementRejected(SettlementError):
    """Payment not settled."""
    status_code = 402
    code = "SETTLEMENT_REJECTED"


class SettlementUnavailable(SettlementError):
    """Payment verification service unavailable."""
    status_code = 502
    code = "SETTLEMENT_UNAVAILABLE"


class InternalPaymentError(X402Error):
    """Internal server error."""
    status_code = 500
    code = "INTERNAL_ERROR"


class PaymentRequired(X402Error):
    """Raised by the pipeline when a request carries no payment.

    The attached ``offer_response`` is the body of the 402 response that
    tells the client how to pay.
    """
    status_code = 402
    code = "PAYMENT_REQUIRED"

    def __init__(self, offer_response: "PaymentRequiredResponse"):
        super().__init__(offer_response.error or "Payment Required")
        self.offer_response = offer_response

    def to_response_body(self) -> Dict[str, Any]:
        return self.offer_response.model_dump(by_alias=True, exclude_none=True)
