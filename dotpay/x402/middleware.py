"""
FastAPI middleware for x402 payment gating.

This module provides HTTP middleware that:
1. Intercepts requests to protected endpoints
2. Checks if payment is required (X402_ENABLED)
3. Runs the payment validator pipeline on the X-Payment header
4. Returns 402 Payment Required (or the pipeline's error status) when needed
5. Exposes the validation outcome to handlers via ``request.state.x402_payment``
6. Adds an X-Payment-Response header when the facilitator settled the payment
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from dotpay.core.config import settings
from dotpay.x402 import audit
from dotpay.x402.errors import InternalPaymentError, PaymentRequired, X402Error
from dotpay.x402.header import encode_payment_response
from dotpay.x402.types import X_PAYMENT_RESPONSE_HEADER, RequestContext, ValidationOutcome
from dotpay.x402.validator import PaymentValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProtectedRoute:
    """A method + path gated by a payment validator.

    The path covers itself and everything below it on a segment boundary:
    ``/api/premium/data`` matches ``/api/premium/data/x`` but not
    ``/api/premium/database``.
    """
    method: str
    path: str
    validator: PaymentValidator

    def matches(self, method: str, path: str) -> bool:
        if method != self.method.upper():
            return False
        prefix = self.path.rstrip("/")
        path = path.rstrip("/")
        return path == prefix or path.startswith(prefix + "/")


def find_protected_route(
    method: str,
    path: str,
    routes: Sequence[ProtectedRoute]
) -> Optional[ProtectedRoute]:
    """Return the first route protecting the request, if any."""
    for route in routes:
        if route.matches(method, path):
            return route
    return None


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling proxies."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Take the first IP in the chain
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    if request.client:
        return request.client.host

    return "unknown"


def create_402_response(exc: PaymentRequired) -> JSONResponse:
    """
    Create an HTTP 402 Payment Required response.

    Args:
        exc: The pipeline's payment-required signal carrying the offer

    Returns:
        JSONResponse with 402 status and an ``accepts`` array
    """
    return JSONResponse(
        status_code=402,
        content=exc.to_response_body(),
        headers={"Content-Type": "application/json"}
    )


def create_error_response(exc: X402Error) -> JSONResponse:
    """JSON error response with the status mapped from the error type."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_response_body())


class X402Middleware(BaseHTTPMiddleware):
    """
    x402 payment gate for FastAPI.

    When X402_ENABLED=true, this middleware:
    - Checks if the endpoint is protected
    - Validates the X-Payment header with the route's PaymentValidator
    - Returns HTTP 402 with payment requirements if no payment was sent
    - Returns the mapped error status if the payment is rejected

    When X402_ENABLED=false, all requests pass through unchanged.
    """

    def __init__(self, app, routes: Sequence[ProtectedRoute] = (), enabled: Optional[bool] = None):
        super().__init__(app)
        self.routes = list(routes)
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return settings.X402_ENABLED if self._enabled is None else self._enabled

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Response]
    ) -> Response:
        if not self.enabled:
            return await call_next(request)

        route = find_protected_route(request.method, request.url.path, self.routes)
        if route is None:
            return await call_next(request)

        client_ip = get_client_ip(request)
        logger.info(f"x402: Processing protected request from {client_ip}: {request.method} {request.url.path}")

        context = RequestContext.from_request(request)
        request_id = audit.generate_request_id()

        try:
            outcome = await route.validator.validate(context)
        except PaymentRequired as e:
            offer = e.offer_response.accepts[0]
            logger.info(f"x402: No X-Payment header, returning 402 for {offer.max_amount_required}")
            audit.log_payment_required_sent(
                client_ip=client_ip,
                amount=offer.max_amount_required,
                network=offer.network,
                pay_to=offer.pay_to,
                resource=offer.resource,
                request_id=request_id,
            )
            return create_402_response(e)
        except InternalPaymentError as e:
            cause = e.__cause__ or e
            logger.error(f"x402: Internal error for {client_ip} on {request.url.path}: {cause}")
            audit.log_error(
                client_ip=client_ip,
                error_type=type(cause).__name__,
                error_message=str(cause),
                context={"method": request.method, "path": request.url.path},
                request_id=request_id,
            )
            return create_error_response(e)
        except X402Error as e:
            logger.warning(f"x402: Payment rejected for {client_ip} ({e.code}, {e.status_code}): {e.message}")
            audit.log_payment_failed(
                client_ip=client_ip,
                reason=e.message,
                code=e.code,
                status_code=e.status_code,
                request_id=request_id,
            )
            return create_error_response(e)

        self._audit_success(client_ip, outcome, request_id)
        request.state.x402_payment = outcome
        logger.info(f"x402: Payment verified for payer {outcome.intent.from_}")

        response = await call_next(request)

        if outcome.settlement is not None:
            response.headers[X_PAYMENT_RESPONSE_HEADER] = encode_payment_response(outcome.settlement)

        return response

    @staticmethod
    def _audit_success(client_ip: str, outcome: ValidationOutcome, request_id: str) -> None:
        intent = outcome.intent
        audit.log_payment_received(
            client_ip=client_ip,
            payer=intent.from_,
            amount=intent.amount,
            nonce=intent.nonce,
            network=outcome.payment.network,
            request_id=request_id,
        )
        audit.log_payment_verified(
            client_ip=client_ip,
            payer=intent.from_,
            confirmed_on_chain=outcome.confirmed_on_chain,
            request_id=request_id,
        )
        if outcome.settlement is not None:
            audit.log_payment_settled(
                client_ip=client_ip,
                payer=intent.from_,
                success=outcome.settlement.ok,
                network=outcome.payment.network,
                block_hash=outcome.settlement.block_hash,
                extrinsic_hash=outcome.settlement.extrinsic_hash,
                error_reason=outcome.settlement.error,
                request_id=request_id,
            )


def get_payment(request: Request) -> Optional[ValidationOutcome]:
    """Validation outcome attached by X402Middleware, if the route was paid."""
    return getattr(request.state, "x402_payment", None)
