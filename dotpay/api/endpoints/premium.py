from fastapi import APIRouter, Query, Request
import logging
from typing import Optional

from dotpay.api.models.premium import ComputeResponse, PaymentReceipt, PremiumDataResponse
from dotpay.x402.middleware import get_payment

logger = logging.getLogger(__name__)

router = APIRouter()


def _receipt(request: Request) -> Optional[PaymentReceipt]:
    outcome = get_payment(request)
    if outcome is None:
        return None
    settlement = outcome.settlement
    return PaymentReceipt(
        payer=outcome.intent.from_,
        amount=outcome.intent.amount,
        nonce=outcome.intent.nonce,
        network=outcome.payment.network,
        confirmedOnChain=outcome.confirmed_on_chain,
        extrinsicHash=settlement.extrinsic_hash if settlement else None,
    )


@router.get("/data", response_model=PremiumDataResponse)
async def get_premium_data(request: Request) -> PremiumDataResponse:
    """
    Return premium content. Gated by X402Middleware at a fixed price.

    Returns:
        PremiumDataResponse: The content plus the payment that unlocked it
    """
    receipt = _receipt(request)
    logger.info(f"Premium data served to {receipt.payer if receipt else 'unpaid caller'}")
    return PremiumDataResponse(
        message="Premium content unlocked",
        data={"insight": "The answer is 42"},
        payment=receipt,
    )


@router.get("/compute", response_model=ComputeResponse)
async def compute(
    request: Request,
    complexity: int = Query(1, ge=1, le=1000, description="Work units; the price scales with this value")
) -> ComputeResponse:
    """
    Metered computation priced per unit of complexity.
    """
    result = sum(i * i for i in range(complexity + 1))
    return ComputeResponse(complexity=complexity, result=result, payment=_receipt(request))
