from typing import Optional

from pydantic import BaseModel


class PaymentReceipt(BaseModel):
    """
    Payment details attached to a paid response.
    """
    payer: str
    amount: str
    nonce: str
    network: str
    confirmedOnChain: Optional[bool] = None
    extrinsicHash: Optional[str] = None


class PremiumDataResponse(BaseModel):
    """
    Response model for the premium data endpoint.
    """
    message: str
    data: dict
    payment: Optional[PaymentReceipt] = None


class ComputeResponse(BaseModel):
    """
    Response model for the metered compute endpoint.
    """
    complexity: int
    result: int
    payment: Optional[PaymentReceipt] = None
