"""
Price calculation for x402 payment responses.

A route's price is either a fixed amount in the smallest unit (planck for
DOT) or a calculator that derives the amount from the incoming request.
Calculators may be plain functions or coroutines.

Prices are always handled as decimal strings on the wire and as Python ints
for comparisons, so u128 amounts never pass through floats.
"""
import inspect
import logging
from typing import Awaitable, Callable, Union

from dotpay.x402.types import RequestContext, U128_MAX

logger = logging.getLogger(__name__)

PriceCalculator = Callable[[RequestContext], Union[str, int, Awaitable[Union[str, int]]]]
Price = Union[str, int, PriceCalculator]


def normalize_amount(amount: Union[str, int]) -> str:
    """
    Validate an amount in the smallest unit and return it as a decimal string.

    Raises:
        ValueError: If the amount is negative, non-integral or exceeds u128
    """
    if isinstance(amount, bool):
        raise ValueError(f"Invalid amount: {amount!r}")
    if isinstance(amount, str):
        text = amount.strip()
        if not text.isdigit():
            raise ValueError(f"Invalid amount: {amount!r}")
        value = int(text)
    elif isinstance(amount, int):
        value = amount
    else:
        raise ValueError(f"Invalid amount type: {type(amount).__name__}")

    if value < 0 or value > U128_MAX:
        raise ValueError(f"Amount out of range: {value}")
    return str(value)


async def resolve_price(price: Price, context: RequestContext) -> str:
    """
    Compute the price for a request.

    Args:
        price: Fixed amount or calculator
        context: The incoming request

    Returns:
        Price as a decimal string in the smallest unit
    """
    if callable(price):
        result = price(context)
        if inspect.isawaitable(result):
            result = await result
        amount = normalize_amount(result)
        logger.debug(f"Calculated dynamic price for {context.method} {context.path}: {amount}")
        return amount

    return normalize_amount(price)


def query_multiplier_price(base_price: Union[str, int], param: str = "complexity") -> PriceCalculator:
    """
    Build a calculator that scales a base price by an integer query parameter.

    Missing, non-numeric or non-positive values count as 1.

    Example:
        ``?complexity=3`` with a base price of 100 costs 300.
    """
    base = int(normalize_amount(base_price))

    def calculate(context: RequestContext) -> str:
        raw = context.query.get(param, "1")
        try:
            multiplier = int(raw)
        except ValueError:
            multiplier = 1
        if multiplier < 1:
            multiplier = 1
        return str(base * multiplier)

    return calculate
