"""
Header codec for ``X-Payment`` and ``X-Payment-Response``.

Both headers carry base64-encoded UTF-8 JSON. Decoding failures surface as
``MalformedHeader`` so the server can answer 400 instead of 500.
"""
import base64
import binascii
import json
import logging

from pydantic import ValidationError as PydanticValidationError

from dotpay.x402.errors import MalformedHeader
from dotpay.x402.types import FacilitatorResponse, TransportHeader

logger = logging.getLogger(__name__)


def _b64_json_encode(data: dict) -> str:
    return base64.b64encode(json.dumps(data).encode("utf-8")).decode("ascii")


def _b64_json_decode(value: str) -> dict:
    if not value or not value.strip():
        raise MalformedHeader("Empty payment header")

    try:
        decoded = base64.b64decode(value.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise MalformedHeader(f"Invalid payment header format: invalid base64 ({e})") from e

    try:
        data = json.loads(decoded)
    except json.JSONDecodeError as e:
        raise MalformedHeader(f"Invalid payment header format: invalid JSON ({e.msg})") from e

    if not isinstance(data, dict):
        raise MalformedHeader("Invalid payment header format: expected a JSON object")
    return data


def encode_payment_header(header: TransportHeader) -> str:
    """
    Encode a TransportHeader for the ``X-Payment`` header.

    Args:
        header: The signed payment wrapped with protocol metadata

    Returns:
        Base64-encoded JSON string
    """
    return _b64_json_encode(header.to_wire())


def decode_payment_header(value: str) -> TransportHeader:
    """
    Decode an ``X-Payment`` header value.

    Args:
        value: Base64-encoded payment header

    Returns:
        The decoded TransportHeader

    Raises:
        MalformedHeader: If base64, JSON or structure is invalid
    """
    data = _b64_json_decode(value)
    try:
        return TransportHeader.model_validate(data)
    except PydanticValidationError as e:
        logger.debug(f"Payment header failed validation: {e}")
        raise MalformedHeader(
            f"Invalid payment header format: {e.error_count()} invalid field(s)"
        ) from e


def encode_payment_response(settlement: FacilitatorResponse) -> str:
    """Encode a settlement result for the ``X-Payment-Response`` header."""
    return _b64_json_encode(settlement.to_wire())


def decode_payment_response(value: str) -> FacilitatorResponse:
    """Decode an ``X-Payment-Response`` header value."""
    data = _b64_json_decode(value)
    try:
        return FacilitatorResponse.model_validate(data)
    except PydanticValidationError as e:
        raise MalformedHeader("Invalid payment response header") from e
