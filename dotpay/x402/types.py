"""
Wire and in-process types for the x402 payment protocol.

Wire models use camelCase aliases so they serialize exactly as the other
parties (browser clients, facilitators) expect, while Python code uses
snake_case attribute names.
"""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

X402_VERSION = 1
X_PAYMENT_HEADER = "X-Payment"
X_PAYMENT_RESPONSE_HEADER = "X-Payment-Response"

U64_MAX = 2 ** 64 - 1
U128_MAX = 2 ** 128 - 1


class X402Model(BaseModel):
    """Base model: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class OutputSchemaInput(X402Model):
    type: Optional[Literal["http"]] = None
    method: Optional[Literal["GET", "POST", "PUT", "DELETE", "PATCH"]] = None
    body_type: Optional[
        Literal["json", "form-data", "multipart-form-data", "text", "binary"]
    ] = None
    query_params: Optional[Dict[str, Any]] = None
    body_fields: Optional[Dict[str, Any]] = None
    header_fields: Optional[Dict[str, Any]] = None


class OutputSchema(X402Model):
    """Describes the input/output expectations of a paid resource."""
    input: Optional[OutputSchemaInput] = None
    output: Optional[Dict[str, Any]] = None


class PaymentOffer(X402Model):
    """
    A server-issued price quote for one resource (an ``accepts`` entry).

    Immutable once issued.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    scheme: Literal["exact"] = "exact"
    network: str
    pay_to: str
    max_amount_required: str = Field(..., pattern=r"^\d+$")
    asset: Optional[str] = None
    resource: str
    description: Optional[str] = None
    mime_type: Optional[str] = None
    max_timeout_seconds: Optional[int] = Field(None, ge=0)
    output_schema: Optional[OutputSchema] = None
    extra: Optional[Dict[str, Any]] = None


class PaymentRequiredResponse(X402Model):
    """Body of an HTTP 402 response."""
    x402_version: int = Field(X402_VERSION, alias="x402Version")
    accepts: List[PaymentOffer]
    error: Optional[str] = None


class PaymentIntent(X402Model):
    """
    The concrete payment authorization a payer signs.

    ``amount`` is kept as a decimal string so that u128 values survive JSON
    transport; ``valid_until`` is an absolute expiry in milliseconds since the
    epoch.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    from_: str = Field(..., alias="from")
    to: str
    amount: str = Field(..., pattern=r"^\d+$")
    nonce: str = Field(..., min_length=1)
    valid_until: int = Field(..., ge=0, le=U64_MAX)
    asset: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def amount_fits_u128(cls, value: str) -> str:
        if int(value) > U128_MAX:
            raise ValueError("amount does not fit in 128 bits")
        return value

    @property
    def amount_value(self) -> int:
        return int(self.amount)

    def to_json(self) -> str:
        """Serialize the intent the way it travels inside a SignedIntent."""
        return self.model_dump_json(by_alias=True, exclude_none=True)


class SignedIntent(X402Model):
    """A PaymentIntent wrapped with its signature for transport."""
    payload: str
    signature: str
    signer_public_key: Optional[str] = None

    def parse_intent(self) -> PaymentIntent:
        return PaymentIntent.model_validate_json(self.payload)


class TransportHeader(X402Model):
    """Structure carried (base64 JSON) in the ``X-Payment`` header."""
    x402_version: int = Field(X402_VERSION, alias="x402Version")
    scheme: Literal["exact"] = "exact"
    network: str
    payload: SignedIntent
    asset: Optional[str] = None


class FacilitatorResponse(X402Model):
    """Outcome reported by the settlement delegate."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    ok: bool = False
    confirmed: Optional[bool] = None
    error: Optional[str] = None
    block_number: Optional[int] = None
    block_hash: Optional[str] = None
    extrinsic_hash: Optional[str] = None


class ValidationOutcome(X402Model):
    """Result of a fully passed validator pipeline, scoped to one request."""
    verified: bool
    confirmed_on_chain: Optional[bool] = None
    settlement: Optional[FacilitatorResponse] = None
    payment: TransportHeader
    intent: PaymentIntent


@dataclass(frozen=True)
class RequestContext:
    """
    Immutable view of an incoming HTTP request.

    Header names are stored lower-cased so lookups are case-insensitive.
    """
    method: str
    url: str
    path: str
    headers: Mapping[str, str] = field(default_factory=dict)
    query: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        normalized = {k.lower(): v for k, v in dict(self.headers).items()}
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "headers", MappingProxyType(normalized))
        object.__setattr__(self, "query", MappingProxyType(dict(self.query)))

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    @property
    def resource_url(self) -> str:
        """Full resource URL without the query string."""
        return self.url.split("?", 1)[0]

    @classmethod
    def from_request(cls, request: Any) -> "RequestContext":
        """Build a context from a Starlette/FastAPI request."""
        return cls(
            method=request.method,
            url=str(request.url),
            path=request.url.path,
            headers=dict(request.headers),
            query=dict(request.query_params),
        )
