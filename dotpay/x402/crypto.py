"""
Cryptographic primitives for Substrate-style accounts.

The crypto subsystem is initialized once by the caller through
``CryptoContext.initialize()``; the resulting handle is passed to the
canonical encoder, the signature verifier and local signers. Nothing in this
module keeps a process-wide readiness flag.

Addresses are SS58 strings (base58 of prefix + 32-byte public key + 2-byte
Blake2b checksum). Signatures are ed25519 over the Blake2-256 hash of the
canonical payment encoding.
"""
import hashlib
import logging
from typing import NamedTuple, Optional, Protocol, Union

import base58
from nacl.bindings import sodium_init
from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

logger = logging.getLogger(__name__)

DEFAULT_SS58_FORMAT = 42  # generic Substrate
SS58_CHECKSUM_PREFIX = b"SS58PRE"
SS58_CHECKSUM_LENGTH = 2
PUBLIC_KEY_LENGTH = 32
SIGNATURE_LENGTH = 64
HASH_LENGTH = 32
RESERVED_SS58_FORMATS = (46, 47)


class Signature(NamedTuple):
    """A hex signature together with the identity that produced it."""
    signature: str
    signer: str


class Signer(Protocol):
    """
    Injected signing capability.

    ``address`` is the payer identity placed in the ``from`` field; ``sign``
    receives the 32-byte digest of the canonical encoding. A local key, a
    remote wallet or a hardware device can all satisfy it.
    """
    address: str

    def sign(self, message: bytes) -> Signature:
        ...


def _ss58_checksum(data: bytes) -> bytes:
    return hashlib.blake2b(SS58_CHECKSUM_PREFIX + data, digest_size=64).digest()[:SS58_CHECKSUM_LENGTH]


def ss58_encode(public_key: bytes, ss58_format: int = DEFAULT_SS58_FORMAT) -> str:
    """
    Encode a 32-byte public key as an SS58 address.

    Args:
        public_key: Raw public key bytes
        ss58_format: Network prefix (0-16383)

    Returns:
        SS58 address string

    Raises:
        ValueError: If the key length or format is invalid
    """
    if len(public_key) != PUBLIC_KEY_LENGTH:
        raise ValueError(f"Public key must be {PUBLIC_KEY_LENGTH} bytes, got {len(public_key)}")
    if not 0 <= ss58_format <= 16383 or ss58_format in RESERVED_SS58_FORMATS:
        raise ValueError(f"Invalid SS58 format: {ss58_format}")

    if ss58_format < 64:
        prefix = bytes([ss58_format])
    else:
        prefix = bytes([
            ((ss58_format & 0b1111_1100) >> 2) | 0b0100_0000,
            (ss58_format >> 8) | ((ss58_format & 0b0000_0011) << 6),
        ])

    body = prefix + public_key
    return base58.b58encode(body + _ss58_checksum(body)).decode("ascii")


def ss58_decode(address: str, ss58_format: Optional[int] = None) -> bytes:
    """
    Decode an address into its 32-byte public key.

    Accepts SS58 strings and ``0x``-prefixed hex public keys.

    Args:
        address: SS58 address or hex public key
        ss58_format: If given, the address prefix must match it

    Returns:
        Raw public key bytes

    Raises:
        ValueError: On invalid base58, checksum, prefix or length
    """
    if not isinstance(address, str) or not address:
        raise ValueError("Address must be a non-empty string")

    if address.startswith("0x"):
        try:
            raw = bytes.fromhex(address[2:])
        except ValueError as e:
            raise ValueError(f"Invalid hex public key: {address}") from e
        if len(raw) != PUBLIC_KEY_LENGTH:
            raise ValueError(f"Hex public key must be {PUBLIC_KEY_LENGTH} bytes")
        return raw

    try:
        data = base58.b58decode(address)
    except ValueError as e:
        raise ValueError(f"Invalid SS58 address: {address}") from e

    if not data or data[0] & 0b1000_0000:
        raise ValueError(f"Invalid SS58 prefix in address: {address}")

    if data[0] & 0b0100_0000:
        if len(data) < 2:
            raise ValueError(f"Invalid SS58 address: {address}")
        prefix_length = 2
        decoded_format = (
            ((data[0] & 0b0011_1111) << 2)
            | (data[1] >> 6)
            | ((data[1] & 0b0011_1111) << 8)
        )
    else:
        prefix_length = 1
        decoded_format = data[0]

    if decoded_format in RESERVED_SS58_FORMATS:
        raise ValueError(f"Reserved SS58 format {decoded_format}")
    if len(data) != prefix_length + PUBLIC_KEY_LENGTH + SS58_CHECKSUM_LENGTH:
        raise ValueError(f"Unsupported SS58 address length for {address}")

    body, checksum = data[:-SS58_CHECKSUM_LENGTH], data[-SS58_CHECKSUM_LENGTH:]
    if _ss58_checksum(body) != checksum:
        raise ValueError(f"Invalid SS58 checksum for {address}")
    if ss58_format is not None and decoded_format != ss58_format:
        raise ValueError(f"Expected SS58 format {ss58_format}, got {decoded_format}")

    return body[prefix_length:]


def blake2_256(data: bytes) -> bytes:
    """Blake2b hash with a 256-bit digest."""
    return hashlib.blake2b(data, digest_size=HASH_LENGTH).digest()


def decode_hex(value: str) -> bytes:
    """Decode hex with or without a ``0x`` prefix."""
    if value.startswith("0x"):
        value = value[2:]
    return bytes.fromhex(value)


class CryptoContext:
    """
    Handle to an initialized crypto subsystem.

    Obtain one through :meth:`initialize`; components refuse to work with a
    handle that was never initialized.
    """

    def __init__(self, ss58_format: int = DEFAULT_SS58_FORMAT):
        self.ss58_format = ss58_format
        self._ready = False

    @classmethod
    def initialize(cls, ss58_format: int = DEFAULT_SS58_FORMAT) -> "CryptoContext":
        """Initialize libsodium and return a ready handle."""
        sodium_init()
        context = cls(ss58_format)
        context._ready = True
        logger.debug(f"Crypto context initialized (ss58 format {ss58_format})")
        return context

    @property
    def ready(self) -> bool:
        return self._ready

    def ensure_ready(self) -> None:
        if not self._ready:
            raise RuntimeError("CryptoContext used before initialize()")

    def decode_address(self, address: str) -> bytes:
        # Any network prefix is accepted; identity comparison is done on text.
        return ss58_decode(address)

    def encode_address(self, public_key: bytes) -> str:
        return ss58_encode(public_key, self.ss58_format)

    def hash(self, data: bytes) -> bytes:
        return blake2_256(data)

    def verify(self, message: bytes, signature: str, public_key: bytes) -> bool:
        """
        Check an ed25519 signature.

        Returns:
            True if the signature is valid for message and key
        """
        self.ensure_ready()
        sig_bytes = decode_hex(signature)
        if len(sig_bytes) != SIGNATURE_LENGTH:
            logger.debug(f"Signature has wrong length: {len(sig_bytes)}")
            return False
        try:
            VerifyKey(public_key).verify(message, sig_bytes)
            return True
        except BadSignatureError:
            return False


class KeypairSigner:
    """Local ed25519 signer backed by a PyNaCl signing key."""

    def __init__(self, signing_key: SigningKey, crypto: CryptoContext):
        crypto.ensure_ready()
        self._signing_key = signing_key
        self._crypto = crypto
        self.address = crypto.encode_address(bytes(signing_key.verify_key))

    @classmethod
    def from_seed(cls, seed: Union[bytes, str], crypto: CryptoContext) -> "KeypairSigner":
        """Create a signer from a 32-byte seed (raw bytes or hex)."""
        if isinstance(seed, str):
            seed = decode_hex(seed)
        if len(seed) != 32:
            raise ValueError("ed25519 seed must be 32 bytes")
        return cls(SigningKey(seed), crypto)

    @classmethod
    def generate(cls, crypto: CryptoContext) -> "KeypairSigner":
        return cls(SigningKey.generate(), crypto)

    @property
    def public_key(self) -> bytes:
        return bytes(self._signing_key.verify_key)

    def sign(self, message: bytes) -> Signature:
        signed = self._signing_key.sign(message)
        return Signature(signature="0x" + signed.signature.hex(), signer=self.address)
