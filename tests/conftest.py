# tests/conftest.py
"""
Shared fixtures for the x402 tests.
"""
import pytest

from dotpay.x402.crypto import CryptoContext, KeypairSigner
from dotpay.x402.types import PaymentOffer

from tests.helpers import ALICE, NETWORK, PRICE, RESOURCE


@pytest.fixture
def crypto():
    return CryptoContext.initialize()


@pytest.fixture
def payer(crypto):
    return KeypairSigner.from_seed(bytes(range(32)), crypto)


@pytest.fixture
def other_signer(crypto):
    return KeypairSigner.from_seed(b"\x07" * 32, crypto)


@pytest.fixture
def offer():
    return PaymentOffer(
        network=NETWORK,
        pay_to=ALICE,
        max_amount_required=PRICE,
        resource=RESOURCE,
        description="Premium data",
    )
