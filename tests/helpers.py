# tests/helpers.py
"""
Constants and builders shared by the x402 tests.
"""
from dotpay.x402.types import RequestContext

ALICE = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"
ALICE_PUBLIC_KEY = "d43593c715fdd31c61141abd04a99fd6822c8558854ccde39a5684e7a56da27d"
BOB = "5FHneW46xGXgs5mUiveU4sbTyGBzmstUspZC92UhjJM694ty"
BOB_PUBLIC_KEY = "8eaf04151687736326c9fea17e25fc5287613693c912909cb226aa4794f26a48"

NETWORK = "local"
PRICE = "1000"
NOW = 1_700_000_000_000  # fixed clock, ms
RESOURCE = "http://testserver/api/premium/data"


def make_context(headers=None, query=None, method="GET", path="/api/premium/data"):
    url = f"http://testserver{path}"
    if query:
        url += "?" + "&".join(f"{k}={v}" for k, v in query.items())
    return RequestContext(method=method, url=url, path=path, headers=headers or {}, query=query or {})
