"""
x402 Payment Protocol for Substrate accounts.

This package implements pay-per-request over HTTP 402 with SS58-addressed
payers signing a canonical payment intent.

Key components:
- crypto: Explicit crypto initialization, SS58 addresses, ed25519 signers
- encoding: Canonical byte encoding of a payment intent
- payload: Building and signing payment intents
- verify: Signature verification and expiry
- header: X-Payment / X-Payment-Response codecs
- client: The 402 -> pay -> retry negotiator
- validator: Server-side validation pipeline
- facilitator: Settlement delegate client
- middleware: FastAPI middleware gating protected routes
- pricing: Fixed and per-request prices
- audit: Payment audit logging

Configuration is loaded from environment variables via dotpay.core.config.
"""

__version__ = "0.1.0"
