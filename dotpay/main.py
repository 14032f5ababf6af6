from fastapi import FastAPI
from dotpay.core.config import settings
from dotpay.api.endpoints import premium
from dotpay.x402.crypto import CryptoContext
from dotpay.x402.middleware import ProtectedRoute, X402Middleware
from dotpay.x402.pricing import query_multiplier_price
from dotpay.x402.validator import PaymentGateConfig, PaymentValidator
import logging

# Configure basic logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

crypto = CryptoContext.initialize(ss58_format=settings.X402_SS58_FORMAT)

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_PREFIX}/openapi.json"
)

premium_prefix = f"{settings.API_PREFIX}/premium"

fixed_price = PaymentValidator(
    PaymentGateConfig.from_settings(settings, description="Premium data"),
    crypto,
)
metered_price = PaymentValidator(
    PaymentGateConfig.from_settings(
        settings,
        description="Metered computation",
        price_per_request=query_multiplier_price(settings.X402_PRICE_PER_REQUEST),
    ),
    crypto,
)

app.add_middleware(
    X402Middleware,
    routes=[
        ProtectedRoute("GET", f"{premium_prefix}/data", fixed_price),
        ProtectedRoute("GET", f"{premium_prefix}/compute", metered_price),
    ],
)
logger.info(
    f"x402 enabled={settings.X402_ENABLED} network={settings.X402_NETWORK} "
    f"recipient={settings.X402_RECIPIENT_ADDRESS}"
)

app.include_router(premium.router, prefix=premium_prefix, tags=["premium"])

@app.get("/", summary="Health Check", tags=["default"])
def read_root():
    """ Basic health check endpoint. """
    logger.info("Root endpoint '/' accessed.")
    return {"status": "ok", "message": f"Welcome to {settings.PROJECT_NAME}"}
