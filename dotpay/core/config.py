# dotpay/core/config.py
from pydantic_settings import BaseSettings
from pydantic import AnyHttpUrl, Field
from functools import lru_cache
from typing import Optional
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()

class Settings(BaseSettings):
    PROJECT_NAME: str = "dotpay Protected API"
    API_PREFIX: str = "/api"

    # Payment gate (server side)
    X402_ENABLED: bool = True
    X402_NETWORK: str = "local"
    X402_RECIPIENT_ADDRESS: str = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"
    X402_PRICE_PER_REQUEST: str = Field("10000000000", pattern=r"^\d+$")  # smallest unit
    X402_ASSET: Optional[str] = None
    X402_FACILITATOR_URL: Optional[AnyHttpUrl] = None
    # None means "required whenever a facilitator is configured"
    X402_REQUIRE_FACILITATOR_CONFIRMATION: Optional[bool] = None
    X402_FACILITATOR_TIMEOUT: float = 30.0
    X402_MAX_PAYMENT_AGE_MS: int = 300_000  # 5 minutes
    X402_CLOCK_SKEW_MS: int = Field(30_000, ge=0)
    X402_MAX_TIMEOUT_SECONDS: int = 300
    X402_ALLOW_TEST_PAYMENTS: bool = False
    X402_SS58_FORMAT: int = Field(42, ge=0, le=16383)

    # Audit trail
    X402_AUDIT_ENABLED: bool = False
    X402_AUDIT_LOG_PATH: str = "logs/x402_audit.jsonl"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields from .env

@lru_cache() # Cache the settings object for performance
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
