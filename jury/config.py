"""
Service Configuration
=====================

Loads all environment variables for the FastAPI service.

Environment variables should be set in .env file in project root.
"""

import os
from dataclasses import dataclass
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# ============================================================
# Build Info
# ============================================================
BUILD_ID = os.getenv("BUILD_ID", "dev-local")
GITHUB_COMMIT = os.getenv("GITHUB_SHA", "unknown")

# ============================================================
# Supabase (Postgres + RLS + RPC)
# ============================================================
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")  # Verifies user access tokens

# ============================================================
# Stripe Billing
# ============================================================
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
STRIPE_PRO_PRICE_ID = os.getenv("STRIPE_PRO_PRICE_ID")
STRIPE_TEAM_PRICE_ID = os.getenv("STRIPE_TEAM_PRICE_ID")
STRIPE_PRO_ANNUAL_PRICE_ID = os.getenv("STRIPE_PRO_ANNUAL_PRICE_ID")
STRIPE_TEAM_ANNUAL_PRICE_ID = os.getenv("STRIPE_TEAM_ANNUAL_PRICE_ID")

# ============================================================
# Public URLs
# ============================================================
APP_URL = os.getenv("APP_URL", "http://localhost:3000").rstrip("/")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# ============================================================
# Feature Settings
# ============================================================
WEBHOOK_TIMEOUT_SECONDS = float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", "10"))
AI_FREE_MONTHLY_LIMIT = int(os.getenv("AI_FREE_MONTHLY_LIMIT", "3"))  # free tier generations / month
DOMAIN_VERIFY_PREFIX = os.getenv("DOMAIN_VERIFY_PREFIX", "_thejury-verify")
MAX_FINGERPRINT_LENGTH = 500
SEED_SECRET = os.getenv("SEED_SECRET")  # Guards the demo poll seed endpoint


@dataclass
class RateLimitConfig:
    """
    Token bucket presets per route family.

    Each value is the bucket size; buckets refill fully over
    ``INTERVAL_SECONDS``. Override via environment variables for
    operational tuning, or instantiate directly in tests.
    """

    INTERVAL_SECONDS: int = 60
    DEFAULT: int = 10
    VOTE: int = 10
    HAS_VOTED: int = 30
    API_READ: int = 30
    API_WRITE: int = 10
    DOMAIN_VERIFY: int = 5
    BILLING: int = 10
    AI_GENERATE: int = 20

    # Idle buckets are purged after this long
    MAX_IDLE_SECONDS: int = 600
    CLEANUP_INTERVAL_SECONDS: int = 300

    @classmethod
    def from_env(cls) -> "RateLimitConfig":
        config = cls()
        for name in config.__dataclass_fields__:
            value = os.getenv(f"RATE_LIMIT_{name}")
            if value is not None:
                setattr(config, name, int(value))
        return config


RATE_LIMITS = RateLimitConfig.from_env()


# ============================================================
# Configuration Validation
# ============================================================

def validate_config():
    """
    Validates that all required configuration is present.
    Called on application startup.
    """
    errors = []

    if not SUPABASE_URL:
        errors.append("SUPABASE_URL is not set")
    if not SUPABASE_SERVICE_ROLE_KEY:
        errors.append("SUPABASE_SERVICE_ROLE_KEY is not set")

    if errors:
        raise ValueError(f"Configuration errors:\n" + "\n".join(f"  - {e}" for e in errors))

    return True


def print_config_summary():
    """
    Prints a summary of the configuration (for debugging).
    NEVER prints secrets!
    """
    print("=" * 60)
    print("TheJury Configuration Summary")
    print("=" * 60)
    print(f"Build ID: {BUILD_ID}")
    print(f"GitHub Commit: {GITHUB_COMMIT}")
    print(f"Supabase URL: {SUPABASE_URL}")
    print(f"User JWT verification: {'Enabled' if SUPABASE_JWT_SECRET else 'Disabled'}")
    print(f"Stripe: {'Configured' if STRIPE_SECRET_KEY else 'Not configured'}")
    print(f"Stripe webhook: {'Configured' if STRIPE_WEBHOOK_SECRET else 'Not configured'}")
    print(f"App URL: {APP_URL}")
    print(f"Webhook timeout: {WEBHOOK_TIMEOUT_SECONDS}s")
    print(f"AI free monthly limit: {AI_FREE_MONTHLY_LIMIT}")
    print("=" * 60)


# Validate configuration on import
try:
    validate_config()
except ValueError as e:
    print(f"⚠️  Configuration warning: {e}")
    print("⚠️  Some features may not work correctly.")
