"""
Configuration Module for Storefront Checkout
============================================

This module centralizes all configuration settings, environment variables, and
constants used throughout the checkout service. Values are parsed and typed at
module load time so that configuration errors surface early.

Configuration Categories:
-------------------------
- **Database**: Connection URL for the profile store and the pending
  checkout snapshots.

- **Payment Session Service**: Endpoint and timeout for the external
  order/payment-session creation service the customer is redirected to.

- **Storefront**: Values sent along with every order (client URL used by the
  payment provider for its return links, province for tax reporting).

- **Checkout Session Cache**: TTL and cache size for the in-memory registry
  of checkouts in progress.

- **Rate Limiting**: Throttling of the submit endpoint, which is the only
  endpoint that reaches an external service.

- **CORS Settings**: Origins allowed to drive the checkout from a browser.

Environment Variables:
----------------------
- DATABASE_URL: SQLAlchemy URL (default: "sqlite:///./storefront.db")
- CHECKOUT_SERVICE_URL: Payment-session creation endpoint
- CHECKOUT_REQUEST_TIMEOUT_SECONDS: Timeout for that call (default: 30)
- CLIENT_URL: Public origin of the storefront (default: "http://localhost:5173")
- STORE_PROVINCE: Province reported on orders (default: "QC")
- CHECKOUT_SESSION_TTL_SECONDS: Checkout cache TTL (default: 3600)
- CHECKOUT_MAX_CACHE_SIZE: Max cached checkouts (default: 1000)
- PENDING_STORE_BACKEND: "memory" or "database" (default: "database")
- RATE_LIMIT_SUBMIT: Submit endpoint rate limit (default: "10 per minute")
- RATE_LIMIT_ENABLED: Enable/disable rate limiting (default: "true")
- CORS_ORIGINS: Comma-separated allowed origins (default: "*")

Usage:
------
    from storefront_checkout.config import (
        CHECKOUT_SERVICE_URL,
        CHECKOUT_REQUEST_TIMEOUT_SECONDS,
    )
"""

import os
from typing import List


# =============================================================================
# Database Configuration
# =============================================================================

DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./storefront.db")


# =============================================================================
# Payment Session Service
# =============================================================================
# The service creates the order and a hosted payment session, and answers
# with the URL the browser must be redirected to.

CHECKOUT_SERVICE_URL: str = os.getenv(
    "CHECKOUT_SERVICE_URL",
    "http://localhost:5001/createCheckoutHTTP",
)

# Requests that take longer than this are abandoned and reported to the
# customer as a failed submission. No automatic retry.
CHECKOUT_REQUEST_TIMEOUT_SECONDS: float = float(
    os.getenv("CHECKOUT_REQUEST_TIMEOUT_SECONDS", "30")
)


# =============================================================================
# Storefront Configuration
# =============================================================================

CLIENT_URL: str = os.getenv("CLIENT_URL", "http://localhost:5173")

STORE_PROVINCE: str = os.getenv("STORE_PROVINCE", "QC")


# =============================================================================
# Checkout Session Cache Configuration
# =============================================================================
# Checkouts in progress live in memory only. A checkout evicted from the cache
# has to be started again from the cart; pending snapshots written before a
# payment redirect are stored separately and are not affected.

CHECKOUT_SESSION_TTL_SECONDS: int = int(os.getenv("CHECKOUT_SESSION_TTL_SECONDS", "3600"))

CHECKOUT_MAX_CACHE_SIZE: int = int(os.getenv("CHECKOUT_MAX_CACHE_SIZE", "1000"))

# "database" keeps snapshots across restarts, "memory" is for development.
PENDING_STORE_BACKEND: str = os.getenv("PENDING_STORE_BACKEND", "database").lower()


# =============================================================================
# Rate Limiting Configuration
# =============================================================================

RATE_LIMIT_SUBMIT: str = os.getenv("RATE_LIMIT_SUBMIT", "10 per minute")
RATE_LIMIT_ENABLED: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"


def get_rate_limit_submit() -> str:
    """
    Return the current submit rate limit.

    This function allows dynamic override in tests without modifying
    the module-level constant.
    """
    return RATE_LIMIT_SUBMIT


# =============================================================================
# CORS Configuration
# =============================================================================
# Format: comma-separated list of origins, e.g., "https://shop.example,https://www.shop.example"
# Default "*" allows all origins (suitable for development only)

_cors_origins_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS: List[str] = [
    origin.strip()
    for origin in _cors_origins_env.split(",")
    if origin.strip()
] or ["*"]
