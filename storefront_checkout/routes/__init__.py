"""
Routes Package for Storefront Checkout
======================================

API route definitions. Each module defines a FastAPI APIRouter.

- checkout.py: The two-step checkout flow and order submission

Router Registration:
--------------------
Routers are registered in main.py under two prefixes:
1. /api/v1/* - Versioned API (recommended)
2. /* - Unprefixed paths called by the storefront front end
"""

from .checkout import checkout_router, limiter

__all__ = [
    "checkout_router",
    "limiter",
]
