"""
Schemas Package for Storefront Checkout
=======================================

Pydantic models used for API request validation and response serialization.

Schema Organization:
--------------------
- **checkout.py**: Checkout flow requests and responses

The domain models themselves (form data, cart lines, totals, snapshots) live
in storefront_checkout.checkout.models and are reused here as nested fields.

Naming Conventions:
-------------------
- *Out: Response models (e.g., CheckoutOut)
- *Request: Request bodies (e.g., CheckoutStartRequest)
- *Response: Composite responses (e.g., SubmitResponse)
"""

from .checkout import (
    CheckoutErrorOut,
    CheckoutOut,
    CheckoutStartRequest,
    FieldChangeRequest,
    FormUpdateRequest,
    ReturnResponse,
    SubmitRequest,
    SubmitResponse,
    TransitionResponse,
    ZoneDecisionOut,
)

__all__ = [
    "CheckoutErrorOut",
    "CheckoutOut",
    "CheckoutStartRequest",
    "FieldChangeRequest",
    "FormUpdateRequest",
    "ReturnResponse",
    "SubmitRequest",
    "SubmitResponse",
    "TransitionResponse",
    "ZoneDecisionOut",
]
