"""
Checkout Schemas for Storefront Checkout
========================================

Pydantic models for the checkout API endpoints.

Endpoint Coverage:
------------------
- POST /checkout/start: Start a checkout from the cart
- GET /checkout/{id}: Current state of a checkout
- PATCH /checkout/{id}/form: Merge form fields
- POST /checkout/{id}/field: Change one field (storefront input handler)
- POST /checkout/{id}/continue: Info -> Review
- POST /checkout/{id}/back: Review -> Info
- POST /checkout/{id}/submit: Submit the order, get the payment page URL
- POST /checkout/{id}/return: Back from the payment page, reconcile

JSON keys are camelCase, like everything else the storefront exchanges;
snake_case names are accepted on input too.
"""

from typing import Any, Dict, List, Optional

from pydantic import Field

from ..checkout.models import (
    CamelModel,
    CartLine,
    CheckoutSession,
    CustomerFormData,
    PendingPointsOrder,
    Totals,
)
from ..checkout.state_machine import CheckoutPhase


class CheckoutStartRequest(CamelModel):
    """
    Start a checkout.

    Attributes:
        cart: Cart lines as held by the storefront; lines with a non-positive
            quantity are dropped
        form: Optional initial form values (the profile prefill is applied
            on top of them for signed-in customers)
    """
    cart: List[CartLine] = Field(default_factory=list)
    form: Optional[Dict[str, Any]] = None


class FormUpdateRequest(CamelModel):
    """Partial form update; unknown field names are rejected."""
    updates: Dict[str, Any]


class FieldChangeRequest(CamelModel):
    """A single input change."""
    name: str
    value: Any = None


class SubmitRequest(CamelModel):
    """Optional caller-supplied user/session id sent with the order."""
    user_id: Optional[str] = None


class ZoneDecisionOut(CamelModel):
    allowed: bool
    reason: Optional[str] = None
    fee: float
    free_threshold: Optional[float] = None


class CheckoutOut(CamelModel):
    """
    Current state of a checkout, everything the page needs to render.

    Attributes:
        checkout_id: Id used by every other endpoint
        phase: "info" or "review"
        form: The customer's input
        errors: Field errors of the last full validation, in display order
        first_error_field: Field to focus, if any
        can_continue: Whether the lightweight gate currently passes
        zone: Delivery decision for the current method/city/subtotal
        totals: Money values shown on the review screen
    """
    checkout_id: str
    phase: CheckoutPhase
    form: CustomerFormData
    errors: Dict[str, str] = Field(default_factory=dict)
    first_error_field: Optional[str] = None
    can_continue: bool
    is_processing: bool = False
    cart: List[CartLine]
    item_count: int
    points_earned: int
    estimated_prep_time: int
    zone: ZoneDecisionOut
    totals: Totals


class TransitionResponse(CamelModel):
    advanced: bool
    missing_fields: List[str] = Field(default_factory=list)
    checkout: CheckoutOut


class SubmitResponse(CamelModel):
    """Successful submission: where to send the browser."""
    redirect_url: str
    order_id: Optional[str] = None
    estimated_prep_time: Optional[int] = None


class CheckoutErrorOut(CamelModel):
    """Body of every failed checkout call (wrapped in FastAPI's "detail")."""
    error_type: str
    message: str
    errors: Optional[Dict[str, str]] = None
    first_error_field: Optional[str] = None
    line_index: Optional[int] = None


class ReturnResponse(CamelModel):
    """Snapshots saved before the payment redirect, now discarded."""
    checkout: Optional[CheckoutSession] = None
    points_order: Optional[PendingPointsOrder] = None
