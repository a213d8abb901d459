"""
Checkout Routes for Storefront Checkout
=======================================

Customer-facing endpoints driving the two-step checkout page.

Endpoints:
----------
- POST /checkout/start: Start a checkout from the cart
- GET /checkout/{checkout_id}: Current state (form, errors, zone, totals)
- PATCH /checkout/{checkout_id}/form: Merge form fields
- POST /checkout/{checkout_id}/field: Change one field
- POST /checkout/{checkout_id}/continue: Info -> Review (lightweight gate)
- POST /checkout/{checkout_id}/back: Review -> Info
- POST /checkout/{checkout_id}/submit: Submit, get the payment page URL
- POST /checkout/{checkout_id}/return: Reconcile after the payment page

Checkout Flow:
--------------
1. The storefront calls /checkout/start with the cart. Signed-in customers
   get their stored profile prefilled into the form.
2. Form input goes through /form or /field; the response always carries the
   recomputed zone decision and totals.
3. /continue moves to the review step once the basic fields are present.
4. /submit runs the full validation and hands the order to the payment
   service; the browser is redirected to the returned URL.
5. When the customer comes back, /return hands over and discards the
   snapshots saved before the redirect.

Customer Identity:
------------------
The identity gateway in front of this service authenticates the customer and
forwards the id in the X-Customer-Id header. No header means a guest.

Error Handling:
---------------
Checkout failures are returned as HTTPException with a structured detail
(see CheckoutErrorOut):
- 400: Empty cart or invalid cart line
- 404: Unknown or expired checkout
- 409: Action not allowed in the current step, or submission in flight
- 422: Form validation failed
- 429: Too many requests (rate limited)
- 502: Payment service failure
- 504: Payment service timeout
"""

import logging
from dataclasses import asdict
from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import ValidationError
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session

from ..checkout.errors import (
    CheckoutError,
    EmptyCartError,
    InvalidLineItemError,
    InvalidTransitionError,
    SubmissionError,
    SubmissionInProgressError,
    SubmissionTimeoutError,
    ValidationFailedError,
)
from ..checkout.models import AuthenticatedCustomer, estimate_prep_time
from ..checkout.state_machine import CheckoutStateMachine
from ..checkout.submission import OrderSubmissionCoordinator
from ..checkout.validators import can_continue_to_review
from ..config import PENDING_STORE_BACKEND, RATE_LIMIT_ENABLED, get_rate_limit_submit
from ..db import get_db
from ..payment_client import PaymentSessionClient
from ..schemas.checkout import (
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
from ..services.checkout_cache import get_checkout, remove_checkout, save_checkout
from ..services.pending_store import (
    DatabaseKeyValueStore,
    InMemoryKeyValueStore,
    PendingCheckoutStore,
)
from ..services.profile import (
    fetch_profile,
    profile_prefill_values,
    resolve_customer,
    update_client_profile,
)


logger = logging.getLogger(__name__)

# Router definition
checkout_router = APIRouter(prefix="/checkout", tags=["Checkout"])


# =============================================================================
# Rate Limiting Setup
# =============================================================================

def get_checkout_id_or_ip(request: Request) -> str:
    """Get rate limit key from the checkout id in the path or fall back to IP."""
    checkout_id = request.path_params.get("checkout_id")
    if checkout_id:
        return f"checkout:{checkout_id}"
    return get_remote_address(request)


limiter = Limiter(key_func=get_checkout_id_or_ip, enabled=RATE_LIMIT_ENABLED)


# =============================================================================
# Dependencies
# =============================================================================

# Process-local snapshot store used when PENDING_STORE_BACKEND=memory
_memory_store = InMemoryKeyValueStore()


def get_current_customer(
    x_customer_id: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> Optional[AuthenticatedCustomer]:
    """The signed-in customer forwarded by the identity gateway, if any."""
    return resolve_customer(db, x_customer_id)


def get_pending_store(db: Session = Depends(get_db)) -> PendingCheckoutStore:
    if PENDING_STORE_BACKEND == "memory":
        return PendingCheckoutStore(_memory_store)
    return PendingCheckoutStore(DatabaseKeyValueStore(db))


def get_payment_client() -> PaymentSessionClient:
    return PaymentSessionClient()


def get_coordinator(
    db: Session = Depends(get_db),
    pending_store: PendingCheckoutStore = Depends(get_pending_store),
    payment_client: PaymentSessionClient = Depends(get_payment_client),
) -> OrderSubmissionCoordinator:
    """Coordinator wired to this request's database session."""
    return OrderSubmissionCoordinator(
        payment_client,
        pending_store,
        profile_updater=lambda customer, form: update_client_profile(db, customer, form),
    )


# =============================================================================
# Helper Functions
# =============================================================================

_STATUS_BY_ERROR = (
    (ValidationFailedError, 422),
    (EmptyCartError, 400),
    (InvalidLineItemError, 400),
    (SubmissionTimeoutError, 504),
    (SubmissionError, 502),
    (InvalidTransitionError, 409),
    (SubmissionInProgressError, 409),
)


def _raise_checkout_error(error: CheckoutError) -> NoReturn:
    """Raise the HTTPException matching a checkout failure."""
    status_code = next(
        (code for error_class, code in _STATUS_BY_ERROR if isinstance(error, error_class)),
        400,
    )
    detail = CheckoutErrorOut(
        error_type=error.error_type,
        message=error.message,
        errors=getattr(error, "errors", None),
        first_error_field=getattr(error, "first_error_field", None),
        line_index=getattr(error, "index", None),
    )
    raise HTTPException(
        status_code=status_code,
        detail=detail.model_dump(by_alias=True, exclude_none=True),
    )


def _raise_form_error(e: ValidationError) -> NoReturn:
    """Reject form input that doesn't fit the form (unknown field, bad value)."""
    raise HTTPException(
        status_code=422,
        detail=[
            {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
            for err in e.errors()
        ],
    )


def _load_checkout(checkout_id: str) -> CheckoutStateMachine:
    machine = get_checkout(checkout_id)
    if machine is None:
        raise HTTPException(status_code=404, detail="Checkout not found or expired")
    return machine


def _checkout_out(machine: CheckoutStateMachine) -> CheckoutOut:
    return CheckoutOut(
        checkout_id=machine.checkout_id,
        phase=machine.phase,
        form=machine.form_data,
        errors=machine.errors,
        first_error_field=machine.first_error_field,
        can_continue=can_continue_to_review(machine.form_data),
        is_processing=machine.is_processing,
        cart=machine.cart,
        item_count=machine.item_count,
        points_earned=machine.points_earned,
        estimated_prep_time=estimate_prep_time(machine.cart),
        zone=ZoneDecisionOut(**asdict(machine.zone_decision)),
        totals=machine.totals,
    )


# =============================================================================
# Checkout Endpoints
# =============================================================================

@checkout_router.post("/start", response_model=CheckoutOut)
def checkout_start(
    req: CheckoutStartRequest,
    db: Session = Depends(get_db),
    customer: Optional[AuthenticatedCustomer] = Depends(get_current_customer),
) -> CheckoutOut:
    """
    Start a checkout from the storefront cart.

    For a signed-in customer the stored profile is prefilled into the form;
    a missing or unreadable profile just means an emptier form.
    """
    try:
        machine = CheckoutStateMachine(req.cart, initial_form=req.form)
        if customer:
            profile = fetch_profile(db, customer.id)
            if profile:
                machine.prefill(profile_prefill_values(profile))
    except ValidationError as e:
        _raise_form_error(e)

    save_checkout(machine)
    logger.info(
        "Checkout %s started (%d items, %s)",
        machine.checkout_id,
        machine.item_count,
        "customer" if customer else "guest",
    )
    return _checkout_out(machine)


@checkout_router.get("/{checkout_id}", response_model=CheckoutOut)
def checkout_get(checkout_id: str) -> CheckoutOut:
    return _checkout_out(_load_checkout(checkout_id))


@checkout_router.patch("/{checkout_id}/form", response_model=CheckoutOut)
def checkout_update_form(checkout_id: str, req: FormUpdateRequest) -> CheckoutOut:
    machine = _load_checkout(checkout_id)
    try:
        machine.update_form_data(req.updates)
    except ValidationError as e:
        _raise_form_error(e)
    return _checkout_out(machine)


@checkout_router.post("/{checkout_id}/field", response_model=CheckoutOut)
def checkout_set_field(checkout_id: str, req: FieldChangeRequest) -> CheckoutOut:
    """Single input change; choosing the "Other" city switches delivery to pickup."""
    machine = _load_checkout(checkout_id)
    try:
        machine.set_field(req.name, req.value)
    except ValidationError as e:
        _raise_form_error(e)
    return _checkout_out(machine)


@checkout_router.post("/{checkout_id}/continue", response_model=TransitionResponse)
def checkout_continue(checkout_id: str) -> TransitionResponse:
    """
    Move to the review step.

    When basic fields are missing the checkout stays in the info step and
    the response lists them (advanced=false); this is not an error.
    """
    machine = _load_checkout(checkout_id)
    try:
        result = machine.continue_to_review()
    except InvalidTransitionError as e:
        _raise_checkout_error(e)
    return TransitionResponse(
        advanced=result.advanced,
        missing_fields=result.missing_fields,
        checkout=_checkout_out(machine),
    )


@checkout_router.post("/{checkout_id}/back", response_model=TransitionResponse)
def checkout_back(checkout_id: str) -> TransitionResponse:
    machine = _load_checkout(checkout_id)
    try:
        result = machine.back_to_info()
    except InvalidTransitionError as e:
        _raise_checkout_error(e)
    return TransitionResponse(advanced=result.advanced, checkout=_checkout_out(machine))


@checkout_router.post("/{checkout_id}/submit", response_model=SubmitResponse)
@limiter.limit(get_rate_limit_submit)
def checkout_submit(
    request: Request,
    checkout_id: str,
    req: Optional[SubmitRequest] = None,
    customer: Optional[AuthenticatedCustomer] = Depends(get_current_customer),
    coordinator: OrderSubmissionCoordinator = Depends(get_coordinator),
) -> SubmitResponse:
    """
    Submit the order and return the payment page URL.

    Any failure leaves the checkout in the review step; the customer fixes
    the problem and submits again.
    """
    machine = _load_checkout(checkout_id)
    try:
        result = machine.submit(
            coordinator,
            user_id=req.user_id if req else None,
            customer=customer,
        )
    except (InvalidTransitionError, SubmissionInProgressError) as e:
        _raise_checkout_error(e)

    if not result.success:
        _raise_checkout_error(result.error)

    return SubmitResponse(
        redirect_url=result.redirect_url,
        order_id=result.order_id,
        estimated_prep_time=result.estimated_prep_time,
    )


@checkout_router.post("/{checkout_id}/return", response_model=ReturnResponse)
def checkout_return(
    checkout_id: str,
    pending_store: PendingCheckoutStore = Depends(get_pending_store),
) -> ReturnResponse:
    """
    Reconcile after the payment page.

    Hands back the snapshots saved before the redirect and discards them, so
    a second call finds nothing. Works after a restart too: only the
    snapshots are needed, not the in-memory checkout.
    """
    session, points_order = pending_store.consume(checkout_id)
    if session is None and points_order is None:
        raise HTTPException(status_code=404, detail="No pending checkout found")

    remove_checkout(checkout_id)
    logger.info("Checkout %s reconciled after payment redirect", checkout_id)
    return ReturnResponse(checkout=session, points_order=points_order)
