"""
Checkout engine: zone policy, taxes, validation, the two-step state machine
and order submission.

Everything here is plain Python with no web or database dependency; the
routes and services packages wire it to HTTP and storage.
"""

from .errors import (
    CheckoutError,
    EmptyCartError,
    InvalidLineItemError,
    InvalidTransitionError,
    ProfileUpdateError,
    SubmissionError,
    SubmissionInProgressError,
    SubmissionTimeoutError,
    ValidationFailedError,
)
from .models import (
    AuthenticatedCustomer,
    CartLine,
    CheckoutSession,
    CustomerFormData,
    DeliveryMethod,
    FormState,
    PendingPointsOrder,
    Totals,
)
from .state_machine import CheckoutPhase, CheckoutStateMachine, TransitionResult
from .submission import OrderSubmissionCoordinator, SubmissionResult
from .tax_utils import calculate_totals, round_money
from .validators import can_continue_to_review, validate
from .zone_policy import ZoneDecision, decide

__all__ = [
    "AuthenticatedCustomer",
    "CartLine",
    "CheckoutError",
    "CheckoutPhase",
    "CheckoutSession",
    "CheckoutStateMachine",
    "CustomerFormData",
    "DeliveryMethod",
    "EmptyCartError",
    "FormState",
    "InvalidLineItemError",
    "InvalidTransitionError",
    "OrderSubmissionCoordinator",
    "PendingPointsOrder",
    "ProfileUpdateError",
    "SubmissionError",
    "SubmissionInProgressError",
    "SubmissionResult",
    "SubmissionTimeoutError",
    "Totals",
    "TransitionResult",
    "ValidationFailedError",
    "ZoneDecision",
    "calculate_totals",
    "can_continue_to_review",
    "decide",
    "round_money",
    "validate",
]
