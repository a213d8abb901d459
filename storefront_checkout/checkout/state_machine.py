"""
State Machine for the Checkout Flow.

A checkout has two steps:

    INFO --continue--> REVIEW --submit--> (payment page)
      ^                  |
      +------back--------+

Two gates guard it. Continuing to review only needs the basic contact fields
(and address/city for delivery), so the customer always reaches the review
screen and sees every problem listed there. Submitting needs the full
validation to pass. A failed submission, whatever the reason, leaves the
checkout in REVIEW so the customer can fix things and try again.

Zone decision and totals are derived from the form and cart on every read.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .errors import InvalidTransitionError, SubmissionInProgressError, ValidationFailedError
from .models import (
    AuthenticatedCustomer,
    CartLine,
    CustomerFormData,
    FormState,
    Totals,
    cart_item_count,
    cart_subtotal,
    points_earned,
    safe_cart,
)
from .submission import OrderSubmissionCoordinator, SubmissionResult
from .tax_utils import calculate_totals
from .validators import missing_for_review, validate
from .zone_policy import ZoneDecision, decide

logger = logging.getLogger(__name__)


class CheckoutPhase(str, Enum):
    """Steps of the checkout page."""
    INFO = "info"
    REVIEW = "review"


@dataclass
class TransitionResult:
    """Result of a step change request."""
    phase: CheckoutPhase
    advanced: bool
    missing_fields: list[str] = field(default_factory=list)


class CheckoutStateMachine:
    """
    One customer's checkout: cart, form, current step and last errors.

    The cart is read once at creation (lines with a non-positive quantity are
    dropped) and not modified afterwards.
    """

    def __init__(
        self,
        cart: list[CartLine],
        checkout_id: Optional[str] = None,
        initial_form: Optional[dict[str, Any]] = None,
    ):
        self.checkout_id = checkout_id or uuid.uuid4().hex
        self.cart: list[CartLine] = safe_cart(list(cart))
        self.form = FormState(initial_form)
        self.phase = CheckoutPhase.INFO
        self.errors: dict[str, str] = {}
        self.last_result: Optional[SubmissionResult] = None
        self._submit_lock = threading.Lock()

    # ----- derived values -----

    @property
    def form_data(self) -> CustomerFormData:
        return self.form.data

    @property
    def subtotal(self) -> float:
        return cart_subtotal(self.cart)

    @property
    def item_count(self) -> int:
        return cart_item_count(self.cart)

    @property
    def points_earned(self) -> int:
        return points_earned(self.subtotal)

    @property
    def zone_decision(self) -> ZoneDecision:
        data = self.form.data
        return decide(data.delivery_method, data.city, self.subtotal)

    @property
    def totals(self) -> Totals:
        return calculate_totals(self.subtotal, self.zone_decision.fee)

    @property
    def first_error_field(self) -> Optional[str]:
        return next(iter(self.errors), None)

    @property
    def is_processing(self) -> bool:
        return self._submit_lock.locked()

    # ----- form input -----

    def update_form_data(self, partial: dict[str, Any]) -> CustomerFormData:
        return self.form.update_form_data(partial)

    def set_field(self, name: str, value: Any) -> CustomerFormData:
        return self.form.set_field(name, value)

    def prefill(self, values: dict[str, Optional[str]]) -> CustomerFormData:
        return self.form.prefill(values)

    # ----- transitions -----

    def continue_to_review(self) -> TransitionResult:
        """Move to REVIEW if the lightweight gate passes.

        On entering REVIEW the full validation runs so the review screen can
        show every remaining problem.
        """
        if self.phase != CheckoutPhase.INFO:
            raise InvalidTransitionError("Checkout is already in review.")

        missing = missing_for_review(self.form.data)
        if missing:
            logger.debug("Checkout %s blocked in info, missing %s", self.checkout_id, missing)
            return TransitionResult(phase=self.phase, advanced=False, missing_fields=missing)

        self.phase = CheckoutPhase.REVIEW
        self.validate()
        return TransitionResult(phase=self.phase, advanced=True)

    def back_to_info(self) -> TransitionResult:
        if self.phase != CheckoutPhase.REVIEW:
            raise InvalidTransitionError("Checkout is not in review.")
        self.phase = CheckoutPhase.INFO
        return TransitionResult(phase=self.phase, advanced=True)

    def validate(self) -> dict[str, str]:
        """Run the full gate and remember its errors."""
        self.errors = validate(self.form.data, self.zone_decision)
        return self.errors

    def submit(
        self,
        coordinator: OrderSubmissionCoordinator,
        user_id: Optional[str] = None,
        customer: Optional[AuthenticatedCustomer] = None,
    ) -> SubmissionResult:
        """
        Submit from REVIEW through the coordinator.

        Raises:
            InvalidTransitionError: Not in REVIEW
            SubmissionInProgressError: A submission of this checkout is in flight
        """
        if self.phase != CheckoutPhase.REVIEW:
            raise InvalidTransitionError("Review your order before submitting.")

        if not self._submit_lock.acquire(blocking=False):
            raise SubmissionInProgressError()

        try:
            errors = self.validate()
            if errors:
                result = SubmissionResult(success=False, error=ValidationFailedError(errors))
            else:
                result = coordinator.submit(
                    self.form.snapshot(),
                    self.cart,
                    self.totals,
                    storage_key=self.checkout_id,
                    user_id=user_id,
                    customer=customer,
                )
                if isinstance(result.error, ValidationFailedError):
                    self.errors = result.error.errors
        finally:
            self._submit_lock.release()

        self.last_result = result
        return result
