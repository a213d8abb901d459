"""
Checkout Errors.

Every failure the checkout can report derives from CheckoutError. None of
them is fatal: after any of them the checkout is back in the review step and
the customer can try again.

    CheckoutError
    ├── ValidationFailedError      - field-level errors, shown inline
    ├── EmptyCartError             - nothing to submit
    ├── InvalidLineItemError       - bad cart data from upstream
    ├── SubmissionError            - payment-session service failed
    │   └── SubmissionTimeoutError - no answer within the timeout
    ├── ProfileUpdateError         - profile write failed (never surfaced)
    ├── InvalidTransitionError     - action not allowed in the current step
    └── SubmissionInProgressError  - a submission is already in flight
"""

from typing import Optional


class CheckoutError(Exception):
    """Base class for checkout failures."""

    # Short machine-readable name reported to API clients
    error_type = "checkout_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationFailedError(CheckoutError):
    """Raised when the full validation gate rejects the form."""

    error_type = "validation_failed"

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        self.first_error_field = next(iter(self.errors), None)
        super().__init__("Please correct the highlighted fields.")


class EmptyCartError(CheckoutError):
    """Raised when a submission is attempted with no cart lines."""

    error_type = "empty_cart"

    def __init__(self, message: str = "Your cart is empty."):
        super().__init__(message)


class InvalidLineItemError(CheckoutError):
    """Raised when a cart line fails the integrity checks before submission."""

    error_type = "invalid_line_item"

    def __init__(self, index: int, message: str):
        self.index = index
        super().__init__(message)


class SubmissionError(CheckoutError):
    """Raised when the payment-session service rejects or fails the request."""

    error_type = "submission_failed"

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class SubmissionTimeoutError(SubmissionError):
    """Raised when the payment-session service does not answer in time."""

    error_type = "submission_timeout"

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"The payment service did not respond within {timeout_seconds:g} seconds. Please try again."
        )


class ProfileUpdateError(CheckoutError):
    """Raised by the profile service when the profile write fails."""

    error_type = "profile_update_failed"


class InvalidTransitionError(CheckoutError):
    """Raised when an action is not allowed in the current checkout step."""

    error_type = "invalid_transition"


class SubmissionInProgressError(CheckoutError):
    """Raised when submit is called while a previous submission is in flight."""

    error_type = "submission_in_progress"

    def __init__(self, message: str = "Your order is already being processed."):
        super().__init__(message)
