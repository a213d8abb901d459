"""
Client for the external order/payment-session creation service.

The service records the order, opens a hosted payment session, and answers
with the URL the customer's browser is sent to:

    success: {"success": true, "url": "...", "orderId": "..."}
    failure: {"success": false, "error": "..."} or {"details": "..."}

Every failure (HTTP error, timeout, connection problem, malformed body) is
raised as a SubmissionError carrying the most specific message available.
Nothing is retried here; the customer resubmits from the review step.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests

from .checkout.errors import SubmissionError, SubmissionTimeoutError
from .checkout.models import CheckoutRequestPayload
from .config import CHECKOUT_SERVICE_URL, CHECKOUT_REQUEST_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Payment processing failed. Please try again."
NO_URL_MESSAGE = "Checkout session creation failed"


@dataclass
class PaymentSession:
    """A payment session opened by the service."""
    url: str
    order_id: Optional[str] = None


class PaymentSessionClient:
    """Creates payment sessions over HTTP."""

    def __init__(
        self,
        service_url: str = CHECKOUT_SERVICE_URL,
        timeout_seconds: float = CHECKOUT_REQUEST_TIMEOUT_SECONDS,
    ):
        self.service_url = service_url
        self.timeout_seconds = timeout_seconds

    def create_session(self, payload: CheckoutRequestPayload) -> PaymentSession:
        """
        POST the order and return the payment session.

        Raises:
            SubmissionTimeoutError: No response within the timeout
            SubmissionError: Any other failure
        """
        body = payload.model_dump(by_alias=True, exclude_none=True, mode="json")

        logger.info(
            "Creating payment session for user %s (%d items, total %.2f)",
            payload.user_id,
            len(payload.cart_items),
            payload.totals.final_total,
        )

        try:
            response = requests.post(
                self.service_url,
                json=body,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout_seconds,
            )
        except requests.Timeout:
            logger.warning("Payment session request timed out after %ss", self.timeout_seconds)
            raise SubmissionTimeoutError(self.timeout_seconds)
        except requests.RequestException as e:
            logger.error("Payment session request failed: %s", e)
            raise SubmissionError(GENERIC_FAILURE_MESSAGE)

        if not 200 <= response.status_code < 300:
            message = _error_message(_json_or_none(response)) or f"Payment failed: {response.status_code}"
            logger.error("Payment service returned %s: %s", response.status_code, message)
            raise SubmissionError(message, status_code=response.status_code)

        result = _json_or_none(response)
        if not isinstance(result, dict):
            logger.error("Payment service returned a malformed body")
            raise SubmissionError(GENERIC_FAILURE_MESSAGE, status_code=response.status_code)

        url = result.get("url")
        if result.get("success") and isinstance(url, str) and url:
            order_id = result.get("orderId")
            logger.info("Payment session created (order %s)", order_id or "unassigned")
            return PaymentSession(url=url, order_id=str(order_id) if order_id else None)

        message = _error_message(result, keys=("error",)) or NO_URL_MESSAGE
        logger.error("Payment service did not return a session: %s", message)
        raise SubmissionError(message, status_code=response.status_code)


def _json_or_none(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _error_message(body: Any, keys: tuple[str, ...] = ("details", "error")) -> Optional[str]:
    """First non-empty message among the given keys of an error body."""
    if not isinstance(body, dict):
        return None
    for key in keys:
        value = body.get(key)
        if value:
            return value if isinstance(value, str) else str(value)
    return None
