"""
Order Submission.

OrderSubmissionCoordinator turns a validated checkout into a payment session:

1. Re-run the full validation gate
2. Refuse an empty cart
3. Check every cart line (name, price, quantity)
4. Collect the image URLs of every line
5. Update the customer's profile (signed-in customers, non-fatal)
6. POST the order to the payment-session service
7. Save the pending snapshots, then hand back the redirect URL

Any failure comes back as a SubmissionResult carrying the CheckoutError; the
coordinator never retries. Callers must not call submit reentrantly; the
state machine takes care of that for the API.
"""

import logging
import math
import secrets
import string
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..config import CLIENT_URL, STORE_PROVINCE
from .errors import (
    CheckoutError,
    EmptyCartError,
    InvalidLineItemError,
    ProfileUpdateError,
    ValidationFailedError,
)
from .images import collect_image_urls
from .models import (
    AuthenticatedCustomer,
    CartLine,
    CheckoutRequestPayload,
    CheckoutSession,
    CustomerFormData,
    CustomerInfo,
    LineItemPayload,
    PendingPointsOrder,
    PointsInfo,
    Totals,
    cart_subtotal,
    estimate_prep_time,
    points_earned,
)
from .validators import validate
from .zone_policy import decide

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 495
PICKUP_LABEL = "Pickup"

_GUEST_ID_ALPHABET = string.ascii_lowercase + string.digits


@dataclass
class SubmissionResult:
    """Outcome of a submission: a redirect URL, or the error that stopped it."""
    success: bool
    redirect_url: Optional[str] = None
    order_id: Optional[str] = None
    estimated_prep_time: Optional[int] = None
    error: Optional[CheckoutError] = None

    @property
    def error_message(self) -> Optional[str]:
        return self.error.message if self.error else None


ProfileUpdater = Callable[[AuthenticatedCustomer, CustomerFormData], bool]


class OrderSubmissionCoordinator:
    """
    Submits checkouts to the payment-session service.

    Args:
        payment_client: Object with create_session(payload) -> PaymentSession
            (see payment_client.PaymentSessionClient)
        pending_store: PendingCheckoutStore receiving the snapshots
        profile_updater: Optional callable persisting a signed-in customer's
            profile; its failures never stop the submission
        client_url: Storefront origin, used by the payment page's return links
        province: Province reported on the order
        clock: Returns the current time in seconds (tests pin it)
    """

    def __init__(
        self,
        payment_client,
        pending_store,
        profile_updater: Optional[ProfileUpdater] = None,
        client_url: str = CLIENT_URL,
        province: str = STORE_PROVINCE,
        clock: Callable[[], float] = time.time,
    ):
        self.payment_client = payment_client
        self.pending_store = pending_store
        self.profile_updater = profile_updater
        self.client_url = client_url
        self.province = province
        self.clock = clock

    def submit(
        self,
        form: CustomerFormData,
        cart: list[CartLine],
        totals: Totals,
        storage_key: str,
        user_id: Optional[str] = None,
        customer: Optional[AuthenticatedCustomer] = None,
    ) -> SubmissionResult:
        """
        Submit one checkout.

        Args:
            form: Customer input; copied, later edits don't affect this call
            cart: Cart lines (already filtered to positive quantities)
            totals: Totals shown to the customer on the review screen
            storage_key: Key the pending snapshots are saved under
            user_id: Caller-supplied user/session id; defaults to the signed-in
                customer's id, else a fresh guest id
            customer: The signed-in customer, if any

        Returns:
            SubmissionResult with the redirect URL, or the error
        """
        form = form.model_copy(deep=True)
        cart = [line.model_copy(deep=True) for line in cart]

        try:
            return self._submit(form, cart, totals, storage_key, user_id, customer)
        except CheckoutError as e:
            logger.warning("Checkout submission failed (%s): %s", e.error_type, e.message)
            return SubmissionResult(success=False, error=e)

    def _submit(
        self,
        form: CustomerFormData,
        cart: list[CartLine],
        totals: Totals,
        storage_key: str,
        user_id: Optional[str],
        customer: Optional[AuthenticatedCustomer],
    ) -> SubmissionResult:
        subtotal = cart_subtotal(cart)

        errors = validate(form, decide(form.delivery_method, form.city, subtotal))
        if errors:
            raise ValidationFailedError(errors)

        if not cart:
            raise EmptyCartError()

        now_ms = self._now_millis()
        cart_items = [self._line_item(index, line, now_ms) for index, line in enumerate(cart)]
        customer_info = self.build_customer_info(form)
        prep_time = estimate_prep_time(cart)
        earned = points_earned(subtotal)

        if customer and self.profile_updater:
            self._update_profile(customer, form)

        payload = CheckoutRequestPayload(
            cart_items=cart_items,
            customer_info=customer_info,
            totals=totals,
            user_id=user_id or (customer.id if customer else self._guest_id(now_ms)),
            estimated_prep_time=prep_time,
            client_url=self.client_url,
            points_info=PointsInfo(
                user_id=customer.id,
                points_earned=earned,
                current_balance=customer.points,
            ) if customer else None,
        )

        session = self.payment_client.create_session(payload)

        # The payment session exists from here on; snapshot failures are logged only
        saved = self.pending_store.save_checkout(storage_key, CheckoutSession(
            cart_lines=cart,
            customer_info=customer_info,
            totals=totals,
            estimated_prep_time_minutes=prep_time,
            created_at_epoch_millis=now_ms,
        ))
        if customer:
            points_saved = self.pending_store.save_points_order(storage_key, PendingPointsOrder(
                user_id=customer.id,
                order_id=session.order_id or f"order-{now_ms}",
                points_earned=earned,
                cart_total=subtotal,
                estimated_prep_time=prep_time,
            ))
            saved = saved and points_saved
        if not saved:
            logger.warning("Checkout %s: pending snapshot not saved, nothing to reconcile on return", storage_key)

        logger.info("Checkout %s handed off to payment (order %s)", storage_key, session.order_id)
        return SubmissionResult(
            success=True,
            redirect_url=session.url,
            order_id=session.order_id,
            estimated_prep_time=prep_time,
        )

    def build_customer_info(self, form: CustomerFormData) -> CustomerInfo:
        """Customer block of the payload; pickup orders carry no address."""
        if form.is_delivery:
            address = form.address.strip()
            city = f"{form.city} ({form.area})" if form.area else form.city
            zip_code = form.zip_code.strip()
        else:
            address = PICKUP_LABEL
            city = PICKUP_LABEL
            zip_code = ""

        return CustomerInfo(
            name=form.first_name.strip(),
            email=form.email.strip(),
            phone=form.phone.strip(),
            address=address,
            city=city,
            zip_code=zip_code,
            delivery_instructions=form.delivery_instructions.strip(),
            province=self.province,
            delivery_method=form.delivery_method,
        )

    def _line_item(self, index: int, line: CartLine, now_ms: int) -> LineItemPayload:
        name = (line.name or "").strip()
        if not name:
            raise InvalidLineItemError(index, f"Item {index + 1} is missing a name")

        price = line.unit_price
        if price is None or not math.isfinite(price) or price < 0:
            raise InvalidLineItemError(index, f'Item "{name}" has an invalid price')

        quantity = line.quantity
        if quantity is None or isinstance(quantity, bool) or quantity < 1 or not float(quantity).is_integer():
            raise InvalidLineItemError(index, f'Item "{name}" has an invalid quantity')

        images = collect_image_urls(line)
        return LineItemPayload(
            product_id=line.id or f"item-{index}-{now_ms}",
            name=name,
            price=float(price),
            quantity=int(quantity),
            description=line.description[:MAX_DESCRIPTION_LENGTH] if line.description else None,
            category=line.category or None,
            image=images[0] if images else None,
            image_urls=images or None,
        )

    def _update_profile(self, customer: AuthenticatedCustomer, form: CustomerFormData) -> None:
        try:
            self.profile_updater(customer, form)
        except ProfileUpdateError as e:
            logger.warning("Ignoring profile update failure for %s: %s", customer.id, e.message)

    def _now_millis(self) -> int:
        return int(self.clock() * 1000)

    @staticmethod
    def _guest_id(now_ms: int) -> str:
        suffix = "".join(secrets.choice(_GUEST_ID_ALPHABET) for _ in range(7))
        return f"guest-{now_ms}-{suffix}"
