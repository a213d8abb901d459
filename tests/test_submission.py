"""
Tests for OrderSubmissionCoordinator.
"""
import logging
import math
import re
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from storefront_checkout.checkout.errors import (
    EmptyCartError,
    InvalidLineItemError,
    ProfileUpdateError,
    SubmissionError,
    ValidationFailedError,
)
from storefront_checkout.checkout.models import (
    AuthenticatedCustomer,
    CartLine,
    CustomerFormData,
    cart_subtotal,
)
from storefront_checkout.checkout.submission import OrderSubmissionCoordinator
from storefront_checkout.checkout.tax_utils import calculate_totals
from storefront_checkout.services.pending_store import (
    InMemoryKeyValueStore,
    KeyValueStore,
    PendingCheckoutStore,
)

NOW = 1_700_000_000.0
NOW_MS = 1_700_000_000_000


@pytest.fixture
def pending_store():
    return PendingCheckoutStore(InMemoryKeyValueStore())


@pytest.fixture
def coordinator(payment_client, pending_store):
    return OrderSubmissionCoordinator(
        payment_client,
        pending_store,
        client_url="https://maisuchi.ca",
        province="QC",
        clock=lambda: NOW,
    )


def submit(coordinator, form_data, cart, **kwargs):
    totals = calculate_totals(cart_subtotal(cart), 0.0)
    return coordinator.submit(CustomerFormData(**form_data), cart, totals, "chk-1", **kwargs)


class TestSuccessfulSubmission:

    def test_guest_pickup(self, coordinator, payment_client, pending_store, pickup_form, cart):
        result = submit(coordinator, pickup_form, cart)

        assert result.success
        assert result.redirect_url == payment_client.url
        assert result.order_id == "order-123"
        assert result.estimated_prep_time == 15
        assert result.error is None

        payload = payment_client.payloads[0]
        assert re.fullmatch(r"guest-1700000000000-[a-z0-9]{7}", payload.user_id)
        assert payload.points_info is None
        assert payload.client_url == "https://maisuchi.ca"
        assert payload.cart_items[0].product_id == "roll-a"
        assert payload.cart_items[0].quantity == 2

        info = payload.customer_info
        assert info.address == "Pickup"
        assert info.city == "Pickup"
        assert info.zip_code == ""
        assert info.province == "QC"

        assert pending_store.load_points_order("chk-1") is None
        session = pending_store.load_checkout("chk-1")
        assert session.created_at_epoch_millis == NOW_MS
        assert session.cart_lines == cart

    def test_delivery_customer_info(self, coordinator, payment_client, sherbrooke_delivery_form, cart):
        submit(coordinator, sherbrooke_delivery_form, cart)
        info = payment_client.payloads[0].customer_info
        assert info.address == "2500 Boulevard de l'Universite"
        assert info.city == "Sherbrooke (Fleurimont)"
        assert info.zip_code == "J1K 2R1"

    def test_signed_in_customer_gets_points(self, coordinator, payment_client, pending_store, pickup_form):
        cart = [CartLine(name="Platter", unit_price=45.75, quantity=1)]
        customer = AuthenticatedCustomer(id="cust-42", points=120)

        result = submit(coordinator, pickup_form, cart, customer=customer)

        assert result.success
        payload = payment_client.payloads[0]
        assert payload.user_id == "cust-42"
        assert payload.points_info.points_earned == 45
        assert payload.points_info.current_balance == 120

        points_order = pending_store.load_points_order("chk-1")
        assert points_order.user_id == "cust-42"
        assert points_order.order_id == "order-123"
        assert points_order.points_earned == 45
        assert points_order.cart_total == 45.75

    def test_explicit_user_id_wins(self, coordinator, payment_client, pickup_form, cart):
        submit(coordinator, pickup_form, cart, user_id="session-abc")
        assert payment_client.payloads[0].user_id == "session-abc"

    def test_missing_order_id_gets_generated(self, coordinator, payment_client, pending_store, pickup_form, cart):
        payment_client.order_id = None
        submit(coordinator, pickup_form, cart, customer=AuthenticatedCustomer(id="cust-42"))
        assert pending_store.load_points_order("chk-1").order_id == f"order-{NOW_MS}"

    def test_line_defaults(self, coordinator, payment_client, pickup_form):
        cart = [CartLine(
            name="  Dragon Roll ",
            unit_price=14.0,
            quantity=1,
            description="x" * 600,
            image="https://cdn.maisuchi.ca/dragon.png",
        )]
        submit(coordinator, pickup_form, cart)
        item = payment_client.payloads[0].cart_items[0]
        assert item.product_id == f"item-0-{NOW_MS}"
        assert item.name == "Dragon Roll"
        assert len(item.description) == 495
        assert item.image == "https://cdn.maisuchi.ca/dragon.png"
        assert item.image_urls == ["https://cdn.maisuchi.ca/dragon.png"]

    def test_payload_serializes_camel_case(self, coordinator, payment_client, pickup_form, cart):
        submit(coordinator, pickup_form, cart)
        body = payment_client.payloads[0].model_dump(by_alias=True, exclude_none=True)
        assert set(body) == {"cartItems", "customerInfo", "totals", "userId", "estimatedPrepTime", "clientUrl"}
        assert body["customerInfo"]["zipCode"] == ""

    def test_form_copied_at_call_time(self, coordinator, payment_client, pickup_form, cart):
        form = CustomerFormData(**pickup_form)
        totals = calculate_totals(20.0, 0.0)
        coordinator.submit(form, cart, totals, "chk-1")
        form.first_name = "Someone Else"
        assert payment_client.payloads[0].customer_info.name == "Marie"


class TestRejectedBeforeNetwork:

    def test_invalid_form(self, coordinator, payment_client, pickup_form, cart):
        pickup_form["email"] = "nope"
        result = submit(coordinator, pickup_form, cart)

        assert not result.success
        assert isinstance(result.error, ValidationFailedError)
        assert result.error.first_error_field == "email"
        assert payment_client.payloads == []

    def test_zone_recomputed_from_cart(self, coordinator, payment_client, sherbrooke_delivery_form, cart):
        sherbrooke_delivery_form.update(city="Magog", area="")
        result = submit(coordinator, sherbrooke_delivery_form, cart)
        assert isinstance(result.error, ValidationFailedError)
        assert "city" in result.error.errors
        assert payment_client.payloads == []

    def test_empty_cart(self, coordinator, payment_client, pending_store, pickup_form):
        result = submit(coordinator, pickup_form, [])

        assert isinstance(result.error, EmptyCartError)
        assert result.error_message == "Your cart is empty."
        assert payment_client.payloads == []
        assert pending_store.load_checkout("chk-1") is None

    @pytest.mark.parametrize("line,index", [
        (CartLine(name="   ", unit_price=5.0, quantity=1), 1),
        (CartLine(name="Roll", unit_price=None, quantity=1), 1),
        (CartLine(name="Roll", unit_price=-1.0, quantity=1), 1),
        (CartLine(name="Roll", unit_price=math.inf, quantity=1), 1),
        (CartLine(name="Roll", unit_price=5.0, quantity=math.inf), 1),
        (CartLine(name="Roll", unit_price=5.0, quantity=1.5), 1),
    ])
    def test_invalid_line_reported_by_index(self, coordinator, payment_client, pickup_form, cart, line, index):
        result = submit(coordinator, pickup_form, cart + [line])

        assert isinstance(result.error, InvalidLineItemError)
        assert result.error.index == index
        assert payment_client.payloads == []


class TestFailures:

    def test_payment_failure_leaves_no_snapshot(self, coordinator, payment_client, pending_store, pickup_form, cart):
        payment_client.error = SubmissionError("Payment failed: 500", status_code=500)

        result = submit(coordinator, pickup_form, cart)

        assert not result.success
        assert result.error_message == "Payment failed: 500"
        assert pending_store.load_checkout("chk-1") is None

    def test_profile_failure_is_not_fatal(self, payment_client, pending_store, pickup_form, cart):
        updater = MagicMock(side_effect=ProfileUpdateError("database is locked"))
        coordinator = OrderSubmissionCoordinator(payment_client, pending_store, profile_updater=updater)
        customer = AuthenticatedCustomer(id="cust-42")

        result = submit(coordinator, pickup_form, cart, customer=customer)

        assert result.success
        updater.assert_called_once()
        assert updater.call_args[0][0] == customer

    def test_profile_not_updated_for_guests(self, payment_client, pending_store, pickup_form, cart):
        updater = MagicMock(return_value=True)
        coordinator = OrderSubmissionCoordinator(payment_client, pending_store, profile_updater=updater)

        submit(coordinator, pickup_form, cart)

        updater.assert_not_called()


class UnwritableStore(KeyValueStore):
    """Backend whose writes fail, as with a locked or unreachable database."""

    def get(self, key):
        return None

    def set(self, key, value):
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    def delete(self, key):
        pass


class TestSnapshotFailures:

    @pytest.fixture
    def coordinator(self, payment_client):
        return OrderSubmissionCoordinator(
            payment_client,
            PendingCheckoutStore(UnwritableStore()),
            clock=lambda: NOW,
        )

    def test_guest_still_redirected(self, coordinator, payment_client, pickup_form, cart, caplog):
        with caplog.at_level(logging.WARNING, logger="storefront_checkout"):
            result = submit(coordinator, pickup_form, cart)

        assert result.success
        assert result.redirect_url == payment_client.url
        assert len(payment_client.payloads) == 1
        assert any("snapshot not saved" in r.getMessage() for r in caplog.records)

    def test_signed_in_customer_still_redirected(self, coordinator, payment_client, pickup_form, cart):
        result = submit(coordinator, pickup_form, cart, customer=AuthenticatedCustomer(id="cust-42"))

        assert result.success
        assert result.redirect_url == payment_client.url
