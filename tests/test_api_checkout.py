"""
API tests for the checkout endpoints (payment service faked, SQLite in memory).
"""
import pytest

from storefront_checkout.checkout.errors import SubmissionTimeoutError
from storefront_checkout.checkout.zone_policy import MAGOG_MINIMUM_REASON
from storefront_checkout.models import ClientProfile


CART = [{"id": "roll-a", "name": "Roll A", "unitPrice": 10.0, "quantity": 2}]

PICKUP_FORM = {
    "firstName": "Marie",
    "email": "marie@maisuchi.ca",
    "phone": "819-821-1234",
    "deliveryMethod": "pickup",
}


def start(client, cart=CART, form=None, headers=None):
    body = {"cart": cart}
    if form is not None:
        body["form"] = form
    response = client.post("/checkout/start", json=body, headers=headers or {})
    assert response.status_code == 200, response.text
    return response.json()


def start_in_review(client, form=PICKUP_FORM, cart=CART, headers=None):
    checkout_id = start(client, cart=cart, form=form, headers=headers)["checkoutId"]
    response = client.post(f"/checkout/{checkout_id}/continue")
    assert response.json()["advanced"] is True
    return checkout_id


@pytest.fixture
def stored_profile(client, session_factory):
    """Profile row for cust-42; requested after the client so the tables exist."""
    db = session_factory()
    db.add(ClientProfile(
        id="cust-42",
        full_name="Marie Tremblay",
        email="marie@maisuchi.ca",
        phone="+18198211234",
        address="2500 Boulevard de l'Universite",
        city="Sherbrooke",
        zip_code="J1K 2R1",
        points=120,
    ))
    db.commit()
    db.close()


class TestStartCheckout:

    def test_start_guest(self, client):
        data = start(client)

        assert data["checkoutId"]
        assert data["phase"] == "info"
        assert data["itemCount"] == 2
        assert data["pointsEarned"] == 20
        assert data["estimatedPrepTime"] == 15
        assert data["canContinue"] is False
        assert data["totals"] == {
            "subtotal": 20.0,
            "gst": 1.0,
            "qst": 2.0,
            "deliveryFee": 0.0,
            "finalTotal": 23.0,
        }

    def test_start_under_api_prefix(self, client):
        response = client.post("/api/v1/checkout/start", json={"cart": CART})
        assert response.status_code == 200
        checkout_id = response.json()["checkoutId"]
        assert client.get(f"/api/v1/checkout/{checkout_id}").status_code == 200

    def test_drops_non_positive_lines(self, client):
        cart = CART + [{"name": "Removed", "unitPrice": 5.0, "quantity": 0}]
        assert [line["name"] for line in start(client, cart=cart)["cart"]] == ["Roll A"]

    def test_overflowing_quantity_reported_at_submit(self, client):
        # 1e400 is valid JSON but parses to infinity
        response = client.post(
            "/checkout/start",
            content='{"cart": [{"name": "Roll A", "unitPrice": 10, "quantity": 2}, '
                    '{"name": "Roll B", "unitPrice": 10, "quantity": 1e400}], '
                    '"form": {"firstName": "Marie", "email": "marie@maisuchi.ca", "phone": "819-821-1234"}}',
            headers={"Content-Type": "application/json"},
        )

        data = response.json()
        assert response.status_code == 200
        assert data["cart"][1]["quantity"] is None
        assert data["itemCount"] == 2
        assert data["totals"]["subtotal"] == 20.0

        checkout_id = data["checkoutId"]
        client.post(f"/checkout/{checkout_id}/continue")
        submitted = client.post(f"/checkout/{checkout_id}/submit")

        assert submitted.status_code == 400
        assert submitted.json()["detail"]["errorType"] == "invalid_line_item"
        assert submitted.json()["detail"]["lineIndex"] == 1

    def test_prefill_for_signed_in_customer(self, client, stored_profile):
        data = start(client, headers={"X-Customer-Id": "cust-42"})

        assert data["form"]["firstName"] == "Marie Tremblay"
        assert data["form"]["zipCode"] == "J1K 2R1"
        assert data["canContinue"] is True

    def test_no_prefill_without_profile(self, client):
        data = start(client, headers={"X-Customer-Id": "cust-new"})
        assert data["form"]["firstName"] == ""

    def test_bad_initial_form(self, client):
        response = client.post("/checkout/start", json={"cart": CART, "form": {"favouriteColour": "blue"}})
        assert response.status_code == 422

    def test_unknown_checkout(self, client):
        response = client.get("/checkout/does-not-exist")
        assert response.status_code == 404
        assert response.json()["detail"] == "Checkout not found or expired"


class TestFormInput:

    def test_patch_form_recomputes_zone_and_totals(self, client):
        checkout_id = start(client)["checkoutId"]

        response = client.patch(
            f"/checkout/{checkout_id}/form",
            json={"updates": {"deliveryMethod": "delivery", "city": "Sherbrooke"}},
        )

        data = response.json()
        assert response.status_code == 200
        assert data["zone"]["allowed"] is True
        assert data["zone"]["fee"] == 4.99
        assert data["totals"]["deliveryFee"] == 4.99
        assert data["totals"]["gst"] == 1.25
        assert data["totals"]["qst"] == 2.49
        assert data["totals"]["finalTotal"] == 28.73

    def test_magog_refused_under_minimum(self, client):
        checkout_id = start(client)["checkoutId"]

        data = client.patch(
            f"/checkout/{checkout_id}/form",
            json={"updates": {"delivery_method": "delivery", "city": "Magog"}},
        ).json()

        assert data["zone"]["allowed"] is False
        assert data["zone"]["reason"] == MAGOG_MINIMUM_REASON
        assert data["totals"]["deliveryFee"] == 0.0

    def test_unknown_field_rejected(self, client):
        checkout_id = start(client, form=PICKUP_FORM)["checkoutId"]

        response = client.patch(f"/checkout/{checkout_id}/form", json={"updates": {"favouriteColour": "blue"}})

        assert response.status_code == 422
        assert client.get(f"/checkout/{checkout_id}").json()["form"]["firstName"] == "Marie"

    def test_other_city_switches_to_pickup(self, client):
        checkout_id = start(client, form={"deliveryMethod": "delivery"})["checkoutId"]

        data = client.post(f"/checkout/{checkout_id}/field", json={"name": "city", "value": "Other"}).json()

        assert data["form"]["city"] == "Other"
        assert data["form"]["deliveryMethod"] == "pickup"


class TestTransitions:

    def test_continue_blocked_lists_missing_fields(self, client):
        checkout_id = start(client, form={"firstName": "Marie"})["checkoutId"]

        response = client.post(f"/checkout/{checkout_id}/continue")

        data = response.json()
        assert response.status_code == 200
        assert data["advanced"] is False
        assert data["missingFields"] == ["email", "phone"]
        assert data["checkout"]["phase"] == "info"

    def test_continue_then_back(self, client):
        checkout_id = start_in_review(client)
        assert client.get(f"/checkout/{checkout_id}").json()["phase"] == "review"

        response = client.post(f"/checkout/{checkout_id}/back")
        assert response.json()["checkout"]["phase"] == "info"

    def test_review_shows_validation_errors(self, client):
        form = dict(PICKUP_FORM, email="not-an-email")
        checkout_id = start_in_review(client, form=form)

        data = client.get(f"/checkout/{checkout_id}").json()

        assert list(data["errors"]) == ["email"]
        assert data["firstErrorField"] == "email"

    def test_back_from_info_conflicts(self, client):
        checkout_id = start(client)["checkoutId"]
        response = client.post(f"/checkout/{checkout_id}/back")
        assert response.status_code == 409
        assert response.json()["detail"]["errorType"] == "invalid_transition"


class TestSubmit:

    def test_submit_returns_redirect(self, client, payment_client):
        checkout_id = start_in_review(client)

        response = client.post(f"/checkout/{checkout_id}/submit")

        assert response.status_code == 200
        assert response.json() == {
            "redirectUrl": payment_client.url,
            "orderId": "order-123",
            "estimatedPrepTime": 15,
        }
        payload = payment_client.payloads[0]
        assert payload.customer_info.city == "Pickup"
        assert payload.totals.final_total == 23.0
        assert payload.user_id.startswith("guest-")

    def test_caller_supplied_user_id(self, client, payment_client):
        checkout_id = start_in_review(client)
        client.post(f"/checkout/{checkout_id}/submit", json={"userId": "session-7"})
        assert payment_client.payloads[0].user_id == "session-7"

    def test_submit_before_review(self, client, payment_client):
        checkout_id = start(client, form=PICKUP_FORM)["checkoutId"]

        response = client.post(f"/checkout/{checkout_id}/submit")

        assert response.status_code == 409
        assert payment_client.payloads == []

    def test_validation_failure(self, client, payment_client):
        form = dict(PICKUP_FORM, deliveryMethod="delivery", city="Magog",
                    address="12 Rue Principale", zipCode="J1X 1A1")
        checkout_id = start_in_review(client, form=form)

        response = client.post(f"/checkout/{checkout_id}/submit")

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["errorType"] == "validation_failed"
        assert detail["errors"] == {"city": MAGOG_MINIMUM_REASON}
        assert detail["firstErrorField"] == "city"
        assert client.get(f"/checkout/{checkout_id}").json()["phase"] == "review"
        assert payment_client.payloads == []

    def test_empty_cart(self, client):
        checkout_id = start_in_review(client, cart=[])

        response = client.post(f"/checkout/{checkout_id}/submit")

        assert response.status_code == 400
        assert response.json()["detail"]["errorType"] == "empty_cart"

    def test_invalid_line_item(self, client):
        checkout_id = start_in_review(client, cart=[{"name": "Mystery roll", "quantity": 1}])

        response = client.post(f"/checkout/{checkout_id}/submit")

        detail = response.json()["detail"]
        assert response.status_code == 400
        assert detail["errorType"] == "invalid_line_item"
        assert detail["lineIndex"] == 0

    def test_payment_failure(self, client, payment_client):
        from storefront_checkout.checkout.errors import SubmissionError
        payment_client.error = SubmissionError("Item price mismatch", status_code=400)
        checkout_id = start_in_review(client)

        response = client.post(f"/checkout/{checkout_id}/submit")

        assert response.status_code == 502
        assert response.json()["detail"]["message"] == "Item price mismatch"
        assert client.post(f"/checkout/{checkout_id}/return").status_code == 404

    def test_payment_timeout(self, client, payment_client):
        payment_client.error = SubmissionTimeoutError(30)
        checkout_id = start_in_review(client)

        response = client.post(f"/checkout/{checkout_id}/submit")

        assert response.status_code == 504
        assert response.json()["detail"]["errorType"] == "submission_timeout"

    def test_retry_after_failure(self, client, payment_client):
        from storefront_checkout.checkout.errors import SubmissionError
        payment_client.error = SubmissionError("Payment failed: 503", status_code=503)
        checkout_id = start_in_review(client)
        assert client.post(f"/checkout/{checkout_id}/submit").status_code == 502

        payment_client.error = None
        assert client.post(f"/checkout/{checkout_id}/submit").status_code == 200


class TestReturn:

    def test_guest_return_consumes_snapshot(self, client):
        checkout_id = start_in_review(client)
        client.post(f"/checkout/{checkout_id}/submit")

        response = client.post(f"/checkout/{checkout_id}/return")

        data = response.json()
        assert response.status_code == 200
        assert data["checkout"]["customerInfo"]["name"] == "Marie"
        assert data["checkout"]["totals"]["finalTotal"] == 23.0
        assert data["pointsOrder"] is None

        assert client.post(f"/checkout/{checkout_id}/return").status_code == 404
        assert client.get(f"/checkout/{checkout_id}").status_code == 404

    def test_signed_in_return_has_points_order(self, client, stored_profile, payment_client, session_factory):
        headers = {"X-Customer-Id": "cust-42"}
        form = dict(PICKUP_FORM, firstName="Marie T.")
        checkout_id = start_in_review(client, form=form, headers=headers)

        assert client.post(f"/checkout/{checkout_id}/submit", headers=headers).status_code == 200

        points_info = payment_client.payloads[0].points_info
        assert points_info.user_id == "cust-42"
        assert points_info.current_balance == 120

        data = client.post(f"/checkout/{checkout_id}/return").json()
        assert data["pointsOrder"] == {
            "userId": "cust-42",
            "orderId": "order-123",
            "pointsEarned": 20,
            "cartTotal": 20.0,
            "estimatedPrepTime": 15,
        }

    def test_return_without_submission(self, client):
        checkout_id = start(client)["checkoutId"]
        response = client.post(f"/checkout/{checkout_id}/return")
        assert response.status_code == 404
        assert response.json()["detail"] == "No pending checkout found"


class TestHealth:

    def test_health(self, client):
        start(client)

        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["checkout_cache"]["size"] == 1
