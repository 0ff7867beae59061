"""
Customer portal tests.

Verifies:
- Phone login registers new customers and checks passwords
- Customers see their orders matched by id or phone
- Self-service edits only while the order is received
- Password reset codes are single use and burn after repeated wrong guesses
- Repeated wrong passwords lock a login out
"""

import pytest

from laundromat.models import Service
from laundromat.services import customer_service, login_throttle_service, order_service, reset_code_service
from laundromat.services.customer_service import CustomerAuthError
from laundromat.validation import ValidationError

from conftest import auth_headers


ANA = {
    "phone": "(347) 555-0101",
    "password": "secret1",
    "name": "Ana Lopez",
    "email": "ana@example.com",
}


def register(client, **overrides):
    body = dict(ANA, **overrides)
    return client.post("/api/public/customer-login", json=body)


@pytest.fixture
def customer_headers(client, seed):
    response = register(client)
    assert response.status_code == 201
    return auth_headers(response.json["token"])


# =============================================================================
# LOGIN
# =============================================================================


class TestLogin:

    def test_register_then_login(self, client, seed):
        first = register(client)
        assert first.status_code == 201
        assert first.json["is_new"] is True
        assert first.json["customer"]["has_password"] is True

        again = client.post("/api/public/customer-login",
                            json={"phone": "347.555.0101", "password": "secret1"})
        assert again.status_code == 200
        assert again.json["is_new"] is False
        assert again.json["customer"]["id"] == first.json["customer"]["id"]

    def test_wrong_password(self, client, seed):
        register(client)
        response = client.post("/api/public/customer-login",
                               json={"phone": ANA["phone"], "password": "nope123"})
        assert response.status_code == 401

    def test_lockout_after_repeated_wrong_passwords(self, client, seed):
        register(client)
        wrong = {"phone": ANA["phone"], "password": "nope123"}
        for _ in range(login_throttle_service.MAX_FAILED_ATTEMPTS - 1):
            assert client.post("/api/public/customer-login", json=wrong).status_code == 401

        assert client.post("/api/public/customer-login", json=wrong).status_code == 429
        by_phone = client.post("/api/public/customer-login",
                               json={"phone": "347-555-0101", "password": ANA["password"]})
        assert by_phone.status_code == 429
        by_email = client.post("/api/public/customer-login",
                               json={"email": ANA["email"].upper(), "password": ANA["password"]})
        assert by_email.status_code == 429

    def test_successful_login_restarts_failure_count(self, client, seed):
        register(client)
        wrong = {"phone": ANA["phone"], "password": "nope123"}
        for _ in range(login_throttle_service.MAX_FAILED_ATTEMPTS - 1):
            client.post("/api/public/customer-login", json=wrong)

        ok = client.post("/api/public/customer-login", json={"phone": ANA["phone"], "password": ANA["password"]})
        assert ok.status_code == 200
        assert client.post("/api/public/customer-login", json=wrong).status_code == 401

    def test_new_phone_needs_name(self, db_session):
        with pytest.raises(ValidationError, match="Name required"):
            customer_service.login_or_register(phone="7185550000", password="secret1")

    def test_email_login(self, seed):
        customer_service.login_or_register(**ANA)
        customer, is_new = customer_service.login_or_register(email="ANA@example.com", password="secret1")
        assert customer.name == "Ana Lopez"
        assert is_new is False

    def test_unknown_email(self, seed):
        with pytest.raises(CustomerAuthError):
            customer_service.login_or_register(email="ghost@example.com", password="secret1")

    def test_counter_customer_sets_password_on_first_login(self, client, seed, db_session):
        customer_service.create_customer({"name": "Walk In", "phone": "2125550123"})

        first = client.post("/api/public/customer-login",
                            json={"phone": "212-555-0123", "password": "chosen1"})
        assert first.status_code == 200
        assert first.json["is_new"] is False

        wrong = client.post("/api/public/customer-login",
                            json={"phone": "212-555-0123", "password": "other99"})
        assert wrong.status_code == 401

    def test_staff_token_rejected(self, client, staff_headers):
        assert client.get("/api/public/customer-info", headers=staff_headers).status_code == 401

    def test_logout(self, client, customer_headers):
        assert client.post("/api/public/logout", headers=customer_headers).status_code == 200
        assert client.get("/api/public/customer-info", headers=customer_headers).status_code == 401


# =============================================================================
# ORDERS
# =============================================================================


class TestCustomerOrders:

    def test_counter_order_found_by_phone(self, client, seed, customer_headers):
        order_service.create_order(
            items=[{"description": "Wash & Fold", "unit_price": "1.40", "quantity": 10}],
            actor_name="Sam Staff",
            customer_phone="+1 347 555 0101",
        )
        order_service.create_order(
            items=[{"description": "Wash & Fold", "unit_price": "1.40", "quantity": 10}],
            actor_name="Sam Staff",
            customer_phone="718 555 0199",
        )

        response = client.get("/api/public/my-orders", headers=customer_headers)
        assert response.status_code == 200
        assert [o["order_number"] for o in response.json["orders"]] == ["KP00001"]

    def test_place_order_uses_catalog_prices(self, client, seed, db_session, customer_headers):
        service = db_session.query(Service).filter_by(name="Wash & Fold - Regular").first()

        response = client.post("/api/public/orders", headers=customer_headers, json={
            "items": [{"service_id": service.id, "quantity": 10, "unit_price": 0.01}],
            "notes": "hang dry",
        })

        assert response.status_code == 201
        order = response.json["order"]
        assert order["subtotal"] == 14.0
        assert order["order_type"] == "pickup_delivery"
        assert order["received_by"] == "Ana Lopez (online)"
        assert order["customer_name"] == "Ana Lopez"

    def test_edit_boundary(self, client, seed, customer_headers):
        me = client.get("/api/public/customer-info", headers=customer_headers).json["customer"]
        order = order_service.create_order(
            items=[{"description": "Comforter", "unit_price": "25", "quantity": 1}],
            actor_name="Sam Staff",
            customer_id=me["id"],
        )
        url = f"/api/public/orders/{order.id}"

        ok = client.put(url, headers=customer_headers, json={"notes": "no starch"})
        assert ok.status_code == 200
        assert ok.json["order"]["notes"] == "no starch"

        restricted = client.put(url, headers=customer_headers, json={"discount_percent": 50})
        assert restricted.status_code == 403

        order_service.set_status(order.id, "cleaned", "Sam Staff")
        late = client.put(url, headers=customer_headers, json={"notes": "extra starch"})
        assert late.status_code == 403
        assert client.get(url, headers=customer_headers).json["order"]["notes"] == "no starch"

        assert client.post(f"{url}/cancel", headers=customer_headers).status_code == 403

    def test_someone_elses_order_is_404(self, client, seed, customer_headers):
        order = order_service.create_order(
            items=[{"description": "Comforter", "unit_price": "25", "quantity": 1}],
            actor_name="Sam Staff",
            customer_phone="718 555 0199",
        )
        assert client.get(f"/api/public/orders/{order.id}", headers=customer_headers).status_code == 404

    def test_cancel_while_received(self, client, seed, customer_headers):
        me = client.get("/api/public/customer-info", headers=customer_headers).json["customer"]
        order = order_service.create_order(
            items=[{"description": "Comforter", "unit_price": "25", "quantity": 1}],
            actor_name="Sam Staff",
            customer_id=me["id"],
        )
        response = client.post(f"/api/public/orders/{order.id}/cancel", headers=customer_headers)
        assert response.status_code == 200
        assert response.json["order"]["status"] == "cancelled"
        assert response.json["order"]["cancelled_by"] == "Ana Lopez (online)"


class TestFeedbackAndProfile:

    def test_feedback(self, client, customer_headers, admin_headers):
        response = client.post("/api/public/feedback", headers=customer_headers,
                               json={"message": "Fast service", "rating": 5})
        assert response.status_code == 201

        listing = client.get("/api/feedback", headers=admin_headers)
        assert [f["message"] for f in listing.json["feedback"]] == ["Fast service"]

    def test_bad_rating(self, client, customer_headers):
        response = client.post("/api/public/feedback", headers=customer_headers,
                               json={"message": "ok", "rating": 9})
        assert response.status_code == 400

    def test_profile_cannot_change_discount(self, client, customer_headers):
        response = client.put("/api/public/profile", headers=customer_headers,
                              json={"discount_percent": 50})
        assert response.status_code == 400

    def test_profile_update(self, client, customer_headers):
        response = client.put("/api/public/profile", headers=customer_headers,
                              json={"address": "12 Main St", "notification_preference": "none"})
        assert response.status_code == 200
        assert response.json["customer"]["address"] == "12 Main St"
        assert response.json["customer"]["notification_preference"] == "none"


# =============================================================================
# PASSWORD RESET
# =============================================================================


class TestPasswordReset:

    def test_reset_flow(self, client, seed, notifier):
        register(client)

        response = client.post("/api/public/password-reset/request", json={"identity": ANA["email"]})
        assert response.status_code == 200
        sent = [m for m in notifier.sent if m["template"] == "password_reset"]
        assert len(sent) == 1
        code = sent[0]["data"]["code"]

        wrong = client.post("/api/public/password-reset/confirm", json={
            "identity": ANA["email"], "code": "000000" if code != "000000" else "111111",
            "new_password": "newpass1",
        })
        assert wrong.status_code == 400
        assert wrong.json["error"] == "Invalid reset code"

        ok = client.post("/api/public/password-reset/confirm", json={
            "identity": ANA["email"], "code": code, "new_password": "newpass1",
        })
        assert ok.status_code == 200

        reused = client.post("/api/public/password-reset/confirm", json={
            "identity": ANA["email"], "code": code, "new_password": "another1",
        })
        assert reused.status_code == 400

        login = client.post("/api/public/customer-login",
                            json={"phone": ANA["phone"], "password": "newpass1"})
        assert login.status_code == 200

    def test_unknown_identity_looks_the_same(self, client, seed, notifier):
        response = client.post("/api/public/password-reset/request", json={"identity": "nobody@example.com"})
        assert response.status_code == 200
        assert notifier.sent == []

    def test_expired_code(self, app, seed):
        customer_service.login_or_register(**ANA)

        app.config["RESET_CODE_TTL_MINUTES"] = 0
        try:
            code = reset_code_service.issue_reset_code(ANA["phone"])
        finally:
            app.config["RESET_CODE_TTL_MINUTES"] = 15

        assert reset_code_service.consume_reset_code(ANA["phone"], code) == "expired"

        response = customer_service.reset_password(ANA["phone"], code, "newpass1")
        assert response == "expired"

    def test_new_code_retires_old_one(self, seed):
        first = reset_code_service.issue_reset_code("ana@example.com")
        second = reset_code_service.issue_reset_code("ANA@example.com")
        if first != second:
            assert reset_code_service.consume_reset_code("ana@example.com", first) == "mismatch"
        assert reset_code_service.consume_reset_code("ana@example.com", second) == "ok"

    def test_code_burned_after_repeated_wrong_guesses(self, seed):
        code = reset_code_service.issue_reset_code("ana@example.com")
        wrong = "000000" if code != "000000" else "111111"

        for _ in range(reset_code_service.MAX_CODE_ATTEMPTS):
            assert reset_code_service.consume_reset_code("ana@example.com", wrong) == "mismatch"
        assert reset_code_service.consume_reset_code("ana@example.com", code) == "mismatch"

    def test_code_survives_a_few_wrong_guesses(self, seed):
        code = reset_code_service.issue_reset_code("ana@example.com")
        wrong = "000000" if code != "000000" else "111111"

        for _ in range(reset_code_service.MAX_CODE_ATTEMPTS - 1):
            reset_code_service.consume_reset_code("ana@example.com", wrong)
        assert reset_code_service.consume_reset_code("ana@example.com", code) == "ok"
