"""
HTTP surface tests.

Verifies:
- Authentication and role checks on staff routes
- Order lifecycle through the staff API, including card charges
- Driver queue, pickup and delivery
- Health, settings and the service catalog
"""

import pytest

from laundromat.services import login_throttle_service, order_service

from conftest import auth_headers, get_auth_token


def create_order(client, headers, **body):
    body.setdefault("items", [{"description": "Wash & Fold", "unit_price": 1.40, "quantity": 20}])
    return client.post("/api/orders", headers=headers, json=body)


# =============================================================================
# AUTH
# =============================================================================


class TestAuthentication:

    def test_login_and_me(self, client, seed):
        token = get_auth_token(client, "staff")
        assert token

        me = client.get("/api/auth/me", headers=auth_headers(token))
        assert me.status_code == 200
        assert me.json["user"]["username"] == "staff"
        assert me.json["user"]["role"] == "staff"

    def test_bad_credentials(self, client, seed):
        response = client.post("/api/auth/login", json={"username": "staff", "password": "wrong-pass1"})
        assert response.status_code == 401
        assert response.json["error"] == "Invalid credentials"

    def test_lockout_after_repeated_failures(self, client, seed):
        for _ in range(login_throttle_service.MAX_FAILED_ATTEMPTS - 1):
            response = client.post("/api/auth/login", json={"username": "staff", "password": "wrong-pass1"})
            assert response.status_code == 401

        tripped = client.post("/api/auth/login", json={"username": "staff", "password": "wrong-pass1"})
        assert tripped.status_code == 429
        assert tripped.json["locked"] is True

        assert get_auth_token(client, "staff") is None
        # Other accounts are unaffected
        assert get_auth_token(client, "admin")

    def test_missing_fields(self, client, seed):
        assert client.post("/api/auth/login", json={"username": "staff"}).status_code == 400

    def test_self_registration_disabled(self, client, seed):
        assert client.post("/api/auth/register", json={"username": "x"}).status_code == 403

    def test_logout_revokes_token(self, client, staff_headers):
        assert client.post("/api/auth/logout", headers=staff_headers).status_code == 200
        assert client.get("/api/auth/me", headers=staff_headers).status_code == 401

    @pytest.mark.parametrize("method,path", [
        ("get", "/api/orders"),
        ("post", "/api/orders"),
        ("get", "/api/driver/orders"),
        ("get", "/api/cash-drawer/status"),
        ("get", "/api/reports"),
        ("get", "/api/users"),
        ("post", "/api/time-entries/clock-in"),
    ])
    def test_requires_token(self, client, db_session, method, path):
        response = getattr(client, method)(path)
        assert response.status_code == 401

    def test_garbage_token(self, client, db_session):
        response = client.get("/api/orders", headers=auth_headers("not-a-token"))
        assert response.status_code == 401


class TestRoles:

    def test_driver_cannot_create_orders(self, client, driver_headers):
        response = create_order(client, driver_headers)
        assert response.status_code == 403
        assert response.json["required_role"] == ["admin", "staff"]

    def test_staff_cannot_delete(self, client, staff_headers):
        order_id = create_order(client, staff_headers).json["order"]["id"]
        assert client.delete(f"/api/orders/{order_id}", headers=staff_headers).status_code == 403

    def test_staff_cannot_manage_users(self, client, staff_headers):
        assert client.get("/api/users", headers=staff_headers).status_code == 403

    def test_staff_cannot_see_driver_queue(self, client, staff_headers):
        assert client.get("/api/driver/orders", headers=staff_headers).status_code == 403


# =============================================================================
# ORDERS
# =============================================================================


class TestOrdersApi:

    def test_create_and_read(self, client, staff_headers):
        response = create_order(client, staff_headers, customer_name="Ana")

        assert response.status_code == 201
        order = response.json["order"]
        assert order["order_number"] == "KP00001"
        assert order["total"] == 30.49
        assert order["tax"] == 2.49
        assert order["received_by"] == "Sam Staff"

        fetched = client.get(f"/api/orders/{order['id']}", headers=staff_headers)
        assert fetched.json["order"]["items"][0]["unit_price"] == 1.4

    def test_validation_error(self, client, staff_headers):
        response = create_order(client, staff_headers, items=[{"description": "x", "unit_price": 2, "quantity": -3}])
        assert response.status_code == 400

    def test_status_flow(self, client, staff_headers):
        order_id = create_order(client, staff_headers).json["order"]["id"]
        url = f"/api/orders/{order_id}/status"

        skip = client.put(url, headers=staff_headers, json={"status": "ready"})
        assert skip.status_code == 409

        for status in ("cleaned", "ready", "delivered"):
            response = client.put(url, headers=staff_headers, json={"status": status})
            assert response.status_code == 200
            assert response.json["order"]["status"] == status

        again = client.put(url, headers=staff_headers, json={"status": "cancelled"})
        assert again.status_code == 409

    def test_update_recomputes(self, client, staff_headers):
        order_id = create_order(client, staff_headers).json["order"]["id"]
        response = client.patch(f"/api/orders/{order_id}", headers=staff_headers,
                                json={"discount_percent": 50})
        assert response.status_code == 200
        # 14.00 + 1.2425 -> 15.2425 -> 15.24
        assert response.json["order"]["total"] == 15.24

    def test_update_rejects_status_field(self, client, staff_headers):
        order_id = create_order(client, staff_headers).json["order"]["id"]
        response = client.put(f"/api/orders/{order_id}", headers=staff_headers, json={"status": "ready"})
        assert response.status_code == 400

    def test_missing_order(self, client, staff_headers):
        assert client.get("/api/orders/9999", headers=staff_headers).status_code == 404

    def test_list_filters_by_status(self, client, staff_headers):
        first = create_order(client, staff_headers).json["order"]["id"]
        create_order(client, staff_headers)
        client.put(f"/api/orders/{first}/status", headers=staff_headers, json={"status": "cleaned"})

        response = client.get("/api/orders?status=cleaned", headers=staff_headers)
        assert [o["id"] for o in response.json["orders"]] == [first]

    def test_payment(self, client, staff_headers):
        order_id = create_order(client, staff_headers).json["order"]["id"]
        response = client.put(f"/api/orders/{order_id}/payment", headers=staff_headers,
                              json={"payment_status": "paid", "payment_method": "cash"})
        assert response.status_code == 200
        assert response.json["order"]["payment_status"] == "paid"

    def test_delete_all_needs_confirm(self, client, admin_headers):
        create_order(client, admin_headers)
        assert client.delete("/api/orders", headers=admin_headers).status_code == 400

        response = client.delete("/api/orders?confirm=true", headers=admin_headers)
        assert response.json["deleted"] == 1


class TestCardCharge:

    CARD = {"number": "4242 4242 4242 4242", "expiry": "12/29", "cvv": "123"}

    def test_approved(self, client, staff_headers, gateway):
        order_id = create_order(client, staff_headers).json["order"]["id"]

        response = client.post(f"/api/orders/{order_id}/charge", headers=staff_headers, json={"card": self.CARD})

        assert response.status_code == 200
        order = response.json["order"]
        assert order["payment_status"] == "paid"
        assert order["payment_method"] == "card"
        assert order["card_last_four"] == "4242"
        assert order["payment_reference"] == "txn_1"
        assert gateway.calls[0]["reference"] == "KP00001"
        assert str(gateway.calls[0]["amount"]) == "30.49"

    def test_declined_leaves_order_unpaid(self, client, staff_headers, gateway):
        gateway.decline_reason = "insufficient_funds"
        order_id = create_order(client, staff_headers).json["order"]["id"]

        response = client.post(f"/api/orders/{order_id}/charge", headers=staff_headers, json={"card": self.CARD})

        assert response.status_code == 402
        assert response.json["reason"] == "insufficient_funds"
        assert response.json["order"]["payment_status"] == "unpaid"

    def test_already_paid(self, client, staff_headers, gateway):
        order_id = create_order(client, staff_headers).json["order"]["id"]
        client.post(f"/api/orders/{order_id}/charge", headers=staff_headers, json={"card": self.CARD})

        again = client.post(f"/api/orders/{order_id}/charge", headers=staff_headers, json={"card": self.CARD})
        assert again.status_code == 409
        assert len(gateway.calls) == 1

    def test_bad_card(self, client, staff_headers, gateway):
        order_id = create_order(client, staff_headers).json["order"]["id"]
        response = client.post(f"/api/orders/{order_id}/charge", headers=staff_headers,
                               json={"card": {"number": "1234", "expiry": "12/29", "cvv": "123"}})
        assert response.status_code == 400
        assert gateway.calls == []

    def test_gateway_not_configured(self, client, staff_headers):
        order_id = create_order(client, staff_headers).json["order"]["id"]
        response = client.post(f"/api/orders/{order_id}/charge", headers=staff_headers, json={"card": self.CARD})
        assert response.status_code == 502


# =============================================================================
# DRIVER
# =============================================================================


class TestDriverApi:

    def test_queue_pickup_and_deliver(self, client, staff_headers, driver_headers):
        pickup_id = create_order(client, staff_headers, order_type="pickup_delivery",
                                 customer_address="12 Main St").json["order"]["id"]
        create_order(client, staff_headers)

        queue = client.get("/api/driver/orders", headers=driver_headers)
        assert [o["id"] for o in queue.json["orders"]] == [pickup_id]
        assert queue.json["orders"][0]["customer_address"] == "12 Main St"

        picked = client.post(f"/api/driver/orders/{pickup_id}/pickup", headers=driver_headers)
        assert picked.status_code == 200
        assert picked.json["order"]["pickup_by"] == "Dee Driver"

        delivered = client.post(f"/api/driver/orders/{pickup_id}/deliver", headers=driver_headers,
                                json={"photo": "https://photos.example/42.jpg"})
        assert delivered.status_code == 200
        assert delivered.json["order"]["status"] == "delivered"
        assert delivered.json["order"]["delivered_by"] == "Dee Driver"

        assert client.get("/api/driver/orders", headers=driver_headers).json["orders"] == []

    def test_counter_order_cannot_be_picked_up(self, client, staff_headers, driver_headers):
        order_id = create_order(client, staff_headers).json["order"]["id"]
        assert client.post(f"/api/driver/orders/{order_id}/pickup", headers=driver_headers).status_code == 400


# =============================================================================
# SYSTEM / SETTINGS / CATALOG / USERS
# =============================================================================


class TestSystem:

    def test_health(self, client, db_session):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json["status"] == "healthy"
        assert response.json["checks"]["database"]["status"] == "healthy"

    def test_version(self, client):
        assert client.get("/version").json["api_version"] == "1.0.0"

    def test_cors_only_for_configured_origins(self, app, client):
        app.config["CORS_ALLOWED_ORIGINS"] = ["https://counter.example"]
        try:
            allowed = client.get("/version", headers={"Origin": "https://counter.example"})
            other = client.get("/version", headers={"Origin": "http://localhost:5173"})
        finally:
            app.config["CORS_ALLOWED_ORIGINS"] = []

        assert allowed.headers["Access-Control-Allow-Origin"] == "https://counter.example"
        assert "Access-Control-Allow-Origin" not in other.headers


class TestSettingsApi:

    def test_public_read(self, client, seed):
        response = client.get("/api/settings")
        assert response.status_code == 200
        assert response.json["settings"]["tax_rate"] == "8.875"

    def test_admin_update_changes_new_orders(self, client, admin_headers, staff_headers):
        response = client.put("/api/settings", headers=admin_headers, json={"tax_rate": "0"})
        assert response.status_code == 200
        assert create_order(client, staff_headers).json["order"]["total"] == 28.0

    def test_negative_tax_rejected(self, client, admin_headers):
        assert client.put("/api/settings", headers=admin_headers, json={"tax_rate": "-1"}).status_code == 400

    def test_staff_cannot_update(self, client, staff_headers):
        assert client.put("/api/settings", headers=staff_headers, json={"tax_rate": "0"}).status_code == 403


class TestCatalogApi:

    def test_public_list(self, client, seed):
        services = client.get("/api/services").json["services"]
        assert services[0]["name"] == "Wash & Fold - Regular"
        assert services[0]["unit_price"] == 1.4

    def test_admin_reprice_and_deactivate(self, client, admin_headers):
        first = client.get("/api/services").json["services"][0]

        response = client.put(f"/api/services/{first['id']}", headers=admin_headers,
                              json={"price": 1.55, "active": False})
        assert response.status_code == 200
        assert response.json["service"]["unit_price"] == 1.55

        active_ids = [s["id"] for s in client.get("/api/services").json["services"]]
        all_ids = [s["id"] for s in client.get("/api/services?all=true").json["services"]]
        assert first["id"] not in active_ids
        assert first["id"] in all_ids

    def test_create_service(self, client, admin_headers):
        response = client.post("/api/services", headers=admin_headers,
                               json={"name": "Shirt Press", "price": 3.5, "category": "Pressing"})
        assert response.status_code == 201
        assert response.json["service"]["unit"] == "item"


class TestUsersApi:

    def test_create_user(self, client, admin_headers):
        response = client.post("/api/users", headers=admin_headers, json={
            "username": "maria", "name": "Maria", "password": "Laundry123!", "role": "staff",
        })
        assert response.status_code == 201
        assert get_auth_token(client, "maria", "Laundry123!")

    def test_duplicate_username(self, client, admin_headers):
        response = client.post("/api/users", headers=admin_headers, json={
            "username": "staff", "name": "Again", "password": "Laundry123!",
        })
        assert response.status_code == 409

    def test_cannot_demote_self(self, client, seed, admin_headers):
        response = client.put(f"/api/users/{seed['admin'].id}", headers=admin_headers, json={"role": "staff"})
        assert response.status_code == 400

    def test_deactivated_user_cannot_log_in(self, client, seed, admin_headers):
        response = client.put(f"/api/users/{seed['staff'].id}", headers=admin_headers, json={"is_active": False})
        assert response.status_code == 200
        assert get_auth_token(client, "staff") is None


class TestCustomersApi:

    def test_crud(self, client, staff_headers, admin_headers):
        created = client.post("/api/customers", headers=staff_headers,
                              json={"name": "Ana", "phone": "(347) 555-0101", "discount_percent": 10})
        assert created.status_code == 201
        customer_id = created.json["customer"]["id"]

        found = client.get("/api/customers?search=5550101", headers=staff_headers)
        assert [c["id"] for c in found.json["customers"]] == [customer_id]

        order = create_order(client, staff_headers, customer_id=customer_id).json["order"]
        assert order["discount_percent"] == 10.0

        assert client.delete(f"/api/customers/{customer_id}", headers=staff_headers).status_code == 403
        assert client.delete(f"/api/customers/{customer_id}", headers=admin_headers).status_code == 200

        detached = order_service.get_order(order["id"])
        assert detached.customer_id is None
        assert detached.customer_name == "Ana"

    def test_duplicate_email(self, client, staff_headers):
        client.post("/api/customers", headers=staff_headers, json={"name": "A", "email": "a@example.com"})
        response = client.post("/api/customers", headers=staff_headers, json={"name": "B", "email": "A@example.com"})
        assert response.status_code == 409
