"""
Cash drawer reconciliation tests.

Verifies:
- expected = opening + paid cash sales - expenses
- Closing count mismatch is reported to the cent
- One opening/closing per business date
- Back-dating is admin-only
"""

from datetime import date
from decimal import Decimal

import pytest

from laundromat.services import cash_drawer_service, order_service, settings_service
from laundromat.services.cash_drawer_service import DrawerError, DuplicateDrawerEventError


def cash_sale(amount, paid=True, method="cash"):
    order = order_service.create_order(
        items=[{"description": "Drop-off", "unit_price": amount, "quantity": 1}],
        actor_name="Sam Staff",
        payment_method=method,
    )
    if paid:
        order_service.set_payment(order.id, "paid", method)
    return order


@pytest.fixture
def untaxed(seed):
    settings_service.update_settings({"tax_rate": "0"})
    return seed


class TestReconciliation:

    def test_mismatch_reported(self, untaxed):
        staff = untaxed["staff"]
        cash_drawer_service.record_drawer_event("opening", {"hundreds": 2}, user=staff)
        cash_sale("100.00")
        cash_sale("30.25")
        cash_sale("15.25")
        cash_drawer_service.record_drawer_event(
            "expense", {"amount": "20.00", "description": "Detergent"}, user=staff
        )
        cash_drawer_service.record_drawer_event("closing", {"hundreds": 3, "twenties": 1}, user=staff)

        status = cash_drawer_service.get_status()

        assert status.cash_sales == Decimal("145.50")
        assert status.expense_total == Decimal("20.00")
        assert status.expected_cash == Decimal("325.50")
        assert status.actual_cash == Decimal("320")
        assert status.mismatch == Decimal("-5.50")
        assert status.has_mismatch is True

    def test_balanced_drawer(self, untaxed):
        staff = untaxed["staff"]
        cash_drawer_service.record_drawer_event("opening", {"fifties": 1, "change": "2.75"}, user=staff)
        cash_sale("10.00")
        cash_drawer_service.record_drawer_event(
            "closing", {"fifties": 1, "tens": 1, "change": "2.75"}, user=staff
        )

        status = cash_drawer_service.get_status()
        assert status.mismatch == Decimal("0")
        assert status.has_mismatch is False

    def test_only_paid_cash_orders_count(self, untaxed):
        cash_sale("10.00")
        cash_sale("99.00", paid=False)
        cash_sale("50.00", method="card")

        assert cash_drawer_service.get_status().cash_sales == Decimal("10.00")

    def test_no_closing_yet(self, untaxed):
        cash_drawer_service.record_drawer_event("opening", {"hundreds": 1}, user=untaxed["staff"])
        status = cash_drawer_service.get_status()
        assert status.expected_cash == Decimal("100")
        assert status.actual_cash is None
        assert status.mismatch is None
        assert status.has_mismatch is False

    def test_other_dates_are_separate(self, untaxed):
        cash_drawer_service.record_drawer_event(
            "opening", {"hundreds": 5}, user=untaxed["admin"], business_date=date(2024, 1, 2)
        )
        assert cash_drawer_service.get_status().opening is None
        assert cash_drawer_service.get_status(date(2024, 1, 2)).expected_cash == Decimal("500")


class TestEvents:

    def test_duplicate_opening(self, seed):
        cash_drawer_service.record_drawer_event("opening", {"hundreds": 1}, user=seed["staff"])
        with pytest.raises(DuplicateDrawerEventError):
            cash_drawer_service.record_drawer_event("opening", {"hundreds": 2}, user=seed["staff2"])

    def test_multiple_expenses_allowed(self, seed):
        for amount in ("5", "7.50"):
            cash_drawer_service.record_drawer_event("expense", {"amount": amount}, user=seed["staff"])
        assert cash_drawer_service.get_status().expense_total == Decimal("12.50")

    @pytest.mark.parametrize("data", [{"hundreds": -1}, {"tens": 1.5}, {"ones": "lots"}])
    def test_bad_counts(self, seed, data):
        with pytest.raises(DrawerError):
            cash_drawer_service.record_drawer_event("opening", data, user=seed["staff"])

    def test_expense_requires_positive_amount(self, seed):
        with pytest.raises(DrawerError):
            cash_drawer_service.record_drawer_event("expense", {"description": "x"}, user=seed["staff"])
        with pytest.raises(DrawerError):
            cash_drawer_service.record_drawer_event("expense", {"amount": 0}, user=seed["staff"])

    def test_unknown_type(self, seed):
        with pytest.raises(DrawerError):
            cash_drawer_service.record_drawer_event("refund", {}, user=seed["staff"])


# =============================================================================
# API
# =============================================================================


class TestCashDrawerApi:

    def test_count_and_status(self, client, staff_headers):
        response = client.post("/api/cash-drawer", headers=staff_headers,
                               json={"type": "opening", "hundreds": 1, "change": 4.5})
        assert response.status_code == 201
        assert response.json["event"]["total"] == 104.5

        status = client.get("/api/cash-drawer/status", headers=staff_headers)
        assert status.status_code == 200
        assert status.json["expected_cash"] == 104.5
        assert status.json["has_mismatch"] is False

    def test_duplicate_is_conflict(self, client, staff_headers):
        client.post("/api/cash-drawer", headers=staff_headers, json={"type": "opening", "ones": 5})
        response = client.post("/api/cash-drawer", headers=staff_headers, json={"type": "opening", "ones": 5})
        assert response.status_code == 409

    def test_backdating_is_admin_only(self, client, staff_headers, admin_headers):
        body = {"type": "opening", "ones": 5, "date": "2024-03-01"}
        assert client.post("/api/cash-drawer", headers=staff_headers, json=body).status_code == 403
        assert client.post("/api/cash-drawer", headers=admin_headers, json=body).status_code == 201

        status = client.get("/api/cash-drawer/status?date=2024-03-01", headers=admin_headers)
        assert status.json["date"] == "2024-03-01"
        assert status.json["opening"]["total"] == 5.0

    def test_driver_forbidden(self, client, driver_headers):
        assert client.get("/api/cash-drawer/status", headers=driver_headers).status_code == 403

    def test_bad_date(self, client, staff_headers):
        assert client.get("/api/cash-drawer/status?date=yesterday", headers=staff_headers).status_code == 400
