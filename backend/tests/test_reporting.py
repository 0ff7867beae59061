"""
Reporting tests.

Verifies:
- Named periods and explicit windows resolve to inclusive business dates
- Cancelled orders stay out of revenue and order counts
- Top customers rank by total, then name
- Staff productivity counts stage stamps per name
"""

from datetime import date, timedelta

import pytest

from laundromat.services import order_service, reporting_service, settings_service
from laundromat.services.reporting_service import ReportError, comparison_window, resolve_window
from laundromat.time_utils import business_today


def order(amount, *, name=None, actor="Sam Staff", weight=None, **kwargs):
    return order_service.create_order(
        items=[{"description": "Drop-off", "unit_price": amount, "quantity": 1}],
        actor_name=actor,
        customer_name=name,
        weight=weight,
        **kwargs,
    )


@pytest.fixture
def untaxed(seed):
    settings_service.update_settings({"tax_rate": "0"})
    return seed


class TestWindows:

    def test_named_periods(self, app):
        today = business_today()
        assert resolve_window("today") == (today, today)
        assert resolve_window("this_week") == (today - timedelta(days=6), today)
        assert resolve_window(None) == (today - timedelta(days=29), today)

    def test_explicit_window_wins(self, app):
        assert resolve_window("today", "2024-01-01", "2024-01-31") == (date(2024, 1, 1), date(2024, 1, 31))

    def test_bad_inputs(self, app):
        with pytest.raises(ReportError):
            resolve_window("fortnight")
        with pytest.raises(ReportError):
            resolve_window(None, "2024-02-01", "2024-01-01")
        with pytest.raises(ReportError):
            resolve_window(None, "01/02/2024")

    def test_comparison_windows(self):
        start, end = date(2024, 3, 8), date(2024, 3, 14)
        assert comparison_window(start, end, "previous") == (date(2024, 3, 1), date(2024, 3, 7))
        assert comparison_window(date(2024, 2, 29), date(2024, 2, 29), "prior_year") == (
            date(2023, 2, 28), date(2023, 2, 28)
        )


class TestSummary:

    def test_totals_exclude_cancelled(self, untaxed):
        order("20.00", name="Ana", weight=10)
        order("15.50", name="Bo", weight=4)
        cancelled = order("99.00", name="Cy", weight=50)
        order_service.cancel_order(cancelled.id, "Sam Staff")

        report = reporting_service.summary(period="today")

        assert report["total_orders"] == 2
        assert report["total_revenue"] == pytest.approx(35.50)
        assert report["total_weight"] == pytest.approx(14.0)
        assert [c["name"] for c in report["top_customers"]] == ["Ana", "Bo"]

    def test_top_customer_ties_break_by_name(self, untaxed):
        order("10", name="Zed")
        order("10", name="Amy")
        order("5", name="Amy")
        order("15", name="Bea")

        names = [c["name"] for c in reporting_service.summary()["top_customers"]]
        assert names == ["Amy", "Bea", "Zed"]

    def test_previous_comparison(self, untaxed):
        order("40.00")
        report = reporting_service.summary(period="today", compare="previous")

        comparison = report["comparison"]
        assert comparison["total_orders"] == 0
        assert comparison["change"]["orders"] == 1
        assert comparison["change"]["revenue"] == pytest.approx(40.0)
        assert comparison["change"]["revenue_pct"] is None

    def test_empty_window(self, seed):
        report = reporting_service.summary(start="2020-01-01", end="2020-01-31")
        assert report["total_orders"] == 0
        assert report["total_revenue"] == 0
        assert report["top_customers"] == []


class TestStaffReports:

    def test_productivity_stage_counts(self, untaxed):
        first = order("10")
        second = order("12", payment_method="cash")
        order_service.set_payment(second.id, "paid", "cash")
        order_service.set_status(first.id, "cleaned", "Sky Staff")
        order_service.set_status(first.id, "ready", "Sky Staff")
        order_service.deliver(first.id, None, "Dee Driver")

        report = reporting_service.staff_productivity(period="today")
        rows = {row["name"]: row for row in report["staff"]}

        assert rows["Sam Staff"]["stages"]["received"] == 2
        assert rows["Sam Staff"]["cash_collected"] == pytest.approx(12.0)
        assert rows["Sky Staff"]["stages"]["cleaned"] == 1
        assert rows["Sky Staff"]["orders_touched"] == 2
        assert rows["Dee Driver"]["stages"]["delivered"] == 1

    def test_staff_summary(self, untaxed):
        order("20", weight=8)
        order("30", weight=12, actor="Sky Staff")

        report = reporting_service.staff_summary()
        rows = {row["name"]: row for row in report["staff"]}

        assert rows["Sam Staff"]["orders_processed"] == 1
        assert rows["Sam Staff"]["sales"] == pytest.approx(20.0)
        assert rows["Sky Staff"]["weight"] == pytest.approx(12.0)


class TestReportsApi:

    def test_summary_for_staff(self, client, staff_headers):
        response = client.get("/api/reports?period=this_week", headers=staff_headers)
        assert response.status_code == 200
        assert response.json["total_orders"] == 0

    def test_bad_period(self, client, staff_headers):
        assert client.get("/api/reports?period=forever", headers=staff_headers).status_code == 400

    def test_staff_reports_admin_only(self, client, staff_headers, admin_headers):
        assert client.get("/api/staff-summary", headers=staff_headers).status_code == 403
        assert client.get("/api/staff-summary", headers=admin_headers).status_code == 200
        assert client.get("/api/reports/staff-productivity", headers=admin_headers).status_code == 200
