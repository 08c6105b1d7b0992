"""
Admin analytics tests.

Growth arithmetic, period parsing, dashboard totals and the zero-filled
revenue series.
"""

import pytest

from tablehub.core.errors import ValidationFailed
from tablehub.core.time_utils import utcnow
from tablehub.schemas import round_figures
from tablehub.services.analytics import REVENUE_PERIODS, growth_percentage, parse_period
from tests.conftest import place_order


class TestHelpers:

    def test_growth_against_zero_baseline(self):
        assert growth_percentage(12, 0) == 0.0

    def test_growth(self):
        assert growth_percentage(15, 10) == 50.0
        assert growth_percentage(5, 10) == -50.0

    def test_parse_period(self):
        assert parse_period("30d", REVENUE_PERIODS) == 30

    def test_parse_unknown_period(self):
        with pytest.raises(ValidationFailed):
            parse_period("1y", REVENUE_PERIODS)

    def test_round_figures_nested(self):
        rounded = round_figures({"a": 1 / 3, "b": [2.005, {"c": True}], "d": 7})
        assert rounded == {"a": 0.33, "b": [round(2.005, 2), {"c": True}], "d": 7}


@pytest.fixture
async def trading_day(client, vendor_a, vendor_b, customer, menu_a):
    """Two orders at vendor A: 20.00 anonymous and 5.00 from the customer."""
    await place_order(client, [(menu_a["pasta"], 2), (menu_a["salad"], 1)])
    await place_order(
        client, [(menu_a["salad"], 1)], table_number="9", headers=customer.headers
    )


class TestDashboard:
    """GET /api/admin/dashboard-stats"""

    async def test_general_admin_totals(self, client, general_admin, trading_day):
        response = await client.get("/api/admin/dashboard-stats", headers=general_admin.headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["totalVendors"] == 2
        assert data["totalCustomers"] == 1
        assert data["totalOrders"] == 2
        assert data["totalRevenue"] == 25.0
        # Everything is new this window and nothing came before it
        assert data["growth"] == {"vendors": 0.0, "customers": 0.0, "orders": 0.0, "revenue": 0.0}

    async def test_vendor_and_customer_are_refused(self, client, vendor_a, customer):
        for actor in (vendor_a, customer):
            response = await client.get("/api/admin/dashboard-stats", headers=actor.headers)
            assert response.status_code == 403

    async def test_requires_authentication(self, client):
        assert (await client.get("/api/admin/dashboard-stats")).status_code == 401

    async def test_vendor_dashboard(self, client, general_admin, vendor_a, trading_day):
        response = await client.get(
            f"/api/admin/vendor-dashboard-stats/{vendor_a.id}", headers=general_admin.headers
        )

        data = response.json()["data"]
        assert data["vendorName"] == "Vendor A Trattoria"
        assert data["totalOrders"] == 2
        assert data["totalRevenue"] == 25.0

    async def test_vendor_dashboard_needs_a_vendor(self, client, general_admin):
        response = await client.get(
            "/api/admin/vendor-dashboard-stats/all", headers=general_admin.headers
        )
        assert response.status_code == 400

    async def test_vendor_dashboard_unknown_vendor(self, client, general_admin, customer):
        response = await client.get(
            f"/api/admin/vendor-dashboard-stats/{customer.id}", headers=general_admin.headers
        )
        assert response.status_code == 404


class TestRevenueSeries:
    """GET /api/admin/revenue-stats"""

    @pytest.mark.parametrize("period,days", [("7d", 7), ("30d", 30), ("90d", 90)])
    async def test_one_bucket_per_day(self, client, general_admin, period, days):
        response = await client.get(
            "/api/admin/revenue-stats", params={"period": period}, headers=general_admin.headers
        )

        series = response.json()["data"]
        assert len(series) == days
        assert all(day["revenue"] == 0.0 and day["orders"] == 0 for day in series)

    async def test_today_is_last_bucket(self, client, general_admin, trading_day):
        response = await client.get("/api/admin/revenue-stats", headers=general_admin.headers)

        series = response.json()["data"]
        today = series[-1]
        assert today["date"] == utcnow().date().isoformat()
        assert today["revenue"] == 25.0
        assert today["orders"] == 2
        assert sum(day["orders"] for day in series[:-1]) == 0

    async def test_filter_by_vendor(self, client, general_admin, vendor_b, trading_day):
        response = await client.get(
            "/api/admin/revenue-stats",
            params={"vendorId": vendor_b.id},
            headers=general_admin.headers,
        )
        assert response.json()["data"][-1]["orders"] == 0

    async def test_unknown_period(self, client, general_admin):
        response = await client.get(
            "/api/admin/revenue-stats", params={"period": "1y"}, headers=general_admin.headers
        )
        assert response.status_code == 400


class TestBreakdowns:
    """Vendor, customer and order stats."""

    async def test_order_stats(self, client, general_admin, vendor_a, trading_day):
        orders = await client.get("/api/orders", headers=vendor_a.headers)
        first = orders.json()["data"]["orders"][0]
        await client.patch(
            f"/api/orders/{first['id']}/status", json={"status": "preparing"}, headers=vendor_a.headers
        )

        response = await client.get("/api/admin/order-stats", headers=general_admin.headers)

        period = response.json()["data"]["period"]
        assert period["overview"]["totalOrders"] == 2
        assert period["overview"]["avgOrderValue"] == 12.5
        assert {row["status"]: row["count"] for row in period["byStatus"]} == {
            "pending": 1, "preparing": 1,
        }
        assert period["byPaymentMethod"] == [
            {"paymentMethod": "cash", "count": 2, "totalAmount": 25.0}
        ]

    async def test_customer_stats(self, client, general_admin, trading_day):
        response = await client.get(
            "/api/admin/customer-stats", params={"period": "7d"}, headers=general_admin.headers
        )

        data = response.json()["data"]
        assert data["total"] == 1
        assert data["newInPeriod"] == 1
        assert data["activeInPeriod"] == 1
        assert data["period"] == "7d"

    async def test_vendor_stats(self, client, general_admin, trading_day):
        response = await client.get("/api/admin/vendor-stats", headers=general_admin.headers)

        overview = response.json()["data"]["overview"]
        assert overview["total"] == 2
        assert overview["activeInPeriod"] == 1

    async def test_vendor_list(self, client, general_admin, vendor_a, vendor_b):
        response = await client.get("/api/admin/vendors", headers=general_admin.headers)

        vendors = response.json()["data"]
        assert [v["name"] for v in vendors] == ["Vendor A Trattoria", "Vendor B Sushi"]
        assert vendors[1]["cuisine"] == "Japanese"
