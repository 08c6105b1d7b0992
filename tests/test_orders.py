"""
Order lifecycle tests through the HTTP API.

Covers placement and price snapshots, validation failures, the status
machine with settlement, vendor isolation and edits.
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from tablehub.models import Order
from tests.conftest import add_menu_item, place_order, register_vendor

pytestmark = pytest.mark.orders


class TestPlaceOrder:
    """POST /api/orders"""

    async def test_anonymous_order_is_pending(self, client, vendor_a, menu_a):
        """
        SCENARIO: Anonymous table orders two pastas and a salad
        EXPECTED: 201, subtotal 20.00, pending and unpaid
        """
        response = await place_order(client, [(menu_a["pasta"], 2), (menu_a["salad"], 1)])

        assert response.status_code == 201, response.text
        body = response.json()
        assert body["success"] is True
        order = body["data"]
        assert order["vendorId"] == vendor_a.id
        assert order["subtotal"] == 20.00
        assert order["totalAmount"] == 20.00
        assert order["status"] == "pending"
        assert order["paymentStatus"] == "pending"
        assert order["customerId"] is None
        assert [line["name"] for line in order["items"]] == ["Pasta", "Salad"]
        assert order["items"][0]["lineTotal"] == 15.00

    async def test_rates_snapshot_from_vendor(self, client):
        vendor = await register_vendor(
            client, "Rated Bistro", "rated@vendors.example.com", tax_rate=10, service_charge_rate=5
        )
        dish = await add_menu_item(client, vendor, "Steak", 20.00)

        response = await place_order(client, [(dish, 1)], tipPercentage=10, tipAmount=99)

        order = response.json()["data"]
        assert order["taxRate"] == 10
        assert order["taxAmount"] == 2.00
        assert order["serviceChargeAmount"] == 1.00
        assert order["tipAmount"] == 2.00
        assert order["totalAmount"] == 25.00

        # Later rate changes leave the placed order alone
        await client.put(
            "/api/vendors/me/billing-settings", json={"taxRate": 20}, headers=vendor.headers
        )
        fetched = await client.get(f"/api/orders/{order['id']}")
        assert fetched.json()["data"]["taxAmount"] == 2.00

    async def test_half_cent_tax_is_stored_exactly(self, client, db_session):
        """
        SCENARIO: 1.05 item at 10% tax with a 10% tip
        EXPECTED: tax and tip 0.11 each, total 1.27 in the response and the row
        """
        vendor = await register_vendor(
            client, "Penny Bistro", "penny@vendors.example.com", tax_rate=10
        )
        dish = await add_menu_item(client, vendor, "Mint", 1.05)

        response = await place_order(client, [(dish, 1)], tipPercentage=10)

        order = response.json()["data"]
        assert order["taxAmount"] == 0.11
        assert order["tipAmount"] == 0.11
        assert order["totalAmount"] == 1.27

        stored = await db_session.get(Order, order["id"])
        assert stored.total_amount == Decimal("1.27")
        assert stored.total_amount == (
            stored.subtotal + stored.tax_amount + stored.service_charge_amount + stored.tip_amount
        )

    async def test_estimated_time_is_slowest_item(self, client, menu_a):
        response = await place_order(client, [(menu_a["pasta"], 1), (menu_a["salad"], 1)])
        assert response.json()["data"]["estimatedPreparationTime"] == 20

    async def test_unavailable_item_rejected_and_not_persisted(self, client, db_session, menu_a):
        """
        SCENARIO: Cart contains a switched-off dish
        EXPECTED: 400 and no order row
        """
        response = await place_order(client, [(menu_a["pasta"], 1), (menu_a["special"], 1)])

        assert response.status_code == 400
        assert response.json()["success"] is False
        count = (await db_session.execute(select(func.count(Order.id)))).scalar()
        assert count == 0

    async def test_unknown_item_is_not_found(self, client, menu_a):
        response = await place_order(client, [({"id": "no-such-item"}, 1)])
        assert response.status_code == 404

    async def test_mixed_vendor_cart_rejected(self, client, menu_a, menu_b):
        response = await place_order(client, [(menu_a["pasta"], 1), (menu_b["roll"], 1)])
        assert response.status_code == 400

    @pytest.mark.parametrize("body", [
        {"tableNumber": "", "items": []},
        {"tableNumber": "   ", "items": [{"menuItemId": "x", "quantity": 1}]},
        {"tableNumber": "4", "items": []},
    ])
    async def test_table_and_items_required(self, client, body):
        response = await client.post("/api/orders", json=body)
        assert response.status_code == 400

    async def test_signed_in_customer_linked_and_notified(self, client, customer, vendor_a, menu_a, dispatcher):
        response = await place_order(client, [(menu_a["salad"], 1)], headers=customer.headers)

        order = response.json()["data"]
        assert order["customerId"] == customer.id
        assert dispatcher.recipients("new_order_alert") == [vendor_a.email]
        assert dispatcher.recipients("order_confirmation") == [customer.email]

    async def test_notification_amounts_are_json_numbers(self, client, menu_a, dispatcher):
        await place_order(client, [(menu_a["pasta"], 2)], customerEmail="guest@example.com")

        payload = dict(dispatcher.submitted)["order_confirmation"]
        assert payload["total_amount"] == 15.00
        assert isinstance(payload["total_amount"], float)
        assert all(isinstance(item["line_total"], float) for item in payload["items"])

    async def test_bad_token_is_treated_as_anonymous(self, client, menu_a):
        response = await place_order(
            client, [(menu_a["salad"], 1)], headers={"Authorization": "Bearer garbage"}
        )
        assert response.status_code == 201
        assert response.json()["data"]["customerId"] is None


class TestOrderStatus:
    """PATCH /api/orders/{id}/status"""

    async def _order(self, client, menu_a) -> str:
        response = await place_order(client, [(menu_a["pasta"], 1)], customerEmail="guest@example.com")
        return response.json()["data"]["id"]

    async def test_served_marks_paid(self, client, vendor_a, menu_a):
        order_id = await self._order(client, menu_a)

        response = await client.patch(
            f"/api/orders/{order_id}/status", json={"status": "served"}, headers=vendor_a.headers
        )

        assert response.status_code == 200, response.text
        order = response.json()["data"]
        assert order["status"] == "served"
        assert order["paymentStatus"] == "paid"

    async def test_ready_records_time_and_notifies(self, client, vendor_a, menu_a, dispatcher):
        order_id = await self._order(client, menu_a)

        response = await client.patch(
            f"/api/orders/{order_id}/status", json={"status": "ready"}, headers=vendor_a.headers
        )

        order = response.json()["data"]
        assert order["actualPreparationTime"] == 0
        assert dispatcher.recipients("order_ready") == ["guest@example.com"]

    async def test_backward_move_rejected(self, client, vendor_a, menu_a):
        order_id = await self._order(client, menu_a)
        await client.patch(
            f"/api/orders/{order_id}/status", json={"status": "ready"}, headers=vendor_a.headers
        )

        response = await client.patch(
            f"/api/orders/{order_id}/status", json={"status": "pending"}, headers=vendor_a.headers
        )
        assert response.status_code == 400

    async def test_cancelled_is_final(self, client, vendor_a, menu_a):
        order_id = await self._order(client, menu_a)
        await client.patch(
            f"/api/orders/{order_id}/status", json={"status": "cancelled"}, headers=vendor_a.headers
        )

        response = await client.patch(
            f"/api/orders/{order_id}/status", json={"status": "preparing"}, headers=vendor_a.headers
        )
        assert response.status_code == 400

    async def test_unknown_status_rejected(self, client, vendor_a, menu_a):
        order_id = await self._order(client, menu_a)
        response = await client.patch(
            f"/api/orders/{order_id}/status", json={"status": "teleported"}, headers=vendor_a.headers
        )
        assert response.status_code == 400

    async def test_other_vendor_gets_not_found(self, client, vendor_b, menu_a):
        """
        SCENARIO: Vendor B tries to move vendor A's order
        EXPECTED: 404 and the order is unchanged
        """
        order_id = await self._order(client, menu_a)

        response = await client.patch(
            f"/api/orders/{order_id}/status", json={"status": "served"}, headers=vendor_b.headers
        )

        assert response.status_code == 404
        fetched = await client.get(f"/api/orders/{order_id}")
        assert fetched.json()["data"]["status"] == "pending"

    async def test_customer_cannot_change_status(self, client, customer, menu_a):
        order_id = await self._order(client, menu_a)
        response = await client.patch(
            f"/api/orders/{order_id}/status", json={"status": "served"}, headers=customer.headers
        )
        assert response.status_code == 403

    async def test_payment_status(self, client, vendor_a, menu_a):
        order_id = await self._order(client, menu_a)

        response = await client.patch(
            f"/api/orders/{order_id}/payment-status",
            json={"paymentStatus": "refunded"},
            headers=vendor_a.headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["paymentStatus"] == "refunded"


class TestEditOrder:
    """PUT /api/orders/{id}"""

    async def test_edit_resnapshots_prices(self, client, vendor_a, menu_a):
        """
        SCENARIO: Menu price changes, then the vendor edits the order lines
        EXPECTED: edited lines use the new price; tip percentage follows
        """
        placed = await place_order(client, [(menu_a["salad"], 1)], tipPercentage=10)
        order_id = placed.json()["data"]["id"]

        await client.patch(
            f"/api/menu/{menu_a['salad']['id']}", json={"price": 6.00}, headers=vendor_a.headers
        )
        response = await client.put(
            f"/api/orders/{order_id}",
            json={"items": [{"menuItemId": menu_a["salad"]["id"], "quantity": 2}], "notes": "two now"},
            headers=vendor_a.headers,
        )

        assert response.status_code == 200, response.text
        order = response.json()["data"]
        assert order["subtotal"] == 12.00
        assert order["tipAmount"] == 1.20
        assert order["totalAmount"] == 13.20
        assert order["notes"] == "two now"
        assert order["items"][0]["price"] == 6.00

    async def test_menu_price_change_does_not_touch_placed_order(self, client, vendor_a, menu_a):
        placed = await place_order(client, [(menu_a["salad"], 1)])
        order_id = placed.json()["data"]["id"]

        await client.patch(
            f"/api/menu/{menu_a['salad']['id']}", json={"price": 9.00}, headers=vendor_a.headers
        )

        fetched = await client.get(f"/api/orders/{order_id}")
        assert fetched.json()["data"]["subtotal"] == 5.00

    async def test_cannot_edit_served_order(self, client, vendor_a, menu_a):
        placed = await place_order(client, [(menu_a["salad"], 1)])
        order_id = placed.json()["data"]["id"]
        await client.patch(
            f"/api/orders/{order_id}/status", json={"status": "served"}, headers=vendor_a.headers
        )

        response = await client.put(
            f"/api/orders/{order_id}", json={"notes": "late"}, headers=vendor_a.headers
        )
        assert response.status_code == 400

    async def test_cannot_add_other_vendor_item(self, client, vendor_a, menu_a, menu_b):
        placed = await place_order(client, [(menu_a["salad"], 1)])
        order_id = placed.json()["data"]["id"]

        response = await client.put(
            f"/api/orders/{order_id}",
            json={"items": [{"menuItemId": menu_b["roll"]["id"], "quantity": 1}]},
            headers=vendor_a.headers,
        )
        assert response.status_code == 400

    async def test_delete_order(self, client, vendor_a, vendor_b, menu_a):
        placed = await place_order(client, [(menu_a["salad"], 1)])
        order_id = placed.json()["data"]["id"]

        assert (await client.delete(f"/api/orders/{order_id}", headers=vendor_b.headers)).status_code == 404
        assert (await client.delete(f"/api/orders/{order_id}", headers=vendor_a.headers)).status_code == 200
        assert (await client.get(f"/api/orders/{order_id}")).status_code == 404


class TestListOrders:
    """GET /api/orders, /today, /mine"""

    async def test_vendor_sees_only_own_orders(self, client, vendor_a, vendor_b, menu_a, menu_b):
        await place_order(client, [(menu_a["salad"], 1)], table_number="1")
        await place_order(client, [(menu_a["pasta"], 1)], table_number="2")
        await place_order(client, [(menu_b["roll"], 1)], table_number="1")

        response = await client.get("/api/orders", headers=vendor_a.headers)

        page = response.json()["data"]
        assert page["total"] == 2
        assert {o["vendorId"] for o in page["orders"]} == {vendor_a.id}

        filtered = await client.get(
            "/api/orders", params={"tableNumber": "2"}, headers=vendor_a.headers
        )
        assert filtered.json()["data"]["total"] == 1

    async def test_pagination(self, client, vendor_a, menu_a):
        for table in range(3):
            await place_order(client, [(menu_a["salad"], 1)], table_number=str(table + 1))

        response = await client.get(
            "/api/orders", params={"page": 2, "limit": 2}, headers=vendor_a.headers
        )

        page = response.json()["data"]
        assert page["total"] == 3
        assert page["pages"] == 2
        assert len(page["orders"]) == 1

    async def test_general_admin_sees_everything_today(self, client, general_admin, menu_a, menu_b):
        await place_order(client, [(menu_a["salad"], 1)])
        await place_order(client, [(menu_b["roll"], 1)])

        response = await client.get("/api/orders/today", headers=general_admin.headers)

        assert response.status_code == 200
        assert len(response.json()["data"]) == 2

    async def test_customer_lists_own_orders(self, client, customer, menu_a):
        await place_order(client, [(menu_a["salad"], 1)], headers=customer.headers)
        await place_order(client, [(menu_a["pasta"], 1)])

        response = await client.get("/api/orders/mine", headers=customer.headers)

        orders = response.json()["data"]
        assert len(orders) == 1
        assert orders[0]["customerId"] == customer.id

    async def test_listing_requires_authentication(self, client):
        response = await client.get("/api/orders")
        assert response.status_code == 401
