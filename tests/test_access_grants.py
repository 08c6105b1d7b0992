"""
Multi-vendor admin access tests.

Invitation, single-use registration tokens, scope containment across
vendors, revocation and grant bookkeeping.
"""

import re
from datetime import datetime, timedelta, timezone

import pytest

from tests.conftest import PASSWORD, Actor, add_menu_item, auth, place_order

pytestmark = pytest.mark.tenancy

MV_EMAIL = "manager@group.example.com"


def invitation_token(notifications) -> str:
    match = re.search(r"token=([0-9a-f]+)", notifications.sent[-1].body_html)
    assert match, "invitation email carries no token"
    return match.group(1)


async def grant(client, vendor: Actor, email: str = MV_EMAIL, **extra):
    return await client.post(
        "/api/vendor-access/grant",
        json={"userEmail": email, "userName": "Morgan Manager", **extra},
        headers=vendor.headers,
    )


async def register_mv_admin(client, token: str, email: str = MV_EMAIL):
    return await client.post("/api/auth/admin/multi-vendor-register", json={
        "token": token,
        "email": email,
        "password": PASSWORD,
        "name": "Morgan Manager",
    })


async def mv_login(client, email: str = MV_EMAIL):
    return await client.post("/api/auth/admin/multi-vendor-login", json={
        "email": email, "password": PASSWORD,
    })


class TestGrant:
    """POST /api/vendor-access/grant"""

    async def test_grant_sends_invitation(self, client, vendor_a, notifications):
        response = await grant(client, vendor_a)

        assert response.status_code == 201, response.text
        data = response.json()["data"]
        assert data["status"] == "pending"
        assert data["vendorId"] == vendor_a.id
        assert data["vendorName"] == "Vendor A Trattoria"
        assert "accessToken" not in data
        assert notifications.sent[-1].to_email == MV_EMAIL
        assert "/multi-vendor-admin-register?token=" in notifications.sent[-1].body_html

    async def test_duplicate_pending_grant_conflicts(self, client, vendor_a):
        await grant(client, vendor_a)
        response = await grant(client, vendor_a)
        assert response.status_code == 409

    async def test_past_expiry_rejected(self, client, vendor_a):
        past = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
        response = await grant(client, vendor_a, expiresAt=past)
        assert response.status_code == 400

    async def test_email_failure_becomes_warning(self, client, vendor_a, notifications):
        notifications.failure_rate = 1.0

        response = await grant(client, vendor_a)

        assert response.status_code == 201
        assert response.json()["warnings"]

    async def test_only_vendors_can_grant(self, client, customer):
        response = await grant(client, customer)
        assert response.status_code == 403

    async def test_verify_invitation(self, client, vendor_a, notifications):
        await grant(client, vendor_a)

        response = await client.get(f"/api/vendor-access/verify/{invitation_token(notifications)}")
        assert response.status_code == 200
        assert response.json()["data"]["userEmail"] == MV_EMAIL

        assert (await client.get("/api/vendor-access/verify/deadbeef")).status_code == 404


class TestRedeem:
    """POST /api/auth/admin/multi-vendor-register"""

    async def test_register_from_invitation(self, client, vendor_a, notifications):
        await grant(client, vendor_a)

        response = await register_mv_admin(client, invitation_token(notifications))

        assert response.status_code == 201, response.text
        data = response.json()["data"]
        assert data["account"]["role"] == "multi_vendor_admin"
        assert data["vendorIds"] == [vendor_a.id]

    async def test_token_is_single_use(self, client, vendor_a, notifications):
        """
        SCENARIO: The same invitation token is presented twice
        EXPECTED: first registers, second is 404
        """
        await grant(client, vendor_a)
        token = invitation_token(notifications)

        assert (await register_mv_admin(client, token)).status_code == 201
        assert (await register_mv_admin(client, token)).status_code == 404

    async def test_email_must_match(self, client, vendor_a, notifications):
        await grant(client, vendor_a)

        response = await register_mv_admin(
            client, invitation_token(notifications), email="someone-else@example.com"
        )
        assert response.status_code == 403

    async def test_revoked_invitation_cannot_be_redeemed(self, client, vendor_a, notifications):
        created = await grant(client, vendor_a)
        token = invitation_token(notifications)
        await client.delete(
            f"/api/vendor-access/{created.json()['data']['id']}", headers=vendor_a.headers
        )

        response = await register_mv_admin(client, token)
        assert response.status_code == 403

    async def test_second_invitation_for_existing_admin_conflicts(
        self, client, vendor_a, vendor_b, notifications
    ):
        await grant(client, vendor_a)
        await register_mv_admin(client, invitation_token(notifications))
        await grant(client, vendor_b)

        response = await register_mv_admin(client, invitation_token(notifications))
        assert response.status_code == 409


class TestScope:
    """Multi-vendor admins see exactly the vendors that granted them access."""

    @pytest.fixture
    async def mv_admin(self, client, vendor_a, vendor_b, vendor_c, notifications) -> Actor:
        await grant(client, vendor_a)
        registered = await register_mv_admin(client, invitation_token(notifications))
        await grant(client, vendor_b)

        # Login activates B's pending grant
        response = await mv_login(client)
        assert response.status_code == 200, response.text
        data = response.json()["data"]
        return Actor(
            id=data["account"]["id"],
            email=MV_EMAIL,
            token=data["token"],
            vendor_ids=data["vendorIds"],
            extra={"registered": registered.json()["data"]},
        )

    async def test_login_lists_granted_vendors(self, mv_admin, vendor_a, vendor_b):
        assert sorted(mv_admin.vendor_ids) == sorted([vendor_a.id, vendor_b.id])

    async def test_orders_limited_to_granted_vendors(self, client, mv_admin, vendor_a, vendor_b, vendor_c):
        for vendor in (vendor_a, vendor_b, vendor_c):
            dish = await add_menu_item(client, vendor, "Dish", 10.0)
            await place_order(client, [(dish, 1)])

        response = await client.get("/api/orders", headers=mv_admin.headers)

        orders = response.json()["data"]["orders"]
        assert {o["vendorId"] for o in orders} == {vendor_a.id, vendor_b.id}

        # Asking for an out-of-scope vendor yields nothing rather than its orders
        response = await client.get(
            "/api/orders", params={"vendorId": vendor_c.id}, headers=mv_admin.headers
        )
        assert response.json()["data"]["total"] == 0

    async def test_dashboard_counts_only_scope(self, client, mv_admin):
        response = await client.get("/api/admin/dashboard-stats", headers=mv_admin.headers)
        assert response.json()["data"]["totalVendors"] == 2

    async def test_out_of_scope_vendor_dashboard_is_not_found(self, client, mv_admin, vendor_a, vendor_c):
        allowed = await client.get(
            f"/api/admin/vendor-dashboard-stats/{vendor_a.id}", headers=mv_admin.headers
        )
        denied = await client.get(
            f"/api/admin/vendor-dashboard-stats/{vendor_c.id}", headers=mv_admin.headers
        )
        assert allowed.status_code == 200
        assert denied.status_code == 404

    async def test_revocation_shrinks_scope(self, client, mv_admin, vendor_a, vendor_b):
        grants = await client.get(
            f"/api/vendor-access/vendor/{vendor_b.id}", headers=vendor_b.headers
        )
        grant_id = grants.json()["data"][0]["id"]
        await client.delete(f"/api/vendor-access/{grant_id}", headers=vendor_b.headers)

        response = await client.get("/api/admin/vendors", headers=mv_admin.headers)
        assert [v["id"] for v in response.json()["data"]] == [vendor_a.id]

    async def test_user_grants_listing(self, client, mv_admin, vendor_a):
        response = await client.get(f"/api/vendor-access/user/{MV_EMAIL}", headers=mv_admin.headers)
        assert len(response.json()["data"]) == 2

        other = await client.get(
            "/api/vendor-access/user/someone@example.com", headers=mv_admin.headers
        )
        assert other.status_code == 403


class TestGrantManagement:
    """Revoke, update, accept."""

    async def test_revoke_is_idempotent(self, client, vendor_a):
        created = await grant(client, vendor_a)
        grant_id = created.json()["data"]["id"]

        first = await client.delete(f"/api/vendor-access/{grant_id}", headers=vendor_a.headers)
        second = await client.delete(f"/api/vendor-access/{grant_id}", headers=vendor_a.headers)

        assert first.status_code == second.status_code == 200
        assert second.json()["data"]["status"] == "revoked"

    async def test_other_vendor_cannot_revoke(self, client, vendor_a, vendor_b):
        created = await grant(client, vendor_a)
        response = await client.delete(
            f"/api/vendor-access/{created.json()['data']['id']}", headers=vendor_b.headers
        )
        assert response.status_code == 403

    async def test_regrant_after_revoke(self, client, vendor_a):
        created = await grant(client, vendor_a)
        await client.delete(
            f"/api/vendor-access/{created.json()['data']['id']}", headers=vendor_a.headers
        )

        response = await grant(client, vendor_a)
        assert response.status_code == 201
        assert response.json()["data"]["status"] == "pending"
        assert response.json()["data"]["id"] == created.json()["data"]["id"]

    async def test_revoked_cannot_be_reinstated_by_update(self, client, vendor_a):
        created = await grant(client, vendor_a)
        grant_id = created.json()["data"]["id"]
        await client.delete(f"/api/vendor-access/{grant_id}", headers=vendor_a.headers)

        response = await client.put(
            f"/api/vendor-access/{grant_id}", json={"status": "active"}, headers=vendor_a.headers
        )
        assert response.status_code == 400

    async def test_update_notes(self, client, vendor_a):
        created = await grant(client, vendor_a)
        response = await client.put(
            f"/api/vendor-access/{created.json()['data']['id']}",
            json={"notes": "weekend cover"},
            headers=vendor_a.headers,
        )
        assert response.json()["data"]["notes"] == "weekend cover"

    async def test_list_other_vendor_forbidden(self, client, vendor_a, vendor_b):
        response = await client.get(
            f"/api/vendor-access/vendor/{vendor_a.id}", headers=vendor_b.headers
        )
        assert response.status_code == 403

    async def test_accept_by_existing_admin(self, client, vendor_a, vendor_b, notifications):
        await grant(client, vendor_a)
        registered = await register_mv_admin(client, invitation_token(notifications))
        token = registered.json()["data"]["token"]
        created = await grant(client, vendor_b)

        response = await client.post(
            f"/api/vendor-access/{created.json()['data']['id']}/accept",
            json={},
            headers=auth(token),
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "active"

    async def test_accept_with_wrong_email(self, client, vendor_a, customer):
        created = await grant(client, vendor_a)
        response = await client.post(
            f"/api/vendor-access/{created.json()['data']['id']}/accept",
            json={},
            headers=customer.headers,
        )
        assert response.status_code == 403

    async def test_customer_cannot_accept_on_behalf_of_invitee(self, client, vendor_a, customer):
        """
        SCENARIO: A customer names the invitee's email in the accept body
        EXPECTED: 403 and the grant stays pending
        """
        created = await grant(client, vendor_a)
        grant_id = created.json()["data"]["id"]

        response = await client.post(
            f"/api/vendor-access/{grant_id}/accept",
            json={"userEmail": MV_EMAIL},
            headers=customer.headers,
        )

        assert response.status_code == 403
        listed = await client.get(f"/api/vendor-access/vendor/{vendor_a.id}", headers=vendor_a.headers)
        assert [g["status"] for g in listed.json()["data"]] == ["pending"]

    async def test_admin_cannot_accept_another_admins_grant(self, client, vendor_a, vendor_b, notifications):
        """
        SCENARIO: A multi-vendor admin accepts a grant addressed to someone else
        EXPECTED: 403 even when the body names the other address
        """
        await grant(client, vendor_a)
        registered = await register_mv_admin(client, invitation_token(notifications))
        token = registered.json()["data"]["token"]
        other = await grant(client, vendor_b, email="other@group.example.com")

        response = await client.post(
            f"/api/vendor-access/{other.json()['data']['id']}/accept",
            json={"userEmail": "other@group.example.com"},
            headers=auth(token),
        )

        assert response.status_code == 403
        listed = await client.get(f"/api/vendor-access/vendor/{vendor_b.id}", headers=vendor_b.headers)
        assert [g["status"] for g in listed.json()["data"]] == ["pending"]
