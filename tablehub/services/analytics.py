"""
Analytics Aggregator

Read-only rollups for the admin dashboards. Every query is filtered by the
caller's scope: general admins see every vendor, multi-vendor admins only
the vendors they hold a live grant for. Customer counts are global since
customers do not belong to a vendor.

Revenue is gross order value: every order counts regardless of payment
status. Figures are returned unrounded; the HTTP layer rounds them.
"""

import logging
from datetime import datetime, time, timedelta
from typing import Any, Optional

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tablehub.core.errors import NotFoundError, ValidationFailed
from tablehub.core.time_utils import utcnow
from tablehub.models import Account, AccountRole, Order, VendorProfile
from tablehub.services.scope import CallerScope

logger = logging.getLogger(__name__)

REVENUE_PERIODS = {"7d": 7, "30d": 30, "90d": 90}
STATS_PERIODS = {"1d": 1, "7d": 7, "30d": 30, "90d": 90}

GROWTH_WINDOW = timedelta(days=30)


def growth_percentage(recent: float, previous: float) -> float:
    """(recent - previous) / previous * 100, or 0 when there is no baseline."""
    if not previous:
        return 0.0
    return (recent - previous) / previous * 100


def parse_period(period: str, allowed: dict[str, int]) -> int:
    try:
        return allowed[period]
    except KeyError:
        raise ValidationFailed(f"Invalid period. Options: {list(allowed)}")


class AnalyticsAggregator:
    def __init__(self, db: AsyncSession, scope: CallerScope):
        self.db = db
        self.scope = scope

    # =========================================================================
    # SCOPE FILTERS
    # =========================================================================

    def _order_filters(self) -> list:
        if self.scope.is_unrestricted:
            return []
        return [Order.vendor_id.in_(self.scope.vendor_ids)]

    def _vendor_filters(self) -> list:
        filters = [Account.role == AccountRole.VENDOR]
        if not self.scope.is_unrestricted:
            filters.append(Account.id.in_(self.scope.vendor_ids))
        return filters

    @staticmethod
    def _customer_filters() -> list:
        return [Account.role == AccountRole.CUSTOMER]

    # =========================================================================
    # PRIMITIVES
    # =========================================================================

    async def _count(self, column, *filters) -> int:
        result = await self.db.execute(select(func.count(column)).where(*filters))
        return result.scalar() or 0

    async def _revenue(self, *filters) -> float:
        result = await self.db.execute(
            select(func.coalesce(func.sum(Order.total_amount), 0.0)).where(*filters)
        )
        return float(result.scalar() or 0.0)

    async def _order_count(self, *filters) -> int:
        return await self._count(Order.id, *self._order_filters(), *filters)

    async def _order_revenue(self, *filters) -> float:
        return await self._revenue(*self._order_filters(), *filters)

    # =========================================================================
    # DASHBOARD
    # =========================================================================

    async def dashboard_stats(self) -> dict[str, Any]:
        now = utcnow()
        recent_start = now - GROWTH_WINDOW
        previous_start = recent_start - GROWTH_WINDOW

        recent = Order.created_at >= recent_start
        previous = (Order.created_at >= previous_start, Order.created_at < recent_start)

        recent_vendors = await self._count(
            Account.id, *self._vendor_filters(), Account.created_at >= recent_start
        )
        previous_vendors = await self._count(
            Account.id, *self._vendor_filters(),
            Account.created_at >= previous_start, Account.created_at < recent_start,
        )
        recent_customers = await self._count(
            Account.id, *self._customer_filters(), Account.created_at >= recent_start
        )
        previous_customers = await self._count(
            Account.id, *self._customer_filters(),
            Account.created_at >= previous_start, Account.created_at < recent_start,
        )
        recent_orders = await self._order_count(recent)
        previous_orders = await self._order_count(*previous)
        recent_revenue = await self._order_revenue(recent)
        previous_revenue = await self._order_revenue(*previous)

        return {
            "totalVendors": await self._count(
                Account.id, *self._vendor_filters(), Account.is_active.is_(True)
            ),
            "totalCustomers": await self._count(
                Account.id, *self._customer_filters(), Account.is_active.is_(True)
            ),
            "totalOrders": await self._order_count(),
            "totalRevenue": await self._order_revenue(),
            "growth": {
                "vendors": growth_percentage(recent_vendors, previous_vendors),
                "customers": growth_percentage(recent_customers, previous_customers),
                "orders": growth_percentage(recent_orders, previous_orders),
                "revenue": growth_percentage(recent_revenue, previous_revenue),
            },
        }

    async def vendor_dashboard_stats(self, vendor_id: str) -> dict[str, Any]:
        """Dashboard for one vendor; vendors outside the scope do not exist."""
        if not vendor_id or vendor_id == "all":
            raise ValidationFailed("Vendor ID is required")
        if not self.scope.allows(vendor_id):
            raise NotFoundError("Vendor not found")

        vendor = await self.db.get(Account, vendor_id)
        if vendor is None or vendor.role != AccountRole.VENDOR:
            raise NotFoundError("Vendor not found")

        now = utcnow()
        recent_start = now - GROWTH_WINDOW
        previous_start = recent_start - GROWTH_WINDOW
        own = Order.vendor_id == vendor_id
        previous = (Order.created_at >= previous_start, Order.created_at < recent_start)

        recent_orders = await self._order_count(own, Order.created_at >= recent_start)
        previous_orders = await self._order_count(own, *previous)
        recent_revenue = await self._order_revenue(own, Order.created_at >= recent_start)
        previous_revenue = await self._order_revenue(own, *previous)

        return {
            "vendorId": vendor.id,
            "vendorName": vendor.name,
            "totalOrders": await self._order_count(own),
            "totalRevenue": await self._order_revenue(own),
            "growth": {
                "orders": growth_percentage(recent_orders, previous_orders),
                "revenue": growth_percentage(recent_revenue, previous_revenue),
            },
        }

    # =========================================================================
    # REVENUE SERIES
    # =========================================================================

    async def revenue_series(self, period: str = "7d", vendor_id: Optional[str] = None) -> list[dict[str, Any]]:
        """One zero-filled bucket per calendar day, oldest first, ending today."""
        days = parse_period(period, REVENUE_PERIODS)
        today = utcnow().date()
        first_day = today - timedelta(days=days - 1)

        filters = [*self._order_filters(), Order.created_at >= datetime.combine(first_day, time.min)]
        if vendor_id and vendor_id != "all":
            if not self.scope.allows(vendor_id):
                raise NotFoundError("Vendor not found")
            filters.append(Order.vendor_id == vendor_id)

        day = func.date(Order.created_at)
        result = await self.db.execute(
            select(day, func.sum(Order.total_amount), func.count(Order.id))
            .where(*filters)
            .group_by(day)
        )
        # date() comes back as a string on SQLite and a date on PostgreSQL
        buckets = {str(row[0]): (float(row[1] or 0.0), row[2]) for row in result.all()}

        series = []
        for offset in range(days):
            current = first_day + timedelta(days=offset)
            revenue, orders = buckets.get(current.isoformat(), (0.0, 0))
            series.append({
                "date": current.isoformat(),
                "name": current.strftime("%a"),
                "revenue": revenue,
                "orders": orders,
            })
        return series

    # =========================================================================
    # BREAKDOWNS
    # =========================================================================

    async def vendor_stats(self, period: str = "30d") -> dict[str, Any]:
        days = parse_period(period, STATS_PERIODS)
        now = utcnow()
        start = now - timedelta(days=days)
        previous_start = start - timedelta(days=days)

        avg_rating = (
            await self.db.execute(
                select(func.avg(VendorProfile.rating))
                .join(Account, Account.id == VendorProfile.account_id)
                .where(*self._vendor_filters())
            )
        ).scalar()

        new_in_period = await self._count(
            Account.id, *self._vendor_filters(), Account.created_at >= start
        )
        new_previous = await self._count(
            Account.id, *self._vendor_filters(),
            Account.created_at >= previous_start, Account.created_at < start,
        )
        active_in_period = (
            await self.db.execute(
                select(func.count(distinct(Order.vendor_id)))
                .where(*self._order_filters(), Order.created_at >= start)
            )
        ).scalar() or 0

        cuisine_rows = await self.db.execute(
            select(VendorProfile.cuisine, func.count(VendorProfile.account_id).label("count"))
            .join(Account, Account.id == VendorProfile.account_id)
            .where(*self._vendor_filters(), Account.is_active.is_(True))
            .group_by(VendorProfile.cuisine)
            .order_by(func.count(VendorProfile.account_id).desc())
            .limit(10)
        )

        return {
            "overview": {
                "total": await self._count(Account.id, *self._vendor_filters()),
                "active": await self._count(
                    Account.id, *self._vendor_filters(), Account.is_active.is_(True)
                ),
                "avgRating": float(avg_rating or 0.0),
                "newInPeriod": new_in_period,
                "activeInPeriod": active_in_period,
                "growth": growth_percentage(new_in_period, new_previous),
            },
            "cuisineDistribution": [
                {"cuisine": cuisine, "count": count} for cuisine, count in cuisine_rows.all()
            ],
            "period": period,
        }

    async def customer_stats(self, period: str = "30d") -> dict[str, Any]:
        days = parse_period(period, STATS_PERIODS)
        now = utcnow()
        start = now - timedelta(days=days)
        previous_start = start - timedelta(days=days)

        new_in_period = await self._count(
            Account.id, *self._customer_filters(), Account.created_at >= start
        )
        new_previous = await self._count(
            Account.id, *self._customer_filters(),
            Account.created_at >= previous_start, Account.created_at < start,
        )
        # Derived from orders, so it follows the vendor scope
        active_in_period = (
            await self.db.execute(
                select(func.count(distinct(Order.customer_id))).where(
                    *self._order_filters(),
                    Order.created_at >= start,
                    Order.customer_id.is_not(None),
                )
            )
        ).scalar() or 0

        return {
            "total": await self._count(Account.id, *self._customer_filters()),
            "active": await self._count(
                Account.id, *self._customer_filters(), Account.is_active.is_(True)
            ),
            "newInPeriod": new_in_period,
            "activeInPeriod": active_in_period,
            "loggedInPeriod": await self._count(
                Account.id, *self._customer_filters(), Account.last_login >= start
            ),
            "growth": growth_percentage(new_in_period, new_previous),
            "period": period,
        }

    async def order_stats(self, period: str = "30d") -> dict[str, Any]:
        days = parse_period(period, STATS_PERIODS)
        now = utcnow()
        start = now - timedelta(days=days)
        previous_start = start - timedelta(days=days)
        in_period = Order.created_at >= start
        previous = (Order.created_at >= previous_start, Order.created_at < start)

        total_orders = await self._order_count(in_period)
        total_revenue = await self._order_revenue(in_period)
        previous_orders = await self._order_count(*previous)
        previous_revenue = await self._order_revenue(*previous)

        return {
            "allTime": {
                "byStatus": await self._breakdown(Order.status, "status"),
            },
            "period": {
                "overview": {
                    "totalOrders": total_orders,
                    "totalRevenue": total_revenue,
                    "avgOrderValue": total_revenue / total_orders if total_orders else 0.0,
                },
                "growth": {
                    "orders": growth_percentage(total_orders, previous_orders),
                    "revenue": growth_percentage(total_revenue, previous_revenue),
                },
                "byStatus": await self._breakdown(Order.status, "status", in_period),
                "byPaymentMethod": await self._breakdown(
                    Order.payment_method, "paymentMethod", in_period
                ),
                "periodLabel": period,
            },
        }

    async def _breakdown(self, column, key: str, *filters) -> list[dict[str, Any]]:
        result = await self.db.execute(
            select(column, func.count(Order.id), func.coalesce(func.sum(Order.total_amount), 0.0))
            .where(*self._order_filters(), *filters)
            .group_by(column)
        )
        return [
            {key: value.value, "count": count, "totalAmount": float(amount)}
            for value, count, amount in result.all()
        ]

    # =========================================================================
    # VENDOR LIST
    # =========================================================================

    async def list_vendors(self) -> list[dict[str, Any]]:
        result = await self.db.execute(
            select(Account)
            .where(*self._vendor_filters(), Account.is_active.is_(True))
            .order_by(Account.name)
        )
        vendors = []
        for vendor in result.scalars().all():
            profile = vendor.vendor_profile
            vendors.append({
                "id": vendor.id,
                "name": vendor.name,
                "email": vendor.email,
                "cuisine": profile.cuisine if profile else None,
                "city": profile.city if profile else None,
            })
        return vendors
