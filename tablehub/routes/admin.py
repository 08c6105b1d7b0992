"""
Admin Analytics Routes

Dashboard figures for general admins (every vendor) and multi-vendor
admins (vendors they hold a live grant for). Money and percentages are
rounded to two decimals on the way out.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query

from tablehub.dependencies import get_admin_analytics
from tablehub.schemas import round_figures, success_response
from tablehub.services.analytics import AnalyticsAggregator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/dashboard-stats", summary="Dashboard Stats")
async def dashboard_stats(
    analytics: AnalyticsAggregator = Depends(get_admin_analytics),
) -> dict[str, Any]:
    return success_response(round_figures(await analytics.dashboard_stats()))


@router.get("/vendor-dashboard-stats/{vendor_id}", summary="Vendor Dashboard Stats")
async def vendor_dashboard_stats(
    vendor_id: str,
    analytics: AnalyticsAggregator = Depends(get_admin_analytics),
) -> dict[str, Any]:
    return success_response(round_figures(await analytics.vendor_dashboard_stats(vendor_id)))


@router.get("/revenue-stats", summary="Revenue Series")
async def revenue_stats(
    period: str = Query("7d"),
    vendor_id: Optional[str] = Query(None, alias="vendorId"),
    analytics: AnalyticsAggregator = Depends(get_admin_analytics),
) -> dict[str, Any]:
    series = await analytics.revenue_series(period, vendor_id)
    return success_response(round_figures(series))


@router.get("/vendor-stats", summary="Vendor Stats")
async def vendor_stats(
    period: str = Query("30d"),
    analytics: AnalyticsAggregator = Depends(get_admin_analytics),
) -> dict[str, Any]:
    return success_response(round_figures(await analytics.vendor_stats(period)))


@router.get("/customer-stats", summary="Customer Stats")
async def customer_stats(
    period: str = Query("30d"),
    analytics: AnalyticsAggregator = Depends(get_admin_analytics),
) -> dict[str, Any]:
    return success_response(round_figures(await analytics.customer_stats(period)))


@router.get("/order-stats", summary="Order Stats")
async def order_stats(
    period: str = Query("30d"),
    analytics: AnalyticsAggregator = Depends(get_admin_analytics),
) -> dict[str, Any]:
    return success_response(round_figures(await analytics.order_stats(period)))


@router.get("/vendors", summary="List Vendors")
async def list_vendors(
    analytics: AnalyticsAggregator = Depends(get_admin_analytics),
) -> dict[str, Any]:
    """Vendors within the caller's scope, for the admin vendor picker."""
    return success_response(await analytics.list_vendors())
