import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pymongo.errors import PyMongoError

import mock_data
from errors import ApiError
from event_store import period
from log_routes import window_or_400
from security import require_admin
from stats_service import StatsSource, get_stats_source, trend_window

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stats", tags=["Statistics"])


@router.get("")
def stats_index():
    return {
        "success": True,
        "message": "Post-sale statistics API",
        "availableEndpoints": {
            "overview": "/api/stats/overview",
            "dashboard": "/api/stats/dashboard",
            "trends": "/api/stats/trends",
            "public": "/api/stats/public",
        },
        "note": "overview, dashboard and trends require an administrator token",
    }


@router.get("/overview")
def get_overview_stats(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    source: StatsSource = Depends(get_stats_source),
    _admin: dict = Depends(require_admin),
):
    start, end = window_or_400(start_date, end_date, 30)
    try:
        result = source.overview(start, end)
    except PyMongoError as exc:
        logger.exception("Error computing overview statistics")
        raise ApiError(500, "Error computing overview statistics", exc)
    return {"success": True, "period": period(start, end), "stats": result.data, **result.envelope()}


@router.get("/dashboard")
def get_dashboard_data(
    source: StatsSource = Depends(get_stats_source),
    _admin: dict = Depends(require_admin),
):
    result = source.dashboard()
    if result.degraded:
        logger.warning(f"Dashboard served in degraded mode: {result.notice}")
    return {"success": True, "dashboardData": result.data, **result.envelope()}


@router.get("/trends")
def get_trends_data(
    metric: Optional[str] = None,
    period_label: str = Query("30d", alias="period"),
    source: StatsSource = Depends(get_stats_source),
    _admin: dict = Depends(require_admin),
):
    label, start, end = trend_window(period_label)
    result = source.trends(metric, start, end)
    return {
        "success": True,
        "period": {**period(start, end), "label": label},
        "metric": metric,
        "trendsData": result.data,
        **result.envelope(),
    }


@router.get("/public")
def get_public_stats():
    """Non-sensitive figures for the storefront."""
    return {"success": True, "stats": dict(mock_data.PUBLIC_STATS)}
