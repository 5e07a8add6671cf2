"""
Alert viewing and management routes.

Alerts are created by the rule scheduler. This API provides:
- Read access with filtering and statistics
- Mark read / resolve, one at a time or in bulk
- Deletion
"""

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from apiwatch.api.deps import get_current_user
from apiwatch.api.responses import paginated
from apiwatch.core.constants import RuleType, Severity
from apiwatch.core.db import get_db
from apiwatch.models import User
from apiwatch.schemas.alert import AlertBulkRequest, AlertResponse, AlertStatsResponse
from apiwatch.schemas.common import ApiResponse, CountResult, PaginatedResponse
from apiwatch.services import alert_service

router = APIRouter(
    prefix="/alerts",
    tags=["Alerts"],
)


# =============================================================================
# LIST ALERTS
# =============================================================================


@router.get(
    "",
    response_model=PaginatedResponse[AlertResponse],
    summary="List alerts",
)
async def list_alerts(
    # Filters
    provider_id: Optional[int] = Query(default=None),
    type: Optional[RuleType] = Query(default=None, description="Filter by alert type"),
    severity: Optional[Severity] = Query(default=None),
    is_read: Optional[bool] = Query(default=None),
    is_resolved: Optional[bool] = Query(default=None),
    start_date: Optional[datetime] = Query(default=None),
    end_date: Optional[datetime] = Query(default=None),
    # Pagination
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    # Auth
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    List alerts with optional filtering.

    Alerts are returned in reverse chronological order (newest first).
    """
    alerts, total = await alert_service.list_alerts(
        db,
        current_user.id,
        provider_id=provider_id,
        alert_type=type,
        severity=severity,
        is_read=is_read,
        is_resolved=is_resolved,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return paginated(alerts, AlertResponse, page, limit, total)


@router.get(
    "/stats",
    response_model=ApiResponse[AlertStatsResponse],
    summary="Alert statistics",
)
async def get_alert_stats(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    stats = await alert_service.alert_stats(db, current_user.id)
    return ApiResponse(data=AlertStatsResponse(**stats))


# =============================================================================
# BULK ACTIONS
# =============================================================================
# Declared before the /{alert_id} routes so "bulk" is not taken for an id.


@router.post(
    "/bulk/read",
    response_model=ApiResponse[CountResult],
    summary="Mark several (or all) alerts as read",
)
async def bulk_mark_read(
    request: AlertBulkRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updated = await alert_service.bulk_mark_read(db, current_user.id, request)
    return ApiResponse(data=CountResult(updated=updated))


@router.post(
    "/bulk/resolve",
    response_model=ApiResponse[CountResult],
    summary="Resolve several (or all) alerts",
)
async def bulk_resolve(
    request: AlertBulkRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updated = await alert_service.bulk_resolve(db, current_user.id, request)
    return ApiResponse(data=CountResult(updated=updated))


# =============================================================================
# SINGLE ALERT
# =============================================================================


@router.get(
    "/{alert_id}",
    response_model=ApiResponse[AlertResponse],
    summary="Get alert by ID",
)
async def get_alert(
    alert_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    alert = await alert_service.get_alert(db, current_user.id, alert_id)
    return ApiResponse(data=AlertResponse.model_validate(alert))


@router.post(
    "/{alert_id}/read",
    response_model=ApiResponse[AlertResponse],
    summary="Mark an alert as read",
)
async def mark_alert_read(
    alert_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    alert = await alert_service.mark_read(db, current_user.id, alert_id)
    return ApiResponse(data=AlertResponse.model_validate(alert))


@router.post(
    "/{alert_id}/resolve",
    response_model=ApiResponse[AlertResponse],
    summary="Resolve an alert",
)
async def resolve_alert(
    alert_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Mark an alert as resolved.

    Sets `resolved_at` to the current time and marks the alert read.
    """
    alert = await alert_service.resolve(db, current_user.id, alert_id)
    return ApiResponse(data=AlertResponse.model_validate(alert))


@router.delete(
    "/{alert_id}",
    response_model=ApiResponse[dict[str, Any]],
    summary="Delete an alert",
)
async def delete_alert(
    alert_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await alert_service.delete_alert(db, current_user.id, alert_id)
    return ApiResponse(data={"id": alert_id, "deleted": True})
