"""
Alert rule management routes.

Provides CRUD operations for a user's alert rules, plus:
- Toggle active/inactive
- Dry-run a rule against live data (never creates alerts)
- Rule statistics
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from apiwatch.api.deps import get_current_user, get_rule_scheduler
from apiwatch.api.responses import paginated
from apiwatch.core.constants import RuleType
from apiwatch.core.db import get_db
from apiwatch.models import User
from apiwatch.schemas.alert_rule import (
    AlertRuleCreate,
    AlertRuleResponse,
    AlertRuleUpdate,
    RuleStatsResponse,
    RuleTestResponse,
)
from apiwatch.schemas.common import ApiResponse, PaginatedResponse
from apiwatch.services import rule_service
from apiwatch.services.scheduler import RuleScheduler

router = APIRouter(
    prefix="/alert-rules",
    tags=["Alert Rules"],
)


# =============================================================================
# LIST / STATS
# =============================================================================


@router.get(
    "",
    response_model=PaginatedResponse[AlertRuleResponse],
    summary="List alert rules",
)
async def list_alert_rules(
    provider_id: Optional[int] = Query(default=None),
    type: Optional[RuleType] = Query(default=None, description="Filter by rule type"),
    is_active: Optional[bool] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List the current user's rules, newest first."""
    rules, total = await rule_service.list_rules(
        db,
        current_user.id,
        provider_id=provider_id,
        rule_type=type,
        is_active=is_active,
        page=page,
        limit=limit,
    )
    return paginated(rules, AlertRuleResponse, page, limit, total)


@router.get(
    "/stats",
    response_model=ApiResponse[RuleStatsResponse],
    summary="Alert rule statistics",
)
async def get_rule_stats(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    stats = await rule_service.rule_stats(db, current_user.id)
    return ApiResponse(data=RuleStatsResponse(**stats))


# =============================================================================
# CRUD
# =============================================================================


@router.post(
    "",
    response_model=ApiResponse[AlertRuleResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create an alert rule",
)
async def create_alert_rule(
    rule_data: AlertRuleCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a new alert rule.

    Conditions are validated here; rule names are unique per user.
    """
    rule = await rule_service.create_rule(db, current_user.id, rule_data)
    return ApiResponse(data=AlertRuleResponse.model_validate(rule))


@router.get(
    "/{rule_id}",
    response_model=ApiResponse[AlertRuleResponse],
    summary="Get an alert rule by ID",
)
async def get_alert_rule(
    rule_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rule = await rule_service.get_rule(db, current_user.id, rule_id)
    return ApiResponse(data=AlertRuleResponse.model_validate(rule))


@router.put(
    "/{rule_id}",
    response_model=ApiResponse[AlertRuleResponse],
    summary="Update an alert rule",
)
async def update_alert_rule(
    rule_id: int,
    rule_data: AlertRuleUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Update an alert rule.

    Only provided fields will be updated.
    """
    rule = await rule_service.update_rule(db, current_user.id, rule_id, rule_data)
    return ApiResponse(data=AlertRuleResponse.model_validate(rule))


@router.delete(
    "/{rule_id}",
    response_model=ApiResponse[dict[str, Any]],
    summary="Delete an alert rule",
)
async def delete_alert_rule(
    rule_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete a rule. Alerts it already produced are kept."""
    await rule_service.delete_rule(db, current_user.id, rule_id)
    return ApiResponse(data={"id": rule_id, "deleted": True})


# =============================================================================
# ACTIONS
# =============================================================================


@router.post(
    "/{rule_id}/toggle",
    response_model=ApiResponse[AlertRuleResponse],
    summary="Activate or deactivate an alert rule",
)
async def toggle_alert_rule(
    rule_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rule = await rule_service.toggle_rule(db, current_user.id, rule_id)
    return ApiResponse(data=AlertRuleResponse.model_validate(rule))


@router.post(
    "/{rule_id}/test",
    response_model=ApiResponse[RuleTestResponse],
    summary="Dry-run an alert rule against live data",
)
async def dry_run_alert_rule(
    rule_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    scheduler: RuleScheduler = Depends(get_rule_scheduler),
):
    """
    Evaluate the rule now and explain the outcome.

    Works for inactive rules too. Never creates an alert or changes the
    rule's trigger bookkeeping.
    """
    rule = await rule_service.get_rule(db, current_user.id, rule_id)
    outcome = await scheduler.test_rule(db, rule)
    result = outcome.result

    return ApiResponse(
        data=RuleTestResponse(
            rule_id=rule.id,
            triggered=result.triggered,
            current_value=result.current_value,
            threshold=result.threshold,
            sample_count=result.sample_count,
            window_start=outcome.window[0],
            window_end=outcome.window[1],
            in_cooldown=outcome.in_cooldown,
            error=result.error,
            explanation=outcome.explanation,
        )
    )
