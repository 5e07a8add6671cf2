"""
Tenant-scoped alert rule operations.

Every lookup filters by the owner, so another tenant's rule is reported as
not found rather than forbidden.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from apiwatch.core.db import utcnow
from apiwatch.core.exceptions import ConflictError, NotFoundError
from apiwatch.models import AlertRule
from apiwatch.schemas.alert_rule import AlertRuleCreate, AlertRuleUpdate


async def get_rule(db: AsyncSession, user_id: int, rule_id: int) -> AlertRule:
    """Get one of the user's rules or raise NotFoundError."""
    result = await db.execute(
        select(AlertRule).where(AlertRule.id == rule_id, AlertRule.user_id == user_id)
    )
    rule = result.scalar_one_or_none()
    if rule is None:
        raise NotFoundError("Alert rule", rule_id)
    return rule


async def _ensure_unique_name(
    db: AsyncSession,
    user_id: int,
    name: str,
    exclude_id: Optional[int] = None,
) -> None:
    query = select(AlertRule.id).where(AlertRule.user_id == user_id, AlertRule.name == name)
    if exclude_id is not None:
        query = query.where(AlertRule.id != exclude_id)
    existing = await db.execute(query)
    if existing.first() is not None:
        raise ConflictError(f"Alert rule '{name}' already exists")


async def list_rules(
    db: AsyncSession,
    user_id: int,
    provider_id: Optional[int] = None,
    rule_type: Optional[str] = None,
    is_active: Optional[bool] = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[AlertRule], int]:
    """List rules newest first, with the total before pagination."""
    conditions = [AlertRule.user_id == user_id]
    if provider_id is not None:
        conditions.append(AlertRule.provider_id == provider_id)
    if rule_type:
        conditions.append(AlertRule.type == rule_type)
    if is_active is not None:
        conditions.append(AlertRule.is_active == is_active)

    count_result = await db.execute(
        select(func.count()).select_from(AlertRule).where(*conditions)
    )
    total = count_result.scalar_one()

    result = await db.execute(
        select(AlertRule)
        .where(*conditions)
        .order_by(AlertRule.created_at.desc(), AlertRule.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def create_rule(db: AsyncSession, user_id: int, data: AlertRuleCreate) -> AlertRule:
    await _ensure_unique_name(db, user_id, data.name)

    rule = AlertRule(
        user_id=user_id,
        provider_id=data.provider_id,
        name=data.name,
        description=data.description,
        type=data.type,
        severity=data.severity,
        conditions=data.conditions.model_dump(mode="json"),
        cooldown_minutes=data.cooldown_minutes,
        is_active=True,
    )
    db.add(rule)
    await db.commit()
    await db.refresh(rule)
    return rule


async def update_rule(
    db: AsyncSession,
    user_id: int,
    rule_id: int,
    data: AlertRuleUpdate,
) -> AlertRule:
    """Update only the provided fields."""
    rule = await get_rule(db, user_id, rule_id)

    update_data = data.model_dump(exclude_unset=True, mode="json")
    if "name" in update_data and update_data["name"] != rule.name:
        await _ensure_unique_name(db, user_id, update_data["name"], exclude_id=rule.id)

    for field, value in update_data.items():
        if value is None and field in ("name", "severity", "conditions", "cooldown_minutes"):
            # Explicit nulls cannot clear required columns
            continue
        setattr(rule, field, value)

    await db.commit()
    await db.refresh(rule)
    return rule


async def delete_rule(db: AsyncSession, user_id: int, rule_id: int) -> None:
    rule = await get_rule(db, user_id, rule_id)
    await db.delete(rule)
    await db.commit()


async def toggle_rule(db: AsyncSession, user_id: int, rule_id: int) -> AlertRule:
    """Flip is_active."""
    rule = await get_rule(db, user_id, rule_id)
    rule.is_active = not rule.is_active
    await db.commit()
    await db.refresh(rule)
    return rule


async def rule_stats(db: AsyncSession, user_id: int, now: Optional[datetime] = None) -> dict:
    """
    Rule counters for the dashboard.

    triggered_today / triggered_this_week count rules whose last firing
    falls within the last 24 hours / 7 days.
    """
    now = now or utcnow()
    result = await db.execute(
        select(AlertRule.type, AlertRule.severity, AlertRule.is_active, AlertRule.last_triggered)
        .where(AlertRule.user_id == user_id)
    )
    rows = result.all()

    day_ago = now - timedelta(days=1)
    week_ago = now - timedelta(days=7)
    by_type: dict[str, int] = {}
    by_severity: dict[str, int] = {}
    for row in rows:
        by_type[row.type] = by_type.get(row.type, 0) + 1
        by_severity[row.severity] = by_severity.get(row.severity, 0) + 1

    return {
        "total_rules": len(rows),
        "active_rules": sum(1 for r in rows if r.is_active),
        "triggered_today": sum(1 for r in rows if r.last_triggered and r.last_triggered >= day_ago),
        "triggered_this_week": sum(1 for r in rows if r.last_triggered and r.last_triggered >= week_ago),
        "by_type": by_type,
        "by_severity": by_severity,
    }
