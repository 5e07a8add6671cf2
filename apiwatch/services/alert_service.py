"""
Tenant-scoped alert operations.

Alerts are created only by the rule scheduler; users can read, resolve and
delete them. Resolving also marks the alert read. Both operations are
idempotent.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from apiwatch.core.db import utcnow
from apiwatch.core.exceptions import NotFoundError
from apiwatch.models import Alert
from apiwatch.schemas.alert import AlertBulkRequest


async def get_alert(db: AsyncSession, user_id: int, alert_id: int) -> Alert:
    result = await db.execute(
        select(Alert).where(Alert.id == alert_id, Alert.user_id == user_id)
    )
    alert = result.scalar_one_or_none()
    if alert is None:
        raise NotFoundError("Alert", alert_id)
    return alert


async def list_alerts(
    db: AsyncSession,
    user_id: int,
    provider_id: Optional[int] = None,
    alert_type: Optional[str] = None,
    severity: Optional[str] = None,
    is_read: Optional[bool] = None,
    is_resolved: Optional[bool] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Alert], int]:
    """
    List alerts with optional filtering.

    Alerts are returned in reverse chronological order (newest first).
    """
    conditions = [Alert.user_id == user_id]
    if provider_id is not None:
        conditions.append(Alert.provider_id == provider_id)
    if alert_type:
        conditions.append(Alert.type == alert_type)
    if severity:
        conditions.append(Alert.severity == severity)
    if is_read is not None:
        conditions.append(Alert.is_read == is_read)
    if is_resolved is not None:
        conditions.append(Alert.is_resolved == is_resolved)
    if start_date:
        conditions.append(Alert.created_at >= start_date)
    if end_date:
        conditions.append(Alert.created_at <= end_date)

    count_result = await db.execute(
        select(func.count()).select_from(Alert).where(*conditions)
    )
    total = count_result.scalar_one()

    result = await db.execute(
        select(Alert)
        .where(*conditions)
        .order_by(Alert.created_at.desc(), Alert.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def mark_read(db: AsyncSession, user_id: int, alert_id: int) -> Alert:
    alert = await get_alert(db, user_id, alert_id)
    if not alert.is_read:
        alert.is_read = True
        await db.commit()
        await db.refresh(alert)
    return alert


async def resolve(db: AsyncSession, user_id: int, alert_id: int) -> Alert:
    """Mark an alert resolved (and read). Keeps the first resolved_at."""
    alert = await get_alert(db, user_id, alert_id)
    if not alert.is_resolved:
        alert.is_resolved = True
        alert.is_read = True
        alert.resolved_at = utcnow()
        await db.commit()
        await db.refresh(alert)
    return alert


async def delete_alert(db: AsyncSession, user_id: int, alert_id: int) -> None:
    alert = await get_alert(db, user_id, alert_id)
    await db.delete(alert)
    await db.commit()


# =============================================================================
# BULK
# =============================================================================


def _bulk_conditions(user_id: int, request: AlertBulkRequest) -> list:
    conditions = [Alert.user_id == user_id]
    if not request.all:
        conditions.append(Alert.id.in_(request.ids))
    if request.provider_id is not None:
        conditions.append(Alert.provider_id == request.provider_id)
    return conditions


async def bulk_mark_read(db: AsyncSession, user_id: int, request: AlertBulkRequest) -> int:
    """Mark the selected (or all) unread alerts read. Returns how many changed."""
    result = await db.execute(
        update(Alert)
        .where(*_bulk_conditions(user_id, request), Alert.is_read == False)  # noqa: E712
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount or 0


async def bulk_resolve(db: AsyncSession, user_id: int, request: AlertBulkRequest) -> int:
    result = await db.execute(
        update(Alert)
        .where(*_bulk_conditions(user_id, request), Alert.is_resolved == False)  # noqa: E712
        .values(is_resolved=True, is_read=True, resolved_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount or 0


# =============================================================================
# STATS
# =============================================================================


async def alert_stats(db: AsyncSession, user_id: int, now: Optional[datetime] = None) -> dict:
    """Counters for the dashboard badge and charts."""
    now = now or utcnow()

    totals = await db.execute(
        select(
            func.count(Alert.id),
            func.count(Alert.id).filter(Alert.is_read == False),  # noqa: E712
            func.count(Alert.id).filter(Alert.is_resolved == False),  # noqa: E712
            func.count(Alert.id).filter(Alert.created_at >= now - timedelta(hours=24)),
        ).where(Alert.user_id == user_id)
    )
    total, unread, unresolved, recent = totals.one()

    by_type = await db.execute(
        select(Alert.type, func.count(Alert.id))
        .where(Alert.user_id == user_id)
        .group_by(Alert.type)
    )
    by_severity = await db.execute(
        select(Alert.severity, func.count(Alert.id))
        .where(Alert.user_id == user_id)
        .group_by(Alert.severity)
    )

    return {
        "total": total,
        "unread": unread,
        "unresolved": unresolved,
        "recent_count": recent,
        "by_type": {t: c for t, c in by_type.all()},
        "by_severity": {s: c for s, c in by_severity.all()},
    }
