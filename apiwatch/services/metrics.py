"""
Read access to ingested API metrics.

The ingestion collaborator owns the api_metrics table; the alert engine
only needs the rows of one tenant (optionally one provider) inside a
window, and the aggregate computed from them.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from apiwatch.models import ApiMetric
from apiwatch.services.aggregator import aggregate


@dataclass
class WindowAggregate:
    value: float
    sample_count: int


class MetricsStore:
    """Window queries against api_metrics."""

    async def fetch_window(
        self,
        session: AsyncSession,
        user_id: int,
        provider_id: Optional[int],
        start: datetime,
        end: datetime,
    ) -> list[ApiMetric]:
        """
        Fetch a tenant's metrics with start <= timestamp < end.

        Args:
            provider_id: None means all of the tenant's providers
        """
        conditions = [
            ApiMetric.user_id == user_id,
            ApiMetric.timestamp >= start,
            ApiMetric.timestamp < end,
        ]
        if provider_id is not None:
            conditions.append(ApiMetric.provider_id == provider_id)

        result = await session.execute(
            select(ApiMetric).where(*conditions).order_by(ApiMetric.timestamp)
        )
        return list(result.scalars().all())

    async def get_aggregate(
        self,
        session: AsyncSession,
        user_id: int,
        provider_id: Optional[int],
        metric: str,
        aggregation: Optional[str],
        start: datetime,
        end: datetime,
    ) -> WindowAggregate:
        records = await self.fetch_window(session, user_id, provider_id, start, end)
        return WindowAggregate(
            value=aggregate(records, metric, aggregation),
            sample_count=len(records),
        )
