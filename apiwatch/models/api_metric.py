"""
ApiMetric model - represents the 'api_metrics' table.

One row per outbound API call made by a tenant against a provider. Rows are
written by the ingestion service; this service only reads them to compute
windowed aggregates for alert rules.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import JSON, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from apiwatch.core.db import Base, utcnow


class ApiMetric(Base):
    """
    A single ingested API call.

    Attributes:
        user_id: Tenant that made the call
        provider_id: Provider the call went to (external providers table)
        status_code: HTTP status returned by the provider
        response_time: Latency in milliseconds (NULL when not measured)
        cost: Cost of the call in USD (NULL when the provider is not billed)
        tokens: Token usage for AI providers {"input", "output", "total"}
        timestamp: When the call happened (UTC)
    """

    __tablename__ = "api_metrics"

    __table_args__ = (
        # Index for: "all calls of a tenant (optionally one provider) in a window"
        # Used by every rule evaluation
        Index("ix_api_metrics_user_provider_ts", "user_id", "provider_id", "timestamp"),
        Index("ix_api_metrics_user_ts", "user_id", "timestamp"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    provider_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    endpoint: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    method: Mapped[str] = mapped_column(String(10), nullable=False, default="GET")
    status_code: Mapped[int] = mapped_column(Integer, nullable=False)

    response_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 6), nullable=True)
    tokens: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    timestamp: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    @property
    def is_error(self) -> bool:
        return self.status_code >= 400

    def __repr__(self) -> str:
        return f"<ApiMetric id={self.id} user={self.user_id} status={self.status_code}>"
