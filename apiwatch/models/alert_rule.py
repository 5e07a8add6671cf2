"""
AlertRule model - represents the 'alert_rules' table in the database.

Alert rules define threshold conditions over a rolling window of a tenant's
API metrics. Rules are:
- Owned by exactly one user
- Optionally scoped to one provider (provider_id = NULL means all providers)

The scheduler evaluates every active rule on a fixed cadence.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from apiwatch.core.db import Base, utcnow


class AlertRule(Base):
    """
    AlertRule model - defines conditions for triggering alerts.

    Attributes:
        id: Primary key
        user_id: Owner of the rule
        provider_id: Optional provider scope (NULL = all of the user's providers)
        name: Display name
        type: Alert type produced (error_rate, cost_threshold, ...)
        severity: Severity of produced alerts (low, medium, high, critical)
        conditions: Threshold definition, see schemas.alert_rule.RuleConditions
        is_active: Whether the scheduler evaluates this rule
        cooldown_minutes: Minimum spacing between two firings
        last_triggered: When the rule last produced an alert
        trigger_count: How many alerts the rule has produced
    """

    __tablename__ = "alert_rules"

    __table_args__ = (
        # Index for: "list a user's rules" and the scheduler's active scan
        Index("ix_alert_rules_user_id", "user_id"),
        Index("ix_alert_rules_is_active", "is_active"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    # PROVIDER ID (Optional)
    # ----------------------
    # NULL = evaluate over all of the user's metrics
    # Set = only metrics from that provider

    provider_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    type: Mapped[str] = mapped_column(String(30), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)

    # CONDITIONS
    # ----------
    # {"metric": "error_rate", "operator": "gte", "threshold": 5,
    #  "time_window": 60, "aggregation": null, "minimum_data_points": 10}
    # Validated by the API layer before it is ever stored.

    conditions: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    cooldown_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)

    # TRIGGER BOOKKEEPING
    # -------------------
    # Only written in the same transaction that creates the Alert.

    last_triggered: Mapped[Optional[datetime]] = mapped_column(nullable=True, default=None)
    trigger_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        status = "active" if self.is_active else "inactive"
        return f"<AlertRule id={self.id} name='{self.name}' user={self.user_id} {status}>"
