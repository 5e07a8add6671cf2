"""
Alert model - represents the 'alerts' table in the database.

Alerts are created by the AlertFactory when a rule fires. They have a
lifecycle driven only by the user:
1. Created (when a rule triggers)
2. Read (user has seen it)
3. Resolved (user marked it as handled; also marks it read)
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from apiwatch.core.db import Base, utcnow

if TYPE_CHECKING:
    from apiwatch.models.alert_delivery import AlertDelivery


class Alert(Base):
    """
    Alert model - durable record of one rule firing.

    Attributes:
        id: Primary key
        user_id: Tenant the alert belongs to
        provider_id: Provider the rule was scoped to (if any)
        type: Alert type copied from the rule
        severity: Severity copied from the rule
        title: Short headline
        message: Human-readable description of what happened
        alert_metadata: Observed value, threshold and window ("metadata" column)
        is_read / is_resolved: Independent user-controlled flags
        resolved_at: When the alert was resolved
        created_at: When the alert was created
    """

    __tablename__ = "alerts"

    __table_args__ = (
        # Index for: "Get all alerts for a user, sorted by time"
        Index("ix_alerts_user_created", "user_id", "created_at"),
        # Index for: "unread / unresolved counters"
        Index("ix_alerts_user_read_resolved", "user_id", "is_read", "is_resolved"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    provider_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    type: Mapped[str] = mapped_column(String(30), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    # METADATA
    # --------
    # "metadata" is reserved on declarative classes, so the attribute is
    # named alert_metadata while the column keeps the natural name.

    alert_metadata: Mapped[Optional[dict[str, Any]]] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
    )

    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(nullable=True, default=None)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    # ==========================================================================
    # RELATIONSHIPS
    # ==========================================================================

    deliveries: Mapped[list["AlertDelivery"]] = relationship(
        "AlertDelivery",
        back_populates="alert",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        status = "resolved" if self.is_resolved else "open"
        return f"<Alert id={self.id} type='{self.type}' severity='{self.severity}' {status}>"
