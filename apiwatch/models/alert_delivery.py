"""
AlertDelivery model - represents the 'alert_deliveries' table.

One row per (alert, channel). The row carries the whole retry chain:

    pending -> sent
    pending -> retrying -> retrying* -> failed
    retrying -> sent

`attempt` is the attempt that will run next (or the last one that ran, once
terminal) and never exceeds `max_attempts`. Rows in `sent` or `failed` are
never modified again.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from apiwatch.core.constants import DeliveryStatus
from apiwatch.core.db import Base, utcnow

if TYPE_CHECKING:
    from apiwatch.models.alert import Alert


class AlertDelivery(Base):
    __tablename__ = "alert_deliveries"

    __table_args__ = (
        # Index for: the retry sweep ("retrying and due")
        Index("ix_alert_deliveries_status_next_retry", "status", "next_retry_at"),
        # Index for: delivery history of a channel
        Index("ix_alert_deliveries_channel_created", "channel_id", "created_at"),
        Index("ix_alert_deliveries_alert_id", "alert_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    alert_id: Mapped[int] = mapped_column(
        ForeignKey("alerts.id", ondelete="CASCADE"),
        nullable=False,
    )
    channel_id: Mapped[int] = mapped_column(
        ForeignKey("notification_channels.id", ondelete="CASCADE"),
        nullable=False,
    )

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=DeliveryStatus.PENDING)
    attempt: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=3)

    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    response: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    sent_at: Mapped[Optional[datetime]] = mapped_column(nullable=True, default=None)
    next_retry_at: Mapped[Optional[datetime]] = mapped_column(nullable=True, default=None)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    alert: Mapped["Alert"] = relationship("Alert", back_populates="deliveries")

    @property
    def is_terminal(self) -> bool:
        return self.status in DeliveryStatus.TERMINAL

    def __repr__(self) -> str:
        return (
            f"<AlertDelivery id={self.id} alert={self.alert_id} channel={self.channel_id} "
            f"{self.status} {self.attempt}/{self.max_attempts}>"
        )
