"""
NotificationChannel model - represents the 'notification_channels' table.

A channel is one destination (an email address, a webhook, a Slack
incoming webhook, ...) owned by a user. The shape of `config` depends on
`type` and is validated by the API layer at create/update time; senders
assume it is valid.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from apiwatch.core.config import settings
from apiwatch.core.db import Base, utcnow


class NotificationChannel(Base):
    """
    Attributes:
        type: email, webhook, slack, discord, teams or in_app
        config: Type-specific configuration (see schemas.channel)
        is_active: Inactive channels receive nothing
        is_verified: in_app channels are verified on creation
        failure_count: Deliveries that exhausted their retries since the last success
        last_used: Last successful delivery
    """

    __tablename__ = "notification_channels"

    __table_args__ = (
        Index("ix_notification_channels_user_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    config: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    failure_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_used: Mapped[Optional[datetime]] = mapped_column(nullable=True, default=None)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def needs_attention(self) -> bool:
        """Flag for the UI: too many exhausted deliveries. Never auto-disables."""
        return self.failure_count >= settings.channel_failure_threshold

    def __repr__(self) -> str:
        return f"<NotificationChannel id={self.id} type='{self.type}' user={self.user_id}>"
