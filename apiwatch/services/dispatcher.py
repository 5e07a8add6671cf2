"""
Alert delivery.

For every alert the dispatcher:
1. Resolves the channels that should receive it (active channel + enabled
   preference for the alert's type and severity)
2. Creates one pending AlertDelivery per channel, in the same transaction
   that created the alert
3. Sends each delivery through the channel's sender and records the outcome

A failed send is retried with exponential backoff until `max_attempts` is
reached; the retry sweep (`run_retry_sweep`) picks up due retries and pending
rows that were never delivered (crash, broker down).
"""

import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from apiwatch.core.concurrency import KeyedLock, run_bounded
from apiwatch.core.config import settings
from apiwatch.core.constants import DeliveryStatus
from apiwatch.core.db import AsyncSessionLocal, utcnow
from apiwatch.models import Alert, AlertDelivery, NotificationChannel, NotificationPreference
from apiwatch.services import queue
from apiwatch.services.senders import DeliveryResult, SenderRegistry, build_context, default_registry

logger = logging.getLogger(__name__)

CHANNEL_INACTIVE = "channel inactive"


@dataclass
class RetrySweepResult:
    deliveries_processed: int = 0
    sent: int = 0
    retrying: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    duration_ms: int = 0
    skipped: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def backoff(attempt: int) -> int:
    """Seconds to wait after a failed `attempt`: base * 2^attempt, capped."""
    return min(
        settings.delivery_backoff_base_seconds * 2 ** attempt,
        settings.delivery_backoff_max_seconds,
    )


class DeliveryDispatcher:
    """Creates, sends and retries AlertDelivery rows."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
        registry: Optional[SenderRegistry] = None,
    ):
        self.session_factory = session_factory
        self.registry = registry or default_registry()
        self._locks = KeyedLock()
        self._sweep_running = False

    @property
    def is_running(self) -> bool:
        return self._sweep_running

    # =========================================================================
    # CHANNEL RESOLUTION / OUTBOX
    # =========================================================================

    async def resolve_channels(
        self,
        session: AsyncSession,
        alert: Alert,
    ) -> list[NotificationChannel]:
        """
        Channels that should receive `alert`.

        Active channels of the alert's owner with an enabled preference for
        (alert.type, alert.severity). No matching preference, no delivery.
        """
        query = (
            select(NotificationChannel)
            .join(
                NotificationPreference,
                NotificationPreference.channel_id == NotificationChannel.id,
            )
            .where(
                NotificationChannel.user_id == alert.user_id,
                NotificationChannel.is_active == True,  # noqa: E712
                NotificationPreference.user_id == alert.user_id,
                NotificationPreference.alert_type == alert.type,
                NotificationPreference.severity == alert.severity,
                NotificationPreference.is_enabled == True,  # noqa: E712
            )
            .distinct()
            .order_by(NotificationChannel.id)
        )
        result = await session.execute(query)
        return list(result.scalars().all())

    async def enqueue(self, session: AsyncSession, alert: Alert) -> list[AlertDelivery]:
        """
        Create pending deliveries for `alert` inside the caller's transaction.

        The caller commits; nothing is sent here.
        """
        if alert.id is None:
            await session.flush()

        deliveries = [
            AlertDelivery(
                alert_id=alert.id,
                channel_id=channel.id,
                status=DeliveryStatus.PENDING,
                attempt=1,
                max_attempts=settings.delivery_max_attempts,
            )
            for channel in await self.resolve_channels(session, alert)
        ]
        session.add_all(deliveries)
        await session.flush()
        return deliveries

    # =========================================================================
    # DISPATCH
    # =========================================================================

    async def hand_off(self, alert_id: int) -> None:
        """
        Start delivery of a committed alert, inline or through the queue.

        Never raises: the pending rows are durable, so anything that goes
        wrong here is recovered by the retry sweep.
        """
        try:
            if settings.delivery_mode == "queue":
                await queue.publish_alert(alert_id)
                logger.debug("Alert %s queued for delivery", alert_id)
            else:
                await self.dispatch(alert_id)
        except Exception:
            logger.exception("Hand-off of alert %s failed; left for the retry sweep", alert_id)

    async def dispatch(
        self,
        alert_id: int,
        now: Optional[datetime] = None,
    ) -> list[AlertDelivery]:
        """
        Deliver every pending delivery of an alert.

        Enqueues first if the alert has no deliveries yet.
        """
        async with self.session_factory() as session:
            alert = await session.get(Alert, alert_id)
            if alert is None:
                logger.warning("Dispatch of unknown alert %s ignored", alert_id)
                return []

            existing = await session.execute(
                select(AlertDelivery.id, AlertDelivery.status).where(AlertDelivery.alert_id == alert_id)
            )
            rows = existing.all()
            if not rows:
                await self.enqueue(session, alert)
                await session.commit()
                existing = await session.execute(
                    select(AlertDelivery.id, AlertDelivery.status).where(AlertDelivery.alert_id == alert_id)
                )
                rows = existing.all()

        pending_ids = [row.id for row in rows if row.status == DeliveryStatus.PENDING]
        outcomes = await run_bounded(
            pending_ids,
            lambda delivery_id: self.deliver(delivery_id, now=now),
            settings.sweep_concurrency,
        )

        deliveries = []
        for delivery_id, outcome in zip(pending_ids, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("Delivery %s failed: %r", delivery_id, outcome)
            elif outcome is not None:
                deliveries.append(outcome)
        return deliveries

    async def deliver(
        self,
        delivery_id: int,
        now: Optional[datetime] = None,
    ) -> Optional[AlertDelivery]:
        """
        Run one delivery attempt and apply the state machine.

        Terminal rows and retries that are not yet due are returned
        untouched. Returns None for an unknown id.
        """
        async with self._locks.hold(delivery_id):
            async with self.session_factory() as session:
                delivery = await session.get(AlertDelivery, delivery_id, with_for_update=True)
                if delivery is None:
                    return None

                now = now or utcnow()
                if delivery.is_terminal:
                    return delivery
                if (
                    delivery.status == DeliveryStatus.RETRYING
                    and delivery.next_retry_at is not None
                    and delivery.next_retry_at > now
                ):
                    return delivery

                channel = await session.get(NotificationChannel, delivery.channel_id)
                if channel is None or not channel.is_active:
                    delivery.status = DeliveryStatus.FAILED
                    delivery.error = CHANNEL_INACTIVE
                    delivery.next_retry_at = None
                    await session.commit()
                    logger.info("Delivery %s dropped: channel %s inactive", delivery.id, delivery.channel_id)
                    return delivery

                alert = await session.get(Alert, delivery.alert_id)
                result = await self._send(channel, alert)
                self._apply_result(delivery, channel, result, now)
                await session.commit()
                return delivery

    async def _send(self, channel: NotificationChannel, alert: Alert) -> DeliveryResult:
        sender = self.registry.get(channel.type)
        if sender is None:
            return DeliveryResult(success=False, error=f"Unsupported channel type: {channel.type}")

        try:
            return await sender.send(channel.config, alert, build_context(alert))
        except Exception as exc:
            # Sender bugs count as a failed attempt instead of killing the sweep
            logger.exception("Sender %s raised for alert %s", channel.type, alert.id)
            return DeliveryResult(success=False, error=f"{exc.__class__.__name__}: {exc}")

    def _apply_result(
        self,
        delivery: AlertDelivery,
        channel: NotificationChannel,
        result: DeliveryResult,
        now: datetime,
    ) -> None:
        if result.success:
            delivery.status = DeliveryStatus.SENT
            delivery.sent_at = now
            delivery.response = result.response
            delivery.error = None
            delivery.next_retry_at = None
            channel.last_used = now
            channel.failure_count = 0
            logger.info("✅ Delivery %s sent via %s", delivery.id, channel.type)
            return

        delivery.error = result.error
        delivery.response = result.response

        if delivery.attempt < delivery.max_attempts:
            delay = backoff(delivery.attempt)
            delivery.status = DeliveryStatus.RETRYING
            delivery.next_retry_at = now + timedelta(seconds=delay)
            delivery.attempt += 1
            logger.info(
                "Delivery %s via %s failed (%s), retry %d/%d in %ss",
                delivery.id, channel.type, result.error,
                delivery.attempt, delivery.max_attempts, delay,
            )
            return

        delivery.status = DeliveryStatus.FAILED
        delivery.next_retry_at = None
        channel.failure_count += 1
        logger.warning(
            "❌ Delivery %s via %s failed permanently after %d attempts: %s",
            delivery.id, channel.type, delivery.attempt, result.error,
        )
        if channel.failure_count == settings.channel_failure_threshold:
            logger.warning(
                "Channel %s (%s) reached %d consecutive failed deliveries",
                channel.id, channel.name, channel.failure_count,
            )

    # =========================================================================
    # RETRY SWEEP
    # =========================================================================

    async def run_retry_sweep(self, now: Optional[datetime] = None) -> RetrySweepResult:
        """
        Deliver due retries and stale pending rows.

        Returns immediately with `skipped=True` if a sweep is already running.
        """
        if self._sweep_running:
            logger.info("Retry sweep already running, skipping")
            return RetrySweepResult(skipped=True)

        self._sweep_running = True
        started = time.monotonic()
        now = now or utcnow()
        summary = RetrySweepResult(started_at=now)

        try:
            stale_before = now - timedelta(seconds=settings.pending_grace_seconds)
            async with self.session_factory() as session:
                result = await session.execute(
                    select(AlertDelivery.id)
                    .where(
                        or_(
                            and_(
                                AlertDelivery.status == DeliveryStatus.RETRYING,
                                AlertDelivery.next_retry_at <= now,
                            ),
                            and_(
                                AlertDelivery.status == DeliveryStatus.PENDING,
                                AlertDelivery.created_at <= stale_before,
                            ),
                        )
                    )
                    .order_by(AlertDelivery.id)
                )
                due_ids = list(result.scalars().all())

            outcomes = await run_bounded(
                due_ids,
                lambda delivery_id: self.deliver(delivery_id, now=now),
                settings.sweep_concurrency,
            )

            for delivery_id, outcome in zip(due_ids, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error("Retry of delivery %s failed: %r", delivery_id, outcome)
                    summary.errors.append(f"delivery {delivery_id}: {outcome}")
                    continue
                if outcome is None:
                    continue
                summary.deliveries_processed += 1
                if outcome.status == DeliveryStatus.SENT:
                    summary.sent += 1
                elif outcome.status == DeliveryStatus.RETRYING:
                    summary.retrying += 1
                elif outcome.status == DeliveryStatus.FAILED:
                    summary.failed += 1
        finally:
            self._sweep_running = False
            summary.duration_ms = int((time.monotonic() - started) * 1000)

        if summary.deliveries_processed:
            logger.info(
                "Retry sweep: %d processed, %d sent, %d retrying, %d failed",
                summary.deliveries_processed, summary.sent, summary.retrying, summary.failed,
            )
        return summary

    # =========================================================================
    # TEST / HISTORY
    # =========================================================================

    async def test_channel(self, channel: NotificationChannel) -> DeliveryResult:
        """
        Send a synthetic alert through a channel's sender.

        Nothing is persisted.
        """
        alert = Alert(
            id=0,
            user_id=channel.user_id,
            provider_id=None,
            type="error_rate",
            severity="low",
            title="Test Notification",
            message=f'This is a test notification for channel "{channel.name}".',
            alert_metadata={"test": True},
            is_read=False,
            is_resolved=False,
            created_at=utcnow(),
        )
        return await self._send(channel, alert)

    async def history(
        self,
        session: AsyncSession,
        user_id: int,
        channel_id: Optional[int] = None,
        status: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[AlertDelivery], int]:
        """Deliveries on the user's channels, newest first, with total count."""
        conditions = [NotificationChannel.user_id == user_id]
        if channel_id is not None:
            conditions.append(AlertDelivery.channel_id == channel_id)
        if status:
            conditions.append(AlertDelivery.status == status)
        if start:
            conditions.append(AlertDelivery.created_at >= start)
        if end:
            conditions.append(AlertDelivery.created_at <= end)

        base = select(AlertDelivery).join(
            NotificationChannel, NotificationChannel.id == AlertDelivery.channel_id
        ).where(*conditions)

        count_result = await session.execute(
            select(func.count()).select_from(base.subquery())
        )
        total = count_result.scalar_one()

        result = await session.execute(
            base.order_by(AlertDelivery.created_at.desc(), AlertDelivery.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total
