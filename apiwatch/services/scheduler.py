"""
Rule evaluation sweep.

Every `evaluation_interval_seconds` the job manager calls `run_sweep`, which:
1. Loads the ids of all active rules (all tenants)
2. Evaluates each rule as an independent unit on a bounded pool, each with
   its own session
3. For a triggered rule outside its cooldown, creates the Alert, bumps the
   rule and creates pending deliveries in one transaction
4. After commit, hands the alert to delivery

A failing unit is logged and recorded; it never aborts the sweep.
"""

import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from apiwatch.core.concurrency import KeyedLock, run_bounded
from apiwatch.core.config import settings
from apiwatch.core.db import AsyncSessionLocal, utcnow
from apiwatch.models import AlertRule
from apiwatch.services.aggregator import window_for
from apiwatch.services.alert_factory import AlertFactory
from apiwatch.services.dispatcher import DeliveryDispatcher
from apiwatch.services.evaluator import EvaluationResult, evaluate, explain, is_in_cooldown
from apiwatch.services.metrics import MetricsStore

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    rules_evaluated: int = 0
    alerts_created: int = 0
    skipped_cooldown: int = 0
    inconclusive: int = 0
    errors: list[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    duration_ms: int = 0
    skipped: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class RuleTestResult:
    """Dry-run outcome: the evaluation plus what the scheduler would do."""
    result: EvaluationResult
    window: tuple[datetime, datetime]
    in_cooldown: bool
    explanation: str


# Outcomes of one unit
TRIGGERED = "triggered"
NOT_TRIGGERED = "not_triggered"
COOLDOWN = "cooldown"
INCONCLUSIVE = "inconclusive"
INACTIVE = "inactive"


class RuleScheduler:
    """Evaluates active rules and turns firings into alerts."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
        dispatcher: Optional[DeliveryDispatcher] = None,
        metrics_store: Optional[MetricsStore] = None,
    ):
        self.session_factory = session_factory
        self.dispatcher = dispatcher or DeliveryDispatcher(session_factory)
        self.factory = AlertFactory(self.dispatcher)
        self.metrics = metrics_store or MetricsStore()
        self._locks = KeyedLock()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # SWEEP
    # =========================================================================

    async def run_sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Evaluate every active rule once.

        Returns immediately with `skipped=True` if a sweep is already running.
        """
        if self._running:
            logger.info("Rule evaluation already running, skipping")
            return SweepResult(skipped=True)

        self._running = True
        started = time.monotonic()
        now = now or utcnow()
        summary = SweepResult(started_at=now)

        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(AlertRule.id)
                    .where(AlertRule.is_active == True)  # noqa: E712
                    .order_by(AlertRule.id)
                )
                rule_ids = list(result.scalars().all())

            outcomes = await run_bounded(
                rule_ids,
                lambda rule_id: self.evaluate_rule(rule_id, now),
                settings.sweep_concurrency,
            )

            for rule_id, outcome in zip(rule_ids, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error("Evaluation of rule %s failed: %r", rule_id, outcome)
                    summary.errors.append(f"rule {rule_id}: {outcome}")
                    continue
                summary.rules_evaluated += 1
                if outcome == TRIGGERED:
                    summary.alerts_created += 1
                elif outcome == COOLDOWN:
                    summary.skipped_cooldown += 1
                elif outcome == INCONCLUSIVE:
                    summary.inconclusive += 1
        finally:
            self._running = False
            summary.duration_ms = int((time.monotonic() - started) * 1000)

        logger.info(
            "Rule sweep: %d evaluated, %d alerts, %d in cooldown, %d inconclusive, %d errors (%dms)",
            summary.rules_evaluated, summary.alerts_created, summary.skipped_cooldown,
            summary.inconclusive, len(summary.errors), summary.duration_ms,
        )
        return summary

    async def evaluate_rule(self, rule_id: int, now: datetime) -> str:
        """
        One unit of the sweep: evaluate a rule and fire it if needed.

        Returns one of the outcome constants. Exceptions propagate to the
        sweep, which records them; the unit's transaction is rolled back.
        """
        async with self.session_factory() as session:
            rule = await session.get(AlertRule, rule_id)
            if rule is None or not rule.is_active:
                return INACTIVE

            result, window = await self._evaluate(session, rule, now)

        if result.inconclusive:
            logger.debug(
                "Rule %s inconclusive: %s (%d samples)", rule_id, result.error, result.sample_count
            )
            return INCONCLUSIVE
        if not result.triggered:
            return NOT_TRIGGERED

        return await self._fire(rule_id, result, window, now)

    async def _evaluate(
        self,
        session: AsyncSession,
        rule: AlertRule,
        now: datetime,
    ) -> tuple[EvaluationResult, tuple[datetime, datetime]]:
        conditions = rule.conditions
        window = window_for(now, conditions["time_window"])
        aggregate = await self.metrics.get_aggregate(
            session,
            user_id=rule.user_id,
            provider_id=rule.provider_id,
            metric=conditions["metric"],
            aggregation=conditions.get("aggregation"),
            start=window[0],
            end=window[1],
        )
        return evaluate(conditions, aggregate.value, aggregate.sample_count), window

    async def _fire(
        self,
        rule_id: int,
        result: EvaluationResult,
        window: tuple[datetime, datetime],
        now: datetime,
    ) -> str:
        """
        Trigger path: lock the rule, re-check, create the alert, commit.

        The in-process lock serializes concurrent evaluations of one rule;
        FOR UPDATE does the same across processes on PostgreSQL.
        """
        async with self._locks.hold(rule_id):
            async with self.session_factory() as session:
                rule = await session.get(AlertRule, rule_id, with_for_update=True, populate_existing=True)
                if rule is None or not rule.is_active:
                    return INACTIVE
                if is_in_cooldown(rule, now):
                    logger.debug("Rule %s in cooldown since %s", rule_id, rule.last_triggered)
                    return COOLDOWN

                alert = await self.factory.create_from_trigger(session, rule, result, window, now)
                await session.commit()
                alert_id = alert.id

        logger.info(
            "🚨 Alert %s created: [%s] %s (value=%s)",
            alert_id, alert.severity, alert.title, result.current_value,
        )
        await self.dispatcher.hand_off(alert_id)
        return TRIGGERED

    # =========================================================================
    # DRY RUN
    # =========================================================================

    async def test_rule(
        self,
        session: AsyncSession,
        rule: AlertRule,
        now: Optional[datetime] = None,
    ) -> RuleTestResult:
        """
        Evaluate a rule against live data without side effects.

        Never creates alerts and never touches the rule's bookkeeping.
        """
        now = now or utcnow()
        result, window = await self._evaluate(session, rule, now)
        return RuleTestResult(
            result=result,
            window=window,
            in_cooldown=is_in_cooldown(rule, now),
            explanation=explain(rule, result),
        )
