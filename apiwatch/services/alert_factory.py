"""
Alert creation.

Builds the Alert for one rule firing and, in the caller's transaction,
bumps the rule's trigger bookkeeping and creates the pending deliveries.
The caller commits once, so either all of it exists or none of it does.
"""

from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from apiwatch.models import Alert, AlertRule
from apiwatch.services.dispatcher import DeliveryDispatcher
from apiwatch.services.evaluator import OPERATOR_WORDS, EvaluationResult, format_value

TYPE_LABELS = {
    "error_rate": "High Error Rate",
    "slow_response": "Slow Response Time",
    "cost_threshold": "Cost Threshold Exceeded",
    "rate_limit": "Rate Limit Reached",
    "downtime": "Service Downtime",
    "budget_exceeded": "Budget Exceeded",
}


# =============================================================================
# CONTENT
# =============================================================================


def build_title(rule: AlertRule) -> str:
    return f"{TYPE_LABELS.get(rule.type, rule.type)}: {rule.name}"


def build_message(rule: AlertRule, current_value: float) -> str:
    conditions = rule.conditions
    metric = conditions["metric"]
    operator = OPERATOR_WORDS.get(conditions["operator"], conditions["operator"])
    return (
        f'Alert rule "{rule.name}" has been triggered. '
        f"Current value ({format_value(current_value, metric)}) is {operator} "
        f"threshold ({format_value(float(conditions['threshold']), metric)}) "
        f"over the last {conditions['time_window']} minutes."
    )


def build_metadata(
    rule: AlertRule,
    result: EvaluationResult,
    window: tuple[datetime, datetime],
    now: datetime,
) -> dict[str, Any]:
    conditions = rule.conditions
    return {
        "rule_id": rule.id,
        "rule_name": rule.name,
        "current_value": result.current_value,
        "threshold": result.threshold,
        "operator": conditions["operator"],
        "metric": conditions["metric"],
        "aggregation": conditions.get("aggregation"),
        "time_window": conditions["time_window"],
        "window_start": window[0].isoformat(),
        "window_end": window[1].isoformat(),
        "sample_count": result.sample_count,
        "triggered_at": now.isoformat(),
    }


# =============================================================================
# FACTORY
# =============================================================================


class AlertFactory:
    def __init__(self, dispatcher: DeliveryDispatcher):
        self.dispatcher = dispatcher

    async def create_from_trigger(
        self,
        session: AsyncSession,
        rule: AlertRule,
        result: EvaluationResult,
        window: tuple[datetime, datetime],
        now: datetime,
    ) -> Alert:
        """
        Materialize one firing of `rule`. Does not commit.

        Args:
            session: Transaction holding the rule row lock
            rule: The rule that fired (loaded in `session`)
            result: The triggered evaluation
            window: (start, end) of the evaluated window
            now: Firing time, also written to rule.last_triggered
        """
        alert = Alert(
            user_id=rule.user_id,
            provider_id=rule.provider_id,
            type=rule.type,
            severity=rule.severity,
            title=build_title(rule),
            message=build_message(rule, result.current_value),
            alert_metadata=build_metadata(rule, result, window, now),
            is_read=False,
            is_resolved=False,
            created_at=now,
        )
        session.add(alert)

        rule.last_triggered = now
        rule.trigger_count += 1

        await session.flush()
        await self.dispatcher.enqueue(session, alert)
        return alert
