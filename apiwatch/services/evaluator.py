"""
Rule evaluation.

Each rule defines:
- A metric computed over a rolling window (error_rate, response_time, ...)
- A comparison operator and threshold
- Optionally, the minimum number of samples for a conclusive result

Evaluation is pure: the caller supplies the aggregated value and the sample
count. Cooldown is a scheduling concern, but `is_in_cooldown` lives here so
the scheduler and the dry-run share one definition.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from apiwatch.models import AlertRule

INSUFFICIENT_DATA = "insufficient data"

OPERATOR_WORDS = {
    "gt": "greater than",
    "gte": "greater than or equal to",
    "lt": "less than",
    "lte": "less than or equal to",
    "eq": "equal to",
}


@dataclass
class EvaluationResult:
    """Outcome of comparing one window against a rule's threshold."""
    triggered: bool
    current_value: float
    threshold: float
    sample_count: int
    error: Optional[str] = None  # set when the evaluation is inconclusive

    @property
    def inconclusive(self) -> bool:
        return self.error is not None


# =============================================================================
# COMPARISON
# =============================================================================


def compare(value: float, operator: str, threshold: float) -> bool:
    """
    Compare an observed value against a threshold.

    Args:
        value: Aggregated value for the window
        operator: gt, gte, lt, lte or eq
        threshold: Threshold from the rule conditions

    Returns:
        True if the comparison holds, False otherwise (also for unknown operators)
    """
    if operator == "gt":
        return value > threshold
    elif operator == "gte":
        return value >= threshold
    elif operator == "lt":
        return value < threshold
    elif operator == "lte":
        return value <= threshold
    elif operator == "eq":
        return value == threshold

    return False


def evaluate(
    conditions: dict[str, Any],
    current_value: float,
    sample_count: int,
) -> EvaluationResult:
    """
    Decide whether a rule's conditions are met.

    A window with fewer samples than `minimum_data_points` (at least one)
    is inconclusive: the result is not triggered and carries an error, but
    nothing is raised.
    """
    threshold = float(conditions["threshold"])
    required = conditions.get("minimum_data_points") or 1

    if sample_count < required:
        return EvaluationResult(
            triggered=False,
            current_value=current_value,
            threshold=threshold,
            sample_count=sample_count,
            error=INSUFFICIENT_DATA,
        )

    return EvaluationResult(
        triggered=compare(current_value, conditions["operator"], threshold),
        current_value=current_value,
        threshold=threshold,
        sample_count=sample_count,
    )


# =============================================================================
# COOLDOWN
# =============================================================================


def is_in_cooldown(rule: AlertRule, now: datetime) -> bool:
    """True if the rule fired less than `cooldown_minutes` before `now`."""
    if rule.last_triggered is None:
        return False
    return now - rule.last_triggered < timedelta(minutes=rule.cooldown_minutes)


# =============================================================================
# FORMATTING
# =============================================================================


def format_value(value: float, metric: str) -> str:
    """Render a metric value with its unit (10.00%, 850ms, $1.20, 42 requests)."""
    if metric in ("error_rate", "success_rate"):
        return f"{value:.2f}%"
    elif metric == "response_time":
        return f"{value:.0f}ms"
    elif metric == "cost":
        return f"${value:.2f}"
    elif metric == "request_count":
        return f"{value:.0f} requests"
    return f"{value:.2f}"


def explain(rule: AlertRule, result: EvaluationResult) -> str:
    """Human-readable explanation of an evaluation, used by the rule dry-run."""
    conditions = rule.conditions
    metric = conditions["metric"]
    window = conditions["time_window"]

    if result.inconclusive:
        required = conditions.get("minimum_data_points") or 1
        return (
            f"Not enough data: {result.sample_count} sample(s) in the last {window} minutes, "
            f"at least {required} required."
        )

    words = OPERATOR_WORDS.get(conditions["operator"], conditions["operator"])
    verdict = "would trigger" if result.triggered else "would not trigger"
    relation = "is" if result.triggered else "is not"
    return (
        f"Rule {verdict}: current value ({format_value(result.current_value, metric)}) "
        f"{relation} {words} threshold ({format_value(result.threshold, metric)}) "
        f"over the last {window} minutes ({result.sample_count} samples)."
    )
