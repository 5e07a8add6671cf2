"""
Windowed metric aggregation.

Pure functions: they turn the raw api_metrics rows of one window into the
single number a rule compares against its threshold. No database access
happens here; `services.metrics` fetches the rows.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Protocol, Sequence, Union


class MetricRecord(Protocol):
    """The fields of an ApiMetric row the aggregator reads."""

    status_code: int
    response_time: Optional[int]
    cost: Optional[Union[Decimal, float]]


# =============================================================================
# WINDOW
# =============================================================================


def window_for(now: datetime, minutes: int) -> tuple[datetime, datetime]:
    """
    Rolling window ending at `now`.

    Returns:
        (start, end) where records with start <= timestamp < end belong
        to the window
    """
    return now - timedelta(minutes=minutes), now


# =============================================================================
# AGGREGATION FUNCTIONS
# =============================================================================


def _apply(values: Sequence[float], aggregation: str) -> float:
    """Apply avg/sum/count/max/min; an empty sequence yields 0."""
    if not values:
        return 0.0

    if aggregation == "sum":
        return float(sum(values))
    elif aggregation == "count":
        return float(len(values))
    elif aggregation == "max":
        return float(max(values))
    elif aggregation == "min":
        return float(min(values))

    return float(sum(values)) / len(values)


def error_rate(records: Sequence[MetricRecord]) -> float:
    """Percentage of records with status_code >= 400 (0 for no records)."""
    if not records:
        return 0.0
    errors = sum(1 for r in records if r.status_code >= 400)
    return errors * 100 / len(records)


def aggregate(
    records: Iterable[MetricRecord],
    metric: str,
    aggregation: Optional[str] = None,
) -> float:
    """
    Compute `metric` over the records of one window.

    Args:
        records: Rows inside the window
        metric: error_rate, success_rate, request_count, response_time or cost
        aggregation: Function for response_time/cost (defaults to avg);
                     ignored by the other metrics

    Returns:
        The aggregated value. Empty windows yield 0, except success_rate
        which yields 100.

    Raises:
        ValueError: Unknown metric
    """
    rows = list(records)
    fn = aggregation or "avg"

    if metric == "request_count":
        return float(len(rows))

    if metric == "error_rate":
        return error_rate(rows)

    if metric == "success_rate":
        return 100.0 - error_rate(rows)

    if metric == "response_time":
        # Unmeasured calls still count as samples but carry no latency
        latencies = [float(r.response_time) for r in rows if r.response_time is not None]
        return _apply(latencies, fn)

    if metric == "cost":
        costs = [float(r.cost) if r.cost is not None else 0.0 for r in rows]
        return _apply(costs, fn)

    raise ValueError(f"Unknown metric: {metric}")
