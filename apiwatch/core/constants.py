"""
Enumerated values shared by models, schemas and services.

Stored as plain strings in the database (not DB enums) so new values do not
need a migration.
"""

from typing import Literal, get_args

RuleType = Literal[
    "cost_threshold",
    "rate_limit",
    "error_rate",
    "downtime",
    "slow_response",
    "budget_exceeded",
]
Severity = Literal["low", "medium", "high", "critical"]
Metric = Literal["error_rate", "response_time", "cost", "request_count", "success_rate"]
Operator = Literal["gt", "gte", "lt", "lte", "eq"]
Aggregation = Literal["avg", "sum", "count", "max", "min"]
ChannelType = Literal["email", "webhook", "slack", "discord", "teams", "in_app"]
DeliveryStatusValue = Literal["pending", "sent", "failed", "retrying"]

RULE_TYPES: tuple[str, ...] = get_args(RuleType)
SEVERITIES: tuple[str, ...] = get_args(Severity)
CHANNEL_TYPES: tuple[str, ...] = get_args(ChannelType)


class DeliveryStatus:
    """AlertDelivery.status values."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    RETRYING = "retrying"

    TERMINAL = frozenset({SENT, FAILED})


class UserRole:
    USER = "USER"
    ADMIN = "ADMIN"
