"""
Pydantic schemas for alert rule endpoints.

Alert rules define threshold conditions over a rolling window of metrics.
Malformed conditions are rejected here, so the scheduler never sees them.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from apiwatch.core.constants import Aggregation, Metric, Operator, RuleType, Severity


# =============================================================================
# CONDITIONS
# =============================================================================


class RuleConditions(BaseModel):
    """
    Threshold definition stored in AlertRule.conditions.

    Example:
        {
            "metric": "error_rate",
            "operator": "gte",
            "threshold": 5,
            "time_window": 60,
            "minimum_data_points": 10
        }
    """

    metric: Metric = Field(
        ...,
        description="Metric computed over the window",
        examples=["error_rate", "response_time"],
    )

    operator: Operator = Field(
        ...,
        description="Comparison between the observed value and the threshold",
        examples=["gt", "gte"],
    )

    threshold: float = Field(
        ...,
        gt=0,
        description="Threshold value (percent for rates, ms for latency, USD for cost)",
        examples=[5, 2000],
    )

    time_window: int = Field(
        ...,
        ge=1,
        le=1440,
        description="Window length in minutes",
        examples=[60],
    )

    aggregation: Optional[Aggregation] = Field(
        default=None,
        description="Aggregation for response_time/cost (defaults to avg)",
    )

    minimum_data_points: Optional[int] = Field(
        default=None,
        ge=1,
        description="Minimum samples in the window for a conclusive evaluation",
    )


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================


class AlertRuleCreate(BaseModel):
    """
    Schema for creating a new alert rule.

    Example:
        {
            "name": "OpenAI errors",
            "type": "error_rate",
            "severity": "high",
            "provider_id": 3,
            "conditions": {"metric": "error_rate", "operator": "gte",
                           "threshold": 5, "time_window": 60},
            "cooldown_minutes": 30
        }
    """

    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    provider_id: Optional[int] = Field(default=None, ge=1)
    type: RuleType
    severity: Severity
    conditions: RuleConditions
    cooldown_minutes: int = Field(default=60, ge=1, le=1440)


class AlertRuleUpdate(BaseModel):
    """
    Schema for updating an existing alert rule.
    All fields are optional - only provided fields will be updated.
    is_active is not editable here; use the toggle endpoint.
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    severity: Optional[Severity] = None
    conditions: Optional[RuleConditions] = None
    cooldown_minutes: Optional[int] = Field(default=None, ge=1, le=1440)


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================


class AlertRuleResponse(BaseModel):
    """Alert rule data returned from API."""

    id: int
    user_id: int
    provider_id: Optional[int]
    name: str
    description: Optional[str]
    type: str
    severity: str
    conditions: RuleConditions
    is_active: bool
    cooldown_minutes: int
    last_triggered: Optional[datetime]
    trigger_count: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RuleTestResponse(BaseModel):
    """Outcome of a dry-run evaluation against live data."""

    rule_id: int
    triggered: bool
    current_value: float
    threshold: float
    sample_count: int
    window_start: datetime
    window_end: datetime
    in_cooldown: bool
    error: Optional[str] = None
    explanation: str


class RuleStatsResponse(BaseModel):
    total_rules: int
    active_rules: int
    triggered_today: int
    triggered_this_week: int
    by_type: dict[str, int]
    by_severity: dict[str, int]
