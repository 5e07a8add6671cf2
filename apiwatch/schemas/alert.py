"""
Pydantic schemas for alert endpoints.

Alerts are created by the rule scheduler, but viewed/read/resolved here.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field, model_validator


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================


class AlertResponse(BaseModel):
    """
    Alert data returned from API.

    Example:
        {
            "id": 1,
            "user_id": 7,
            "provider_id": 3,
            "type": "error_rate",
            "severity": "high",
            "title": "High Error Rate: OpenAI errors",
            "message": "Alert rule \"OpenAI errors\" has been triggered. ...",
            "metadata": {"current_value": 10.0, "threshold": 5.0, ...},
            "is_read": false,
            "is_resolved": false,
            "resolved_at": null,
            "created_at": "2025-01-01T12:00:00"
        }
    """

    id: int
    user_id: int
    provider_id: Optional[int]
    type: str
    severity: str
    title: str
    message: str
    metadata: Optional[dict[str, Any]] = Field(
        default=None,
        validation_alias=AliasChoices("alert_metadata", "metadata"),
    )
    is_read: bool
    is_resolved: bool
    resolved_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class AlertStatsResponse(BaseModel):
    total: int
    unread: int
    unresolved: int
    recent_count: int  # last 24 hours
    by_type: dict[str, int]
    by_severity: dict[str, int]


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================


class AlertBulkRequest(BaseModel):
    """
    Bulk mark-read / resolve.

    Either a list of ids, or `all: true` (optionally narrowed to a provider).
    """

    ids: Optional[list[int]] = Field(default=None, min_length=1, max_length=500)
    all: bool = False
    provider_id: Optional[int] = None

    @model_validator(mode="after")
    def _ids_or_all(self) -> "AlertBulkRequest":
        if not self.all and not self.ids:
            raise ValueError("Provide 'ids' or set 'all' to true")
        return self
