"""
Pydantic schemas for delivery history and background job status.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class DeliveryResponse(BaseModel):
    """
    One alert delivery (with its retry chain state).

    Example:
        {
            "id": 12,
            "alert_id": 4,
            "channel_id": 2,
            "status": "retrying",
            "attempt": 2,
            "max_attempts": 3,
            "error": "HTTP 503: Service Unavailable",
            "next_retry_at": "2025-01-01T12:04:00"
        }
    """

    id: int
    alert_id: int
    channel_id: int
    status: str
    attempt: int
    max_attempts: int
    error: Optional[str]
    response: Optional[dict[str, Any]]
    sent_at: Optional[datetime]
    next_retry_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class JobStatusResponse(BaseModel):
    name: str
    is_running: bool
    last_run: Optional[datetime]
    last_result: Optional[dict[str, Any]]
    next_run: Optional[datetime]


class JobManagerStatusResponse(BaseModel):
    scheduler_running: bool
    jobs: list[JobStatusResponse]
