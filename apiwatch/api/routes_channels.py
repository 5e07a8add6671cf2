"""
Notification routes.

- Channels: where alerts are sent (email, webhook, Slack, ...)
- Preferences: which (alert type, severity) goes to which channel
- History: delivery attempts across the user's channels
"""

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from apiwatch.api.deps import get_current_user, get_dispatcher
from apiwatch.api.responses import paginated
from apiwatch.core.constants import DeliveryStatusValue
from apiwatch.core.db import get_db
from apiwatch.models import User
from apiwatch.schemas.channel import (
    ChannelCreate,
    ChannelResponse,
    ChannelTestResponse,
    ChannelUpdate,
    PreferenceCreate,
    PreferenceResponse,
)
from apiwatch.schemas.common import ApiResponse, PaginatedResponse
from apiwatch.schemas.delivery import DeliveryResponse
from apiwatch.services import channel_service
from apiwatch.services.dispatcher import DeliveryDispatcher

router = APIRouter(
    prefix="/notifications",
    tags=["Notifications"],
)


# =============================================================================
# CHANNELS
# =============================================================================


@router.get(
    "/channels",
    response_model=PaginatedResponse[ChannelResponse],
    summary="List notification channels",
)
async def list_channels(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    channels, total = await channel_service.list_channels(db, current_user.id, page, limit)
    return paginated(channels, ChannelResponse, page, limit, total)


@router.post(
    "/channels",
    response_model=ApiResponse[ChannelResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create a notification channel",
)
async def create_channel(
    channel_data: ChannelCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a channel. The `config` shape depends on `type`:

    - email: {"address"}
    - webhook: {"url", "secret"?, "headers"?, "method"?}
    - slack: {"webhook_url", "channel"?, "username"?}
    - discord: {"webhook_url", "username"?, "avatar_url"?}
    - teams: {"webhook_url"}
    - in_app: {}
    """
    channel = await channel_service.create_channel(db, current_user.id, channel_data)
    return ApiResponse(data=ChannelResponse.model_validate(channel))


@router.get(
    "/channels/{channel_id}",
    response_model=ApiResponse[ChannelResponse],
    summary="Get a notification channel",
)
async def get_channel(
    channel_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    channel = await channel_service.get_channel(db, current_user.id, channel_id)
    return ApiResponse(data=ChannelResponse.model_validate(channel))


@router.put(
    "/channels/{channel_id}",
    response_model=ApiResponse[ChannelResponse],
    summary="Update a notification channel",
)
async def update_channel(
    channel_id: int,
    channel_data: ChannelUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    channel = await channel_service.update_channel(db, current_user.id, channel_id, channel_data)
    return ApiResponse(data=ChannelResponse.model_validate(channel))


@router.delete(
    "/channels/{channel_id}",
    response_model=ApiResponse[dict[str, Any]],
    summary="Delete a notification channel",
)
async def delete_channel(
    channel_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete a channel together with its preferences and delivery history."""
    await channel_service.delete_channel(db, current_user.id, channel_id)
    return ApiResponse(data={"id": channel_id, "deleted": True})


@router.post(
    "/channels/{channel_id}/test",
    response_model=ApiResponse[ChannelTestResponse],
    summary="Send a test notification",
)
async def send_test_notification(
    channel_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    dispatcher: DeliveryDispatcher = Depends(get_dispatcher),
):
    """
    Send a synthetic alert through the channel.

    A failed send is reported in `data` (success=false), not as an HTTP error.
    """
    result = await channel_service.test_channel(db, current_user.id, channel_id, dispatcher)
    return ApiResponse(
        data=ChannelTestResponse(success=result.success, response=result.response, error=result.error)
    )


# =============================================================================
# PREFERENCES
# =============================================================================


@router.get(
    "/preferences",
    response_model=ApiResponse[list[PreferenceResponse]],
    summary="List notification preferences",
)
async def list_preferences(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    preferences = await channel_service.list_preferences(db, current_user.id)
    return ApiResponse(data=[PreferenceResponse.model_validate(p) for p in preferences])


@router.post(
    "/preferences",
    response_model=ApiResponse[PreferenceResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create a notification preference",
)
async def create_preference(
    preference_data: PreferenceCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    preference = await channel_service.create_preference(db, current_user.id, preference_data)
    return ApiResponse(data=PreferenceResponse.model_validate(preference))


@router.delete(
    "/preferences/{preference_id}",
    response_model=ApiResponse[dict[str, Any]],
    summary="Delete a notification preference",
)
async def delete_preference(
    preference_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await channel_service.delete_preference(db, current_user.id, preference_id)
    return ApiResponse(data={"id": preference_id, "deleted": True})


# =============================================================================
# DELIVERY HISTORY
# =============================================================================


@router.get(
    "/history",
    response_model=PaginatedResponse[DeliveryResponse],
    summary="Delivery history",
)
async def delivery_history(
    channel_id: Optional[int] = Query(default=None),
    delivery_status: Optional[DeliveryStatusValue] = Query(default=None, alias="status"),
    start_date: Optional[datetime] = Query(default=None),
    end_date: Optional[datetime] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    dispatcher: DeliveryDispatcher = Depends(get_dispatcher),
):
    """Deliveries on the user's channels, newest first."""
    deliveries, total = await dispatcher.history(
        db,
        current_user.id,
        channel_id=channel_id,
        status=delivery_status,
        start=start_date,
        end=end_date,
        page=page,
        limit=limit,
    )
    return paginated(deliveries, DeliveryResponse, page, limit, total)
