"""
Tenant-scoped notification channel and preference operations.
"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from apiwatch.core.exceptions import ConflictError, NotFoundError
from apiwatch.models import NotificationChannel, NotificationPreference
from apiwatch.schemas.channel import SECRET_MASK, ChannelUpdate, PreferenceCreate, parse_channel_config
from apiwatch.services.dispatcher import DeliveryDispatcher
from apiwatch.services.senders import DeliveryResult


# =============================================================================
# CHANNELS
# =============================================================================


async def get_channel(db: AsyncSession, user_id: int, channel_id: int) -> NotificationChannel:
    result = await db.execute(
        select(NotificationChannel).where(
            NotificationChannel.id == channel_id,
            NotificationChannel.user_id == user_id,
        )
    )
    channel = result.scalar_one_or_none()
    if channel is None:
        raise NotFoundError("Notification channel", channel_id)
    return channel


async def _ensure_unique_name(
    db: AsyncSession,
    user_id: int,
    name: str,
    exclude_id: Optional[int] = None,
) -> None:
    query = select(NotificationChannel.id).where(
        NotificationChannel.user_id == user_id,
        NotificationChannel.name == name,
    )
    if exclude_id is not None:
        query = query.where(NotificationChannel.id != exclude_id)
    existing = await db.execute(query)
    if existing.first() is not None:
        raise ConflictError(f"Notification channel '{name}' already exists")


async def list_channels(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[NotificationChannel], int]:
    count_result = await db.execute(
        select(func.count()).select_from(NotificationChannel).where(NotificationChannel.user_id == user_id)
    )
    total = count_result.scalar_one()

    result = await db.execute(
        select(NotificationChannel)
        .where(NotificationChannel.user_id == user_id)
        .order_by(NotificationChannel.created_at.desc(), NotificationChannel.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def create_channel(db: AsyncSession, user_id: int, data) -> NotificationChannel:
    """
    Create a channel from a validated ChannelCreate variant.

    in_app channels need no verification and are verified on creation.
    """
    await _ensure_unique_name(db, user_id, data.name)

    channel = NotificationChannel(
        user_id=user_id,
        name=data.name,
        type=data.type,
        config=data.config.model_dump(mode="json", exclude_none=True),
        is_active=True,
        is_verified=data.type == "in_app",
        failure_count=0,
    )
    db.add(channel)
    await db.commit()
    await db.refresh(channel)
    return channel


async def update_channel(
    db: AsyncSession,
    user_id: int,
    channel_id: int,
    data: ChannelUpdate,
) -> NotificationChannel:
    """
    Update name, active flag and/or config.

    A new config is validated against the channel's type; changing the
    destination of a non in_app channel clears its verified flag.

    Responses mask the webhook secret, so a config sent back with the mask
    or without a `secret` key keeps the stored secret. An explicit null
    removes it.
    """
    channel = await get_channel(db, user_id, channel_id)
    update_data = data.model_dump(exclude_unset=True)

    if update_data.get("name") and update_data["name"] != channel.name:
        await _ensure_unique_name(db, user_id, update_data["name"], exclude_id=channel.id)
        channel.name = update_data["name"]

    if update_data.get("is_active") is not None:
        channel.is_active = update_data["is_active"]

    if update_data.get("config") is not None:
        incoming = dict(update_data["config"])
        stored_secret = (channel.config or {}).get("secret")
        if stored_secret and incoming.get("secret", SECRET_MASK) == SECRET_MASK:
            incoming["secret"] = stored_secret
        config = parse_channel_config(channel.type, incoming)
        new_config = config.model_dump(mode="json", exclude_none=True)
        if new_config != channel.config and channel.type != "in_app":
            channel.is_verified = False
        channel.config = new_config

    await db.commit()
    await db.refresh(channel)
    return channel


async def delete_channel(db: AsyncSession, user_id: int, channel_id: int) -> None:
    """Delete a channel; its preferences and deliveries go with it."""
    channel = await get_channel(db, user_id, channel_id)
    await db.delete(channel)
    await db.commit()


async def test_channel(
    db: AsyncSession,
    user_id: int,
    channel_id: int,
    dispatcher: DeliveryDispatcher,
) -> DeliveryResult:
    """
    Send a test notification. A successful test verifies the channel.

    Nothing else is persisted (no alert, no delivery row).
    """
    channel = await get_channel(db, user_id, channel_id)
    result = await dispatcher.test_channel(channel)

    if result.success and not channel.is_verified:
        channel.is_verified = True
        await db.commit()
    return result


# =============================================================================
# PREFERENCES
# =============================================================================


async def list_preferences(db: AsyncSession, user_id: int) -> list[NotificationPreference]:
    result = await db.execute(
        select(NotificationPreference)
        .where(NotificationPreference.user_id == user_id)
        .order_by(NotificationPreference.alert_type, NotificationPreference.severity, NotificationPreference.id)
    )
    return list(result.scalars().all())


async def create_preference(
    db: AsyncSession,
    user_id: int,
    data: PreferenceCreate,
) -> NotificationPreference:
    """
    Route (alert_type, severity) to one of the user's channels.

    Raises:
        NotFoundError: The channel does not exist or belongs to someone else
        ConflictError: The same route already exists
    """
    await get_channel(db, user_id, data.channel_id)

    existing = await db.execute(
        select(NotificationPreference.id).where(
            NotificationPreference.user_id == user_id,
            NotificationPreference.alert_type == data.alert_type,
            NotificationPreference.severity == data.severity,
            NotificationPreference.channel_id == data.channel_id,
        )
    )
    if existing.first() is not None:
        raise ConflictError("Notification preference already exists")

    preference = NotificationPreference(
        user_id=user_id,
        alert_type=data.alert_type,
        severity=data.severity,
        channel_id=data.channel_id,
        is_enabled=data.is_enabled,
    )
    db.add(preference)
    await db.commit()
    await db.refresh(preference)
    return preference


async def delete_preference(db: AsyncSession, user_id: int, preference_id: int) -> None:
    result = await db.execute(
        select(NotificationPreference).where(
            NotificationPreference.id == preference_id,
            NotificationPreference.user_id == user_id,
        )
    )
    preference = result.scalar_one_or_none()
    if preference is None:
        raise NotFoundError("Notification preference", preference_id)
    await db.delete(preference)
    await db.commit()
