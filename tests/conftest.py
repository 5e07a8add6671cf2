"""
Pytest configuration and fixtures.

Fixtures are reusable test setup/teardown functions.
They're automatically discovered by pytest from this file.

Database tests run against a throwaway SQLite file (aiosqlite) with the
full schema created from the models; every test gets a fresh database.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from apiwatch.core.config import settings
from apiwatch.core.constants import UserRole
from apiwatch.core.db import Base
from apiwatch.core.security import create_access_token
from apiwatch.models import (
    Alert,
    AlertRule,
    ApiMetric,
    NotificationChannel,
    NotificationPreference,
    User,
)

# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================
# This tells pytest to use asyncio for async tests

pytest_plugins = ["pytest_asyncio"]

# Fixed clock for everything time-dependent
NOW = datetime(2026, 3, 2, 12, 0, 0)


@pytest.fixture(autouse=True)
def _test_settings(monkeypatch):
    """Deterministic settings: inline delivery, one unit at a time, no SMTP."""
    monkeypatch.setattr(settings, "delivery_mode", "inline")
    monkeypatch.setattr(settings, "sweep_concurrency", 1)
    monkeypatch.setattr(settings, "smtp_host", "")
    monkeypatch.setattr(settings, "delivery_max_attempts", 3)
    monkeypatch.setattr(settings, "delivery_backoff_base_seconds", 60)
    monkeypatch.setattr(settings, "delivery_backoff_max_seconds", 3600)
    monkeypatch.setattr(settings, "pending_grace_seconds", 300)
    monkeypatch.setattr(settings, "dashboard_url", "https://app.apiwatch.test")


@pytest.fixture
def now() -> datetime:
    return NOW


# =============================================================================
# DATABASE
# =============================================================================


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'apiwatch.db'}")

    # SQLite only enforces ON DELETE CASCADE with this pragma
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    """Session for test setup and assertions. Commit before running sweeps."""
    async with session_factory() as session:
        yield session


# =============================================================================
# USERS
# =============================================================================


async def _create_user(db: AsyncSession, email: str, role: str = UserRole.USER) -> User:
    user = User(email=email, role=role)
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
async def user(db) -> User:
    return await _create_user(db, "owner@example.com")


@pytest.fixture
async def other_user(db) -> User:
    return await _create_user(db, "intruder@example.com")


@pytest.fixture
async def admin(db) -> User:
    return await _create_user(db, "admin@example.com", role=UserRole.ADMIN)


@pytest.fixture
def auth_header():
    """Build an Authorization header for a user."""

    def _header(user: User) -> dict[str, str]:
        token = create_access_token({"sub": str(user.id)})
        return {"Authorization": f"Bearer {token}"}

    return _header


# =============================================================================
# DOMAIN FACTORIES
# =============================================================================


@pytest.fixture
def add_metrics(db):
    """
    Insert `count` API calls for a user, `errors` of them failing.

    All calls are stamped `minutes_ago` before `at`.
    """

    async def _add(
        user: User,
        count: int,
        errors: int = 0,
        at: datetime = NOW,
        minutes_ago: int = 5,
        provider_id: Optional[int] = 1,
        response_time: Optional[int] = 200,
        cost: Optional[str] = None,
    ) -> None:
        timestamp = at - timedelta(minutes=minutes_ago)
        db.add_all([
            ApiMetric(
                user_id=user.id,
                provider_id=provider_id,
                endpoint="/v1/chat/completions",
                method="POST",
                status_code=500 if i < errors else 200,
                response_time=response_time,
                cost=Decimal(cost) if cost is not None else None,
                timestamp=timestamp,
            )
            for i in range(count)
        ])
        await db.commit()

    return _add


@pytest.fixture
def make_rule(db):
    async def _make(user: User, **overrides) -> AlertRule:
        values = {
            "user_id": user.id,
            "provider_id": None,
            "name": "High error rate",
            "type": "error_rate",
            "severity": "high",
            "conditions": {
                "metric": "error_rate",
                "operator": "gte",
                "threshold": 5,
                "time_window": 60,
                "aggregation": None,
                "minimum_data_points": None,
            },
            "cooldown_minutes": 60,
            "is_active": True,
        }
        values.update(overrides)
        rule = AlertRule(**values)
        db.add(rule)
        await db.commit()
        return rule

    return _make


@pytest.fixture
def make_channel(db):
    async def _make(
        user: User,
        type: str = "webhook",
        config: Optional[dict] = None,
        name: Optional[str] = None,
        is_active: bool = True,
        failure_count: int = 0,
    ) -> NotificationChannel:
        if config is None:
            config = {"url": "https://hooks.example.com/apiwatch"} if type == "webhook" else {}
        channel = NotificationChannel(
            user_id=user.id,
            name=name or f"{type} channel",
            type=type,
            config=config,
            is_active=is_active,
            is_verified=type == "in_app",
            failure_count=failure_count,
        )
        db.add(channel)
        await db.commit()
        return channel

    return _make


@pytest.fixture
def route_alerts(db):
    """Create a preference routing (alert_type, severity) to a channel."""

    async def _route(
        user: User,
        channel: NotificationChannel,
        alert_type: str = "error_rate",
        severity: str = "high",
        is_enabled: bool = True,
    ) -> NotificationPreference:
        preference = NotificationPreference(
            user_id=user.id,
            alert_type=alert_type,
            severity=severity,
            channel_id=channel.id,
            is_enabled=is_enabled,
        )
        db.add(preference)
        await db.commit()
        return preference

    return _route


@pytest.fixture
def make_alert(db):
    async def _make(user: User, **overrides) -> Alert:
        values = {
            "user_id": user.id,
            "provider_id": 1,
            "type": "error_rate",
            "severity": "high",
            "title": "High Error Rate: High error rate",
            "message": "Alert rule \"High error rate\" has been triggered.",
            "alert_metadata": {"current_value": 10.0, "threshold": 5.0},
            "is_read": False,
            "is_resolved": False,
            "created_at": NOW,
        }
        values.update(overrides)
        alert = Alert(**values)
        db.add(alert)
        await db.commit()
        return alert

    return _make
