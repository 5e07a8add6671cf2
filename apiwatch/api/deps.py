"""
FastAPI dependencies for route handlers.

Dependencies are reusable pieces of logic that can be injected into routes:
- Authentication: check the bearer JWT and return the current user
- Background components: the process-wide rule scheduler, dispatcher and
  job manager (overridden in tests)
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from apiwatch.core.db import get_db
from apiwatch.core.exceptions import AuthenticationError, PermissionDeniedError
from apiwatch.core.security import get_token_subject
from apiwatch.models import User
from apiwatch.services.dispatcher import DeliveryDispatcher
from apiwatch.services.jobs import JobManager, job_manager
from apiwatch.services.scheduler import RuleScheduler


# =============================================================================
# HTTP BEARER SCHEME
# =============================================================================
# Expects an "Authorization: Bearer <token>" header and adds the lock icon in
# Swagger UI. auto_error=False so a missing header goes through our own 401
# envelope instead of FastAPI's default 403.

security = HTTPBearer(auto_error=False)


# =============================================================================
# GET CURRENT USER
# =============================================================================


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Extract and validate JWT token, return the authenticated user.

    Flow:
    1. Extract token from Authorization header
    2. Decode and validate JWT
    3. Get user ID from token subject
    4. Fetch user from database
    5. Return user or raise 401

    Raises:
        AuthenticationError: If token is missing/invalid or user not found
    """
    if credentials is None:
        raise AuthenticationError("Missing bearer token")

    user_id = get_token_subject(credentials.credentials)
    if user_id is None:
        raise AuthenticationError("Invalid or expired token")

    try:
        user_pk = int(user_id)
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid token subject") from None

    result = await db.execute(select(User).where(User.id == user_pk))
    user = result.scalar_one_or_none()

    if user is None:
        raise AuthenticationError("User not found")

    return user


# =============================================================================
# ROLE-BASED ACCESS
# =============================================================================


async def require_admin(
    current_user: User = Depends(get_current_user),
) -> User:
    """
    Dependency that requires the current user to be an admin.

    Raises:
        PermissionDeniedError: If user is not an admin
    """
    if not current_user.is_admin:
        raise PermissionDeniedError("Admin access required")
    return current_user


# =============================================================================
# BACKGROUND COMPONENTS
# =============================================================================


def get_job_manager() -> JobManager:
    return job_manager


def get_rule_scheduler(manager: JobManager = Depends(get_job_manager)) -> RuleScheduler:
    return manager.rule_scheduler


def get_dispatcher(manager: JobManager = Depends(get_job_manager)) -> DeliveryDispatcher:
    return manager.dispatcher
