"""
User model - represents the 'users' table in the database.

Accounts are owned by the external auth service; this table mirrors the
fields we need: the id every rule/alert/channel is scoped by, and the role
used to gate the admin job endpoints.
"""

from datetime import datetime

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from apiwatch.core.constants import UserRole
from apiwatch.core.db import Base, utcnow


class User(Base):
    """
    User account (tenant).

    Attributes:
        id: Primary key (the JWT "sub" claim)
        email: Unique email address
        role: Either 'USER' or 'ADMIN'
        created_at: When the account was created
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=UserRole.USER,
    )

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=utcnow,
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self) -> str:
        return f"<User id={self.id} email='{self.email}'>"
