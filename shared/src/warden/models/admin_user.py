"""Admin user model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from warden.models.base import Base

USERNAME_UNIQUE_CONSTRAINT = "uq_admin_users_username"
EMAIL_UNIQUE_CONSTRAINT = "uq_admin_users_email"
EMAIL_LOWER_UNIQUE_INDEX = "idx_admin_users_email_lower"


class AdminUser(Base):
    __tablename__ = "admin_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(Text, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    must_change_password: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("FALSE")
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("TRUE"))
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_login_ip: Mapped[str | None] = mapped_column(String(45))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("username", name=USERNAME_UNIQUE_CONSTRAINT),
        UniqueConstraint("email", name=EMAIL_UNIQUE_CONSTRAINT),
    )


# Case-insensitive email uniqueness.
Index(EMAIL_LOWER_UNIQUE_INDEX, func.lower(AdminUser.email), unique=True)
