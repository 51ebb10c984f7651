"""SQLAlchemy ORM models for warden."""

from warden.models.base import Base
from warden.models.admin_user import AdminUser
from warden.models.activity_log import ActivityLog

__all__ = [
    "Base",
    "AdminUser",
    "ActivityLog",
]
