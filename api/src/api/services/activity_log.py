"""SQL-backed activity log sink."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession
from warden.models import ActivityLog

from api.services.account_lifecycle import Actor


def _jsonable(details: dict[str, Any]) -> dict[str, Any]:
    normalized: dict[str, Any] = {}
    for key, value in details.items():
        if isinstance(value, datetime):
            normalized[key] = value.astimezone(UTC).isoformat()
        else:
            normalized[key] = value
    return normalized


class SqlActivityLog:
    """Appends rows inside a SAVEPOINT so a failed insert leaves the outer transaction usable."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def append(
        self,
        action: str,
        details: dict[str, Any],
        target: tuple[str, str] | None,
        actor: Actor,
    ) -> None:
        target_type, target_id = target if target else (None, None)
        async with self.db.begin_nested():
            self.db.add(
                ActivityLog(
                    action=action,
                    detail=_jsonable(details),
                    actor_type=actor.type,
                    actor_id=actor.id,
                    actor_name=actor.name,
                    target_type=target_type,
                    target_id=target_id,
                )
            )
            await self.db.flush()
