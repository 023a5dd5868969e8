"""Activity logger writing into the caller's transaction."""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from letterflow.collaborators.base import ActivityLogger
from letterflow.db.models.activity import ActivityRow
from letterflow.services.id_generator import generate_id

logger = logging.getLogger(__name__)


class SqlActivityLogger(ActivityLogger):
    async def record(
        self,
        actor_id: str,
        action: str,
        resource_type: str,
        resource_id: str,
        details: dict[str, Any] | None,
        session: AsyncSession,
    ) -> None:
        session.add(
            ActivityRow(
                activity_id=generate_id("act_"),
                actor_id=actor_id,
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                details=details,
            )
        )
        await session.flush()
        logger.debug("Activity %s on %s %s by %s", action, resource_type, resource_id, actor_id)
