"""Activity log helper: append-only writes to the activity_logs table."""
import json
import logging
from typing import Any, Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from crm_import.models.activity import ActivityLog

logger = logging.getLogger(__name__)


class SqlActivityLogger:
    """Best-effort ActivityLogger: a failed write is logged, never raised.

    Args:
        session: The request's AsyncSession. The entry is committed on its
            own so it lands even when the caller's batches are already done.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log(
        self,
        entity_type: str,
        entity_id: str,
        action: str,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        try:
            entry = ActivityLog(
                entity_type=entity_type,
                entity_id=str(entity_id),
                action=action,
                # round-trip so dates/UUIDs in details are JSON-safe
                details=json.loads(json.dumps(dict(details or {}), default=str)),
            )
            self.session.add(entry)
            await self.session.commit()
            logger.debug("Activity: %s %s/%s", action, entity_type, entity_id)
        except Exception as exc:
            logger.warning("Activity log write failed (%s %s/%s): %s", action, entity_type, entity_id, exc)
            try:
                await self.session.rollback()
            except Exception:
                logger.debug("Rollback after activity log failure also failed", exc_info=True)

