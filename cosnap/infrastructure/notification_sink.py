"""SQL Notification Sink — appends notification rows for a recipient.

Invariants:
    - Write-only: never reads, updates or deletes notifications
    - Any database failure leaves as NotificationError (a DependencyError)
"""

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cosnap.core.domain_types import NotificationType, ReferenceType, UserId
from cosnap.core.errors import NotificationError
from cosnap.models.notification import NotificationRow

logger = logging.getLogger(__name__)


class SqlNotificationSink:
    """NotificationSink implementation for one request session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def emit(
        self,
        recipient_id: UserId,
        sender_id: UserId | None,
        type: NotificationType,
        reference_id: Any,
        reference_type: ReferenceType,
    ) -> None:
        row = NotificationRow(
            recipient_id=recipient_id,
            sender_id=sender_id,
            type=NotificationType(type).value,
            reference_id=reference_id,
            reference_type=ReferenceType(reference_type).value,
            is_read=False,
        )
        try:
            self.db.add(row)
            await self.db.flush()
        except SQLAlchemyError as e:
            raise NotificationError(str(e.__class__.__name__)) from e
        logger.debug(
            f"Notification {row.type} queued",
            extra={"user_id": str(recipient_id)},
        )
