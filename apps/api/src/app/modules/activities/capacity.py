"""
Capacity Ledger

Keeps ``0 <= enrolled <= capacity`` for every activity. Runs inside the
caller's transaction; nothing here commits.
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ActivityNotFoundError, CapacityExceededError
from app.modules.activities import repository

logger = logging.getLogger(__name__)


class CapacityLedger:
    """Seat accounting for activities."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def increment(self, activity_id: UUID) -> int:
        """
        Take one seat.

        Returns:
            The new enrolled count

        Raises:
            CapacityExceededError: The activity is already at capacity
            ActivityNotFoundError: The activity does not exist
        """
        enrolled = await repository.try_increment_enrolled(self.db, activity_id)
        if enrolled is not None:
            return enrolled

        if not await repository.exists(self.db, activity_id):
            raise ActivityNotFoundError(activity_id)

        logger.info(f"Capacity exceeded for activity {activity_id}")
        raise CapacityExceededError(activity_id)

    async def decrement(self, activity_id: UUID) -> int:
        """
        Release one seat, clamping at zero.

        Returns:
            The new enrolled count

        Raises:
            ActivityNotFoundError: The activity does not exist
        """
        enrolled = await repository.decrement_enrolled(self.db, activity_id)
        if enrolled is not None:
            return enrolled

        if not await repository.exists(self.db, activity_id):
            raise ActivityNotFoundError(activity_id)

        logger.warning(f"Decrement on activity {activity_id} with enrolled already 0")
        return 0
