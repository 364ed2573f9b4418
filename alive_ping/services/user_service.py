"""
Profile and schedule settings for the authenticated user.
"""

from typing import Any

from alive_ping.infrastructure.observability.logging import get_logger
from alive_ping.models.domain.checkin_domain import User
from alive_ping.services.errors import UserNotFound

logger = get_logger(__name__)


class UserService:
    def __init__(self, users):
        self._users = users

    async def get_profile(self, user_id: int) -> User:
        user = await self._users.get(user_id)
        if not user:
            raise UserNotFound(user_id)
        return user

    async def update_settings(self, user_id: int, changes: dict[str, Any]) -> User:
        """
        Apply a partial settings update.

        Changing the interval does not move the current deadline; it applies
        from the next check-in. Pausing removes the user from escalation
        sweeps until resumed.
        """
        user = await self._users.update_settings(user_id, changes)
        if not user:
            raise UserNotFound(user_id)

        if "is_paused" in changes:
            logger.info("Monitoring paused" if user.is_paused else "Monitoring resumed", user_id=user_id)
        return user
