"""
Current-user context.

Authentication itself happens outside this service; the API layer records
the signed-in user here and background work (the reminder scheduler) reads it.
An empty context means "no work to do", not an error.
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)


class UserContext:
    """Holds the active user ID for one session or process."""

    def __init__(self, user_id: Optional[str] = None):
        self._user_id = user_id or None

    @property
    def user_id(self) -> Optional[str]:
        """Active user ID, or None when nobody is signed in."""
        return self._user_id

    @property
    def is_authenticated(self) -> bool:
        return self._user_id is not None

    def set_user(self, user_id: Optional[str]) -> None:
        """Switch the active user (empty clears it)."""
        user_id = user_id or None
        if user_id != self._user_id:
            logger.info(f"Active user changed to {user_id or '<none>'}")
        self._user_id = user_id

    def clear(self) -> None:
        """Sign the active user out."""
        self.set_user(None)

    def __call__(self) -> Optional[str]:
        return self._user_id
