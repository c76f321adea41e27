"""Resolve remote author emails to local user ids."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .protocols import ProjectStore

logger: logging.Logger = logging.getLogger(__name__)


class UserResolver:
    """Per-run cache of email -> local user id lookups.

    Misses are cached as None as well, so an unknown email is looked up once.
    """

    def __init__(self, store: ProjectStore) -> None:
        self._store: ProjectStore = store
        self._users: dict[str, int | None] = {}

    def resolve(self, email: str | None) -> int | None:
        if not email:
            return None
        if email in self._users:
            return self._users[email]

        user_id = self._store.find_user_id(email)
        if user_id is None:
            logger.debug(f"No local user for {email}")
        self._users[email] = user_id
        return user_id

    def author_for(self, email: str | None) -> int:
        """Return the user id to store as author, falling back to the project creator."""
        user_id = self.resolve(email)
        if user_id is None:
            return self._store.creator_id
        return user_id
