"""
JSON file backed user store.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING

from didanchor.common.models import Role, UserRecord

from .persistence import DataPersistence

if TYPE_CHECKING:
    from pathlib import Path


class JsonUserStore:
    """Keeps users in memory and writes them through to a JSON file."""

    def __init__(self, users_file_path: Path):
        self.users_file_path = users_file_path
        self.users: dict[str, UserRecord] = DataPersistence.load_users(
            users_file_path
        )
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def get(self, did: str) -> UserRecord | None:
        with self._lock:
            return self.users.get(did)

    def get_or_create(self, did: str, default_role: Role = Role.USER) -> UserRecord:
        with self._lock:
            user = self.users.get(did)
            if user is None:
                user = UserRecord(
                    did=did, roles=[default_role], created_at=int(time.time())
                )
                self.users[did] = user
                DataPersistence.save_users(self.users_file_path, self.users)
                self.logger.info("Registered new user %s", did)
            return user

    def set_roles(self, did: str, roles: list[Role]) -> UserRecord:
        """Replace the roles of a user, creating the user when needed."""
        with self._lock:
            existing = self.users.get(did)
            created_at = existing.created_at if existing else int(time.time())
            user = UserRecord(did=did, roles=roles, created_at=created_at)
            self.users[did] = user
            DataPersistence.save_users(self.users_file_path, self.users)
            return user

    def add_roles(self, did: str, roles: list[Role]) -> UserRecord:
        """Grant roles on top of the existing ones; the first new role is primary."""
        existing = self.get(did)
        current = existing.roles if existing else []
        merged = list(dict.fromkeys([*roles, *current]))
        return self.set_roles(did, merged)
