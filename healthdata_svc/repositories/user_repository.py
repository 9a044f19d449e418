"""
Repository for the user directory.

The health data service does not own user accounts; it only needs to
resolve an id to a role. This repository is that lookup plus an ``add``
used to mirror users into the local store.

All SQL is encapsulated in this repository - no SQL in service or API layers.
"""
import logging
from typing import Optional

from repositories.base import Database
from models.user import User

logger = logging.getLogger(__name__)


class UserRepository:
    """
    Repository for user directory lookups.

    It should be instantiated via core.dependencies.get_user_repository().
    """

    def __init__(self, db: Database):
        self._db = db

    def add(self, name: str, role: str) -> User:
        """
        Add a user and return it.

        Args:
            name: Display name of the user.
            role: Role string (patient, clinician, admin or any other value).
        """
        conn = self._db.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute("INSERT INTO users (name, role) VALUES (?, ?)", (name, role))
            user_id = cursor.lastrowid
            conn.commit()
            return User(id=user_id, name=name, role=role)
        finally:
            conn.close()

    def resolve_user(self, user_id: int) -> Optional[User]:
        """
        Resolve a user id to its directory entry.

        Returns:
            The User, or None if no such user exists.
        """
        conn = self._db.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT id, name, role FROM users WHERE id = ?", (user_id,))
            row = cursor.fetchone()
        finally:
            conn.close()

        return User.from_row(row) if row else None
