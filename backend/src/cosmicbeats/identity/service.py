"""Role lookup for referral reward selection."""

from typing import Protocol

from cosmicbeats.identity.models import UserRole
from cosmicbeats.identity.roles import Role
from cosmicbeats.logging_config import get_logger
from cosmicbeats.storage.db import Database

logger = get_logger(__name__)

# Users the directory has never heard of are rewarded as attendees
DEFAULT_ROLE = Role.ATTENDEE


class RoleProvider(Protocol):
    def role_of(self, user_id: str) -> Role:
        ...


class UserDirectory:
    """Role provider backed by the `user_roles` table."""

    def __init__(self, database: Database, default_role: Role = DEFAULT_ROLE):
        self.db = database
        self.default_role = default_role

    def role_of(self, user_id: str) -> Role:
        with self.db.session() as session:
            row = session.get(UserRole, user_id)
            return row.role if row else self.default_role

    def set_role(self, user_id: str, role: Role) -> UserRole:
        """Record the role the identity service reports for a user."""
        with self.db.session() as session:
            row = session.get(UserRole, user_id)
            if row is None:
                row = UserRole(user_id=user_id, role=Role(role))
                session.add(row)
            else:
                row.role = Role(role)
            session.flush()

        logger.info("user_role_set", user_id=user_id, role=Role(role).value)
        return row
