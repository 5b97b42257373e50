"""Identity collaborator: user roles."""

from cosmicbeats.identity.roles import Role
from cosmicbeats.identity.service import DEFAULT_ROLE, RoleProvider, UserDirectory

__all__ = ["DEFAULT_ROLE", "Role", "RoleProvider", "UserDirectory"]
