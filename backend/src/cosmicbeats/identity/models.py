"""Identity directory models."""

from datetime import datetime

from sqlalchemy import DateTime, Enum as SQLEnum, String
from sqlalchemy.orm import Mapped, mapped_column

from cosmicbeats.clock import utcnow
from cosmicbeats.identity.roles import Role
from cosmicbeats.storage.db import Base


class UserRole(Base):
    """Platform role of a user, as reported by the identity service."""
    __tablename__ = "user_roles"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    role: Mapped[Role] = mapped_column(
        SQLEnum(Role, values_callable=lambda members: [m.value for m in members], native_enum=False, length=32),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<UserRole(user_id={self.user_id}, role={self.role.value})>"
