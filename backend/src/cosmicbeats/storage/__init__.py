"""Persistence layer."""

from cosmicbeats.storage.db import Base, Database

__all__ = ["Base", "Database"]
