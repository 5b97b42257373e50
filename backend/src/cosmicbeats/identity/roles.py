"""Platform roles."""

from enum import Enum


class Role(str, Enum):
    """Platform roles that drive reward selection."""
    PERFORMER = "performer"  # DJs and live acts
    ATTENDEE = "attendee"    # Partygoers
    VENUE = "venue"          # Clubs
    OTHER = "other"          # Reporters and everyone else
