"""CosmicBeats referral rewards engine."""

__version__ = "0.1.0"
