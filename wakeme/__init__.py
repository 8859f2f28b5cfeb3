"""WakeMe: location-based trip alarm service."""

__version__ = "1.0.0"
