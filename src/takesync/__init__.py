"""takesync - resumable Takealot seller data sync."""

__version__ = "0.1.0"
