"""API response models."""

from takesync.api.models.responses import Page, PageSummary

__all__ = ["Page", "PageSummary"]
