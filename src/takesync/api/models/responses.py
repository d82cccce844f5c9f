"""Pydantic models for Takealot Seller API responses."""

import math
from typing import Any

from pydantic import BaseModel, ConfigDict


class PageSummary(BaseModel):
    """Pagination block returned alongside every listing."""

    model_config = ConfigDict(extra="allow")

    page_number: int | None = None
    page_size: int | None = None
    total_pages: int | None = None
    total: int | None = None
    total_results: int | None = None

    def resolve_total_pages(self, page_size: int) -> int | None:
        """Work out the total number of pages.

        Uses ``total_pages`` when the API sends it, otherwise derives it from
        the record total (``total`` for offers, ``total_results`` for sales).

        Args:
            page_size: Page size the request asked for.

        Returns:
            Total pages, or None when the API gave no totals.
        """
        if self.total_pages is not None:
            return self.total_pages
        total = self.total if self.total is not None else self.total_results
        if total is None:
            return None
        size = self.page_size or page_size
        return math.ceil(total / size) if size else None


class Page(BaseModel):
    """One page of records from a listing endpoint."""

    data_type: str
    page_number: int
    page_size: int
    items: list[dict[str, Any]]
    total_pages: int | None = None

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def is_last(self) -> bool:
        """Whether no further page should be requested after this one."""
        if not self.items or len(self.items) < self.page_size:
            return True
        return self.total_pages is not None and self.page_number >= self.total_pages
