"""Takealot Seller API access."""
