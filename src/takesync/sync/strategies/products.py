"""Product offer sync strategy."""

from typing import Any

from takesync.db.repositories.offer import OfferRepository
from takesync.sync.strategies.base import BaseSyncStrategy, to_float, to_int, to_str
from takesync.utils.dates import parse_api_timestamp


def _sum_quantities(entries: Any, field: str) -> int | None:
    if not isinstance(entries, list):
        return None
    total = 0
    for entry in entries:
        if isinstance(entry, dict):
            total += to_int(entry.get(field)) or 0
    return total


class ProductSyncStrategy(BaseSyncStrategy):
    """Sync strategy for seller offers, keyed by TSIN."""

    data_type = "products"
    natural_key = "tsin_id"
    repository_class = OfferRepository
    mutable_fields = (
        "selling_price",
        "rrp",
        "sku",
        "image_url",
        "quantity_available",
        "stock_at_takealot_total",
        "total_stock_on_way",
        "status",
        "title",
    )

    def map_record(self, record: dict[str, Any]) -> dict[str, Any]:
        quantity = to_int(record.get("quantity_available"))
        if quantity is None:
            quantity = _sum_quantities(record.get("leadtime_stock"), "quantity_available")

        stock_at_takealot = to_int(record.get("stock_at_takealot_total"))
        if stock_at_takealot is None:
            stock_at_takealot = _sum_quantities(record.get("stock_at_takealot"), "quantity_available")

        return {
            "tsin_id": self.key_of(record),
            "offer_id": to_str(record.get("offer_id")),
            "sku": to_str(record.get("sku")),
            "barcode": to_str(record.get("barcode")),
            "title": to_str(record.get("title")),
            "image_url": to_str(record.get("image_url")),
            "offer_url": to_str(record.get("offer_url")),
            "selling_price": to_float(record.get("selling_price")),
            "rrp": to_float(record.get("rrp")),
            "quantity_available": quantity,
            "stock_at_takealot_total": stock_at_takealot,
            "total_stock_on_way": to_int(record.get("total_stock_on_way")),
            "status": to_str(record.get("status")),
            "date_created": parse_api_timestamp(record.get("date_created")),
        }
