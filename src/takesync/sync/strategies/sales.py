"""Sales sync strategy."""

from datetime import datetime
from typing import Any

from takesync.db.repositories.sale import SaleRepository
from takesync.sync.strategies.base import BaseSyncStrategy, to_float, to_int, to_str
from takesync.utils.dates import parse_api_timestamp


class SalesSyncStrategy(BaseSyncStrategy):
    """Sync strategy for sales, keyed by order id."""

    data_type = "sales"
    natural_key = "order_id"
    repository_class = SaleRepository
    mutable_fields = (
        "sale_status",
        "selling_price",
        "quantity",
        "success_fee",
        "fulfillment_fee",
        "courier_collection_fee",
        "total_fee",
        "shipment_name",
    )

    def map_record(self, record: dict[str, Any]) -> dict[str, Any]:
        return {
            "order_id": self.key_of(record),
            "order_item_id": to_str(record.get("order_item_id")),
            "order_date": self.record_date(record),
            "sale_status": to_str(record.get("sale_status") or record.get("order_status")),
            "offer_id": to_str(record.get("offer_id")),
            "tsin": to_str(record.get("tsin")),
            "sku": to_str(record.get("sku")),
            "product_title": to_str(record.get("product_title")),
            "dc": to_str(record.get("dc")),
            "customer": to_str(record.get("customer")),
            "shipment_name": to_str(record.get("shipment_name")),
            "quantity": to_int(record.get("quantity")),
            "selling_price": to_float(record.get("selling_price")),
            "success_fee": to_float(record.get("success_fee")),
            "fulfillment_fee": to_float(record.get("fulfillment_fee")),
            "courier_collection_fee": to_float(record.get("courier_collection_fee")),
            "total_fee": to_float(record.get("total_fee")),
        }

    def record_date(self, record: dict[str, Any]) -> datetime | None:
        return parse_api_timestamp(record.get("order_date") or record.get("sale_date"))
