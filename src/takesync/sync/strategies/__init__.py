"""Per data type sync strategies."""

from takesync.sync.strategies.base import BaseSyncStrategy
from takesync.sync.strategies.products import ProductSyncStrategy
from takesync.sync.strategies.sales import SalesSyncStrategy

STRATEGIES: dict[str, type[BaseSyncStrategy]] = {
    ProductSyncStrategy.data_type: ProductSyncStrategy,
    SalesSyncStrategy.data_type: SalesSyncStrategy,
}


def get_strategy(data_type: str) -> BaseSyncStrategy:
    """Get the strategy for a data type.

    Raises:
        ValueError: If the data type is unknown.
    """
    if data_type not in STRATEGIES:
        raise ValueError(f"Unknown data type: {data_type}")
    return STRATEGIES[data_type]()


__all__ = [
    "STRATEGIES",
    "BaseSyncStrategy",
    "ProductSyncStrategy",
    "SalesSyncStrategy",
    "get_strategy",
]
