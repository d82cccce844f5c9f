"""Shared test fixtures."""

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

import pytest
from sqlalchemy.orm import Session

from takesync.api.models.responses import Page
from takesync.config.settings import Settings
from takesync.db.engine import create_engine, create_tables, drop_tables, get_session
from takesync.db.models import Integration
from takesync.utils.dates import utcnow


@pytest.fixture
def test_settings(tmp_path, monkeypatch) -> Settings:
    """Create test settings with a file-based SQLite database."""
    for name in ("TAKESYNC_DATABASE_URL", "TAKESYNC_LOG_LEVEL", "TAKESYNC_CRON_SECRET"):
        monkeypatch.delenv(name, raising=False)

    return Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'takesync-test.db'}",
        log_level="INFO",
        api_min_interval=0,
        retry_delay=0,
        retry_max_delay=0,
        tenant_batch_delay=0,
        cron_secret="test-cron-secret",
    )


@pytest.fixture
def test_engine(test_settings):
    """Create test database engine with tables."""
    engine = create_engine(test_settings)
    create_tables(engine)
    yield engine
    drop_tables(engine)
    engine.dispose()


@pytest.fixture
def test_session(test_engine) -> Session:
    """Create test database session."""
    with get_session(test_engine) as session:
        yield session


class FakeSellerAPI:
    """In-memory stand-in for TakealotClient.get_page.

    Pages are registered per data type. Errors registered for a page are
    raised (in order) before the page is served.
    """

    def __init__(self) -> None:
        self.pages: dict[str, list[list[dict[str, Any]]]] = {"products": [], "sales": []}
        self.errors: dict[tuple[str, int], list[BaseException]] = {}
        self.failing_keys: dict[str, BaseException] = {}
        self.calls: list[tuple[str, str, int, int]] = []
        self.hooks: dict[tuple[str, int], Callable[[], None]] = {}

    def set_pages(self, data_type: str, pages: list[list[dict[str, Any]]]) -> None:
        self.pages[data_type] = pages

    def fail_page(self, data_type: str, page_number: int, *errors: BaseException) -> None:
        self.errors.setdefault((data_type, page_number), []).extend(errors)

    def fail_key(self, api_key: str, error: BaseException) -> None:
        self.failing_keys[api_key] = error

    def on_page(self, data_type: str, page_number: int, hook: Callable[[], None]) -> None:
        self.hooks[(data_type, page_number)] = hook

    async def get_page(
        self,
        api_key: str,
        data_type: str,
        page_number: int,
        page_size: int | None = None,
    ) -> Page:
        page_size = page_size or 100
        self.calls.append((api_key, data_type, page_number, page_size))

        if api_key in self.failing_keys:
            raise self.failing_keys[api_key]
        queued = self.errors.get((data_type, page_number))
        if queued:
            raise queued.pop(0)
        hook = self.hooks.pop((data_type, page_number), None)
        if hook is not None:
            hook()

        pages = self.pages[data_type]
        items = pages[page_number - 1] if page_number <= len(pages) else []
        return Page(
            data_type=data_type,
            page_number=page_number,
            page_size=page_size,
            items=items,
            total_pages=len(pages),
        )

    @property
    def requested_pages(self) -> list[int]:
        return [page for _, _, page, _ in self.calls]


@pytest.fixture
def fake_api() -> FakeSellerAPI:
    """Create a fake Seller API."""
    return FakeSellerAPI()


def make_offer(n: int, **overrides: Any) -> dict[str, Any]:
    """Raw offer record as returned by /v2/offers."""
    record = {
        "tsin_id": 90000 + n,
        "offer_id": 1000 + n,
        "sku": f"SKU-{n}",
        "barcode": f"600{n:07d}",
        "title": f"Product {n}",
        "image_url": f"https://media.example.com/{n}.jpg",
        "offer_url": f"https://www.takealot.com/x/PLID{n}",
        "selling_price": 199.0 + n,
        "rrp": 249.0 + n,
        "leadtime_stock": [{"merchant_warehouse": {"warehouse_id": 1}, "quantity_available": 5}],
        "stock_at_takealot": [
            {"warehouse": {"name": "JHB"}, "quantity_available": 3},
            {"warehouse": {"name": "CPT"}, "quantity_available": 2},
        ],
        "total_stock_on_way": 0,
        "status": "Buyable",
        "date_created": "2024-01-15T08:30:00Z",
    }
    record.update(overrides)
    return record


def make_sale(n: int, order_date: datetime | None = None, **overrides: Any) -> dict[str, Any]:
    """Raw sale record as returned by /v2/sales."""
    order_date = order_date or (utcnow() - timedelta(days=1))
    record = {
        "order_id": 5000000 + n,
        "order_item_id": 7000000 + n,
        "order_date": order_date.strftime("%d %b %Y %H:%M:%S"),
        "sale_status": "Shipped to Customer",
        "offer_id": 1000 + n,
        "tsin": 90000 + n,
        "sku": f"SKU-{n}",
        "product_title": f"Product {n}",
        "dc": "JHB",
        "customer": "A. Customer",
        "shipment_name": "Shipment 1",
        "quantity": 1,
        "selling_price": 299.0,
        "success_fee": 29.9,
        "fulfillment_fee": 35.0,
        "courier_collection_fee": 0,
        "total_fee": 64.9,
    }
    record.update(overrides)
    return record


@pytest.fixture
def sample_integration(test_engine) -> Integration:
    """Integration for tenant T1 with an hourly sales strategy."""
    integration = Integration(
        tenant_id="T1",
        account_name="Tenant One",
        api_key="key-t1",
        cron_enabled=True,
        sync_preferences={"sls_100": "hourly", "prod_100": "nightly"},
    )
    with get_session(test_engine) as session:
        session.add(integration)
    return integration
