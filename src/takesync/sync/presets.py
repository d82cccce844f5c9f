"""Named sync strategies and cron schedules."""

from dataclasses import dataclass
from datetime import datetime, timedelta

from takesync.utils.dates import utcnow


@dataclass(frozen=True)
class SyncPreset:
    """A named sync flavour: what to fetch and how far to go."""

    id: str
    label: str
    data_type: str
    max_pages: int | None
    pages_per_chunk: int
    window_days: int | None = None

    def date_from(self, now: datetime | None = None) -> datetime | None:
        """Start of the sales date window, if the preset has one."""
        if self.window_days is None:
            return None
        return (now or utcnow()) - timedelta(days=self.window_days)


PRESETS: dict[str, SyncPreset] = {
    preset.id: preset
    for preset in (
        SyncPreset("prod_100", "Fetch 100 Products", "products", max_pages=1, pages_per_chunk=1),
        SyncPreset("prod_all", "Fetch All Products", "products", max_pages=1000, pages_per_chunk=10),
        SyncPreset("sls_100", "Last 100 Sales", "sales", max_pages=1, pages_per_chunk=1),
        SyncPreset(
            "sls_30d", "Last 30 Days Sales", "sales", max_pages=None, pages_per_chunk=10, window_days=30
        ),
        SyncPreset(
            "sls_6m", "Last 6 Months Sales", "sales", max_pages=None, pages_per_chunk=10, window_days=180
        ),
        SyncPreset("sls_all", "All Sales", "sales", max_pages=None, pages_per_chunk=10),
    )
}

# schedule name -> human label
SCHEDULES: dict[str, str] = {
    "hourly": "Every 1 hr",
    "three-hourly": "Every 3 hr",
    "six-hourly": "Every 6 hr",
    "twelve-hourly": "Every 12 hr",
    "nightly": "Every Night",
    "weekly": "Every Sunday",
}


def get_preset(strategy_id: str) -> SyncPreset:
    """Look up a preset by id.

    Raises:
        KeyError: If the strategy id is unknown.
    """
    try:
        return PRESETS[strategy_id]
    except KeyError:
        raise KeyError(f"Unknown sync strategy: {strategy_id}") from None
