"""Takealot Seller API client."""

from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from takesync.api.models.responses import Page, PageSummary
from takesync.api.proxy import ProxyPool, mask_proxy
from takesync.api.rate_limiter import RateLimiter
from takesync.config.settings import API_MAX_PAGE_SIZE, Settings
from takesync.utils.exceptions import APIError, RateLimitError
from takesync.utils.retry import retry_with_backoff

logger = structlog.get_logger(__name__)

# data type -> (path, key holding the records)
ENDPOINTS: dict[str, tuple[str, str]] = {
    "products": ("/v2/offers", "offers"),
    "sales": ("/v2/sales", "sales"),
}


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


class TakealotClient:
    """Async client for the Takealot Seller API."""

    def __init__(
        self,
        settings: Settings,
        proxy_pool: ProxyPool | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Application settings.
            proxy_pool: Optional proxies to rotate requests through.
            transport: Optional transport override, used instead of proxies.
        """
        self._settings = settings
        self._base_url = settings.api_base_url.rstrip("/")
        self._timeout = settings.api_timeout
        self._page_size = settings.api_page_size
        self._rate_limiter = RateLimiter(
            max_concurrent=settings.api_max_concurrent,
            min_interval=settings.api_min_interval,
        )
        if proxy_pool is None and settings.proxy_enabled:
            proxy_pool = ProxyPool(settings.get_proxy_list())
        self._proxy_pool = proxy_pool
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._proxy_clients: dict[str, httpx.AsyncClient] = {}
        self._request = retry_with_backoff(
            max_retries=settings.max_retries,
            base_delay=settings.retry_delay,
            max_delay=settings.retry_max_delay,
        )(self._send)

    async def __aenter__(self) -> "TakealotClient":
        """Context manager entry."""
        self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Context manager exit."""
        clients = [*self._proxy_clients.values()]
        if self._client:
            clients.append(self._client)
        for client in clients:
            await client.aclose()
        self._client = None
        self._proxy_clients.clear()

    def _http_client(self) -> tuple[httpx.AsyncClient, str | None]:
        """Pick the HTTP client for the next request, rotating proxies."""
        if not self._client:
            raise APIError("Client not initialized. Use 'async with' context manager.", 0)

        if self._transport is not None or not self._proxy_pool:
            return self._client, None

        proxy = self._proxy_pool.next()
        if proxy is None:
            return self._client, None
        if proxy not in self._proxy_clients:
            self._proxy_clients[proxy] = httpx.AsyncClient(timeout=self._timeout, proxy=proxy)
        return self._proxy_clients[proxy], proxy

    async def _send(
        self,
        path: str,
        api_key: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make one GET request.

        Args:
            path: API path.
            api_key: Tenant's Seller API key.
            params: Query parameters.

        Returns:
            JSON response data.

        Raises:
            RateLimitError: On HTTP 429.
            APIError: On any other failed request.
        """
        client, proxy = self._http_client()
        url = f"{self._base_url}{path}"
        headers = {"Authorization": f"Key {api_key}", "Accept": "application/json"}

        async with self._rate_limiter:
            logger.debug(
                "API request",
                path=path,
                params=params,
                proxy=mask_proxy(proxy) if proxy else None,
            )

            try:
                response = await client.get(url, params=params, headers=headers)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status == 429:
                    retry_after = _retry_after(e.response)
                    logger.warning("API rate limited", url=url, retry_after=retry_after)
                    raise RateLimitError(retry_after=retry_after) from e
                logger.error(
                    "API error",
                    status_code=status,
                    url=url,
                    response=e.response.text[:500],
                )
                raise APIError(
                    f"API request failed: {status} {e.response.text[:200]}",
                    status_code=status,
                ) from e
            except httpx.RequestError as e:
                logger.error("Request error", url=url, error=str(e))
                raise APIError(f"Request failed: {e}") from e
            except ValueError as e:
                raise APIError(f"Invalid JSON in API response: {e}", status_code=502) from e

    async def get_page(
        self,
        api_key: str,
        data_type: str,
        page_number: int,
        page_size: int | None = None,
    ) -> Page:
        """Fetch one page of offers or sales.

        Args:
            api_key: Tenant's Seller API key.
            data_type: ``products`` or ``sales``.
            page_number: 1-based page number.
            page_size: Records per page, at most 100 (defaults to settings).

        Returns:
            The page with its records and pagination info.

        Raises:
            ValueError: If the data type or paging arguments are invalid.
            APIError: If the request fails after retries.
        """
        if data_type not in ENDPOINTS:
            raise ValueError(f"Unknown data type: {data_type}")
        if page_number < 1:
            raise ValueError(f"page_number must be >= 1, got {page_number}")
        page_size = page_size or self._page_size
        if not 1 <= page_size <= API_MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be between 1 and {API_MAX_PAGE_SIZE}, got {page_size}")

        if not self._client:
            raise APIError("Client not initialized. Use 'async with' context manager.", 0)

        path, items_key = ENDPOINTS[data_type]
        data = await self._request(
            path,
            api_key,
            params={"page_number": page_number, "page_size": page_size},
        )

        if not isinstance(data, dict):
            raise APIError("Unexpected API response shape", status_code=502)

        items = data.get(items_key) or []
        if not isinstance(items, list):
            raise APIError(f"Unexpected '{items_key}' payload in API response", status_code=502)

        try:
            summary = PageSummary.model_validate(data.get("page_summary") or {})
        except ValidationError as e:
            raise APIError(f"Invalid page_summary in API response: {e}", status_code=502) from e

        page = Page(
            data_type=data_type,
            page_number=page_number,
            page_size=page_size,
            items=items,
            total_pages=summary.resolve_total_pages(page_size),
        )
        logger.debug(
            "Fetched page",
            data_type=data_type,
            page=page_number,
            records=len(items),
            total_pages=page.total_pages,
        )
        return page

    async def check_api_key(self, api_key: str) -> int | None:
        """Verify an API key by requesting a single offer.

        Returns:
            Total offer pages at page size 1 (i.e. the offer count), if reported.
        """
        page = await self.get_page(api_key, "products", 1, page_size=1)
        return page.total_pages

    @property
    def requests_made(self) -> int:
        """Get number of requests made through this client."""
        return self._rate_limiter.requests_made
