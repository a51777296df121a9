"""HTTP client for the Dome trading-data API with rate limiting and retry logic."""

import logging
import time
from collections.abc import Callable, Iterator
from functools import wraps
from typing import Any, ParamSpec, TypeVar

import requests

from polymarket_recommender.ingestor.models import DomeActivity, DomeMarket, DomeOrder, DomePage

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

# Constants
DEFAULT_BASE_URL = "https://api.domeapi.io/v1"
# Free tier allows roughly one request per second; keep a little headroom.
DEFAULT_REQUESTS_PER_SECOND = 1 / 1.1
DEFAULT_RATE_LIMIT_BACKOFF = 2.0
DEFAULT_PAGE_SIZE = 100
DEFAULT_TIMEOUT_SECONDS = 15.0
DEFAULT_MAX_RESULTS = 1000


class RateLimiter:
    """Minimum-interval rate limiter for API requests."""

    def __init__(self, max_requests_per_second: float = DEFAULT_REQUESTS_PER_SECOND) -> None:
        """Initialize the rate limiter.

        Args:
            max_requests_per_second: Maximum requests allowed per second.
        """
        self._min_interval = 1.0 / max_requests_per_second
        self._last_request_time: float | None = None

    def acquire(self) -> None:
        """Block until a request slot is available."""
        now = time.monotonic()
        if self._last_request_time is not None:
            elapsed = now - self._last_request_time
            if elapsed < self._min_interval:
                time.sleep(self._min_interval - elapsed)
        self._last_request_time = time.monotonic()


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, message: str, last_exception: Exception | None = None) -> None:
        super().__init__(message)
        self.last_exception = last_exception


def with_retry(
    max_retries: int = 1,
    delay: float = DEFAULT_RATE_LIMIT_BACKOFF,
    retry_on: tuple[type[Exception], ...] = (Exception,),
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Decorator for adding retry logic with a fixed delay.

    Args:
        max_retries: Maximum number of retry attempts.
        delay: Seconds to wait before each retry.
        retry_on: Tuple of exception types to retry on.

    Returns:
        Decorated function with retry logic.
    """

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            last_exception: Exception | None = None

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except retry_on as e:
                    last_exception = e
                    if attempt == max_retries:
                        break

                    logger.warning(
                        "Attempt %d/%d failed: %s. Retrying in %.1f seconds...",
                        attempt + 1,
                        max_retries + 1,
                        str(e),
                        delay,
                    )
                    time.sleep(delay)

            raise RetryError(
                f"All {max_retries + 1} attempts failed for {func.__name__}",
                last_exception=last_exception,
            )

        return wrapper

    return decorator


class DomeClientError(Exception):
    """Base exception for DomeClient errors."""


class DomeClientRateLimitedError(DomeClientError):
    """Raised when the API rejects a request for exceeding its rate limit."""


class DomeClientTransientError(DomeClientError):
    """Raised for retryable/transient errors (5xx, network issues, exhausted retries)."""


def _is_rate_limit(response: requests.Response) -> bool:
    if response.status_code == 429:
        return True
    try:
        text = response.text or ""
    except Exception:  # pragma: no cover
        return False
    return "rate limit" in text.lower()


class DomeClient:
    """Dome API client with rate limiting and one fixed-delay retry on rate limits.

    Example:
        >>> client = DomeClient(api_key="...")
        >>> orders = client.get_all_orders_for_wallet("0xabc...", max_results=500)
    """

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        requests_per_second: float = DEFAULT_REQUESTS_PER_SECOND,
        rate_limit_backoff_seconds: float = DEFAULT_RATE_LIMIT_BACKOFF,
        page_size: int = DEFAULT_PAGE_SIZE,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        if not api_key:
            raise DomeClientError("Dome API key must be provided")
        self._base_url = base_url.rstrip("/")
        self._backoff = rate_limit_backoff_seconds
        self._page_size = page_size
        self._timeout = timeout_seconds
        self._rate_limiter = RateLimiter(requests_per_second)
        self._session = session or requests.Session()
        self._session.headers.update(
            {"Authorization": f"Bearer {api_key}", "Accept": "application/json"}
        )

        logger.info(
            "Initialized DomeClient with base_url=%s, rate_limit=%.2f req/s",
            self._base_url,
            requests_per_second,
        )

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "DomeClient":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request_once(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        self._rate_limiter.acquire()
        url = f"{self._base_url}{path}"
        try:
            response = self._session.get(url, params=params, timeout=self._timeout)
        except (requests.Timeout, requests.ConnectionError) as e:
            raise DomeClientTransientError(f"Request to {path} failed: {e}") from e

        if response.status_code >= 400:
            if _is_rate_limit(response):
                raise DomeClientRateLimitedError(f"Rate Limit exceeded for {path}")
            if response.status_code >= 500:
                raise DomeClientTransientError(f"HTTP {response.status_code} from {path}")
            raise DomeClientError(f"HTTP {response.status_code} from {path}: {response.text[:200]}")

        try:
            payload = response.json()
        except ValueError as e:
            raise DomeClientError(f"Invalid JSON from {path}") from e
        if not isinstance(payload, dict):
            raise DomeClientError(f"Unexpected response shape from {path}")
        return payload

    def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        """GET with a single retry after a fixed backoff on rate limiting."""
        params = {k: v for k, v in params.items() if v is not None}
        request = with_retry(
            max_retries=1,
            delay=self._backoff,
            retry_on=(DomeClientRateLimitedError,),
        )(self._request_once)
        try:
            return request(path, params)
        except RetryError as e:
            raise DomeClientTransientError(
                f"Still rate limited after retry for {path}"
            ) from e.last_exception

    @staticmethod
    def _parse_items(
        payload: dict[str, Any], key: str, parse: Callable[[dict[str, Any]], T]
    ) -> DomePage[T]:
        items: list[T] = []
        for raw in payload.get(key) or []:
            try:
                items.append(parse(raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed %s item: %s", key, e)
        pagination = payload.get("pagination") or {}
        return DomePage(items=items, has_more=bool(pagination.get("has_more", False)))

    # ------------------------------------------------------------------
    # Single pages
    # ------------------------------------------------------------------

    def get_orders(
        self,
        *,
        market_slug: str | None = None,
        user: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> DomePage[DomeOrder]:
        payload = self._get(
            "/polymarket/orders",
            {
                "market_slug": market_slug,
                "user": user,
                "limit": limit or self._page_size,
                "offset": offset,
            },
        )
        return self._parse_items(payload, "orders", DomeOrder.from_dict)

    def get_markets(
        self,
        *,
        market_slugs: list[str] | None = None,
        min_volume: float | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> DomePage[DomeMarket]:
        payload = self._get(
            "/polymarket/markets",
            {
                "market_slug": market_slugs or None,
                "min_volume": min_volume,
                "limit": limit or self._page_size,
                "offset": offset,
            },
        )
        return self._parse_items(payload, "markets", DomeMarket.from_dict)

    def get_market(self, market_slug: str) -> DomeMarket | None:
        page = self.get_markets(market_slugs=[market_slug], limit=1)
        return page.items[0] if page.items else None

    def get_wallet_activity(
        self, user: str, *, limit: int | None = None, offset: int = 0
    ) -> DomePage[DomeActivity]:
        payload = self._get(
            "/polymarket/activity",
            {"user": user, "limit": limit or self._page_size, "offset": offset},
        )
        return self._parse_items(payload, "activities", DomeActivity.from_dict)

    # ------------------------------------------------------------------
    # Pagination
    # ------------------------------------------------------------------

    def _paginate(
        self,
        fetch: Callable[[int, int], DomePage[T]],
        *,
        max_results: int,
        what: str,
    ) -> Iterator[T]:
        """Yield items page by page until exhausted or ``max_results`` reached.

        A page that still fails after the retry ends the listing; items
        already yielded stand.
        """
        offset = 0
        yielded = 0
        while yielded < max_results:
            try:
                page = fetch(self._page_size, offset)
            except DomeClientError as e:
                logger.error("Error fetching %s at offset %d: %s", what, offset, e)
                return
            if not page.items:
                return
            for item in page.items:
                yield item
                yielded += 1
                if yielded >= max_results:
                    return
            if not page.has_more:
                return
            offset += self._page_size

    def iter_orders(
        self,
        *,
        market_slug: str | None = None,
        user: str | None = None,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> Iterator[DomeOrder]:
        if not market_slug and not user:
            raise ValueError("iter_orders requires market_slug or user")
        what = f"orders for {market_slug or user}"
        return self._paginate(
            lambda limit, offset: self.get_orders(
                market_slug=market_slug, user=user, limit=limit, offset=offset
            ),
            max_results=max_results,
            what=what,
        )

    def get_all_orders_for_market(
        self, market_slug: str, max_results: int = DEFAULT_MAX_RESULTS
    ) -> list[DomeOrder]:
        return list(self.iter_orders(market_slug=market_slug, max_results=max_results))

    def get_all_orders_for_wallet(
        self, wallet_address: str, max_results: int = DEFAULT_MAX_RESULTS
    ) -> list[DomeOrder]:
        return list(self.iter_orders(user=wallet_address, max_results=max_results))

    def get_all_wallet_activity(
        self, wallet_address: str, max_results: int = DEFAULT_MAX_RESULTS
    ) -> list[DomeActivity]:
        return list(
            self._paginate(
                lambda limit, offset: self.get_wallet_activity(
                    wallet_address, limit=limit, offset=offset
                ),
                max_results=max_results,
                what=f"activity for {wallet_address}",
            )
        )
