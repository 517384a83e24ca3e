"""
Base client for external data source clients.

Provides: raw-response caching, rate limiting, retry with exponential backoff,
structured logging, and a distinct error when retries are exhausted.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Literal

import aiohttp
from pydantic import BaseModel

from anesthesia_hub.constants import DEFAULT_TIMEOUT, RAW_CACHE_TTL
from anesthesia_hub.utils.cache import TTLCache, cache_key
from anesthesia_hub.utils.retry import RetryConfig

logger = logging.getLogger("anesthesia_hub.data_sources")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class RateLimitConfig(BaseModel):
    """Token-bucket rate limiter settings."""

    requests_per_second: float = 3.0
    burst: int = 3


class CacheConfig(BaseModel):
    """Raw-response cache settings."""

    enabled: bool = True
    ttl_seconds: int = RAW_CACHE_TTL


class ClientConfig(BaseModel):
    """Top-level config aggregating retry, rate limit, and cache."""

    retry: RetryConfig = RetryConfig()
    rate_limit: RateLimitConfig = RateLimitConfig()
    cache: CacheConfig = CacheConfig()
    timeout_seconds: float = DEFAULT_TIMEOUT


# ---------------------------------------------------------------------------
# Rate limiter (async token bucket)
# ---------------------------------------------------------------------------


class TokenBucketRateLimiter:
    """
    Async token-bucket rate limiter.

    Allows `burst` requests immediately, then refills at
    `requests_per_second`.  Callers await `acquire()` before
    making a request; it sleeps only when the bucket is empty.
    """

    def __init__(self, config: RateLimitConfig):
        self.rate = config.requests_per_second
        self.max_tokens = config.burst
        self.tokens = float(config.burst)
        self.last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self.last_refill
            self.tokens = min(self.max_tokens, self.tokens + elapsed * self.rate)
            self.last_refill = now

            if self.tokens < 1.0:
                wait = (1.0 - self.tokens) / self.rate
                logger.debug("Rate limiter: sleeping %.2fs", wait)
                await asyncio.sleep(wait)
                self.tokens = 0.0
                self.last_refill = time.monotonic()
            else:
                self.tokens -= 1.0


# ---------------------------------------------------------------------------
# Request context (for structured logging)
# ---------------------------------------------------------------------------


class RequestContext(BaseModel):
    """Metadata attached to every outgoing request for logging."""

    source: str  # e.g. "pubmed"
    method: str  # e.g. "search_pmids"
    params: dict[str, Any] = {}


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class DataSourceError(Exception):
    """The data source could not be reached or answered with an error."""

    def __init__(self, source: str, message: str, status_code: int | None = None):
        self.source = source
        self.status_code = status_code
        super().__init__(f"[{source}] {message}")


class RateLimitError(DataSourceError):
    """Raised when rate limit is exceeded and retries are exhausted."""

    pass


# ---------------------------------------------------------------------------
# Base client
# ---------------------------------------------------------------------------


class BaseClient(ABC):
    """
    Abstract base for literature index clients.

    Subclasses implement `_source_name` and their own typed methods that
    call `_rest_get()` (JSON) or `_rest_get_xml()` (raw text).
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        raw_cache: TTLCache | None = None,
        sleep=asyncio.sleep,
    ):
        self.config = config or ClientConfig()
        self.rate_limiter = TokenBucketRateLimiter(self.config.rate_limit)
        self.raw_cache = (
            raw_cache
            if raw_cache is not None
            else TTLCache(
                name=f"{self._source_name}_raw", ttl=self.config.cache.ttl_seconds
            )
        )
        self._sleep = sleep
        self._session: aiohttp.ClientSession | None = None

    @property
    @abstractmethod
    def _source_name(self) -> str:
        """Identifier for this data source, e.g. 'pubmed'."""
        ...

    # -- Session management --------------------------------------------------

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    # -- Core request with retry + cache + rate limiting ---------------------

    async def _request(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        response_format: Literal["json", "text"] = "json",
        cache_namespace: str | None = None,
        cache_params: dict[str, Any] | None = None,
        context: RequestContext | None = None,
    ) -> Any:
        """
        Make an HTTP GET request with caching, rate limiting, and retry.

        Parameters
        ----------
        url : str
            Full URL.
        params : dict, optional
            Query string parameters.
        headers : dict, optional
            Additional HTTP headers.
        response_format : "json" or "text"
            How to decode a successful body.
        cache_namespace : str, optional
            Cache key namespace.  If None, caching is skipped.
        cache_params : dict, optional
            Parameters used to build the cache key.
        context : RequestContext, optional
            Logging context.

        Raises
        ------
        RateLimitError
            The source kept answering 429 until retries ran out.
        DataSourceError
            Any other failure: non-retryable HTTP error, or connection/5xx
            failures that outlasted the retry budget.
        """
        ctx = context or RequestContext(source=self._source_name, method="unknown")
        retry = self.config.retry

        key = None
        if self.config.cache.enabled and cache_namespace and cache_params is not None:
            key = cache_key(cache_namespace, cache_params)
            cached = self.raw_cache.get(key)
            if cached is not None:
                return cached

        last_error: DataSourceError | None = None
        start = time.monotonic()

        for attempt in range(retry.max_retries + 1):
            delay = retry.delay_for(attempt)
            try:
                await self.rate_limiter.acquire()
                session = await self._get_session()

                logger.info(
                    "Request [%s.%s] attempt=%d url=%s",
                    ctx.source,
                    ctx.method,
                    attempt + 1,
                    url,
                )

                resp = await session.get(url, params=params, headers=headers)

                # --- Handle HTTP errors ---
                if resp.status in retry.retryable_status_codes:
                    body = await resp.text()
                    logger.warning(
                        "Retryable %d from %s.%s: %s",
                        resp.status,
                        ctx.source,
                        ctx.method,
                        body[:200],
                    )
                    error_cls = RateLimitError if resp.status == 429 else DataSourceError
                    last_error = error_cls(
                        ctx.source,
                        f"HTTP {resp.status}: {body[:200]}",
                        status_code=resp.status,
                    )
                    if resp.status == 429:
                        # Respect Retry-After header if present
                        retry_after = resp.headers.get("Retry-After")
                        if retry_after:
                            try:
                                delay = min(float(retry_after), retry.max_delay)
                            except ValueError:
                                pass

                elif resp.status >= 400:
                    body = await resp.text()
                    raise DataSourceError(
                        ctx.source,
                        f"HTTP {resp.status}: {body[:500]}",
                        status_code=resp.status,
                    )

                else:
                    # --- Success ---
                    if response_format == "json":
                        try:
                            data = await resp.json(content_type=None)
                        except ValueError as e:
                            body = await resp.text()
                            raise DataSourceError(
                                ctx.source,
                                f"Malformed JSON response: {e}; body={body[:200]!r}",
                                status_code=resp.status,
                            ) from e
                    else:
                        data = await resp.text()
                    elapsed = time.monotonic() - start

                    logger.info(
                        "Success [%s.%s] elapsed=%.2fs cached=False",
                        ctx.source,
                        ctx.method,
                        elapsed,
                    )

                    if key is not None:
                        self.raw_cache.set(key, data)
                    return data

            except asyncio.TimeoutError:
                elapsed = time.monotonic() - start
                last_error = DataSourceError(
                    ctx.source, f"Timeout after {elapsed:.1f}s"
                )
                logger.warning(
                    "Timeout [%s.%s] attempt=%d elapsed=%.1fs",
                    ctx.source,
                    ctx.method,
                    attempt + 1,
                    elapsed,
                )

            except aiohttp.ClientError as e:
                last_error = DataSourceError(ctx.source, f"Connection error: {e}")
                logger.warning(
                    "Connection error [%s.%s] attempt=%d: %s",
                    ctx.source,
                    ctx.method,
                    attempt + 1,
                    e,
                )

            # Exponential backoff before next attempt
            if attempt < retry.max_retries:
                await self._sleep(delay)

        elapsed = time.monotonic() - start
        logger.error(
            "All retries exhausted [%s.%s] after %.1fs: %s",
            ctx.source,
            ctx.method,
            elapsed,
            last_error,
        )
        raise last_error or DataSourceError(ctx.source, "Request failed")

    # -- Convenience methods for subclasses ----------------------------------

    async def _rest_get(
        self,
        url: str,
        params: dict[str, Any],
        *,
        cache_namespace: str | None = None,
        cache_params: dict[str, Any] | None = None,
        context: RequestContext | None = None,
    ) -> Any:
        """GET returning decoded JSON (esearch)."""
        return await self._request(
            url,
            params=params,
            response_format="json",
            cache_namespace=cache_namespace,
            cache_params=cache_params if cache_params is not None else params,
            context=context,
        )

    async def _rest_get_xml(
        self,
        url: str,
        params: dict[str, Any],
        *,
        cache_namespace: str | None = None,
        cache_params: dict[str, Any] | None = None,
        context: RequestContext | None = None,
    ) -> str:
        """GET returning the raw response body (efetch XML)."""
        return await self._request(
            url,
            params=params,
            response_format="text",
            cache_namespace=cache_namespace,
            cache_params=cache_params if cache_params is not None else params,
            context=context,
        )
