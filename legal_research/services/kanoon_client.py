import time
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, NamedTuple, Optional, Tuple

import httpx

from legal_research.core.config import Settings
from legal_research.core.errors import (
    AuthenticationError,
    KanoonError,
    NetworkError,
    RateLimitError,
    UpstreamHTTPError,
    UpstreamTimeoutError,
)
from legal_research.services.cache import ResponseCache, make_cache_key

logger = logging.getLogger(__name__)

USER_AGENT = "IndianLegalResearch/1.0 Legal Research Assistant"


class Settled(NamedTuple):
    """Outcome of one call in a concurrent batch: a value or the error it raised."""
    value: Any
    error: Optional[BaseException]

    @property
    def ok(self) -> bool:
        return self.error is None


async def gather_settled(awaitables: Iterable[Awaitable[Any]]) -> List[Settled]:
    """Run awaitables concurrently; one failure never aborts the others."""
    results = await asyncio.gather(*awaitables, return_exceptions=True)
    settled: List[Settled] = []
    for r in results:
        if isinstance(r, Exception):
            settled.append(Settled(None, r))
        elif isinstance(r, BaseException):
            raise r
        else:
            settled.append(Settled(r, None))
    return settled


def _clean_params(params: Optional[Dict[str, Any]]) -> Dict[str, str]:
    return {k: str(v) for k, v in (params or {}).items() if v is not None and v != ""}


class IndianKanoonClient:
    """Async client for the four IndianKanoon API endpoints.

    All calls are form-encoded POSTs carrying `Authorization: Token <key>`.
    Responses are cached per (endpoint, params); cache misses go through a
    single pacing lane that keeps a minimum gap between physical requests,
    then through the retry policy in `_post`.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
        cache: Optional[ResponseCache] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        backoff_base: float = 1.0,
    ):
        self.base_url = settings.base_url.rstrip("/")
        self.max_retries = settings.max_retries
        self.request_delay = settings.request_delay_ms / 1000.0
        self.backoff_base = backoff_base
        self.cache = cache if cache is not None else ResponseCache(
            timeout_seconds=settings.cache_timeout * 60,
            enabled=settings.enable_caching,
        )
        self._api_key = settings.indian_kanoon_api_key.get_secret_value()
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.http_timeout),
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=5),
            headers={"User-Agent": USER_AGENT},
        )
        self._sleep = sleep
        self._clock = clock
        self._lane = asyncio.Lock()
        self._last_request_at: Optional[float] = None

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Token {self._api_key}",
            "Accept": "application/json",
        }

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    def clear_cache(self) -> None:
        self.cache.clear()

    async def _pace(self) -> None:
        async with self._lane:
            if self._last_request_at is not None and self.request_delay > 0:
                wait = self._last_request_at + self.request_delay - self._clock()
                if wait > 0:
                    await self._sleep(wait)
            self._last_request_at = self._clock()

    async def _post(self, endpoint: str, params: Dict[str, str]) -> Any:
        url = f"{self.base_url}{endpoint}"
        last_error: Optional[KanoonError] = None

        # One initial attempt plus up to `max_retries` retries.
        attempts = self.max_retries + 1
        for attempt in range(attempts):
            await self._pace()
            try:
                resp = await self._http.post(url, data=params or None, headers=self._headers)
            except httpx.TimeoutException:
                last_error = UpstreamTimeoutError(f"Request to {endpoint} timed out")
                logger.warning(f"[KANOON] Timeout on {endpoint} (attempt {attempt + 1}/{attempts})")
            except httpx.RequestError as e:
                last_error = NetworkError(f"Network failure calling {endpoint}: {e}")
                logger.warning(f"[KANOON] Network error on {endpoint} (attempt {attempt + 1}/{attempts}): {e}")
            else:
                if resp.status_code == 429:
                    last_error = RateLimitError("Rate limit exceeded. Please try again later.", 429)
                    logger.warning(f"[KANOON] Rate limited on {endpoint} (attempt {attempt + 1}/{attempts})")
                    if attempt < self.max_retries:
                        await self._sleep(self.backoff_base * (2 ** attempt))
                    continue
                if resp.status_code == 401:
                    raise AuthenticationError("Invalid API key", 401)
                if not resp.is_success:
                    raise UpstreamHTTPError(
                        f"API request failed: {resp.status_code} {resp.reason_phrase}", resp.status_code
                    )
                try:
                    return resp.json()
                except ValueError as e:
                    raise UpstreamHTTPError(f"Invalid JSON from {endpoint}", resp.status_code) from e

            if attempt < self.max_retries:
                await self._sleep(self.backoff_base * (attempt + 1))

        logger.error(f"[KANOON] Giving up on {endpoint} after {attempts} attempts")
        raise last_error

    async def _request(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        clean = _clean_params(params)
        key = make_cache_key(endpoint, clean)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        logger.info(f"[KANOON] POST {endpoint}")
        data = await self._post(endpoint, clean)
        self.cache.set(key, data)
        return data

    async def search(self, query: str, page: int = 0, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Search endpoint. `filters` may carry doctypes, fromdate, todate, title, cite, author, bench, maxcites."""
        params: Dict[str, Any] = {"formInput": query, "pagenum": page}
        params.update(filters or {})
        return await self._request("/search/", params)

    async def get_document(self, doc_id: str, maxcites: Optional[int] = None,
                           maxcitedby: Optional[int] = None) -> Dict[str, Any]:
        return await self._request(
            f"/doc/{doc_id}/", {"maxcites": maxcites or None, "maxcitedby": maxcitedby or None}
        )

    async def get_document_fragments(self, doc_id: str, query: str) -> Dict[str, Any]:
        return await self._request(f"/docfragment/{doc_id}/", {"formInput": query})

    async def get_document_metadata(self, doc_id: str) -> Dict[str, Any]:
        return await self._request(f"/docmeta/{doc_id}/")

    async def search_multiple_variants(
        self, variants: List[str], filters: Optional[Dict[str, Any]] = None
    ) -> Tuple[List[Dict[str, Any]], List[Settled]]:
        """Search every variant concurrently; merge docs in variant order, first `tid` wins."""
        unique = list(dict.fromkeys(v for v in variants if v and v.strip()))
        settled = await gather_settled(self.search(v, 0, filters) for v in unique)
        return merge_documents(s.value for s in settled if s.ok), settled


def merge_documents(responses: Iterable[Optional[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    docs: List[Dict[str, Any]] = []
    seen = set()
    for resp in responses:
        for doc in (resp or {}).get("docs") or []:
            tid = doc.get("tid")
            if tid is None or tid in seen:
                continue
            seen.add(tid)
            docs.append(doc)
    return docs


# Shared client for the running app, created on startup.
KANOON_CLIENT: Optional[IndianKanoonClient] = None


async def init_kanoon_service(settings: Settings) -> IndianKanoonClient:
    global KANOON_CLIENT
    if KANOON_CLIENT is None:
        KANOON_CLIENT = IndianKanoonClient(settings)
        logger.info("[KANOON] HTTP client initialized")
    return KANOON_CLIENT


async def shutdown_kanoon_service() -> None:
    global KANOON_CLIENT
    if KANOON_CLIENT:
        await KANOON_CLIENT.aclose()
        KANOON_CLIENT = None
        logger.info("[KANOON] HTTP client closed")
