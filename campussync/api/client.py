"""HTTP client for the campus API (papers, filters, notification digests)."""

from __future__ import annotations

import asyncio
from typing import Any, Mapping
from urllib.parse import quote

import requests
from loguru import logger

from campussync.config.api import ApiConfig

from campussync.errors import ApiError, NetworkError, ServerError

USER_AGENT = "campussync/0.1"

ENDPOINTS: dict[str, str] = {
    "papers": "/papers",
    "filters": "/filters",
    "stats": "/stats",
    "subjects": "/subjects",
    "health": "/health",
    "notifications_recent": "/notifications/recent",
    "notifications_categories": "/notifications/categories",
    "notifications_digest": "/notifications/digest",
    "notifications_digest_full": "/notifications/digest/full",
    "jobs": "/jobs",
}


def _clean_params(params: Mapping[str, Any] | None) -> dict[str, Any]:
    if not params:
        return {}
    return {key: value for key, value in params.items() if value is not None and value != ""}


def _unwrap(payload: Any) -> Any:
    """Return ``payload["data"]`` when the body uses a data envelope."""
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        return payload["data"]
    return payload


class CampusApiClient:
    """Thin async facade over a blocking :class:`requests.Session`.

    Every request runs in a worker thread with a fixed timeout. Transport
    failures are retried with exponential backoff; server-reported failures
    are raised immediately as :class:`ServerError`.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:5001/api/v1",
        *,
        timeout: float = 25.0,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        page_limit: int = 50,
        max_pages: int = 100,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.page_limit = page_limit
        self.max_pages = max_pages
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})

    @classmethod
    def from_config(cls, config: ApiConfig) -> "CampusApiClient":
        return cls(
            config.base_url,
            timeout=config.timeout_seconds,
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
            page_limit=config.page_limit,
            max_pages=config.max_pages,
        )

    # ------------------------------------------------------------------
    # Core request plumbing
    # ------------------------------------------------------------------
    async def request(
        self,
        endpoint: str,
        params: Mapping[str, Any] | None = None,
        *,
        timeout: float | None = None,
        retries: int | None = None,
    ) -> dict[str, Any]:
        """GET ``endpoint`` and return the decoded JSON body."""

        url = f"{self.base_url}{endpoint}"
        query = _clean_params(params)
        attempts = (self.max_retries if retries is None else retries) + 1
        last_error = NetworkError(f"No attempts made for {endpoint}")

        for attempt in range(attempts):
            try:
                return await asyncio.to_thread(self._get_json, url, query, timeout or self.timeout)
            except NetworkError as exc:
                last_error = exc
                logger.warning(
                    "Request to {} failed (attempt {}/{}): {}",
                    endpoint,
                    attempt + 1,
                    attempts,
                    exc,
                )
                if attempt < attempts - 1 and self.retry_delay:
                    await asyncio.sleep(self.retry_delay * (2**attempt))

        raise last_error

    def _get_json(self, url: str, params: dict[str, Any], timeout: float) -> dict[str, Any]:
        try:
            response = self.session.get(url, params=params, timeout=timeout)
        except requests.Timeout as exc:
            raise NetworkError(f"Request timed out after {timeout}s") from exc
        except requests.RequestException as exc:
            raise NetworkError(str(exc)) from exc

        if not response.ok:
            body = response.text or ""
            raise ServerError(
                f"API Error {response.status_code}: {body[:200]}",
                status_code=response.status_code,
                body=body[:200],
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise ServerError("API returned an invalid JSON body", status_code=response.status_code) from exc

        if isinstance(payload, dict) and payload.get("success") is False:
            raise ServerError(payload.get("message") or "API returned an error", status_code=response.status_code)
        if not isinstance(payload, dict):
            return {"data": payload}
        return payload

    # ------------------------------------------------------------------
    # Papers
    # ------------------------------------------------------------------
    async def fetch_papers(self, **options: Any) -> dict[str, Any]:
        """Fetch one page of papers with server-side search/filter params."""
        response = await self.request(ENDPOINTS["papers"], options)
        meta = response.get("meta") or {}
        return {
            "data": response.get("data") or [],
            "pagination": meta.get("pagination") or {},
        }

    async def fetch_all_papers(self) -> list[dict[str, Any]]:
        """Walk the paginated papers endpoint and flatten every page.

        Stops when the server reports no more pages, returns an empty page, or
        the ``max_pages`` safety cap is reached.
        """

        records: list[dict[str, Any]] = []
        page = 1
        while page <= self.max_pages:
            response = await self.request(
                ENDPOINTS["papers"],
                {"page": page, "limit": self.page_limit, "sortBy": "year", "sortOrder": "desc"},
            )
            data = response.get("data") or []
            records.extend(data)
            pagination = (response.get("meta") or {}).get("pagination") or {}
            if pagination.get("hasMore") is not True or not data:
                break
            page += 1
        else:
            logger.warning("Stopped paging papers at the {}-page cap", self.max_pages)

        logger.info("Fetched {} papers across {} page(s)", len(records), min(page, self.max_pages))
        return records

    async def fetch_paper_by_id(self, paper_id: str) -> dict[str, Any] | None:
        response = await self.request(f"{ENDPOINTS['papers']}/{quote(paper_id, safe='')}")
        return response.get("data") or None

    async def fetch_filters(self) -> dict[str, Any]:
        response = await self.request(ENDPOINTS["filters"])
        return response.get("data") or {}

    async def fetch_stats(self) -> dict[str, Any]:
        response = await self.request(ENDPOINTS["stats"])
        return response.get("data") or {}

    async def fetch_subjects(self, **options: Any) -> list[dict[str, Any]]:
        response = await self.request(ENDPOINTS["subjects"], options)
        return response.get("data") or []

    # ------------------------------------------------------------------
    # Notifications & jobs
    # ------------------------------------------------------------------
    async def fetch_notifications(self, **options: Any) -> dict[str, Any]:
        response = await self.request(ENDPOINTS["notifications_recent"], options)
        meta = response.get("meta") or {}
        return {
            "data": response.get("data") or [],
            "total": response.get("total") or 0,
            "days": response.get("days") or 30,
            "lastFetched": meta.get("lastFetched"),
            "hash": meta.get("hash"),
            "hasUpdates": meta.get("hasUpdates"),
        }

    async def fetch_notification_categories(self) -> list[Any]:
        response = await self.request(ENDPOINTS["notifications_categories"])
        return response.get("data") or []

    async def fetch_digest(self, *, timeout: float | None = None) -> dict[str, Any]:
        """Fetch the change-feed fingerprint. No retries; the next poll retries."""
        response = await self.request(ENDPOINTS["notifications_digest"], timeout=timeout, retries=0)
        return _unwrap(response)

    async def fetch_digest_full(self, *, timeout: float | None = None) -> list[dict[str, Any]]:
        """Fetch the full alert feed backing the digest."""
        response = await self.request(ENDPOINTS["notifications_digest_full"], timeout=timeout, retries=0)
        items = _unwrap(response).get("items")
        if items is None:
            return []
        if not isinstance(items, list):
            raise ServerError("Digest feed 'items' is not a list")
        return items

    async def fetch_jobs(self, **params: Any) -> dict[str, Any]:
        return await self.request(ENDPOINTS["jobs"], params)

    async def check_health(self) -> dict[str, Any]:
        return await self.request(ENDPOINTS["health"])

    def close(self) -> None:
        self.session.close()


__all__ = ["CampusApiClient", "ENDPOINTS", "USER_AGENT", "ApiError"]
