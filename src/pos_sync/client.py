"""POS REST API client with cursor pagination.

Every collection endpoint returns a JSON body shaped like
``{"<resource>": [...], "cursor": "..."}``. ``PosApiClient.fetch_all``
follows the cursor until the API stops returning one and concatenates the
pages in order. A failure on any page fails the whole fetch.

Environment (optional):
  POS_HTTP_TIMEOUT=60   # seconds per request
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from pos_sync.exceptions import ApiAuthorizationError, ApiRequestError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.loyverse.com/v1.0"
MAX_PAGE_SIZE = 250
DEFAULT_TIMEOUT = 60.0

QueryParams = Mapping[str, Any]


def make_session(timeout: float = DEFAULT_TIMEOUT, retries: int = 0) -> requests.Session:
    """Create a requests Session with a default timeout.

    Transport retries are off by default: the pipeline orchestrator owns the
    retry policy, and a 401 must surface immediately.

    Args:
        timeout: Default timeout in seconds for all requests.
        retries: Number of transport-level retry attempts.

    Returns:
        Configured requests.Session object.
    """
    s = requests.Session()
    s.headers.update({"Accept": "application/json", "User-Agent": "pos-sync"})
    retry = Retry(
        total=retries,
        connect=retries,
        read=retries,
        status=retries,
        backoff_factor=0.8,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset({"GET"}),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    s.mount("http://", adapter)
    s.mount("https://", adapter)
    orig_request = s.request

    def timed_request(method: str, url: str, **kwargs: Any) -> requests.Response:
        kwargs.setdefault("timeout", timeout)
        return orig_request(method, url, **kwargs)

    s.request = timed_request  # type: ignore[method-assign,assignment]
    return s


def ensure_ok(resp: requests.Response, url: str) -> None:
    """Raise the matching API error if the response is not 2xx.

    Raises:
        ApiAuthorizationError: On HTTP 401.
        ApiRequestError: On any other non-2xx status.
    """
    if resp.status_code == 401:
        raise ApiAuthorizationError(resp.reason or "Unauthorized", url)
    if not (200 <= resp.status_code < 300):
        raise ApiRequestError(resp.status_code, resp.reason or "", url)


class PosApiClient:
    """Thin client for the POS REST API.

    Args:
        token: Bearer token.
        base_url: API root, e.g. ``https://api.loyverse.com/v1.0``.
        session: Optional pre-built session (tests pass a fake).
        page_size: Requested page size, capped at the provider maximum.
        timeout: Default request timeout when the session is built here.
    """

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        session: requests.Session | None = None,
        page_size: int = MAX_PAGE_SIZE,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else make_session(timeout)
        self.page_size = min(page_size, MAX_PAGE_SIZE)
        self._headers = {"Authorization": f"Bearer {token}"}

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def get(self, path: str, params: QueryParams | None = None) -> dict[str, Any]:
        """Issue one GET and return the decoded JSON body.

        Network errors and unreadable bodies become ApiRequestError with
        ``status=None`` so callers see a single transient failure type.
        """
        url = self.url_for(path)
        try:
            resp = self.session.get(url, params=dict(params or {}), headers=self._headers)
        except requests.RequestException as e:
            raise ApiRequestError(None, str(e), url) from e

        logger.debug("GET %s params=%s -> %s", url, params, resp.status_code)
        ensure_ok(resp, url)

        try:
            body = resp.json()
        except ValueError as e:
            raise ApiRequestError(resp.status_code, f"invalid JSON body: {e}", url) from e
        if not isinstance(body, dict):
            raise ApiRequestError(resp.status_code, "unexpected JSON body", url)
        return body

    def iter_pages(
        self,
        path: str,
        resource_key: str,
        params: QueryParams | None = None,
    ) -> Iterator[list[dict[str, Any]]]:
        """Yield each page's resource array, following the cursor."""
        cursor: str | None = None
        page = 0
        while True:
            page += 1
            query: dict[str, Any] = dict(params or {})
            query["limit"] = self.page_size
            if cursor:
                query["cursor"] = cursor

            body = self.get(path, query)
            records = body.get(resource_key)
            if records is None:
                logger.warning("Page %d of %s has no '%s' array", page, path, resource_key)
                records = []
            logger.debug("Page %d of %s: %d %s", page, path, len(records), resource_key)
            yield records

            cursor = body.get("cursor")
            if not cursor:
                break

    def fetch_all(
        self,
        path: str,
        resource_key: str | None = None,
        params: QueryParams | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch every page of a collection.

        Args:
            path: Resource path relative to the base URL, e.g. ``"receipts"``.
            resource_key: Key of the array in the body. Defaults to ``path``.
            params: Extra query filters (``created_at_min``, ``store_id``...).

        Returns:
            Concatenated records from all pages, in API order.

        Raises:
            ApiAuthorizationError: If any page returns 401.
            ApiRequestError: If any page fails otherwise.
        """
        key = resource_key or path.strip("/")
        records: list[dict[str, Any]] = []
        pages = 0
        for page in self.iter_pages(path, key, params):
            records.extend(page)
            pages += 1
        logger.info("Fetched %d %s in %d page(s)", len(records), key, pages)
        return records
