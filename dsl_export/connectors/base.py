"""
Shared requests plumbing for the Dify API clients.
"""
import logging
from typing import Any, Callable, Dict, Iterator, List, Optional

import requests

from dsl_export.core.exceptions import AuthenticationError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_PAGE_LIMIT = 100


class ApiClient:
    """Base JSON-over-HTTP client with error mapping."""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        page_limit: int = DEFAULT_PAGE_LIMIT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.page_limit = page_limit
        # A caller-supplied session is left open for the caller
        self._owns_session = session is None
        self.session = session or requests.Session()

    def close(self):
        """Close the HTTP session if this client created it."""
        if self._owns_session:
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _headers(self) -> Dict[str, str]:
        return {}

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET ``path`` and return the decoded JSON body."""
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(
                url, params=params, headers=self._headers(), timeout=self.timeout
            )
        except requests.RequestException as e:
            raise TransportError(f"GET {url} failed: {e}") from e

        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"GET {url} rejected with HTTP {response.status_code}"
            )
        if not 200 <= response.status_code < 300:
            raise TransportError(
                f"GET {url} returned HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"GET {url} returned invalid JSON") from e

    def _paginate(self, path: str, parse: Callable[[Dict[str, Any]], Any]) -> List[Any]:
        """Collect ``data`` items from every page until ``has_more`` is false."""
        return list(self._iter_pages(path, parse))

    def _iter_pages(self, path: str, parse: Callable[[Dict[str, Any]], Any]) -> Iterator[Any]:
        page = 1
        while True:
            payload = self._get(path, params={"page": page, "limit": self.page_limit})
            if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
                raise TransportError(f"Unexpected payload from {path}: missing 'data' list")

            for item in payload["data"]:
                yield parse(item)

            if not payload.get("has_more") or not payload["data"]:
                break
            page += 1
            logger.debug(f"Fetching {path} page {page}")
