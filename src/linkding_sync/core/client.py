import logging
import threading
import time
from typing import Any
from urllib.parse import urljoin

import requests

from ..config import Config
from ..exceptions import (
    ConfigurationError,
    RemoteNotFoundError,
    TransientAPIError,
)

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


class LinkdingClient:
    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()
        self._write_lock = threading.Lock()
        self._last_write = 0.0
        self.api_url = self._get_api_url()

    @property
    def session(self) -> requests.Session:
        """Accessor for the current thread's session."""
        return self._get_session()

    def _get_api_url(self) -> str:
        return f"{self.config.linkding_url.rstrip('/')}/api/"

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers["Authorization"] = f"Token {self.config.token}"
        session.headers["Accept"] = "application/json"
        session.verify = not self.config.insecure
        return session

    def _throttle(self) -> None:
        """Keep at least ``write_delay`` seconds between write calls."""
        delay = self.config.write_delay
        if delay <= 0:
            return
        wait = self._last_write + delay - time.monotonic()
        if wait > 0:
            time.sleep(wait)

    def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        """
        Make a request to the linkding REST API and decode the JSON body.

        Raises:
            ConfigurationError: If the server rejects the API token.
            RemoteNotFoundError: If the resource does not exist.
            TransientAPIError: On network failure, other HTTP errors, or a
                malformed response body.
        """
        session = self._get_session()
        try:
            response = session.request(
                method,
                url,
                params=params,
                json=payload,
                timeout=(10, 60),
            )
        except requests.RequestException as exc:
            raise TransientAPIError(
                f"{method} {url} failed: {exc}"
            ) from exc

        if response.status_code in (401, 403):
            raise ConfigurationError(
                f"linkding rejected the API token (HTTP {response.status_code}). "
                "Check LINKDING_TOKEN."
            )
        if response.status_code == 404:
            raise RemoteNotFoundError(f"{method} {url}: not found")
        if not response.ok:
            body = response.text[:200] if response.text else ""
            raise TransientAPIError(
                f"API {response.status_code}: {response.reason} {body}".strip(),
                status_code=response.status_code,
            )

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise TransientAPIError(
                f"{method} {url} returned malformed JSON"
            ) from exc

    def _write(
        self,
        method: str,
        url: str,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        """Issue a write call, serialised and rate limited."""
        with self._write_lock:
            self._throttle()
            try:
                return self._request(method, url, payload=payload)
            finally:
                self._last_write = time.monotonic()

    def _paginate(
        self, path: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Follow ``next`` links and return all results as one list."""
        query = {"limit": PAGE_SIZE}
        if params:
            query.update(params)
        url: str | None = urljoin(self.api_url, path)
        results: list[dict[str, Any]] = []
        first = True
        while url:
            data = self._request(
                "GET", url, params=query if first else None
            )
            first = False
            if not isinstance(data, dict) or "results" not in data:
                raise TransientAPIError(
                    f"Unexpected list response from {url}"
                )
            results.extend(data["results"])
            url = data.get("next")
        return results

    def validate_connection(self) -> int:
        """
        Validate URL and token with a one-item bookmark query.

        Returns:
            Total number of bookmarks reported by the server.
        """
        data = self._request(
            "GET",
            urljoin(self.api_url, "bookmarks/"),
            params={"limit": 1},
        )
        if not isinstance(data, dict):
            raise TransientAPIError("Unexpected response from bookmarks endpoint")
        return int(data.get("count", 0))

    def list_bookmarks(self, query: str | None = None) -> list[dict[str, Any]]:
        """
        List all bookmarks, optionally filtered by a linkding search query.

        Pagination is transparent: the caller receives one flat list.
        """
        params = {"q": query} if query else None
        return self._paginate("bookmarks/", params)

    def list_bookmarks_by_tag(self, tag: str) -> list[dict[str, Any]]:
        """
        List bookmarks carrying exactly *tag*.

        The server-side ``#tag`` search narrows the result set; the exact
        membership check happens here.
        """
        bookmarks = self.list_bookmarks(f"#{tag}")
        return [
            bm for bm in bookmarks if tag in (bm.get("tag_names") or [])
        ]

    def check_bookmark(self, url: str) -> dict[str, Any] | None:
        """
        Look up the bookmark stored for *url*, whatever its tags.

        Returns:
            The bookmark, or ``None`` if linkding has none for this URL.
        """
        data = self._request(
            "GET",
            urljoin(self.api_url, "bookmarks/check/"),
            params={"url": url},
        )
        if not isinstance(data, dict):
            raise TransientAPIError("Unexpected response from bookmark check")
        return data.get("bookmark")

    def create_bookmark(
        self, url: str, title: str, tag_names: list[str]
    ) -> dict[str, Any]:
        """
        Create a bookmark.

        linkding treats a POST for a URL it already stores as an update and
        replaces that bookmark's tags; use ``check_bookmark`` first.
        Never retried here: after an ambiguous failure the bookmark may
        exist, and the next run's URL lookup links it instead.
        """
        payload = {"url": url, "title": title, "tag_names": tag_names}
        logger.debug("Creating remote bookmark %s", url)
        return self._write(
            "POST", urljoin(self.api_url, "bookmarks/"), payload
        )

    def update_bookmark(
        self,
        bookmark_id: int,
        *,
        url: str | None = None,
        title: str | None = None,
        tag_names: list[str] | None = None,
    ) -> dict[str, Any]:
        """
        Patch the given fields of a bookmark.

        Raises:
            ValueError: If no field is given.
            RemoteNotFoundError: If the bookmark no longer exists.
        """
        payload: dict[str, Any] = {}
        if url is not None:
            payload["url"] = url
        if title is not None:
            payload["title"] = title
        if tag_names is not None:
            payload["tag_names"] = tag_names
        if not payload:
            raise ValueError("update_bookmark needs at least one field")
        logger.debug(
            "Updating remote bookmark %s: %s", bookmark_id, sorted(payload)
        )
        return self._write(
            "PATCH",
            urljoin(self.api_url, f"bookmarks/{bookmark_id}/"),
            payload,
        )

    def delete_bookmark(self, bookmark_id: int) -> None:
        """
        Delete a bookmark.

        Raises:
            RemoteNotFoundError: If the bookmark no longer exists.
        """
        logger.debug("Deleting remote bookmark %s", bookmark_id)
        self._write(
            "DELETE", urljoin(self.api_url, f"bookmarks/{bookmark_id}/")
        )
