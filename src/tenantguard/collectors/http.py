"""
Bearer-token JSON HTTP client for TenantGuard.

Wraps urllib.request for Microsoft Graph reads and the write calls issued
by the deployment dispatcher. HTTP error statuses are returned to the
caller as HttpResponse objects; only transport failures raise.
"""

from __future__ import annotations

import json
import logging
import socket
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any

from tenantguard.config.settings import DEFAULT_GRAPH_BASE
from tenantguard.errors import NetworkError, RemoteCallError

logger = logging.getLogger(__name__)

NEXT_LINK_KEY = "@odata.nextLink"


@dataclass
class HttpResponse:
    """
    Response from one HTTP request.

    Attributes:
        status: HTTP status code
        data: Parsed JSON body, raw text when not JSON, or None when empty
        headers: Response headers
    """

    status: int
    data: Any = None
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def error_code(self) -> str:
        """The ``error.code`` field of a Graph error body."""
        if isinstance(self.data, dict) and isinstance(self.data.get("error"), dict):
            return str(self.data["error"].get("code") or "")
        return ""

    @property
    def error_message(self) -> str:
        """The ``error.message`` field of an error body, or the raw body."""
        if isinstance(self.data, dict):
            error = self.data.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if isinstance(error, str):
                return error
            return json.dumps(self.data)
        if self.data:
            return str(self.data)
        return f"HTTP {self.status}"


@dataclass
class PagedResult:
    """Items gathered across pages of a list source."""

    items: list[Any]
    pages: int
    has_more: bool


def _parse_body(raw: bytes) -> Any:
    if not raw:
        return None
    text = raw.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def _is_timeout(error: BaseException) -> bool:
    if isinstance(error, (socket.timeout, TimeoutError)):
        return True
    reason = getattr(error, "reason", None)
    return isinstance(reason, (socket.timeout, TimeoutError))


class GraphClient:
    """
    JSON-over-HTTPS client with bearer authentication.

    Relative paths are resolved against ``base_url``; absolute URLs (such
    as ``@odata.nextLink`` cursors or InvokeCommand endpoints) are used
    as-is. Every request is bounded by ``timeout`` seconds.
    """

    def __init__(self, base_url: str = DEFAULT_GRAPH_BASE, timeout: float = 15.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def build_url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        if not path.startswith("/"):
            path = "/" + path
        return self.base_url + path

    def request(
        self,
        method: str,
        path: str,
        token: str,
        body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> HttpResponse:
        """
        Send one request.

        Args:
            method: HTTP method
            path: Path relative to base_url, or an absolute URL
            token: Bearer token
            body: JSON-serializable request body
            headers: Extra headers, overriding the defaults

        Returns:
            HttpResponse for any HTTP status

        Raises:
            NetworkError: On timeout or transport failure
        """
        url = self.build_url(path)
        request_headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        if headers:
            request_headers.update(headers)

        data = json.dumps(body).encode("utf-8") if body is not None else None

        request = urllib.request.Request(
            url,
            data=data,
            headers=request_headers,
            method=method.upper(),
        )

        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                return HttpResponse(
                    status=response.status,
                    data=_parse_body(response.read()),
                    headers=dict(response.headers.items()),
                )

        except urllib.error.HTTPError as e:
            try:
                raw = e.read()
            except OSError:
                raw = b""
            return HttpResponse(
                status=e.code,
                data=_parse_body(raw),
                headers=dict(e.headers.items()) if e.headers else {},
            )

        except (urllib.error.URLError, OSError) as e:
            if _is_timeout(e):
                raise NetworkError(
                    f"Request timed out after {self.timeout:g}s"
                ) from e
            reason = getattr(e, "reason", e)
            raise NetworkError(f"Network error: {reason}") from e

    def get(self, path: str, token: str) -> Any:
        """
        GET a JSON document.

        Raises:
            RemoteCallError: On a non-2xx status
            NetworkError: On timeout or transport failure
        """
        response = self.request(
            "GET", path, token, headers={"ConsistencyLevel": "eventual"}
        )
        if not response.ok:
            raise RemoteCallError(
                response.status, response.error_message, response.data
            )
        return response.data

    def get_paged(self, path: str, token: str, max_pages: int) -> PagedResult:
        """
        GET a list resource, following ``@odata.nextLink`` cursors.

        Args:
            path: First page path
            token: Bearer token
            max_pages: Page cap

        Returns:
            PagedResult with ``has_more`` set when the cap truncated results
        """
        items: list[Any] = []
        pages = 0
        next_url: str | None = path

        while next_url and pages < max_pages:
            page = self.get(next_url, token)
            pages += 1
            if isinstance(page, dict):
                items.extend(page.get("value") or [])
                next_url = page.get(NEXT_LINK_KEY)
            else:
                next_url = None

        if next_url:
            logger.debug(f"Page cap {max_pages} reached for {path}")

        return PagedResult(items=items, pages=pages, has_more=bool(next_url))
