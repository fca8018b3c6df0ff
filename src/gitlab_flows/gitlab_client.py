"""GitLab REST API client with header-driven pagination."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests

from .errors import DecodeError, TransportError
from .models import ApiResponse

logger = logging.getLogger(__name__)


class GitlabClient:
    """Small client for the GitLab v4 resources used by the reporting flows."""

    _TOKEN_HEADER = "PRIVATE-TOKEN"
    _NEXT_PAGE_HEADER = "X-Next-Page"

    def __init__(
        self,
        base_url: str,
        token: Optional[str],
        per_page: int = 100,
        timeout_seconds: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Initialize an authenticated GitLab API client.

        Args:
            base_url: Instance root such as ``https://gitlab.example.com``.
            token: Personal access token; an empty token sends no auth header.
            per_page: Page size used for every ``paginate`` call.
            timeout_seconds: Optional per-request timeout. ``None`` waits forever.
            session: Pre-built ``requests.Session`` (mainly for tests).
        """
        self._base_url = base_url.rstrip("/")
        self._per_page = per_page
        self._timeout_seconds = timeout_seconds

        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})
        if token:
            self._session.headers[self._TOKEN_HEADER] = token

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def per_page(self) -> int:
        return self._per_page

    def _build_url(self, path: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """Join ``path`` to the base URL and merge ``params`` into its query string.

        Parameters already present on ``path`` are kept; a key supplied again
        in ``params`` replaces the earlier value instead of being repeated.
        """
        parts = urlsplit(f"{self._base_url}{path}")
        query: Dict[str, str] = dict(parse_qsl(parts.query, keep_blank_values=True))
        for key, value in (params or {}).items():
            query[str(key)] = self._format_param(value)
        return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))

    @staticmethod
    def _format_param(value: Any) -> str:
        if isinstance(value, bool):
            return str(value).lower()
        return str(value)

    @staticmethod
    def _parse_body(text: str, content_type: Optional[str]) -> Any:
        """Decode a response body according to its declared content type.

        Raises:
            DecodeError: If the response claims JSON but the body is not valid JSON.
        """
        if not text:
            return None
        if not content_type or "application/json" not in content_type:
            return text
        try:
            return json.loads(text)
        except ValueError as exc:
            raise DecodeError(f"Failed to parse JSON response: {text!r}", body=text) from exc

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[str] = None,
    ) -> ApiResponse:
        """Execute one HTTP request against the GitLab API.

        Raises:
            TransportError: If the request cannot be sent or returns a non-2xx status.
            DecodeError: If a JSON response body is malformed.
        """
        url = self._build_url(path, params)
        verb = method.upper()
        try:
            response = self._session.request(
                verb,
                url,
                headers=dict(headers or {}),
                data=body,
                timeout=self._timeout_seconds,
            )
        except requests.RequestException as exc:
            raise TransportError(f"GitLab request failed: {verb} {path}: {exc}", url=url) from exc

        status_code = response.status_code
        if not 200 <= status_code < 300:
            raise TransportError(
                f"GitLab request failed: {status_code} {response.text}",
                status_code=status_code,
                body=response.text,
                url=url,
            )

        return ApiResponse(
            data=self._parse_body(response.text, response.headers.get("Content-Type")),
            headers=response.headers,
        )

    def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """GET ``path`` and return the decoded body."""
        return self.request("GET", path, params=params).data

    def paginate(self, path: str, params: Optional[Mapping[str, Any]] = None) -> List[Any]:
        """Collect every page of a list endpoint.

        Pages are requested with ``page``/``per_page`` merged into ``params``
        until the ``X-Next-Page`` header is missing or empty. Array bodies are
        concatenated; any other non-empty body is appended as one element.
        """
        results: List[Any] = []
        page = 1
        pages_fetched = 0

        while True:
            page_params: Dict[str, Any] = dict(params or {})
            page_params.update({"page": page, "per_page": self._per_page})
            response = self.request("GET", path, params=page_params)
            pages_fetched += 1

            data = response.data
            if isinstance(data, list):
                results.extend(data)
            elif data is not None:
                results.append(data)

            next_page = response.headers.get(self._NEXT_PAGE_HEADER)
            if not next_page:
                break

            page = self._next_page_number(next_page)

        logger.debug("Paginated GitLab resource", extra={"path": path, "items": len(results), "pages": pages_fetched})
        return results

    @staticmethod
    def _next_page_number(value: str) -> int:
        try:
            page = int(value)
        except ValueError:
            return 1
        return page if page > 0 else 1
