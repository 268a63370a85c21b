"""
HTTP key-value backend.

Talks to a remote replicated key-value service over HTTPS with three
JSON endpoints::

    POST {base_url}/get     {"keys": [...]}   -> {"items": {...}}
    POST {base_url}/set     {"items": {...}}  -> 2xx
    POST {base_url}/remove  {"keys": [...]}   -> 2xx

Failures are surfaced as BackendError; nothing is retried here.
"""

from typing import Any, Iterable, Mapping, Optional
from urllib.parse import urlparse

import httpx

from .exceptions import BackendError

# Status codes a quota-enforcing service uses to refuse a write
QUOTA_STATUS_CODES = frozenset({413, 507})


class HttpBackend:
    """
    Async HTTP client for a remote key-value service.

    Use as an async context manager, or pass an existing ``httpx.AsyncClient``
    (for example one built on ``httpx.MockTransport`` in tests).
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        allow_insecure: bool = False,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize the backend.

        Args:
            base_url: Service root, e.g. ``https://sync.example.net/v1/store``
            token: Optional bearer token sent with every request
            timeout: Request timeout in seconds
            allow_insecure: Permit plain-HTTP service URLs
            client: Optional pre-built client; not closed by this object

        Raises:
            BackendError: If the URL is not HTTPS and insecure URLs are not allowed
        """
        self._validate_base_url(base_url, allow_insecure)
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "HttpBackend":
        """Async context manager entry."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                verify=True,
                timeout=httpx.Timeout(self._timeout),
            )
            self._owns_client = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def _validate_base_url(base_url: str, allow_insecure: bool) -> None:
        parsed = urlparse(base_url)
        if parsed.scheme not in ("https", "http") or not parsed.netloc:
            raise BackendError(
                code="invalid_url",
                message=f"Backend URL is not an absolute HTTP(S) URL: {base_url}",
                details={"url": base_url},
            )
        if parsed.scheme != "https" and not allow_insecure:
            raise BackendError(
                code="tls_required",
                message=f"Backend URL must use HTTPS: {base_url}",
                details={"url": base_url, "scheme": parsed.scheme},
            )

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _post(self, operation: str, payload: dict) -> httpx.Response:
        if self._client is None:
            raise BackendError(
                code="not_connected",
                message="HttpBackend used outside its async context",
                details={"operation": operation},
            )

        url = f"{self._base_url}/{operation}"
        try:
            response = await self._client.post(
                url,
                json=payload,
                headers=self._headers(),
                timeout=self._timeout,
            )
        except httpx.TimeoutException as e:
            raise BackendError(
                code="timeout",
                message=f"Backend {operation} timed out: {e}",
                details={"url": url},
            )
        except httpx.HTTPError as e:
            raise BackendError(
                code="network_error",
                message=f"Backend {operation} failed: {e}",
                details={"url": url},
            )

        if response.status_code in QUOTA_STATUS_CODES:
            raise BackendError(
                code="quota_exceeded",
                message=f"Backend refused {operation}: quota exceeded",
                details={"url": url, "status_code": response.status_code},
            )
        if not response.is_success:
            raise BackendError(
                code="http_error",
                message=f"Backend {operation} returned HTTP {response.status_code}",
                details={"url": url, "status_code": response.status_code},
            )

        return response

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        keys = list(keys)
        response = await self._post("get", {"keys": keys})

        try:
            body = response.json()
        except ValueError as e:
            raise BackendError(
                code="parse_error",
                message=f"Backend get returned invalid JSON: {e}",
                details={"status_code": response.status_code},
            )

        items = body.get("items") if isinstance(body, dict) else None
        if not isinstance(items, dict):
            raise BackendError(
                code="parse_error",
                message="Backend get response has no 'items' object",
                details={"status_code": response.status_code},
            )

        wanted = set(keys)
        return {key: value for key, value in items.items() if key in wanted}

    async def set(self, items: Mapping[str, Any]) -> None:
        await self._post("set", {"items": dict(items)})

    async def remove(self, keys: Iterable[str]) -> None:
        await self._post("remove", {"keys": list(keys)})
