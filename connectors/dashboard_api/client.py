"""Dashboard Analytics HTTP Client.

Low-level HTTP client for the analytics backend behind the dashboard.
Handles URL building, retries, error translation and payload validation.
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import aiohttp
from pydantic import ValidationError

from core.config import DashboardSettings
from core.observability.logging import get_logger
from dashboard.constants import ERROR_BODY_MAX_CHARS
from dashboard.endpoints import drilldown_path, get_endpoint
from dashboard.errors import (
    DashboardHttpError,
    DashboardNetworkError,
    MalformedResponseError,
)
from dashboard.query_resource import CancellationToken
from models.dashboard import DrilldownResponse

logger = get_logger(__name__)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 2
    base_delay: float = 0.5  # seconds
    max_delay: float = 8.0  # seconds
    exponential_base: float = 2.0
    retry_on_status: Tuple[int, ...] = (502, 503, 504)

    def get_delay(self, attempt: int) -> float:
        """Calculate delay for retry attempt (exponential backoff)."""
        delay = self.base_delay * (self.exponential_base ** attempt)
        return min(delay, self.max_delay)


@dataclass
class DashboardApiConfig:
    """Configuration for the analytics API client."""
    base_url: str = "http://localhost:8000"
    timeout_seconds: float = 15.0
    headers: Dict[str, str] = field(default_factory=dict)
    retry_config: RetryConfig = field(default_factory=RetryConfig)

    @classmethod
    def from_settings(cls, settings: DashboardSettings) -> "DashboardApiConfig":
        return cls(
            base_url=settings.api_base_url,
            timeout_seconds=settings.timeout_seconds,
            retry_config=RetryConfig(max_retries=settings.max_retries),
        )

    def build_url(self, path: str, query_string: Optional[str] = None) -> str:
        """Join base URL and path, then append the query string if any."""
        base = (self.base_url or "").rstrip("/")
        if not path.startswith("/"):
            path = f"/{path}"
        url = f"{base}{path}"
        if query_string:
            url = f"{url}?{query_string}"
        return url


def build_http_error(status: int, body_text: str) -> DashboardHttpError:
    """Translate a non-2xx response into a DashboardHttpError.

    The message comes from a JSON ``message`` or ``error`` field, else the raw
    body (truncated), else ``HTTP <status>``.
    """
    message = f"HTTP {status}"
    details = None

    trimmed = (body_text or "").strip()
    if trimmed:
        try:
            payload = json.loads(trimmed)
        except ValueError:
            if len(trimmed) > ERROR_BODY_MAX_CHARS:
                message = f"{trimmed[:ERROR_BODY_MAX_CHARS]}..."
            else:
                message = trimmed
        else:
            details = payload
            if isinstance(payload, dict):
                for key in ("message", "error"):
                    value = payload.get(key)
                    if isinstance(value, str) and value.strip():
                        message = value.strip()
                        break

    return DashboardHttpError(status, message, details)


def normalize_drilldown_payload(payload: Any) -> DrilldownResponse:
    """Validate a drilldown payload, tolerating a missing ``rows`` field.

    A 204 (None payload) is an empty first and last page.
    """
    if payload is None:
        return DrilldownResponse()
    if not isinstance(payload, dict):
        raise MalformedResponseError("Drilldown response is not a JSON object")

    data = dict(payload)
    if not isinstance(data.get("rows"), list):
        logger.warning(
            "Drilldown response without a rows list, treating as empty",
            extra_fields={"rows_type": type(data.get("rows")).__name__},
        )
        data["rows"] = []

    try:
        return DrilldownResponse.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(f"Invalid drilldown response: {e.error_count()} validation errors") from e


class DashboardApiClient:
    """HTTP client for the dashboard analytics API.

    Provides:
    - GET JSON with the canonical query string
    - Retries on gateway errors and network failures
    - Typed payloads per endpoint

    Usage:
        async with DashboardApiClient(DashboardApiConfig(base_url=...)) as client:
            overview = await client.fetch_endpoint("overview", qs)
            page = await client.fetch_drilldown("topClients", qs)
    """

    def __init__(self, api_config: Optional[DashboardApiConfig] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        """Initialize API client.

        Args:
            api_config: API configuration
            session: Externally owned aiohttp session (not closed by disconnect)
        """
        self.api_config = api_config or DashboardApiConfig()
        self._session = session
        self._owns_session = session is None

    async def connect(self) -> None:
        """Initialize HTTP session."""
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True

    async def disconnect(self) -> None:
        """Close HTTP session."""
        if self._session and self._owns_session:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "DashboardApiClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    def _get_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        headers.update(self.api_config.headers)
        return headers

    @staticmethod
    async def _read_text(response: aiohttp.ClientResponse) -> Optional[str]:
        """Response body as text, or None when it cannot be decoded."""
        try:
            return await response.text()
        except UnicodeDecodeError:
            logger.debug(f"Undecodable response body (HTTP {response.status})")
            return None

    async def get_json(
        self,
        path: str,
        query_string: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> Any:
        """GET a JSON document with automatic retries.

        Args:
            path: API path (e.g. /api/dashboard/overview)
            query_string: Serialized canonical query
            token: Cancellation token of the calling query; no retry once cancelled

        Returns:
            Decoded JSON, or None for 204 No Content

        Raises:
            DashboardHttpError: Non-2xx response
            DashboardNetworkError: Connection failure or timeout
            MalformedResponseError: 2xx body that is not JSON
        """
        if self._session is None:
            await self.connect()

        url = self.api_config.build_url(path, query_string)
        retry_config = self.api_config.retry_config
        timeout = aiohttp.ClientTimeout(total=self.api_config.timeout_seconds)

        attempt = 0
        while True:
            try:
                async with self._session.get(url, headers=self._get_headers(), timeout=timeout) as response:
                    response_text = await self._read_text(response)

                    if response.status == 204:
                        return None

                    if 200 <= response.status < 300:
                        if response_text is None:
                            raise MalformedResponseError(f"Undecodable body from {path}")
                        if not response_text.strip():
                            return None
                        try:
                            return json.loads(response_text)
                        except ValueError as e:
                            raise MalformedResponseError(f"Invalid JSON from {path}") from e

                    error = build_http_error(response.status, response_text or "")

            except asyncio.TimeoutError as e:
                error = DashboardNetworkError(f"Request timed out after {self.api_config.timeout_seconds:g}s")
                error.__cause__ = e
            except aiohttp.ClientError as e:
                error = DashboardNetworkError(f"Network error: {e}")
                error.__cause__ = e

            retryable = isinstance(error, DashboardNetworkError) or (
                isinstance(error, DashboardHttpError) and error.status in retry_config.retry_on_status
            )
            cancelled = token is not None and token.cancelled
            if not retryable or cancelled or attempt >= retry_config.max_retries:
                raise error

            delay = retry_config.get_delay(attempt)
            attempt += 1
            logger.warning(
                f"Request to {path} failed ({error.message}), "
                f"retrying in {delay:.1f}s (attempt {attempt}/{retry_config.max_retries})"
            )
            await asyncio.sleep(delay)

    async def fetch_endpoint(
        self,
        key: str,
        query_string: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> Any:
        """Fetch and validate a widget endpoint payload.

        Returns:
            The endpoint's response model, or None for an empty response
        """
        endpoint = get_endpoint(key)
        payload = await self.get_json(endpoint.path, query_string, token)
        if payload is None:
            return None
        try:
            return endpoint.parse(payload)
        except ValidationError as e:
            raise MalformedResponseError(f"Invalid {key} response: {e.error_count()} validation errors") from e

    async def fetch_drilldown(
        self,
        key: str,
        query_string: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> DrilldownResponse:
        """Fetch one drilldown page (query string carries cursor/limit/sort)."""
        payload = await self.get_json(drilldown_path(key), query_string, token)
        return normalize_drilldown_payload(payload)
