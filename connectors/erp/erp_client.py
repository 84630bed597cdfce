"""ERP HTTP Client.

Low-level HTTP client for the ERP OData APIs.
Handles the API key header, retries on locked resources, dependency
telemetry and error messages.
"""

from typing import Any, Dict, Optional, Tuple
from dataclasses import dataclass, field
from urllib.parse import quote, urlencode
import json
import asyncio
import logging
import time

import aiohttp

from core.observability.telemetry import get_telemetry

logger = logging.getLogger(__name__)


class ErpApiError(Exception):
    """Base exception for ERP API errors."""
    def __init__(
        self,
        message: str,
        status_code: int = 0,
        response_body: str = "",
        archive_link: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body
        self.archive_link = archive_link


class ErpLockedError(ErpApiError):
    """Resource still locked (423) after all retries."""
    pass


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 3
    base_delay: float = 2.0  # seconds
    exponential_base: float = 2.0
    retry_on_status: Tuple[int, ...] = (423,)

    def get_delay(self, attempt: int) -> float:
        """Calculate delay for retry attempt (exponential backoff)."""
        return self.base_delay * (self.exponential_base ** attempt)


@dataclass
class ErpApiConfig:
    """Configuration for the ERP API client."""
    base_url: str = "http://localhost:8080"
    api_key: Optional[str] = None
    retry_config: RetryConfig = field(default_factory=RetryConfig)
    timeout_seconds: int = 30

    def build_url(self, path: str, params: Optional[Dict[str, str]] = None) -> str:
        """Full URL for an API path, with form-encoded query parameters."""
        url = f"{self.base_url.rstrip('/')}{path}"
        if params:
            url = f"{url}?{urlencode(params)}"
        return url


def quote_key(value: Any) -> str:
    """Encode an entity key for use inside a URL path."""
    return quote(str(value), safe="!'()*")


@dataclass
class ErpResponse:
    """Status and raw text of an ERP API response."""
    status: int
    text: str
    url: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        return json.loads(self.text)


def pretty_error_message(response_text: str) -> str:
    """Human readable error message from an ERP error response.

    Reads ``error.message``: a single message gives its value, a list gives
    the first English message or else the first message. Anything else
    gives the raw response text.
    """
    try:
        message = json.loads(response_text)["error"]["message"]
        if isinstance(message, dict):
            return message["value"]
        for entry in message:
            if entry.get("lang") == "en":
                return entry["value"]
        return message[0]["value"]
    except (ValueError, KeyError, IndexError, TypeError, AttributeError):
        logger.warning("Failed to parse ERP API error response as JSON")
    return response_text


class ErpApiClient:
    """HTTP client for the ERP APIs.

    Provides:
    - API key authentication
    - Retries with exponential backoff for locked resources (423)
    - Dependency telemetry for every call

    Usage:
        client = ErpApiClient(ErpApiConfig(base_url=..., api_key=...))
        response = await client.get("/productionorder/v1/A_ProductionOrder_2('1004143')")
        await client.close()
    """

    def __init__(self, api_config: ErpApiConfig, session=None):
        """Initialize API client.

        Args:
            api_config: API configuration
            session: Optional aiohttp-compatible session, created lazily if omitted
        """
        self.api_config = api_config
        self._session = session
        self._owns_session = session is None

    def _get_session(self):
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    def _get_headers(self, with_body: bool) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if with_body:
            headers["Content-Type"] = "application/json"
        if self.api_config.api_key:
            headers["APIKey"] = self.api_config.api_key
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        data: Optional[Dict[str, Any]] = None,
        retry: bool = False,
    ) -> ErpResponse:
        """Make an API request.

        Args:
            method: HTTP method
            path: API path below the base URL
            params: Query parameters
            data: JSON request body
            retry: If True, retry on the configured status codes

        Returns:
            ErpResponse; non-2xx responses are returned, not raised
        """
        url = self.api_config.build_url(path, params)
        name = f"{method} {path}"
        body = json.dumps(data) if data is not None else None
        retry_config = self.api_config.retry_config
        max_retries = retry_config.max_retries if retry else 0
        telemetry = get_telemetry()
        timeout = aiohttp.ClientTimeout(total=self.api_config.timeout_seconds)

        attempt = 0
        while True:
            started = time.monotonic()
            async with self._get_session().request(
                method,
                url,
                headers=self._get_headers(body is not None),
                data=body,
                timeout=timeout,
            ) as response:
                response_text = await response.text()
                status = response.status
            duration_ms = (time.monotonic() - started) * 1000

            if status in retry_config.retry_on_status and attempt < max_retries:
                delay = retry_config.get_delay(attempt)
                logger.warning(
                    f"{name} attempt {attempt} failed with {status}, "
                    f"retrying in {delay:.1f}s"
                )
                telemetry.record_retry(
                    name,
                    attempt,
                    status,
                    data=url,
                    target=self.api_config.base_url,
                    duration_ms=duration_ms,
                )
                await asyncio.sleep(delay)
                attempt += 1
                continue

            result = ErpResponse(status=status, text=response_text, url=url)
            telemetry.track_dependency(
                name,
                status,
                data=url,
                target=self.api_config.base_url,
                duration_ms=duration_ms,
                success=result.ok,
            )
            return result

    async def get(self, path: str, params: Optional[Dict[str, str]] = None) -> ErpResponse:
        """GET an API path."""
        return await self._request("GET", path, params=params)

    async def post(
        self,
        path: str,
        data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
        retry: bool = False,
    ) -> ErpResponse:
        """POST to an API path."""
        return await self._request("POST", path, params=params, data=data, retry=retry)
