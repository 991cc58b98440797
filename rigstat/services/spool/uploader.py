"""
Collector Uploader

POSTs one spool entry to the collector as a multipart file upload.

There is no retry in here: a failed entry stays in the spool and is
picked up again by a later sweep.
"""

from dataclasses import dataclass

import httpx

from ...common.exceptions import UploadError
from ...common.logging_setup import get_service_logger

logger = get_service_logger("spool.uploader")

STATS_ENDPOINT = "/stats"
PASSWORD_HEADER = "Server-Password"

# The collector only acknowledges a stored reading with 201
SUCCESS_STATUS = 201

# Response bodies are kept for diagnostics, truncated to this many characters
MAX_ERROR_BODY = 1000


@dataclass(frozen=True)
class Delivered:
    """Collector acknowledged the entry"""
    name: str
    status_code: int = SUCCESS_STATUS


class Uploader:
    """
    Uploads spool entries to the collector.

    Args:
        collector_url: Base URL, e.g. http://collector:8080
        server_password: Shared secret sent in the Server-Password header
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        collector_url: str,
        server_password: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.collector_url = collector_url.rstrip("/")
        self.server_password = server_password
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.collector_url,
                headers={PASSWORD_HEADER: self.server_password},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def upload(self, name: str, content: bytes) -> Delivered:
        """
        Upload one entry.

        Args:
            name: Spool entry name, sent as form field `name`
            content: Serialized reading, sent as file field `file`

        Returns:
            Delivered on HTTP 201

        Raises:
            UploadError: any other status, or a transport failure/timeout
        """
        client = await self._get_client()

        try:
            response = await client.post(
                STATS_ENDPOINT,
                data={"name": name},
                files={"file": (name, content, "application/json")},
            )
        except httpx.TimeoutException as e:
            raise UploadError(f"{name}: request timed out", name) from e
        except httpx.HTTPError as e:
            raise UploadError(f"{name}: {e.__class__.__name__}: {e}", name) from e

        if response.status_code != SUCCESS_STATUS:
            body = response.text[:MAX_ERROR_BODY]
            raise UploadError(
                f"{name}: collector returned HTTP {response.status_code}",
                name,
                status_code=response.status_code,
                body=body,
            )

        logger.debug(f"Collector accepted {name}", extra={"entry": name})
        return Delivered(name=name, status_code=response.status_code)
