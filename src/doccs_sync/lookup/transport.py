"""HTTP transport for the NYS DOCCS incarcerated person lookup."""

import asyncio
import json
from typing import Any, Optional

import aiohttp
from pydantic import BaseModel, Field

from doccs_sync.core import get_logger
from doccs_sync.core.errors import EmptyResponseError, LookupTransportError

logger = get_logger(__name__)

DOCCS_LOOKUP_URL = "https://nysdoccslookup.doccs.ny.gov/IncarceratedPerson/SearchByDin"


class LookupTransportConfig(BaseModel):
    """Configuration for the DOCCS lookup transport."""

    url: str = Field(default=DOCCS_LOOKUP_URL, description="SearchByDin endpoint")
    timeout_seconds: int = Field(default=30, description="Request timeout")
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/130.0.0.0 Safari/537.36"
        ),
        description="User agent string for requests",
    )


class DoccsLookupTransport:
    """Posts a DIN to the lookup service and returns the decoded body.

    A response with no body, and any failure to get a response at all, raise
    ``EmptyResponseError`` (retryable). An HTTP error status raises
    ``LookupTransportError``. JSON bodies are decoded; anything else is
    returned as text.
    """

    def __init__(
        self,
        config: Optional[LookupTransportConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.config = config or LookupTransportConfig()
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "DoccsLookupTransport":
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._session and self._owns_session:
            await self._session.close()
            self._session = None

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Accept": "*/*",
            "Accept-Language": "en-US,en;q=0.9",
            "Connection": "keep-alive",
            "Sec-Fetch-Dest": "empty",
            "Sec-Fetch-Mode": "cors",
            "Sec-Fetch-Site": "same-origin",
            "User-Agent": self.config.user_agent,
            "Content-Type": "application/json; charset=utf-8",
        }

    async def lookup(self, din: str) -> Any:
        """Look up one DIN.

        Raises:
            EmptyResponseError: No body came back.
            LookupTransportError: The service answered with an error status,
                or the transport was used outside its context manager.
        """
        if self._session is None:
            raise LookupTransportError(
                "Session not initialized. Use async context manager.", din=din
            )

        try:
            async with self._session.post(
                self.config.url,
                data=json.dumps(din),
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(total=self.config.timeout_seconds),
            ) as response:
                body = await response.text()
                status = response.status
                reason = response.reason
        except asyncio.TimeoutError:
            raise EmptyResponseError(
                f"Empty response from server: timed out after {self.config.timeout_seconds}s",
                din=din,
            ) from None
        except aiohttp.ClientError as e:
            raise EmptyResponseError(
                f"Empty response from server: {e}", din=din
            ) from e

        if status >= 400:
            logger.warning("lookup_http_error", din=din, status=status)
            raise LookupTransportError(
                f"HTTP {status}: {reason}", din=din, status=status
            )

        if not body.strip():
            raise EmptyResponseError("Empty response from server", din=din)

        try:
            return json.loads(body)
        except ValueError:
            logger.debug("lookup_non_json_body", din=din, size=len(body))
            return body
