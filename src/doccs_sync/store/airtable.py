"""Airtable REST client: base schema, record listing and record updates."""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional

import aiohttp
from pydantic import BaseModel, Field

from doccs_sync.core import get_logger
from doccs_sync.core.errors import StoreError, StoreUnavailableError
from doccs_sync.core.resilience import RetryExecutor, RetryPolicy

logger = get_logger(__name__)

AIRTABLE_API_URL = "https://api.airtable.com/v0"


class AirtableConfig(BaseModel):
    """Credentials and target table for one environment."""

    api_key: str = Field(..., description="Personal access token")
    base_id: str = Field(..., description="Base id (app...)")
    table_id: str = Field(..., description="Table id (tbl...)")
    view: Optional[str] = Field(None, description="View used to select records")
    api_url: str = Field(default=AIRTABLE_API_URL, description="API root")
    timeout_seconds: int = Field(default=30, description="Request timeout")


@dataclass
class StoreRecord:
    """One Airtable record; fields are keyed by field name."""

    id: str
    fields: dict[str, Any] = field(default_factory=dict)

    def get(self, field_name: str, default: Any = None) -> Any:
        return self.fields.get(field_name, default)


class AirtableClient:
    """Thin async wrapper around the Airtable REST API.

    Rate limiting (429) and server errors (5xx) are retried with backoff; any
    other error status raises ``StoreError``.
    """

    def __init__(
        self,
        config: AirtableConfig,
        session: Optional[aiohttp.ClientSession] = None,
        retry_policy: Optional[RetryPolicy] = None,
        executor: Optional[RetryExecutor] = None,
    ):
        self.config = config
        self._session = session
        self._owns_session = session is None
        self._executor = executor or RetryExecutor(
            retry_policy or RetryPolicy(max_attempts=3, initial_delay_ms=1000, max_delay_ms=30000)
        )

    async def __aenter__(self) -> "AirtableClient":
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._session and self._owns_session:
            await self._session.close()
            self._session = None

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

    @property
    def _table_url(self) -> str:
        return f"{self.config.api_url}/{self.config.base_id}/{self.config.table_id}"

    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        payload: Optional[dict[str, Any]] = None,
        record_id: Optional[str] = None,
    ) -> dict[str, Any]:
        if self._session is None:
            raise StoreError("Session not initialized. Use async context manager.")

        try:
            async with self._session.request(
                method,
                url,
                params=params,
                json=payload,
                headers=self._headers,
                timeout=aiohttp.ClientTimeout(total=self.config.timeout_seconds),
            ) as response:
                if response.status == 429 or response.status >= 500:
                    raise StoreUnavailableError(
                        f"Airtable unavailable: HTTP {response.status}",
                        status=response.status,
                    )
                if response.status >= 400:
                    body = await response.text()
                    raise StoreError(
                        f"Airtable request failed: HTTP {response.status}: {body[:200]}",
                        status=response.status,
                        record_id=record_id,
                    )
                return await response.json()
        except asyncio.TimeoutError:
            raise StoreUnavailableError(
                f"Airtable request timed out after {self.config.timeout_seconds}s"
            ) from None
        except aiohttp.ClientError as e:
            raise StoreUnavailableError(f"Airtable connection failed: {e}") from e

    async def _call(self, method: str, url: str, component: str, **kwargs) -> dict[str, Any]:
        outcome = await self._executor.run(
            self._request, method, url, component=component, **kwargs
        )
        if not outcome.succeeded:
            raise outcome.error
        return outcome.value

    async def fetch_schema(self) -> dict[str, Any]:
        """Return ``{"tables": [{"id", "fields": [{"id", "name", "type"}]}]}``."""
        url = f"{self.config.api_url}/meta/bases/{self.config.base_id}/tables"
        schema = await self._call("GET", url, component="airtable_schema")
        logger.info(
            "airtable_schema_fetched",
            base_id=self.config.base_id,
            tables=len(schema.get("tables", [])),
        )
        return schema

    async def list_records(self, view: Optional[str] = None) -> list[StoreRecord]:
        """Fetch every record of the table, following pagination offsets."""
        view = view or self.config.view
        records: list[StoreRecord] = []
        offset: Optional[str] = None

        while True:
            params: dict[str, Any] = {}
            if view:
                params["view"] = view
            if offset:
                params["offset"] = offset

            page = await self._call("GET", self._table_url, component="airtable_list", params=params)
            records.extend(
                StoreRecord(id=r["id"], fields=r.get("fields", {}))
                for r in page.get("records", [])
            )
            offset = page.get("offset")
            if not offset:
                break

        logger.info("airtable_records_listed", view=view, count=len(records))
        return records

    async def update_record(
        self,
        record_id: str,
        fields: dict[str, Any],
        typecast: bool = False,
    ) -> StoreRecord:
        """Patch the given fields of one record in a single request."""
        data = await self._call(
            "PATCH",
            f"{self._table_url}/{record_id}",
            component="airtable_update",
            payload={"fields": fields, "typecast": typecast},
            record_id=record_id,
        )
        logger.debug("airtable_record_updated", record_id=record_id, fields=list(fields))
        return StoreRecord(id=data.get("id", record_id), fields=data.get("fields", {}))
