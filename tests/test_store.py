"""Tests for the Airtable client."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from doccs_sync.core.errors import StoreError, StoreUnavailableError
from doccs_sync.core.resilience import RetryExecutor, RetryPolicy
from doccs_sync.store.airtable import AirtableClient, AirtableConfig, StoreRecord


def _response(status=200, payload=None, text=""):
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=payload or {})
    response.text = AsyncMock(return_value=text)
    return response


def _session(*responses):
    """Session whose request() yields the given responses in order."""
    session = MagicMock()
    contexts = []
    for response in responses:
        context = MagicMock()
        context.__aenter__.return_value = response
        contexts.append(context)
    session.request.side_effect = contexts
    return session


@pytest.fixture
def config():
    return AirtableConfig(api_key="patTEST", base_id="appBase", table_id="tblInmates", view="Active")


def make_client(config, session, sleep):
    return AirtableClient(
        config,
        session=session,
        executor=RetryExecutor(RetryPolicy(max_attempts=3, initial_delay_ms=1000), sleep=sleep),
    )


class TestAirtableClient:
    """Tests for AirtableClient."""

    @pytest.mark.asyncio
    async def test_fetch_schema(self, config, sleep):
        session = _session(_response(payload={"tables": [{"id": "tblInmates", "fields": []}]}))
        client = make_client(config, session, sleep)

        schema = await client.fetch_schema()

        assert schema["tables"][0]["id"] == "tblInmates"
        args, kwargs = session.request.call_args
        assert args == ("GET", "https://api.airtable.com/v0/meta/bases/appBase/tables")
        assert kwargs["headers"]["Authorization"] == "Bearer patTEST"

    @pytest.mark.asyncio
    async def test_list_records_follows_offsets(self, config, sleep):
        session = _session(
            _response(payload={
                "records": [{"id": "rec1", "fields": {"DIN": "07A4571"}}],
                "offset": "itrNext",
            }),
            _response(payload={"records": [{"id": "rec2"}]}),
        )
        client = make_client(config, session, sleep)

        records = await client.list_records()

        assert records == [
            StoreRecord(id="rec1", fields={"DIN": "07A4571"}),
            StoreRecord(id="rec2", fields={}),
        ]
        first, second = session.request.call_args_list
        assert first.kwargs["params"] == {"view": "Active"}
        assert second.kwargs["params"] == {"view": "Active", "offset": "itrNext"}

    @pytest.mark.asyncio
    async def test_update_record(self, config, sleep):
        session = _session(_response(payload={"id": "rec1", "fields": {"County": "Kings"}}))
        client = make_client(config, session, sleep)

        record = await client.update_record("rec1", {"County": "Kings"}, typecast=True)

        assert record.get("County") == "Kings"
        args, kwargs = session.request.call_args
        assert args == ("PATCH", "https://api.airtable.com/v0/appBase/tblInmates/rec1")
        assert kwargs["json"] == {"fields": {"County": "Kings"}, "typecast": True}

    @pytest.mark.asyncio
    async def test_rate_limit_is_retried(self, config, sleep):
        session = _session(_response(status=429), _response(payload={"tables": []}))
        client = make_client(config, session, sleep)

        assert await client.fetch_schema() == {"tables": []}
        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_server_errors_exhaust_retries(self, config, sleep):
        session = _session(*[_response(status=503) for _ in range(3)])
        client = make_client(config, session, sleep)

        with pytest.raises(StoreUnavailableError):
            await client.fetch_schema()
        assert session.request.call_count == 3

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, config, sleep):
        session = _session(_response(status=422, text='{"error": "INVALID_VALUE_FOR_COLUMN"}'))
        client = make_client(config, session, sleep)

        with pytest.raises(StoreError) as exc_info:
            await client.update_record("rec1", {"County": 42})

        assert exc_info.value.status == 422
        assert exc_info.value.record_id == "rec1"
        assert "INVALID_VALUE_FOR_COLUMN" in exc_info.value.message
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_requires_session(self, config, sleep):
        client = AirtableClient(config, executor=RetryExecutor(sleep=sleep))
        with pytest.raises(StoreError):
            await client.fetch_schema()

    @pytest.mark.asyncio
    async def test_connection_reset_is_retried(self, config, sleep):
        """Test that a dropped connection is retried like a server error."""
        context = MagicMock()
        context.__aenter__.return_value = _response(payload={"tables": []})
        session = MagicMock()
        session.request.side_effect = [aiohttp.ClientConnectionError("reset"), context]
        client = make_client(config, session, sleep)

        assert await client.fetch_schema() == {"tables": []}
        assert session.request.call_count == 2
        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_timeouts_exhaust_retries(self, config, sleep):
        session = MagicMock()
        session.request.side_effect = asyncio.TimeoutError()
        client = make_client(config, session, sleep)

        with pytest.raises(StoreUnavailableError) as exc_info:
            await client.update_record("rec1", {"County": "Kings"})

        assert "timed out" in exc_info.value.message
        assert session.request.call_count == 3
