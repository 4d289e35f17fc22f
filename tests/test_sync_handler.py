"""Tests for the sync trigger Lambda handler."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from doccs_sync.reporting.report import RecordOutcome, Report
from handlers import sync as sync_handler

TOKEN = "s3cret"


@pytest.fixture(autouse=True)
def trigger_token(monkeypatch):
    monkeypatch.setenv("SYNC_TRIGGER_TOKEN", TOKEN)


@pytest.fixture
def lambda_client(monkeypatch):
    client = MagicMock()
    monkeypatch.setattr(sync_handler, "_lambda_client", client)
    return client


@pytest.fixture
def context():
    context = MagicMock()
    context.function_name = "doccs-sync"
    return context


@pytest.fixture
def finished_report():
    report = Report(environment="test")
    report.add_record("rec1", "07A4571", RecordOutcome.NO_CHANGE)
    return report


def http_event(authorization=None, body=None, query=None):
    headers = {"Authorization": authorization} if authorization else {}
    return {"headers": headers, "body": body, "queryStringParameters": query}


class TestSyncHandler:
    """Tests for handler."""

    def test_missing_token_forbidden(self, context):
        response = sync_handler.handler(http_event(), context)
        assert response["statusCode"] == 403

    def test_wrong_token_forbidden(self, context):
        response = sync_handler.handler(http_event("Bearer wrong"), context)
        assert response["statusCode"] == 403

    def test_unconfigured_token_forbidden(self, context, monkeypatch):
        monkeypatch.delenv("SYNC_TRIGGER_TOKEN")
        response = sync_handler.handler(http_event(f"Bearer {TOKEN}"), context)
        assert response["statusCode"] == 403

    def test_async_request_returns_202(self, context, lambda_client):
        event = http_event(f"Bearer {TOKEN}", body=json.dumps({"async": True}))

        response = sync_handler.handler(event, context)

        assert response["statusCode"] == 202
        kwargs = lambda_client.invoke.call_args.kwargs
        assert kwargs["FunctionName"] == "doccs-sync"
        assert kwargs["InvocationType"] == "Event"
        assert json.loads(kwargs["Payload"]) == {"source": sync_handler.ASYNC_SOURCE}

    def test_async_query_parameter(self, context, lambda_client):
        event = {"headers": {"authorization": f"Bearer {TOKEN}"}, "queryStringParameters": {"async": "true"}}
        assert sync_handler.handler(event, context)["statusCode"] == 202

    def test_async_invoke_failure(self, context, lambda_client):
        lambda_client.invoke.side_effect = RuntimeError("throttled")
        event = http_event(f"Bearer {TOKEN}", body='{"async": true}')
        assert sync_handler.handler(event, context)["statusCode"] == 500

    def test_sync_request_runs_and_returns_summary(self, context, finished_report):
        with patch.object(sync_handler, "load_config", return_value=MagicMock()), \
             patch.object(sync_handler, "run_sync", AsyncMock(return_value=finished_report)) as run:
            response = sync_handler.handler(http_event(f"Bearer {TOKEN}"), context)

        assert response["statusCode"] == 200
        body = json.loads(response["body"])
        assert body["summary"]["total"] == 1
        run.assert_awaited_once()

    def test_scheduled_event_skips_auth(self, context, finished_report, monkeypatch):
        monkeypatch.delenv("SYNC_TRIGGER_TOKEN")
        with patch.object(sync_handler, "load_config", return_value=MagicMock()), \
             patch.object(sync_handler, "run_sync", AsyncMock(return_value=finished_report)):
            response = sync_handler.handler({"source": "aws.events"}, context)
        assert response["statusCode"] == 200

    def test_run_failure_returns_500(self, context):
        with patch.object(sync_handler, "load_config", return_value=MagicMock()), \
             patch.object(sync_handler, "run_sync", AsyncMock(side_effect=RuntimeError("schema gone"))):
            response = sync_handler.handler({"source": sync_handler.ASYNC_SOURCE}, context)

        assert response["statusCode"] == 500
        assert json.loads(response["body"]) == {"error": "schema gone"}

    def test_bad_body_is_not_async(self, context, finished_report):
        with patch.object(sync_handler, "load_config", return_value=MagicMock()), \
             patch.object(sync_handler, "run_sync", AsyncMock(return_value=finished_report)):
            response = sync_handler.handler(http_event(f"Bearer {TOKEN}", body="not json"), context)
        assert response["statusCode"] == 200

    def test_non_ascii_authorization_forbidden(self, context):
        """Test that a non-ASCII bearer value is rejected, not raised."""
        response = sync_handler.handler(http_event("Bearer café"), context)
        assert response["statusCode"] == 403

    def test_debug_logging_follows_config(self, context, finished_report):
        with patch.object(sync_handler, "load_config", return_value=MagicMock(debug=True)), \
             patch.object(sync_handler, "run_sync", AsyncMock(return_value=finished_report)), \
             patch.object(sync_handler, "configure_logging") as configure:
            response = sync_handler.handler({"source": "aws.events"}, context)

        assert response["statusCode"] == 200
        configure.assert_called_once_with(level="INFO", json_format=True, debug=True)
