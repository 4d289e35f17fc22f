"""Lambda handler that triggers a DOCCS sync run.

Scheduler events (no HTTP headers) run the sync directly. HTTP events must
carry ``Authorization: Bearer <SYNC_TRIGGER_TOKEN>``; a body or query of
``{"async": true}`` hands the run to an asynchronous self-invocation and
answers 202 straight away.
"""

import asyncio
import hmac
import json
import os
from typing import Any, Optional

import boto3

from doccs_sync.config import load_config
from doccs_sync.core import configure_logging, get_logger
from doccs_sync.runner import run_sync

configure_logging(level="INFO", json_format=True)
logger = get_logger(__name__)

ASYNC_SOURCE = "doccs_sync.async"

_lambda_client: Optional[Any] = None


def _get_lambda_client():
    """Get or create the Lambda client."""
    global _lambda_client
    if _lambda_client is None:
        _lambda_client = boto3.client("lambda")
    return _lambda_client


def _response(status_code: int, body: dict[str, Any]) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body, default=str),
    }


def _is_http_event(event: dict[str, Any]) -> bool:
    return "headers" in event or "requestContext" in event


def _is_authorized(event: dict[str, Any]) -> bool:
    token = os.environ.get("SYNC_TRIGGER_TOKEN")
    if not token:
        logger.error("sync_trigger_token_not_configured")
        return False
    headers = {k.lower(): v for k, v in (event.get("headers") or {}).items()}
    return hmac.compare_digest(
        headers.get("authorization", "").encode("utf-8"),
        f"Bearer {token}".encode("utf-8"),
    )


def _wants_async(event: dict[str, Any]) -> bool:
    query = event.get("queryStringParameters") or {}
    if str(query.get("async", "")).lower() == "true":
        return True
    body = event.get("body")
    if not body:
        return False
    try:
        payload = json.loads(body)
    except ValueError:
        return False
    return isinstance(payload, dict) and payload.get("async") is True


def handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Handle scheduler and HTTP triggers.

    Args:
        event: Lambda event.
        context: Lambda context.

    Returns:
        202 when queued, 200 with the run summary, 403 when the bearer token
        is wrong, 500 when the run fails.
    """
    http = _is_http_event(event)
    logger.info("sync_trigger_received", http=http, source=event.get("source"))

    if http and not _is_authorized(event):
        logger.warning("sync_trigger_forbidden")
        return _response(403, {"error": "Forbidden"})

    if http and _wants_async(event):
        try:
            _get_lambda_client().invoke(
                FunctionName=context.function_name,
                InvocationType="Event",
                Payload=json.dumps({"source": ASYNC_SOURCE}).encode("utf-8"),
            )
        except Exception as e:
            logger.error("sync_async_invoke_failed", error=str(e))
            return _response(500, {"error": "Failed to start sync"})
        return _response(202, {"message": "Sync started"})

    try:
        config = load_config()
        configure_logging(level="INFO", json_format=True, debug=config.debug)
        report = asyncio.run(run_sync(config))
    except Exception as e:
        logger.error("sync_failed", error_type=type(e).__name__, error=str(e))
        return _response(500, {"error": str(e)})

    return _response(200, {"message": "Sync complete", "summary": report.get_summary()})
