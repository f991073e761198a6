"""message_api/lambda_function.py

Message collection API: named collections of message records stored as JSON
arrays in one S3 bucket.

Invocation:
    API Gateway proxy (v1 or v2) — request from the JSON body, or from the
        query string for a bodiless GET.
    Direct invoke — the event itself is the request ({"action": ..., ...}).

Request:
    {"action": "get"|"add"|"update"|"delete", "filename": "...",
     "sender": "...", "receiver": "...", "message": "...", "date": "..."}

Routes:
    GET     /            — service banner (when no action is supplied)
    OPTIONS *            — CORS preflight
    GET|POST *           — dispatch the request

Environment variables:
    S3_BUCKET_NAME          required; cold start fails without it
    S3_REGION               default: us-west-2
    S3_KEY_PREFIX           default: ""
    COLLECTION_KEY_SUFFIX   default: .json
    DEFAULT_COLLECTION      default: messages
    MESSAGE_API_MODE        canonical | legacy (default: canonical)
    S3_CONDITIONAL_WRITES   default: false
    CONFLICT_RETRIES        default: 2
    S3_MAX_ATTEMPTS         default: 1
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from collection_store import CollectionStore
from config import (
    COLLECTION_KEY_SUFFIX,
    CONFLICT_RETRIES,
    DEFAULT_COLLECTION,
    MESSAGE_API_MODE,
    S3_CONDITIONAL_WRITES,
    S3_KEY_PREFIX,
    SERVICE_BANNER,
    _require_bucket,
    logger,
)
from dispatcher import OperationDispatcher, Outcome
from errors import ConfigurationError
from http_utils import _cors_headers, _error, _json_body, _path_method, _response

# ---------------------------------------------------------------------------
# Process-lifetime state (read-only after construction)
# ---------------------------------------------------------------------------

try:
    BUCKET_NAME = _require_bucket()
except ConfigurationError as exc:
    logger.error("startup failed: %s", exc)
    raise

_dispatcher: Optional[OperationDispatcher] = None


def _get_dispatcher() -> OperationDispatcher:
    """Get (or create) the dispatcher bound to the configured bucket."""
    global _dispatcher
    if _dispatcher is None:
        store = CollectionStore(
            BUCKET_NAME,
            key_prefix=S3_KEY_PREFIX,
            key_suffix=COLLECTION_KEY_SUFFIX,
            default_name=DEFAULT_COLLECTION,
            conditional_writes=S3_CONDITIONAL_WRITES,
        )
        _dispatcher = OperationDispatcher(
            store,
            mode=MESSAGE_API_MODE,
            conflict_retries=CONFLICT_RETRIES,
        )
    return _dispatcher


def _is_direct_invocation(event: Dict[str, Any]) -> bool:
    return "action" in event and "requestContext" not in event and "body" not in event


def _render(outcome: Outcome) -> Dict[str, Any]:
    if outcome.ok:
        return _response(outcome.status_code, outcome.body)
    err = outcome.error
    return _error(outcome.status_code, err.message, code=err.code)


# ---------------------------------------------------------------------------
# Handler
# ---------------------------------------------------------------------------


def lambda_handler(event: Dict[str, Any], _context: Any) -> Dict[str, Any]:
    if not isinstance(event, dict):
        return _error(400, "Invalid event")

    if _is_direct_invocation(event):
        logger.info("[INFO] direct invoke action=%s", event.get("action"))
        request: Dict[str, Any] = event
    else:
        method, path = _path_method(event)
        if method == "OPTIONS":
            return {"statusCode": 204, "headers": _cors_headers(), "body": ""}

        logger.info("[INFO] route method=%s path=%s", method, path)

        try:
            request = _json_body(event)
        except ValueError as exc:
            logger.warning("rejecting request body: %s", exc)
            return _error(400, "Invalid JSON body")

        if method == "GET" and not request:
            request = dict(event.get("queryStringParameters") or {})

        if method == "GET" and not request.get("action") and path.rstrip("/") == "":
            return _response(200, {"message": SERVICE_BANNER})

    try:
        outcome = _get_dispatcher().dispatch(request)
    except Exception:
        logger.exception("unhandled error while dispatching request")
        return _error(500, "Internal server error")
    return _render(outcome)
