"""http_utils.py — HTTP response building, body parsing, path/method extraction."""
from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Dict, Tuple

from config import CORS_ORIGIN

__all__ = [
    "_cors_headers",
    "_error",
    "_json_body",
    "_path_method",
    "_response",
]

# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------

_DEFAULT_CODES = {
    400: "INVALID_INPUT",
    409: "CONFLICT",
    501: "NOT_IMPLEMENTED",
}


def _cors_headers() -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": CORS_ORIGIN,
        "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type",
    }


def _response(status_code: int, payload: Any) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {**_cors_headers(), "Content-Type": "application/json"},
        "body": json.dumps(payload),
    }


def _error(status_code: int, message: str, **extra: Any) -> Dict[str, Any]:
    code = str(extra.pop("code", "") or "").strip().upper()
    if not code:
        code = _DEFAULT_CODES.get(status_code, "INTERNAL_ERROR")
    retryable = bool(extra.pop("retryable", code == "CONFLICT" or (status_code >= 500 and code != "NOT_IMPLEMENTED")))
    details = dict(extra)
    body: Dict[str, Any] = {
        "success": False,
        "error": message,
        "error_envelope": {
            "code": code,
            "message": message,
            "retryable": retryable,
            "details": details,
        },
    }
    return _response(status_code, body)


def _json_body(event: Dict[str, Any]) -> Dict[str, Any]:
    raw = event.get("body")
    if raw in (None, ""):
        return {}

    if event.get("isBase64Encoded"):
        try:
            raw = base64.b64decode(raw).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise ValueError(f"Invalid JSON body: {exc}") from exc

    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as exc:
        raise ValueError(f"Invalid JSON body: {exc}") from exc

    if not isinstance(parsed, dict):
        raise ValueError("JSON body must be an object")
    return parsed


def _path_method(event: Dict[str, Any]) -> Tuple[str, str]:
    method = (event.get("requestContext", {}).get("http", {}).get("method") or event.get("httpMethod") or "").upper()
    path = event.get("rawPath") or event.get("path") or "/"
    return method, path
