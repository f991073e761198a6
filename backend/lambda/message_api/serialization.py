"""serialization.py — Timestamps and structured observability log lines."""
from __future__ import annotations

import datetime as dt
import json
import time
from typing import Any, Dict, Optional

from config import logger

__all__ = [
    "_elapsed_ms",
    "_emit_structured_observability",
    "_now_z",
]


def _now_z() -> str:
    return dt.datetime.now(dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _emit_structured_observability(
    *,
    component: str,
    event: str,
    key: Optional[str] = None,
    latency_ms: Optional[int] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    payload: Dict[str, Any] = {
        "timestamp": _now_z(),
        "component": component,
        "event": event,
        "key": str(key or ""),
        "latency_ms": int(max(0, latency_ms or 0)),
        "error_code": str(error_code or ""),
    }
    if extra:
        payload.update(extra)
    logger.info("[OBSERVABILITY] %s", json.dumps(payload, sort_keys=True, default=str))
