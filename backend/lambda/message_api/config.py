"""config.py — Central configuration — environment variables, constants, logging.

All values are read once at import (cold start) and never mutated afterwards.
A missing bucket is reported by `_require_bucket()`, which lambda_function
calls at import; this module itself never raises for it.
"""
from __future__ import annotations

import logging
import os
from typing import Optional

from errors import ConfigurationError

__all__ = [
    "COLLECTION_KEY_SUFFIX",
    "CONFLICT_RETRIES",
    "CORS_ORIGIN",
    "DEFAULT_COLLECTION",
    "MESSAGE_API_MODE",
    "S3_BUCKET_NAME",
    "S3_CONDITIONAL_WRITES",
    "S3_KEY_PREFIX",
    "S3_MAX_ATTEMPTS",
    "S3_REGION",
    "SERVICE_BANNER",
    "_MODE_CANONICAL",
    "_MODE_LEGACY",
    "_VALID_MODES",
    "_env_flag",
    "_env_int",
    "_require_bucket",
    "logger",
]


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logging.getLogger().warning("Invalid %s=%r; using default %d", name, raw, default)
        return default
    return max(minimum, value)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

S3_BUCKET_NAME = os.environ.get("S3_BUCKET_NAME", "").strip()
S3_REGION = os.environ.get("S3_REGION", os.environ.get("AWS_REGION", "us-west-2"))
S3_KEY_PREFIX = os.environ.get("S3_KEY_PREFIX", "")
COLLECTION_KEY_SUFFIX = os.environ.get("COLLECTION_KEY_SUFFIX", ".json")
DEFAULT_COLLECTION = os.environ.get("DEFAULT_COLLECTION", "messages").strip() or "messages"
S3_MAX_ATTEMPTS = _env_int("S3_MAX_ATTEMPTS", 1, minimum=1)
S3_CONDITIONAL_WRITES = _env_flag("S3_CONDITIONAL_WRITES", False)
CONFLICT_RETRIES = _env_int("CONFLICT_RETRIES", 2)
CORS_ORIGIN = os.environ.get("CORS_ORIGIN", "*")

_MODE_CANONICAL = "canonical"
_MODE_LEGACY = "legacy"
_VALID_MODES = {_MODE_CANONICAL, _MODE_LEGACY}

MESSAGE_API_MODE = os.environ.get("MESSAGE_API_MODE", _MODE_CANONICAL).strip().lower() or _MODE_CANONICAL

SERVICE_BANNER = "Message collection API (Lambda + S3)"


def _require_bucket(bucket: Optional[str] = None) -> str:
    """Return the configured bucket name or fail startup."""
    name = (bucket if bucket is not None else S3_BUCKET_NAME).strip()
    if not name:
        raise ConfigurationError("S3_BUCKET_NAME environment variable not set")
    return name


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger()
logger.setLevel(logging.INFO)

if MESSAGE_API_MODE not in _VALID_MODES:
    logger.warning("Unknown MESSAGE_API_MODE=%r; falling back to %s", MESSAGE_API_MODE, _MODE_CANONICAL)
    MESSAGE_API_MODE = _MODE_CANONICAL
