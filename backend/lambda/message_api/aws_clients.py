"""aws_clients.py — Lazy-singleton S3 client.

The client is built on first use and cached for the life of the Lambda
container. Retries are disabled by default (`S3_MAX_ATTEMPTS=1`) so a failed
store call fails the request immediately.
"""
from __future__ import annotations

from typing import Optional

import boto3
from botocore.config import Config

from config import S3_MAX_ATTEMPTS, S3_REGION

__all__ = [
    "_get_s3",
    "_reset_clients",
    "_s3",
]

# ---------------------------------------------------------------------------
# AWS client singletons
# ---------------------------------------------------------------------------

_s3 = None


def _get_s3(region: Optional[str] = None):
    """Get (or create) the S3 client singleton."""
    global _s3
    if _s3 is None:
        _s3 = boto3.client(
            "s3",
            region_name=region or S3_REGION,
            config=Config(retries={"max_attempts": S3_MAX_ATTEMPTS, "mode": "standard"}),
        )
    return _s3


def _reset_clients() -> None:
    global _s3
    _s3 = None
