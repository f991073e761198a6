"""collection_store.py — Named message collections persisted as JSON arrays on S3.

Each collection is one object: `<prefix><trimmed name><suffix>`. A missing
object is an empty collection, not an error.

Concurrency: `load` followed by `save` is a read-modify-write with no
exclusion. Two concurrent appenders can read the same state and the later
`save` silently drops the other's record. The store does no locking or
versioning by default. With `conditional_writes=True`, `save` given the
snapshot returned by `read` becomes a conditional PUT (If-Match on the ETag,
or If-None-Match: * when the object did not exist) and raises
`WriteConflictError` when another writer got there first.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from aws_clients import _get_s3
from config import logger
from errors import DataIntegrityError, StoreAccessError, WriteConflictError
from models import Message, _decode_messages, _encode_messages
from serialization import _elapsed_ms, _emit_structured_observability

__all__ = [
    "CollectionSnapshot",
    "CollectionStore",
    "_client_error_code",
    "_is_not_found",
]

_NOT_FOUND_CODES = {"404", "NotFound", "NoSuchKey"}
_CONFLICT_CODES = {"PreconditionFailed", "ConditionalRequestConflict", "412"}
_COMPONENT = "collection_store"


def _client_error_code(exc: ClientError) -> str:
    return str((exc.response.get("Error") or {}).get("Code") or "")


def _is_not_found(exc: ClientError) -> bool:
    return _client_error_code(exc) in _NOT_FOUND_CODES


@dataclass(frozen=True)
class CollectionSnapshot:
    key: str
    messages: List[Message] = field(default_factory=list)
    exists: bool = False
    etag: Optional[str] = None


class CollectionStore:
    def __init__(
        self,
        bucket: str,
        client: Any = None,
        *,
        key_prefix: str = "",
        key_suffix: str = ".json",
        default_name: str = "messages",
        conditional_writes: bool = False,
    ):
        self.bucket = bucket
        self._client = client
        self.key_prefix = key_prefix
        self.key_suffix = key_suffix
        self.default_name = default_name
        self.conditional_writes = conditional_writes

    @property
    def client(self):
        if self._client is None:
            self._client = _get_s3()
        return self._client

    def key_for(self, name: str) -> str:
        """Derive the object key for a logical collection name."""
        cleaned = str(name or "").strip() or self.default_name
        return f"{self.key_prefix}{cleaned}{self.key_suffix}"

    # -----------------------------------------------------------------------
    # Read
    # -----------------------------------------------------------------------

    def load(self, name: str) -> List[Message]:
        return self.read(name).messages

    def read(self, name: str) -> CollectionSnapshot:
        key = self.key_for(name)
        started = time.monotonic()

        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _is_not_found(exc):
                self._observe("load_absent", key, started)
                return CollectionSnapshot(key=key)
            self._observe("head_failed", key, started, error_code=_client_error_code(exc))
            raise StoreAccessError(f"head failed: {exc}") from exc
        except BotoCoreError as exc:
            self._observe("head_failed", key, started, error_code=type(exc).__name__)
            raise StoreAccessError(f"head failed: {exc}") from exc

        try:
            resp = self.client.get_object(Bucket=self.bucket, Key=key)
            raw = resp["Body"].read()
        except ClientError as exc:
            if _is_not_found(exc):
                # Deleted between the probe and the fetch.
                logger.warning("object %s vanished after head_object; treating as empty", key)
                self._observe("load_absent", key, started)
                return CollectionSnapshot(key=key)
            self._observe("get_failed", key, started, error_code=_client_error_code(exc))
            raise StoreAccessError(f"get failed: {exc}") from exc
        except BotoCoreError as exc:
            self._observe("get_failed", key, started, error_code=type(exc).__name__)
            raise StoreAccessError(f"get failed: {exc}") from exc

        try:
            messages = _decode_messages(raw)
        except DataIntegrityError:
            self._observe("decode_failed", key, started, error_code="data_integrity")
            logger.error("collection object %s in bucket %s is not a message array", key, self.bucket)
            raise

        self._observe("load", key, started, extra={"count": len(messages), "size_bytes": len(raw)})
        return CollectionSnapshot(key=key, messages=messages, exists=True, etag=resp.get("ETag"))

    # -----------------------------------------------------------------------
    # Write
    # -----------------------------------------------------------------------

    def save(
        self,
        name: str,
        messages: Sequence[Message],
        expected: Optional[CollectionSnapshot] = None,
    ) -> None:
        """Replace the whole collection object with `messages`."""
        key = self.key_for(name)
        body = _encode_messages(messages)
        started = time.monotonic()

        params = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": body,
            "ContentType": "application/json",
        }
        conditional = self.conditional_writes and expected is not None
        if conditional:
            if not expected.exists:
                params["IfNoneMatch"] = "*"
            elif expected.etag:
                params["IfMatch"] = expected.etag
            else:
                # Nothing to compare against; fall back to a plain overwrite.
                logger.warning("no ETag captured for %s; saving without precondition", key)
                conditional = False

        try:
            self.client.put_object(**params)
        except ClientError as exc:
            code = _client_error_code(exc)
            self._observe("put_failed", key, started, error_code=code)
            if conditional and code in _CONFLICT_CODES:
                raise WriteConflictError(
                    f"Collection '{key}' was modified by another writer"
                ) from exc
            raise StoreAccessError(f"put failed: {exc}") from exc
        except BotoCoreError as exc:
            self._observe("put_failed", key, started, error_code=type(exc).__name__)
            raise StoreAccessError(f"put failed: {exc}") from exc

        self._observe(
            "save",
            key,
            started,
            extra={"count": len(messages), "size_bytes": len(body), "conditional": conditional},
        )

    def _observe(self, event, key, started, error_code=None, extra=None):
        _emit_structured_observability(
            component=_COMPONENT,
            event=event,
            key=key,
            latency_ms=_elapsed_ms(started),
            error_code=error_code,
            extra={"bucket": self.bucket, **(extra or {})},
        )
