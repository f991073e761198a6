"""models.py — Message record type and JSON array codec.

On the wire and in S3 a record is
    {"id": 1, "sender": "...", "receiver": "...", "message": "...", "date": "..."}
with `id` omitted for records written in legacy mode. The text body is held on
`Message.body` and serialized under the `message` key.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from errors import DataIntegrityError

__all__ = [
    "Message",
    "_decode_messages",
    "_encode_messages",
    "_next_id",
]

_TEXT_FIELDS = ("sender", "receiver", "message", "date")


@dataclass(frozen=True)
class Message:
    sender: str
    receiver: str
    body: str
    date: str
    id: Optional[int] = None

    def to_item(self) -> Dict[str, Any]:
        item: Dict[str, Any] = {}
        if self.id is not None:
            item["id"] = self.id
        item["sender"] = self.sender
        item["receiver"] = self.receiver
        item["message"] = self.body
        item["date"] = self.date
        return item

    @classmethod
    def from_item(cls, item: Any, index: int = 0) -> "Message":
        if not isinstance(item, dict):
            raise DataIntegrityError(f"record {index} is not a JSON object")
        raw_id = item.get("id")
        # bool is an int subclass; reject it explicitly.
        if raw_id is not None and (isinstance(raw_id, bool) or not isinstance(raw_id, int)):
            raise DataIntegrityError(f"record {index} has non-integer id {raw_id!r}")
        values = {}
        for field in _TEXT_FIELDS:
            value = item.get(field, "")
            if not isinstance(value, str):
                raise DataIntegrityError(f"record {index} field '{field}' is not a string")
            values[field] = value
        return cls(
            id=raw_id,
            sender=values["sender"],
            receiver=values["receiver"],
            body=values["message"],
            date=values["date"],
        )


def _next_id(messages: Sequence[Message]) -> int:
    """Last record's id + 1, or 1 for an empty collection."""
    if not messages:
        return 1
    return (messages[-1].id or 0) + 1


def _encode_messages(messages: Sequence[Message]) -> bytes:
    try:
        text = json.dumps([m.to_item() for m in messages], indent=2, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise DataIntegrityError(f"encode failed: {exc}") from exc
    return text.encode("utf-8")


def _decode_messages(raw: bytes) -> List[Message]:
    try:
        parsed = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DataIntegrityError(f"decode failed: {exc}") from exc
    if not isinstance(parsed, list):
        raise DataIntegrityError(
            f"decode failed: expected a JSON array, got {type(parsed).__name__}"
        )
    return [Message.from_item(item, index) for index, item in enumerate(parsed)]
