"""dispatcher.py — Validates a request and executes it against the collection store.

Canonical mode actions: get, add, update, delete (update/delete answer 501).
Legacy mode reproduces the older id-less handler: get, update (append).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from collection_store import CollectionStore
from config import _MODE_CANONICAL, _MODE_LEGACY, _VALID_MODES, logger
from errors import (
    ActionNotImplementedError,
    MessageApiError,
    ValidationError,
    WriteConflictError,
)
from models import Message, _next_id

__all__ = [
    "OperationDispatcher",
    "Outcome",
]

_REQUIRED_FIELDS = ("sender", "receiver", "message", "date")


@dataclass(frozen=True)
class Outcome:
    status_code: int
    body: Any = None
    error: Optional[MessageApiError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _text(request: Mapping[str, Any], name: str) -> str:
    value = request.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"Field '{name}' must be a string")
    return value


class OperationDispatcher:
    def __init__(
        self,
        store: CollectionStore,
        *,
        mode: str = _MODE_CANONICAL,
        conflict_retries: int = 0,
    ):
        if mode not in _VALID_MODES:
            raise ValueError(f"Unknown dispatch mode '{mode}'")
        self.store = store
        self.mode = mode
        self.conflict_retries = max(0, int(conflict_retries))

    def dispatch(self, request: Any) -> Outcome:
        """Run one request. Never raises for MessageApiError; returns an error Outcome."""
        try:
            return self._dispatch(request)
        except MessageApiError as exc:
            log = logger.warning if exc.status_code < 500 else logger.error
            log("dispatch failed status=%s code=%s: %s", exc.status_code, exc.code, exc.message)
            return Outcome(status_code=exc.status_code, error=exc)

    def _dispatch(self, request: Any) -> Outcome:
        if not isinstance(request, Mapping):
            raise ValidationError("Request must be a JSON object")

        action = _text(request, "action")
        filename = _text(request, "filename")
        if not action or not filename:
            raise ValidationError("Missing 'action' or 'filename'")

        logger.info("[INFO] dispatch mode=%s action=%s filename=%s", self.mode, action, filename)

        if self.mode == _MODE_LEGACY:
            return self._dispatch_legacy(action, filename, request)

        if action == "get":
            messages = self.store.load(filename)
            return Outcome(200, [m.to_item() for m in messages])
        if action == "add":
            created = self._append(filename, request, action, assign_id=True)
            return Outcome(200, created.to_item())
        if action == "update":
            raise ActionNotImplementedError("Update not implemented yet")
        if action == "delete":
            raise ActionNotImplementedError("Delete not implemented yet")
        raise ValidationError("Invalid action. Use: get, add, update, delete")

    def _dispatch_legacy(self, action: str, filename: str, request: Mapping[str, Any]) -> Outcome:
        if action == "get":
            messages = self.store.load(filename)
            return Outcome(200, {"status": "ok", "data": [m.to_item() for m in messages]})
        if action == "update":
            created = self._append(filename, request, action, assign_id=False)
            return Outcome(200, {"status": "updated", "data": created.to_item()})
        raise ValidationError("Invalid action. Use: get, update")

    def _append(
        self,
        filename: str,
        request: Mapping[str, Any],
        action: str,
        *,
        assign_id: bool,
    ) -> Message:
        fields: Dict[str, str] = {name: _text(request, name) for name in _REQUIRED_FIELDS}
        if any(not value for value in fields.values()):
            raise ValidationError(f"Missing fields for {action}: " + ", ".join(_REQUIRED_FIELDS))

        attempts = 1 + (self.conflict_retries if self.store.conditional_writes else 0)
        attempt = 0
        while True:
            attempt += 1
            snapshot = self.store.read(filename)
            created = Message(
                id=_next_id(snapshot.messages) if assign_id else None,
                sender=fields["sender"],
                receiver=fields["receiver"],
                body=fields["message"],
                date=fields["date"],
            )
            try:
                self.store.save(filename, [*snapshot.messages, created], expected=snapshot)
            except WriteConflictError:
                if attempt >= attempts:
                    raise
                logger.warning(
                    "write conflict on %s (attempt %d/%d); re-reading",
                    snapshot.key, attempt, attempts,
                )
                continue
            return created
