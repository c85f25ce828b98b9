"""Governance event log — notifications for observers, written per transaction.

Each successful service operation produces a batch of events (a session
close, for example, yields one status update per rejected draft, one for
the chosen proposal and a session-closed event). A batch is written
all-or-nothing: ids are checked and every line is serialized before
anything is stored, and a failed file write is truncated back to where
it started. A rolled-back operation therefore never leaves an event.

On disk the log is JSONL. Every line carries ``event_hash``, a SHA-256
over its canonical JSON; replaying the file recomputes each hash and
rejects tampered or repeated records.
"""

from __future__ import annotations

import enum
import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional


class EventKind(str, enum.Enum):
    PROPOSAL_CREATED = "proposal_created"
    VOTED = "voted"
    PROPOSAL_CANCELLED = "proposal_cancelled"
    PROPOSAL_STATUS_UPDATED = "proposal_status_updated"
    DAO_STATUS_UPDATED = "dao_status_updated"
    SESSION_CLOSED = "session_closed"
    PARAMETERS_UPDATED = "parameters_updated"


_HASHED_FIELDS = ("event_id", "event_kind", "timestamp_utc", "actor_id", "payload")


def event_digest(body: dict[str, Any]) -> str:
    """SHA-256 of the hashed fields of an event body."""
    canonical = json.dumps(
        {name: body[name] for name in _HASHED_FIELDS},
        sort_keys=True,
        ensure_ascii=False,
    )
    return "sha256:" + hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class EventRecord:
    """One governance notification."""
    event_id: str
    event_kind: EventKind
    timestamp_utc: str
    actor_id: str
    payload: dict[str, Any]
    event_hash: str

    @classmethod
    def create(
        cls,
        event_id: str,
        event_kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
        timestamp_utc: Optional[datetime] = None,
    ) -> EventRecord:
        when = (timestamp_utc or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H:%M:%SZ")
        body = {
            "event_id": event_id,
            "event_kind": EventKind(event_kind).value,
            "timestamp_utc": when,
            "actor_id": actor_id,
            "payload": payload,
        }
        return cls(
            event_id=event_id,
            event_kind=EventKind(event_kind),
            timestamp_utc=when,
            actor_id=actor_id,
            payload=payload,
            event_hash=event_digest(body),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_kind": self.event_kind.value,
            "timestamp_utc": self.timestamp_utc,
            "actor_id": self.actor_id,
            "payload": self.payload,
            "event_hash": self.event_hash,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EventRecord:
        """Rebuild a stored record, verifying its hash.

        Raises:
            ValueError: If the stored hash does not match the content.
        """
        expected = event_digest(data)
        if data.get("event_hash") != expected:
            raise ValueError(
                f"Integrity check failed: event {data.get('event_id')} "
                f"stored hash {data.get('event_hash')} != computed {expected}"
            )
        return cls(
            event_id=data["event_id"],
            event_kind=EventKind(data["event_kind"]),
            timestamp_utc=data["timestamp_utc"],
            actor_id=data["actor_id"],
            payload=data["payload"],
            event_hash=expected,
        )


class EventLog:
    """Event log held in memory and optionally mirrored to a JSONL file.

    Usage:
        log = EventLog(Path("data/events.jsonl"))   # replays existing lines
        log.append_batch([created, status_updated])
        log.events(EventKind.VOTED)
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._storage_path = storage_path
        self._events: list[EventRecord] = []
        self._ids: set[str] = set()
        if storage_path is not None and storage_path.exists():
            self._replay(storage_path)

    @property
    def storage_path(self) -> Optional[Path]:
        return self._storage_path

    @property
    def count(self) -> int:
        return len(self._events)

    @property
    def last_event(self) -> Optional[EventRecord]:
        return self._events[-1] if self._events else None

    def events(self, kind: Optional[EventKind] = None) -> list[EventRecord]:
        return [e for e in self._events if kind is None or e.event_kind == kind]

    def append(self, event: EventRecord) -> None:
        self.append_batch([event])

    def append_batch(self, batch: Iterable[EventRecord]) -> None:
        """Store a batch of events, all or none.

        Raises:
            ValueError: If an event id is already logged or repeats in the batch.
            OSError: If the file write fails; the file is left as it was.
        """
        records = list(batch)
        seen: set[str] = set()
        for record in records:
            if record.event_id in self._ids or record.event_id in seen:
                raise ValueError(f"Duplicate event ID: {record.event_id}")
            seen.add(record.event_id)
        if not records:
            return

        if self._storage_path is not None:
            blob = "".join(
                json.dumps(r.to_dict(), sort_keys=True, ensure_ascii=False) + "\n"
                for r in records
            )
            self._write(blob)

        self._events.extend(records)
        self._ids.update(seen)

    def _write(self, blob: str) -> None:
        with self._storage_path.open("a", encoding="utf-8") as f:
            start = f.tell()
            try:
                f.write(blob)
                f.flush()
            except OSError:
                f.truncate(start)
                raise

    def _replay(self, path: Path) -> None:
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                if not line.strip():
                    continue
                try:
                    record = EventRecord.from_dict(json.loads(line))
                except ValueError as e:
                    raise ValueError(f"{path} line {line_num}: {e}") from None
                if record.event_id in self._ids:
                    raise ValueError(
                        f"{path} line {line_num}: duplicate event ID on recovery: "
                        f"{record.event_id}"
                    )
                self._events.append(record)
                self._ids.add(record.event_id)
