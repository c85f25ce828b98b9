"""Persistence — event log and state snapshots."""

from tierdao.persistence.event_log import EventKind, EventLog, EventRecord
from tierdao.persistence.state_store import StateStore

__all__ = ["EventKind", "EventLog", "EventRecord", "StateStore"]
