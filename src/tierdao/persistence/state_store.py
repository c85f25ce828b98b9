"""JSON state store — snapshot of parameters, proposals and votes.

The store holds one JSON document:
    {"params": {...}, "lifecycle": {...}, "votes": [...]}

Writes go to a temporary sibling file first and are then moved into
place, so a crash mid-write leaves the previous snapshot intact.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

from tierdao.models.governance import DAOParams, TierThresholds, VoteMethod


def params_to_record(params: DAOParams) -> dict[str, Any]:
    return {
        "thresholds": {
            "vip": params.thresholds.vip,
            "gold": params.thresholds.gold,
            "silver": params.thresholds.silver,
            "bronze": params.thresholds.bronze,
        },
        "max_capped_percentage": params.max_capped_percentage,
        "voting_duration_days": params.voting_duration_days,
        "vote_method": params.vote_method.value,
        "paused": params.paused,
        "active_proposal_id": params.active_proposal_id,
        "version": params.version,
        "admins": sorted(params.admins),
    }


def params_from_record(record: dict[str, Any]) -> DAOParams:
    return DAOParams(
        thresholds=TierThresholds(**record["thresholds"]),
        max_capped_percentage=record["max_capped_percentage"],
        voting_duration_days=record["voting_duration_days"],
        vote_method=VoteMethod(record["vote_method"]),
        paused=record["paused"],
        active_proposal_id=record.get("active_proposal_id"),
        version=record.get("version", 1),
        admins=frozenset(record.get("admins", [])),
    )


class StateStore:
    """Loads and saves the governance snapshot."""

    def __init__(self, storage_path: Path) -> None:
        self._storage_path = storage_path

    @property
    def path(self) -> Path:
        return self._storage_path

    def exists(self) -> bool:
        return self._storage_path.exists()

    def load(self) -> Optional[dict[str, Any]]:
        if not self._storage_path.exists():
            return None
        with self._storage_path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        for key in ("params", "lifecycle", "votes"):
            if key not in data:
                raise ValueError(f"State snapshot missing '{key}': {self._storage_path}")
        return data

    def save(self, snapshot: dict[str, Any]) -> None:
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._storage_path.with_suffix(self._storage_path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(snapshot, f, indent=2, sort_keys=True)
        os.replace(tmp, self._storage_path)
