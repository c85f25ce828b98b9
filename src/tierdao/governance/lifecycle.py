"""Session & proposal lifecycle — creation, selection, cancellation, finalization.

Proposals are created as DRAFTs inside the current session. Selecting one
closes the session: the selected proposal becomes CHOSEN and opens for
voting, every other DRAFT in the session is REJECTED, and a new session
begins. At most one proposal is open for voting at any time.

Architecture:
- ProposalLifecycle owns proposals, sessions, and the active-proposal pointer.
- Admin gating and notifications are handled by the service layer.
- Status changes go through ProposalStateMachine (fail-closed).

Constraints:
- Create is refused while the DAO is paused or a proposal is open.
- One proposal per creator per session.
- Two to four choices per proposal.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from tierdao.engine.state_machine import ProposalStateMachine
from tierdao.errors import (
    ActiveProposalConflict,
    DuplicateCreatorInSession,
    InvalidChoiceCount,
    InvalidLifecycleTransition,
    Paused,
    ProposalNotFound,
)
from tierdao.models.governance import (
    FINAL_STATUSES,
    MAX_CHOICES,
    MIN_CHOICES,
    DAOParams,
    Proposal,
    ProposalStatus,
)


def validate_choices(choices: list[str]) -> list[str]:
    if not MIN_CHOICES <= len(choices) <= MAX_CHOICES:
        raise InvalidChoiceCount(
            f"Proposals need {MIN_CHOICES}-{MAX_CHOICES} choices, got {len(choices)}"
        )
    return list(choices)


class ProposalLifecycle:
    """Manages the proposal lifecycle and voting sessions.

    Usage:
        lifecycle = ProposalLifecycle(params)
        p1 = lifecycle.create_proposal("alice", "Fee change", "...", ["Yes", "No"])
        p2 = lifecycle.create_proposal("bob", "Listing", "...", ["A", "B", "C"])
        rejected = lifecycle.select_proposal(p2.proposal_id, ...)  # p1 rejected
        lifecycle.finalize(p2.proposal_id, ProposalStatus.PASSED)
    """

    def __init__(self, params: DAOParams) -> None:
        self._params = params
        self._sm = ProposalStateMachine()
        self._proposals: dict[int, Proposal] = {}
        self._next_proposal_id = 1
        self._session_id = 1
        # session id → creators who already proposed in it
        self._session_creators: dict[int, set[str]] = {}
        # proposal id → state before its first change in the current transaction
        self._undo: Optional[dict[int, Proposal]] = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def current_session(self) -> int:
        return self._session_id

    @property
    def active_proposal_id(self) -> Optional[int]:
        return self._params.active_proposal_id

    def get_proposal(self, proposal_id: int) -> Proposal:
        proposal = self._proposals.get(proposal_id)
        if proposal is None:
            raise ProposalNotFound(f"Proposal not found: {proposal_id}")
        return proposal

    def list_proposals(
        self,
        status: Optional[ProposalStatus] = None,
        session_id: Optional[int] = None,
    ) -> list[Proposal]:
        result = sorted(self._proposals.values(), key=lambda p: p.proposal_id)
        if status is not None:
            result = [p for p in result if p.status == status]
        if session_id is not None:
            result = [p for p in result if p.session_id == session_id]
        return result

    def open_proposal(self, now: datetime) -> Optional[Proposal]:
        """The active proposal, if it is Chosen and not yet expired."""
        pid = self._params.active_proposal_id
        if pid is None:
            return None
        proposal = self._proposals.get(pid)
        if proposal is None or not proposal.is_open(now):
            return None
        return proposal

    def has_created_in_session(self, creator_id: str, session_id: Optional[int] = None) -> bool:
        sid = self._session_id if session_id is None else session_id
        return creator_id in self._session_creators.get(sid, set())

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_proposal(
        self,
        creator_id: str,
        title: str,
        description: str,
        choices: list[str],
        now: Optional[datetime] = None,
    ) -> Proposal:
        """Create a DRAFT proposal in the current session.

        Raises:
            Paused, ActiveProposalConflict, DuplicateCreatorInSession,
            InvalidChoiceCount.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        if self._params.paused:
            raise Paused("DAO is paused")
        open_proposal = self.open_proposal(now)
        if open_proposal is not None:
            raise ActiveProposalConflict(
                f"Proposal {open_proposal.proposal_id} is open for voting "
                f"until {open_proposal.end_utc.isoformat()}"
            )
        if self.has_created_in_session(creator_id):
            raise DuplicateCreatorInSession(
                f"{creator_id} already created a proposal in session {self._session_id}"
            )
        choice_list = validate_choices(choices)

        proposal = Proposal(
            proposal_id=self._next_proposal_id,
            title=title,
            description=description,
            choices=choice_list,
            creator_id=creator_id,
            session_id=self._session_id,
            created_utc=now,
        )
        self._proposals[proposal.proposal_id] = proposal
        self._next_proposal_id += 1
        self._session_creators.setdefault(self._session_id, set()).add(creator_id)
        return proposal

    def select_proposal(
        self,
        proposal_id: int,
        title: str,
        description: str,
        choices: list[str],
        now: Optional[datetime] = None,
    ) -> list[Proposal]:
        """Choose a DRAFT for voting and close its session.

        The selected proposal's title, description and choices are
        replaced with the given values. Every other DRAFT in the same
        session is rejected.

        Returns:
            The proposals rejected by the session close.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        proposal = self.get_proposal(proposal_id)
        if proposal.status != ProposalStatus.DRAFT:
            raise InvalidLifecycleTransition(
                f"Only draft proposals can be selected; "
                f"{proposal_id} is {proposal.status.value}"
            )
        open_proposal = self.open_proposal(now)
        if open_proposal is not None:
            raise ActiveProposalConflict(
                f"Proposal {open_proposal.proposal_id} is still open for voting"
            )
        choice_list = validate_choices(choices)

        rejected: list[Proposal] = []
        for other in self.list_proposals(ProposalStatus.DRAFT, proposal.session_id):
            if other.proposal_id == proposal_id:
                continue
            self._touch(other)
            self._sm.transition(other, ProposalStatus.REJECTED)
            rejected.append(other)

        self._touch(proposal)
        proposal.title = title
        proposal.description = description
        proposal.choices = choice_list
        self._sm.transition(proposal, ProposalStatus.CHOSEN)
        proposal.start_utc = now
        proposal.end_utc = now + timedelta(days=self._params.voting_duration_days)

        self._params.active_proposal_id = proposal_id
        self._params.bump()
        self._session_id += 1
        return rejected

    def cancel(self, proposal_id: int) -> Proposal:
        """Cancel a CHOSEN proposal."""
        proposal = self.get_proposal(proposal_id)
        if proposal.status != ProposalStatus.CHOSEN:
            raise InvalidLifecycleTransition(
                f"Only chosen proposals can be cancelled; "
                f"{proposal_id} is {proposal.status.value}"
            )
        self._touch(proposal)
        self._sm.transition(proposal, ProposalStatus.CANCELLED)
        self._clear_active(proposal_id)
        return proposal

    def finalize(self, proposal_id: int, status: ProposalStatus) -> Proposal:
        """Set the final status (PASSED, REJECTED or DONE) of a CHOSEN proposal."""
        if status not in FINAL_STATUSES:
            raise InvalidLifecycleTransition(
                f"Final status must be one of "
                f"{sorted(s.value for s in FINAL_STATUSES)}, got {status.value}"
            )
        proposal = self.get_proposal(proposal_id)
        # DRAFT -> REJECTED is legal only through a session close
        if proposal.status != ProposalStatus.CHOSEN:
            raise InvalidLifecycleTransition(
                f"Only chosen proposals can be finalized; "
                f"{proposal_id} is {proposal.status.value}"
            )
        self._touch(proposal)
        self._sm.transition(proposal, status)
        self._clear_active(proposal_id)
        return proposal

    def _clear_active(self, proposal_id: int) -> None:
        if self._params.active_proposal_id == proposal_id:
            self._params.active_proposal_id = None
            self._params.bump()

    # ------------------------------------------------------------------
    # Snapshots and records
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        """Open an undo record for one transaction.

        Only counters and the current session's creator set are copied up
        front; a proposal is copied the first time it is about to change.
        """
        self._undo = {}
        return {
            "next_proposal_id": self._next_proposal_id,
            "session_id": self._session_id,
            "creators": set(self._session_creators.get(self._session_id, ())),
            "changed": self._undo,
        }

    def restore(self, snap: dict[str, Any]) -> None:
        """Undo everything since ``snapshot``; proposal objects keep their identity."""
        for pid in range(snap["next_proposal_id"], self._next_proposal_id):
            self._proposals.pop(pid, None)
        for pid, before in snap["changed"].items():
            proposal = self._proposals[pid]
            for f in dataclasses.fields(Proposal):
                setattr(proposal, f.name, getattr(before, f.name))
        self._next_proposal_id = snap["next_proposal_id"]
        self._session_id = snap["session_id"]
        if snap["creators"]:
            self._session_creators[self._session_id] = snap["creators"]
        else:
            self._session_creators.pop(self._session_id, None)
        self._undo = None

    def release(self) -> None:
        """Close the undo record after the transaction commits."""
        self._undo = None

    def _touch(self, proposal: Proposal) -> None:
        if self._undo is not None and proposal.proposal_id not in self._undo:
            self._undo[proposal.proposal_id] = dataclasses.replace(
                proposal, choices=list(proposal.choices),
            )

    def to_records(self) -> dict[str, Any]:
        """Serialize lifecycle state to JSON-compatible records."""
        def _ts(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "next_proposal_id": self._next_proposal_id,
            "session_id": self._session_id,
            "session_creators": {
                str(sid): sorted(creators)
                for sid, creators in self._session_creators.items()
            },
            "proposals": [
                {
                    "proposal_id": p.proposal_id,
                    "title": p.title,
                    "description": p.description,
                    "choices": list(p.choices),
                    "creator_id": p.creator_id,
                    "session_id": p.session_id,
                    "status": p.status.value,
                    "created_utc": _ts(p.created_utc),
                    "start_utc": _ts(p.start_utc),
                    "end_utc": _ts(p.end_utc),
                }
                for p in self.list_proposals()
            ],
        }

    @classmethod
    def from_records(cls, params: DAOParams, records: dict[str, Any]) -> ProposalLifecycle:
        """Restore lifecycle state from persisted records."""
        def _dt(value: Optional[str]) -> Optional[datetime]:
            return datetime.fromisoformat(value) if value else None

        lifecycle = cls(params)
        for p in records.get("proposals", []):
            proposal = Proposal(
                proposal_id=p["proposal_id"],
                title=p["title"],
                description=p["description"],
                choices=list(p["choices"]),
                creator_id=p["creator_id"],
                session_id=p["session_id"],
                status=ProposalStatus(p["status"]),
                created_utc=_dt(p.get("created_utc")),
                start_utc=_dt(p.get("start_utc")),
                end_utc=_dt(p.get("end_utc")),
            )
            lifecycle._proposals[proposal.proposal_id] = proposal
        lifecycle._next_proposal_id = records.get(
            "next_proposal_id", len(lifecycle._proposals) + 1,
        )
        lifecycle._session_id = records.get("session_id", 1)
        lifecycle._session_creators = {
            int(sid): set(creators)
            for sid, creators in records.get("session_creators", {}).items()
        }
        return lifecycle
