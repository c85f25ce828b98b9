"""Voting engine — one weighted, final vote per voter per proposal.

A vote is accepted only while the DAO is unpaused, the proposal is CHOSEN
and not past its end time, the choice index is in range, and the voter
has not voted on the proposal before. The weight is computed with the
vote method in force at cast time and frozen into the VoteDetail, so a
later method switch never changes recorded weights.

Invariant: for every (proposal, choice) the tally equals the sum of the
weights of the VoteDetails cast for that choice.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from tierdao.engine.weights import WeightCalculator
from tierdao.errors import (
    DuplicateVote,
    InvalidChoiceIndex,
    InvalidLifecycleTransition,
    Paused,
    VotingClosed,
)
from tierdao.governance.lifecycle import ProposalLifecycle
from tierdao.models.governance import (
    DAOParams,
    Proposal,
    ProposalStatus,
    VoteDetail,
    VoteMethod,
)


class VotingEngine:
    """Records votes and accumulates tallies.

    Usage:
        engine = VotingEngine(params, lifecycle, WeightCalculator(classifier))
        detail = engine.cast_vote("alice", proposal_id, choice_index=1)
        engine.tallies(proposal_id)   # [0, 4]
        engine.winner(proposal_id)    # 1
    """

    def __init__(
        self,
        params: DAOParams,
        lifecycle: ProposalLifecycle,
        weights: WeightCalculator,
    ) -> None:
        self._params = params
        self._lifecycle = lifecycle
        self._weights = weights
        # proposal id → voter id → vote
        self._votes: dict[int, dict[str, VoteDetail]] = {}
        # proposal id → accumulated weight per choice
        self._tallies: dict[int, list[int]] = {}
        # proposal id → number of voters per choice
        self._counts: dict[int, list[int]] = {}
        # votes cast in the current transaction
        self._undo: Optional[list[VoteDetail]] = None

    def cast_vote(
        self,
        voter_id: str,
        proposal_id: int,
        choice_index: int,
        now: Optional[datetime] = None,
    ) -> VoteDetail:
        """Cast a vote on the chosen proposal.

        Raises:
            Paused, ProposalNotFound, VotingClosed, InvalidLifecycleTransition,
            InvalidChoiceIndex, DuplicateVote.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        if self._params.paused:
            raise Paused("DAO is paused")

        proposal = self._lifecycle.get_proposal(proposal_id)
        if proposal.end_utc is not None and now > proposal.end_utc:
            raise VotingClosed(
                f"Voting on proposal {proposal_id} closed at {proposal.end_utc.isoformat()}"
            )
        if proposal.status != ProposalStatus.CHOSEN:
            raise InvalidLifecycleTransition(
                f"Proposal {proposal_id} is {proposal.status.value}, not open for voting"
            )
        self._check_index(proposal, choice_index)
        if voter_id in self._votes.get(proposal_id, {}):
            raise DuplicateVote(f"{voter_id} already voted on proposal {proposal_id}")

        method = self._params.vote_method
        weight = self._weights.weight_for(voter_id, method, self._params)
        detail = VoteDetail(
            proposal_id=proposal_id,
            voter_id=voter_id,
            choice_index=choice_index,
            weight=weight,
            method=method,
            cast_utc=now,
        )

        tally = self._tallies.setdefault(proposal_id, [0] * len(proposal.choices))
        counts = self._counts.setdefault(proposal_id, [0] * len(proposal.choices))
        tally[choice_index] += weight
        counts[choice_index] += 1
        self._votes.setdefault(proposal_id, {})[voter_id] = detail
        if self._undo is not None:
            self._undo.append(detail)
        return detail

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def vote_of(self, proposal_id: int, voter_id: str) -> Optional[VoteDetail]:
        return self._votes.get(proposal_id, {}).get(voter_id)

    def votes(self, proposal_id: int) -> list[VoteDetail]:
        return list(self._votes.get(proposal_id, {}).values())

    def tally(self, proposal_id: int, choice_index: int) -> int:
        proposal = self._lifecycle.get_proposal(proposal_id)
        self._check_index(proposal, choice_index)
        return self.tallies(proposal_id)[choice_index]

    def tallies(self, proposal_id: int) -> list[int]:
        proposal = self._lifecycle.get_proposal(proposal_id)
        return list(self._tallies.get(proposal_id, [0] * len(proposal.choices)))

    def vote_counts(self, proposal_id: int) -> list[int]:
        proposal = self._lifecycle.get_proposal(proposal_id)
        return list(self._counts.get(proposal_id, [0] * len(proposal.choices)))

    def winner(self, proposal_id: int) -> int:
        """Index of the winning choice.

        Scans in index order keeping the strictly greatest tally, so a tie
        goes to the lower index. All-zero tallies return 0.
        """
        winning_index = 0
        winning_weight = 0
        for index, weight in enumerate(self.tallies(proposal_id)):
            if weight > winning_weight:
                winning_index = index
                winning_weight = weight
        return winning_index

    def method_breakdown(self, proposal_id: int) -> dict[VoteMethod, int]:
        """Number of votes cast under each method."""
        breakdown: dict[VoteMethod, int] = {}
        for detail in self.votes(proposal_id):
            breakdown[detail.method] = breakdown.get(detail.method, 0) + 1
        return breakdown

    @staticmethod
    def _check_index(proposal: Proposal, choice_index: int) -> None:
        if not 0 <= choice_index < len(proposal.choices):
            raise InvalidChoiceIndex(
                f"Choice {choice_index} out of range for proposal "
                f"{proposal.proposal_id} ({len(proposal.choices)} choices)"
            )

    # ------------------------------------------------------------------
    # Snapshots and records
    # ------------------------------------------------------------------

    def snapshot(self) -> list[VoteDetail]:
        """Open an undo record; votes cast from now on are appended to it."""
        self._undo = []
        return self._undo

    def restore(self, cast: list[VoteDetail]) -> None:
        """Withdraw the votes recorded since ``snapshot``."""
        for detail in reversed(cast):
            self._tallies[detail.proposal_id][detail.choice_index] -= detail.weight
            self._counts[detail.proposal_id][detail.choice_index] -= 1
            del self._votes[detail.proposal_id][detail.voter_id]
        self._undo = None

    def release(self) -> None:
        self._undo = None

    def to_records(self) -> list[dict[str, Any]]:
        """Serialize every vote; tallies are rebuilt from votes on load."""
        return [
            {
                "proposal_id": d.proposal_id,
                "voter_id": d.voter_id,
                "choice_index": d.choice_index,
                "weight": d.weight,
                "method": d.method.value,
                "cast_utc": d.cast_utc.isoformat(),
            }
            for pid in sorted(self._votes)
            for d in self._votes[pid].values()
        ]

    @classmethod
    def from_records(
        cls,
        params: DAOParams,
        lifecycle: ProposalLifecycle,
        weights: WeightCalculator,
        records: list[dict[str, Any]],
    ) -> VotingEngine:
        """Restore votes and rebuild tallies from persisted records."""
        engine = cls(params, lifecycle, weights)
        for v in records:
            detail = VoteDetail(
                proposal_id=v["proposal_id"],
                voter_id=v["voter_id"],
                choice_index=v["choice_index"],
                weight=v["weight"],
                method=VoteMethod(v["method"]),
                cast_utc=datetime.fromisoformat(v["cast_utc"]),
            )
            proposal = lifecycle.get_proposal(detail.proposal_id)
            size = len(proposal.choices)
            engine._tallies.setdefault(detail.proposal_id, [0] * size)[detail.choice_index] += detail.weight
            engine._counts.setdefault(detail.proposal_id, [0] * size)[detail.choice_index] += 1
            engine._votes.setdefault(detail.proposal_id, {})[detail.voter_id] = detail
        return engine
