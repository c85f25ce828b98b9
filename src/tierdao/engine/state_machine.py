"""Proposal state machine — enforces the exact transition rules.

Transitions are fail-closed: any transition not explicitly allowed is rejected.
"""

from __future__ import annotations

from tierdao.errors import InvalidLifecycleTransition
from tierdao.models.governance import Proposal, ProposalStatus


# Legal transitions: (from_status, to_status)
_TRANSITIONS: set[tuple[ProposalStatus, ProposalStatus]] = {
    (ProposalStatus.DRAFT, ProposalStatus.CHOSEN),
    # Not selected when the session closed
    (ProposalStatus.DRAFT, ProposalStatus.REJECTED),
    (ProposalStatus.CHOSEN, ProposalStatus.PASSED),
    (ProposalStatus.CHOSEN, ProposalStatus.REJECTED),
    (ProposalStatus.CHOSEN, ProposalStatus.DONE),
    (ProposalStatus.CHOSEN, ProposalStatus.CANCELLED),
}


def is_legal(source: ProposalStatus, target: ProposalStatus) -> bool:
    return (source, target) in _TRANSITIONS


class ProposalStateMachine:
    """Validates and applies proposal status transitions."""

    def check(self, proposal: Proposal, target: ProposalStatus) -> None:
        """Raise InvalidLifecycleTransition if the move is not allowed."""
        if not is_legal(proposal.status, target):
            raise InvalidLifecycleTransition(
                f"Illegal transition for proposal {proposal.proposal_id}: "
                f"{proposal.status.value} → {target.value}"
            )

    def transition(self, proposal: Proposal, target: ProposalStatus) -> None:
        self.check(proposal, target)
        proposal.status = target
