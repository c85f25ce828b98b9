"""Governance error kinds.

Every error rejects the whole operation. Engines raise these; the service
layer rolls back any in-flight state and reports the error code to the
caller. Each class carries a stable ``code`` so callers can branch on the
kind without matching message text.
"""

from __future__ import annotations


class GovernanceError(ValueError):
    """Base class for all rejected governance operations."""
    code = "GovernanceError"


class Unauthorized(GovernanceError):
    """Caller is not an admin on an admin-only operation."""
    code = "Unauthorized"


class Paused(GovernanceError):
    """Create or vote attempted while the DAO is paused."""
    code = "Paused"


class InvalidChoiceCount(GovernanceError):
    """Choice list outside [2, 4]."""
    code = "InvalidChoiceCount"


class ActiveProposalConflict(GovernanceError):
    """An unexpired Chosen proposal is still open for voting."""
    code = "ActiveProposalConflict"


class DuplicateCreatorInSession(GovernanceError):
    """Caller already created a proposal in the current session."""
    code = "DuplicateCreatorInSession"


class InvalidLifecycleTransition(GovernanceError):
    """Target proposal is in the wrong status, or the target status is not allowed."""
    code = "InvalidLifecycleTransition"


class VotingClosed(GovernanceError):
    """Current time is past the proposal's end time."""
    code = "VotingClosed"


class InvalidChoiceIndex(GovernanceError):
    code = "InvalidChoiceIndex"


class DuplicateVote(GovernanceError):
    """Voter already has a vote recorded on this proposal."""
    code = "DuplicateVote"


class InvalidThresholdOrdering(GovernanceError):
    """Thresholds must satisfy vip > gold > silver > bronze > 0."""
    code = "InvalidThresholdOrdering"


class VoteMethodLocked(GovernanceError):
    """Vote method cannot change while a proposal is open."""
    code = "VoteMethodLocked"


class ProposalNotFound(GovernanceError):
    code = "ProposalNotFound"


class InvalidParameter(GovernanceError):
    """A parameter update is out of its allowed range."""
    code = "InvalidParameter"


class ReentrantCall(GovernanceError):
    """A mutating operation was entered while another one is in progress."""
    code = "ReentrantCall"
