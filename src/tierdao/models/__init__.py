"""Core data models for tierdao."""

from tierdao.models.governance import (
    DAOParams,
    PERCENTAGE_BASE,
    Proposal,
    ProposalStatus,
    Tier,
    TierThresholds,
    VoteDetail,
    VoteMethod,
)

__all__ = [
    "DAOParams",
    "PERCENTAGE_BASE",
    "Proposal",
    "ProposalStatus",
    "Tier",
    "TierThresholds",
    "VoteDetail",
    "VoteMethod",
]
