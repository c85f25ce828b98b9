"""Governance data models — tiers, vote methods, proposals, votes, parameters.

Holders are classified into tiers by combined available + locked holdings.
A vote's weight is derived from either the tier or the holding percentage,
depending on the vote method in force when the vote is cast.

Proposal lifecycle:
    DRAFT → CHOSEN → PASSED / REJECTED / DONE / CANCELLED
    DRAFT → REJECTED  (not selected when its session closes)
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from tierdao.errors import InvalidThresholdOrdering


# 1_000_000 represents 100%.
PERCENTAGE_BASE = 1_000_000
DEFAULT_MAX_CAPPED_PERCENTAGE = 30_000  # 3%
DEFAULT_VOTING_DURATION_DAYS = 7
MIN_VOTING_DURATION_DAYS = 1
MIN_CHOICES = 2
MAX_CHOICES = 4


class Tier(enum.IntEnum):
    """Holder tier. Integer ordering matches rank: NO_TIER < ... < VIP."""
    NO_TIER = 0
    BRONZE = 1
    SILVER = 2
    GOLD = 3
    VIP = 4


class VoteMethod(str, enum.Enum):
    """How a vote's weight is computed."""
    TIER_POINT = "tier_point"
    HOLDING_PERCENTAGE = "holding_percentage"
    CAPPED_HOLDING_PERCENTAGE = "capped_holding_percentage"


class ProposalStatus(str, enum.Enum):
    DRAFT = "draft"
    CHOSEN = "chosen"
    PASSED = "passed"
    REJECTED = "rejected"
    DONE = "done"
    CANCELLED = "cancelled"


TERMINAL_STATUSES: frozenset[ProposalStatus] = frozenset({
    ProposalStatus.PASSED,
    ProposalStatus.REJECTED,
    ProposalStatus.DONE,
    ProposalStatus.CANCELLED,
})

# Statuses an admin may set through finalize.
FINAL_STATUSES: frozenset[ProposalStatus] = frozenset({
    ProposalStatus.PASSED,
    ProposalStatus.REJECTED,
    ProposalStatus.DONE,
})


@dataclass(frozen=True)
class TierThresholds:
    """Minimum holdings for each tier.

    Invariants:
    - vip > gold > silver > bronze > 0
    """
    vip: int
    gold: int
    silver: int
    bronze: int

    def __post_init__(self) -> None:
        if self.bronze <= 0:
            raise InvalidThresholdOrdering("bronze threshold must be > 0")
        if not (self.vip > self.gold > self.silver > self.bronze):
            raise InvalidThresholdOrdering(
                f"thresholds must be strictly descending: "
                f"vip={self.vip} gold={self.gold} "
                f"silver={self.silver} bronze={self.bronze}"
            )

    def descending(self) -> list[tuple[Tier, int]]:
        """(tier, threshold) pairs, highest tier first."""
        return [
            (Tier.VIP, self.vip),
            (Tier.GOLD, self.gold),
            (Tier.SILVER, self.silver),
            (Tier.BRONZE, self.bronze),
        ]


@dataclass
class Proposal:
    """A proposal competing within a session.

    Mutable — transitions through the proposal lifecycle.
    start_utc / end_utc stay unset until the proposal is selected.
    """
    proposal_id: int
    title: str
    description: str
    choices: list[str]
    creator_id: str
    session_id: int
    status: ProposalStatus = ProposalStatus.DRAFT
    created_utc: Optional[datetime] = None
    start_utc: Optional[datetime] = None
    end_utc: Optional[datetime] = None

    def is_open(self, now: datetime) -> bool:
        """Chosen and not past its end time."""
        return (
            self.status == ProposalStatus.CHOSEN
            and self.end_utc is not None
            and now <= self.end_utc
        )


@dataclass(frozen=True)
class VoteDetail:
    """A single cast vote.

    Frozen — votes are final once cast. The method is recorded so the
    weight stays explainable after a later method switch.
    """
    proposal_id: int
    voter_id: str
    choice_index: int
    weight: int
    method: VoteMethod
    cast_utc: datetime


@dataclass
class DAOParams:
    """Global governance parameters.

    Every mutation bumps ``version``. Fields are changed only through
    ParameterController (thresholds, cap, duration, method, pause) and
    ProposalLifecycle (active_proposal_id).
    """
    thresholds: TierThresholds
    max_capped_percentage: int = DEFAULT_MAX_CAPPED_PERCENTAGE
    voting_duration_days: int = DEFAULT_VOTING_DURATION_DAYS
    vote_method: VoteMethod = VoteMethod.TIER_POINT
    paused: bool = False
    active_proposal_id: Optional[int] = None
    version: int = 1
    admins: frozenset[str] = field(default_factory=frozenset)

    def bump(self) -> None:
        self.version += 1
