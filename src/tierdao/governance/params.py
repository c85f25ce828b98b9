"""Parameter controller — the single mutation path for global parameters.

Covers tier thresholds, the capped-percentage bound, the voting duration,
the vote method and the pause switch. Each setter validates, writes one
field and bumps the parameter version. Admin gating is the service
layer's job.

Note on the percentage cap: the stored cap lives on the 1_000_000 base
(30_000 == 3%), but updates are bounded by ``<= 100``. The bound is kept
as-is and every accepted update logs a scale warning.
"""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime, timezone
from typing import Optional

from tierdao.errors import InvalidParameter, VoteMethodLocked
from tierdao.governance.lifecycle import ProposalLifecycle
from tierdao.models.governance import (
    MIN_VOTING_DURATION_DAYS,
    PERCENTAGE_BASE,
    DAOParams,
    TierThresholds,
    VoteMethod,
)

logger = logging.getLogger(__name__)

MAX_PERCENTAGE_UPDATE_BOUND = 100


def max_percentage_scale_warning(value: int) -> Optional[str]:
    """Describe the scale mismatch for a cap value, or None if it cannot apply."""
    if value <= MAX_PERCENTAGE_UPDATE_BOUND:
        share = value * 100 / PERCENTAGE_BASE
        return (
            f"max_capped_percentage={value} is read on a {PERCENTAGE_BASE:,} base "
            f"({share:g}% of supply); updates are bounded by "
            f"<= {MAX_PERCENTAGE_UPDATE_BOUND}"
        )
    return None


class ParameterController:
    """Validated setters for DAOParams."""

    def __init__(self, params: DAOParams, lifecycle: ProposalLifecycle) -> None:
        self._params = params
        self._lifecycle = lifecycle

    @property
    def params(self) -> DAOParams:
        return self._params

    def update_thresholds(self, vip: int, gold: int, silver: int, bronze: int) -> TierThresholds:
        """Replace the tier thresholds.

        Raises:
            InvalidThresholdOrdering: unless vip > gold > silver > bronze > 0.
        """
        thresholds = TierThresholds(vip=vip, gold=gold, silver=silver, bronze=bronze)
        self._params.thresholds = thresholds
        self._params.bump()
        return thresholds

    def set_max_percentage(self, value: int) -> int:
        if value < 0 or value > MAX_PERCENTAGE_UPDATE_BOUND:
            raise InvalidParameter(
                f"max percentage must be between 0 and "
                f"{MAX_PERCENTAGE_UPDATE_BOUND}, got {value}"
            )
        self._params.max_capped_percentage = value
        self._params.bump()
        warning = max_percentage_scale_warning(value)
        if warning:
            logger.warning(warning)
        return value

    def set_voting_duration(self, days: int) -> int:
        if days < MIN_VOTING_DURATION_DAYS:
            raise InvalidParameter(
                f"voting duration must be at least {MIN_VOTING_DURATION_DAYS} day(s), got {days}"
            )
        self._params.voting_duration_days = days
        self._params.bump()
        return days

    def set_vote_method(self, method: VoteMethod, now: Optional[datetime] = None) -> VoteMethod:
        """Switch the vote method. Refused while a proposal is open."""
        if now is None:
            now = datetime.now(timezone.utc)
        open_proposal = self._lifecycle.open_proposal(now)
        if open_proposal is not None:
            raise VoteMethodLocked(
                f"Cannot change vote method while proposal "
                f"{open_proposal.proposal_id} is open"
            )
        self._params.vote_method = VoteMethod(method)
        self._params.bump()
        return self._params.vote_method

    def set_paused(self, paused: bool) -> bool:
        self._params.paused = bool(paused)
        self._params.bump()
        return self._params.paused

    def snapshot(self) -> DAOParams:
        return dataclasses.replace(self._params)

    def restore(self, snap: DAOParams) -> None:
        """Write a snapshot back into the shared params object in place."""
        for f in dataclasses.fields(DAOParams):
            setattr(self._params, f.name, getattr(snap, f.name))
