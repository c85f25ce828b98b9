"""Weight calculator — converts holdings into vote weight.

Three methods, one in force at a time:
- TIER_POINT: fixed points per tier (VIP 4 ... NO_TIER 0).
- HOLDING_PERCENTAGE: floor(holdings * PERCENTAGE_BASE / total_supply).
- CAPPED_HOLDING_PERCENTAGE: the percentage, clamped to the configured cap.

Percentages are integers on a 1_000_000 base (1_000_000 == 100%).
A zero total supply yields zero weight rather than a division error.
"""

from __future__ import annotations

from tierdao.engine.tiering import TierClassifier
from tierdao.models.governance import (
    PERCENTAGE_BASE,
    DAOParams,
    Tier,
    VoteMethod,
)


TIER_POINTS: dict[Tier, int] = {
    Tier.VIP: 4,
    Tier.GOLD: 3,
    Tier.SILVER: 2,
    Tier.BRONZE: 1,
    Tier.NO_TIER: 0,
}


def tier_points(tier: Tier) -> int:
    return TIER_POINTS[tier]


def holding_percentage(holdings: int, total_supply: int) -> int:
    if total_supply <= 0:
        return 0
    return holdings * PERCENTAGE_BASE // total_supply


def capped_percentage(holdings: int, total_supply: int, cap: int) -> int:
    return min(holding_percentage(holdings, total_supply), cap)


class WeightCalculator:
    """Computes an account's vote weight under a vote method.

    Usage:
        calc = WeightCalculator(TierClassifier(ledger))
        weight = calc.weight("alice", params)            # method from params
        weight = calc.weight_for("alice", VoteMethod.TIER_POINT, params)
    """

    def __init__(self, classifier: TierClassifier) -> None:
        self._classifier = classifier

    def vote_percentage(self, account: str) -> int:
        """Holding percentage of total supply, uncapped."""
        return holding_percentage(
            self._classifier.holdings(account),
            self._classifier.ledger.total_supply(),
        )

    def capped_vote_percentage(self, account: str, cap: int) -> int:
        return capped_percentage(
            self._classifier.holdings(account),
            self._classifier.ledger.total_supply(),
            cap,
        )

    def weight(self, account: str, params: DAOParams) -> int:
        """Weight under the method currently in force."""
        return self.weight_for(account, params.vote_method, params)

    def weight_for(self, account: str, method: VoteMethod, params: DAOParams) -> int:
        if method == VoteMethod.TIER_POINT:
            return tier_points(self._classifier.tier_of(account, params.thresholds))
        if method == VoteMethod.HOLDING_PERCENTAGE:
            return self.vote_percentage(account)
        if method == VoteMethod.CAPPED_HOLDING_PERCENTAGE:
            return self.capped_vote_percentage(account, params.max_capped_percentage)
        raise ValueError(f"Unknown vote method: {method!r}")
