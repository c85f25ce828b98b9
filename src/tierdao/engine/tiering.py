"""Tier classifier — maps an account's holdings to a discrete tier.

Holdings are available balance plus locked amount, both read from the
ledger oracle. The tier is the highest one whose threshold the holdings
meet, checked from VIP downwards. Zero holdings are not an error; they
simply classify as NO_TIER.
"""

from __future__ import annotations

from tierdao.ledger.oracle import LedgerOracle
from tierdao.models.governance import Tier, TierThresholds


def classify(holdings: int, thresholds: TierThresholds) -> Tier:
    """Return the tier for a holdings amount under the given thresholds."""
    for tier, minimum in thresholds.descending():
        if holdings >= minimum:
            return tier
    return Tier.NO_TIER


class TierClassifier:
    """Reads holdings from the ledger and classifies them.

    Thresholds are passed per call so a threshold update is reflected
    by the very next lookup.
    """

    def __init__(self, ledger: LedgerOracle) -> None:
        self._ledger = ledger

    @property
    def ledger(self) -> LedgerOracle:
        return self._ledger

    def holdings(self, account: str) -> int:
        return self._ledger.balance_of(account) + self._ledger.locked_amount(account)

    def tier_of(self, account: str, thresholds: TierThresholds) -> Tier:
        return classify(self.holdings(account), thresholds)
