"""Tests for the tier classifier — proves threshold ordering and monotonic tiers."""

import pytest

from tierdao.engine.tiering import TierClassifier, classify
from tierdao.errors import InvalidThresholdOrdering
from tierdao.ledger.oracle import InMemoryLedger
from tierdao.models.governance import Tier, TierThresholds

from conftest import default_thresholds


class TestClassify:
    def test_exact_thresholds_hit_their_tier(self) -> None:
        t = default_thresholds()
        assert classify(t.vip, t) == Tier.VIP
        assert classify(t.gold, t) == Tier.GOLD
        assert classify(t.silver, t) == Tier.SILVER
        assert classify(t.bronze, t) == Tier.BRONZE

    def test_one_below_threshold_drops_a_tier(self) -> None:
        t = default_thresholds()
        assert classify(t.vip - 1, t) == Tier.GOLD
        assert classify(t.bronze - 1, t) == Tier.NO_TIER

    def test_zero_holdings_is_no_tier(self) -> None:
        assert classify(0, default_thresholds()) == Tier.NO_TIER

    def test_tier_is_monotonic_in_holdings(self) -> None:
        """More holdings never means a lower tier."""
        t = default_thresholds()
        amounts = list(range(0, 120_001, 500)) + [999, 1_000, 9_999, 49_999, 99_999]
        amounts.sort()
        tiers = [classify(a, t) for a in amounts]
        assert all(a <= b for a, b in zip(tiers, tiers[1:]))


class TestTierClassifier:
    def test_holdings_include_locked_amount(self, classifier: TierClassifier) -> None:
        assert classifier.holdings("vip") == 120_000
        assert classifier.holdings("silver") == 10_000

    def test_locked_amount_can_lift_tier(self, classifier: TierClassifier) -> None:
        # 9_000 balance alone is bronze; locked 1_000 reaches silver
        assert classifier.tier_of("silver", default_thresholds()) == Tier.SILVER

    def test_unknown_account_is_no_tier(self, classifier: TierClassifier) -> None:
        assert classifier.tier_of("nobody", default_thresholds()) == Tier.NO_TIER

    def test_new_thresholds_apply_on_next_lookup(self) -> None:
        classifier = TierClassifier(InMemoryLedger(balances={"a": 5_000}))
        assert classifier.tier_of("a", default_thresholds()) == Tier.BRONZE
        raised = TierThresholds(vip=40, gold=30, silver=20, bronze=10)
        assert classifier.tier_of("a", raised) == Tier.VIP


class TestThresholdOrdering:
    @pytest.mark.parametrize("vip,gold,silver,bronze", [
        (100, 100, 50, 10),   # vip == gold
        (100, 50, 50, 10),    # gold == silver
        (100, 50, 10, 10),    # silver == bronze
        (100, 50, 20, 0),     # bronze zero
        (10, 50, 100, 200),   # ascending
    ])
    def test_invalid_orderings_rejected(self, vip, gold, silver, bronze) -> None:
        with pytest.raises(InvalidThresholdOrdering):
            TierThresholds(vip=vip, gold=gold, silver=silver, bronze=bronze)

    def test_descending_lists_vip_first(self) -> None:
        tiers = [tier for tier, _ in default_thresholds().descending()]
        assert tiers == [Tier.VIP, Tier.GOLD, Tier.SILVER, Tier.BRONZE]
