"""Tests for the parameter controller — validated setters and the method lock."""

import logging
from datetime import timedelta

import pytest

from tierdao.errors import InvalidParameter, InvalidThresholdOrdering, VoteMethodLocked
from tierdao.governance.lifecycle import ProposalLifecycle
from tierdao.governance.params import ParameterController, max_percentage_scale_warning
from tierdao.models.governance import DAOParams, VoteMethod

from conftest import default_thresholds, now_utc


def _open_proposal(lifecycle: ProposalLifecycle):
    p = lifecycle.create_proposal("admin", "T", "D", ["Yes", "No"], now=now_utc())
    lifecycle.select_proposal(p.proposal_id, "T", "D", ["Yes", "No"], now=now_utc())
    return p


class TestThresholds:
    def test_update_applies_and_bumps_version(
        self, controller: ParameterController, params: DAOParams,
    ) -> None:
        before = params.version
        controller.update_thresholds(400, 300, 200, 100)
        assert params.thresholds.vip == 400
        assert params.thresholds.bronze == 100
        assert params.version == before + 1

    @pytest.mark.parametrize("values", [
        (300, 300, 200, 100),
        (400, 300, 200, 0),
        (100, 200, 300, 400),
    ])
    def test_bad_ordering_leaves_thresholds(
        self, controller: ParameterController, params: DAOParams, values,
    ) -> None:
        with pytest.raises(InvalidThresholdOrdering):
            controller.update_thresholds(*values)
        assert params.thresholds == default_thresholds()


class TestMaxPercentage:
    def test_in_range_value_accepted_with_scale_warning(
        self, controller: ParameterController, params: DAOParams, caplog,
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="tierdao.governance.params"):
            controller.set_max_percentage(50)
        assert params.max_capped_percentage == 50
        assert "1,000,000 base" in caplog.text

    @pytest.mark.parametrize("value", [-1, 101, 30_000])
    def test_out_of_range_rejected(
        self, controller: ParameterController, params: DAOParams, value: int,
    ) -> None:
        with pytest.raises(InvalidParameter):
            controller.set_max_percentage(value)
        assert params.max_capped_percentage == 30_000

    def test_warning_text_reports_share(self) -> None:
        assert "0.01% of supply" in max_percentage_scale_warning(100)
        assert max_percentage_scale_warning(30_000) is None


class TestVotingDuration:
    def test_update_duration(self, controller: ParameterController, params: DAOParams) -> None:
        controller.set_voting_duration(14)
        assert params.voting_duration_days == 14

    @pytest.mark.parametrize("days", [0, -3])
    def test_below_one_day_rejected(self, controller: ParameterController, days: int) -> None:
        with pytest.raises(InvalidParameter, match="at least 1"):
            controller.set_voting_duration(days)


class TestVoteMethod:
    def test_switch_with_no_open_proposal(
        self, controller: ParameterController, params: DAOParams,
    ) -> None:
        controller.set_vote_method(VoteMethod.CAPPED_HOLDING_PERCENTAGE, now=now_utc())
        assert params.vote_method == VoteMethod.CAPPED_HOLDING_PERCENTAGE

    def test_switch_locked_while_proposal_open(
        self, controller: ParameterController, lifecycle: ProposalLifecycle, params: DAOParams,
    ) -> None:
        _open_proposal(lifecycle)
        with pytest.raises(VoteMethodLocked):
            controller.set_vote_method(VoteMethod.HOLDING_PERCENTAGE, now=now_utc())
        assert params.vote_method == VoteMethod.TIER_POINT

    def test_switch_allowed_after_voting_window(
        self, controller: ParameterController, lifecycle: ProposalLifecycle, params: DAOParams,
    ) -> None:
        p = _open_proposal(lifecycle)
        controller.set_vote_method(
            VoteMethod.HOLDING_PERCENTAGE, now=p.end_utc + timedelta(seconds=1),
        )
        assert params.vote_method == VoteMethod.HOLDING_PERCENTAGE

    def test_switch_allowed_after_cancel(
        self, controller: ParameterController, lifecycle: ProposalLifecycle, params: DAOParams,
    ) -> None:
        p = _open_proposal(lifecycle)
        lifecycle.cancel(p.proposal_id)
        controller.set_vote_method(VoteMethod.HOLDING_PERCENTAGE, now=now_utc())
        assert params.vote_method == VoteMethod.HOLDING_PERCENTAGE


class TestPauseAndRestore:
    def test_pause_toggles(self, controller: ParameterController, params: DAOParams) -> None:
        controller.set_paused(True)
        assert params.paused
        controller.set_paused(False)
        assert not params.paused

    def test_restore_writes_back_into_same_object(
        self, controller: ParameterController, params: DAOParams,
    ) -> None:
        snap = controller.snapshot()
        controller.set_voting_duration(30)
        controller.set_paused(True)
        controller.restore(snap)
        assert controller.params is params
        assert params.voting_duration_days == 7
        assert not params.paused
        assert params.version == snap.version
