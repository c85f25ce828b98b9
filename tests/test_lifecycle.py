"""Tests for the session & proposal lifecycle.

Proves:
- Two to four choices per proposal.
- One proposal per creator per session; a new session resets that.
- No proposal can be created while another is open for voting.
- Selecting a draft closes its session: other drafts are rejected.
- end_utc == start_utc + voting duration.
- Only chosen proposals can be cancelled or finalized.
"""

from datetime import timedelta

import pytest

from tierdao.errors import (
    ActiveProposalConflict,
    DuplicateCreatorInSession,
    InvalidChoiceCount,
    InvalidLifecycleTransition,
    Paused,
    ProposalNotFound,
)
from tierdao.governance.lifecycle import ProposalLifecycle
from tierdao.models.governance import DAOParams, ProposalStatus

from conftest import now_utc


def _create(lifecycle: ProposalLifecycle, creator: str = "admin", choices=None):
    return lifecycle.create_proposal(
        creator, f"Title by {creator}", "Description", choices or ["Yes", "No"], now=now_utc(),
    )


def _select(lifecycle: ProposalLifecycle, proposal_id: int, now=None):
    return lifecycle.select_proposal(
        proposal_id, "Chosen title", "Chosen description", ["A", "B", "C"],
        now=now or now_utc(),
    )


class TestCreateProposal:
    def test_creates_draft_in_current_session(self, lifecycle: ProposalLifecycle) -> None:
        p = _create(lifecycle)
        assert p.proposal_id == 1
        assert p.status == ProposalStatus.DRAFT
        assert p.session_id == 1
        assert p.start_utc is None and p.end_utc is None

    def test_ids_are_sequential(self, lifecycle: ProposalLifecycle) -> None:
        ids = [_create(lifecycle, c).proposal_id for c in ("a", "b", "c")]
        assert ids == [1, 2, 3]

    @pytest.mark.parametrize("count", [0, 1, 5])
    def test_choice_count_outside_range_rejected(self, lifecycle: ProposalLifecycle, count: int) -> None:
        with pytest.raises(InvalidChoiceCount):
            lifecycle.create_proposal(
                "admin", "T", "D", [f"c{i}" for i in range(count)], now=now_utc(),
            )

    def test_four_choices_accepted(self, lifecycle: ProposalLifecycle) -> None:
        p = _create(lifecycle, choices=["a", "b", "c", "d"])
        assert len(p.choices) == 4

    def test_same_creator_twice_in_session_rejected(self, lifecycle: ProposalLifecycle) -> None:
        _create(lifecycle, "admin")
        with pytest.raises(DuplicateCreatorInSession):
            _create(lifecycle, "admin")

    def test_paused_rejects_create(self, lifecycle: ProposalLifecycle, params: DAOParams) -> None:
        params.paused = True
        with pytest.raises(Paused):
            _create(lifecycle)

    def test_open_proposal_blocks_create(self, lifecycle: ProposalLifecycle) -> None:
        p = _create(lifecycle, "admin")
        _select(lifecycle, p.proposal_id)
        with pytest.raises(ActiveProposalConflict):
            _create(lifecycle, "admin2")

    def test_expired_proposal_does_not_block_create(
        self, lifecycle: ProposalLifecycle, params: DAOParams,
    ) -> None:
        p = _create(lifecycle, "admin")
        _select(lifecycle, p.proposal_id)
        later = now_utc() + timedelta(days=params.voting_duration_days, seconds=1)
        fresh = lifecycle.create_proposal("admin", "Next", "", ["Yes", "No"], now=later)
        assert fresh.session_id == 2


class TestSelectProposal:
    def test_session_close_rejects_other_drafts(
        self, lifecycle: ProposalLifecycle, params: DAOParams,
    ) -> None:
        p1 = _create(lifecycle, "admin")
        p2 = _create(lifecycle, "admin2")
        p3 = _create(lifecycle, "admin3")

        rejected = _select(lifecycle, p2.proposal_id)

        assert [p.proposal_id for p in rejected] == [p1.proposal_id, p3.proposal_id]
        assert p1.status == ProposalStatus.REJECTED
        assert p3.status == ProposalStatus.REJECTED
        assert p2.status == ProposalStatus.CHOSEN
        assert p2.start_utc == now_utc()
        assert params.active_proposal_id == p2.proposal_id
        assert lifecycle.current_session == 2

    def test_new_session_forgets_previous_creators(self, lifecycle: ProposalLifecycle) -> None:
        p = _create(lifecycle, "admin")
        _select(lifecycle, p.proposal_id)
        lifecycle.cancel(p.proposal_id)
        again = _create(lifecycle, "admin")
        assert again.session_id == 2
        assert lifecycle.has_created_in_session("admin", 1)

    def test_end_time_is_start_plus_duration(
        self, lifecycle: ProposalLifecycle, params: DAOParams,
    ) -> None:
        params.voting_duration_days = 3
        p = _create(lifecycle)
        _select(lifecycle, p.proposal_id)
        assert p.end_utc - p.start_utc == timedelta(days=3)

    def test_selection_overwrites_content(self, lifecycle: ProposalLifecycle) -> None:
        p = _create(lifecycle)
        _select(lifecycle, p.proposal_id)
        assert p.title == "Chosen title"
        assert p.description == "Chosen description"
        assert p.choices == ["A", "B", "C"]

    def test_selection_validates_new_choices(self, lifecycle: ProposalLifecycle) -> None:
        p = _create(lifecycle)
        with pytest.raises(InvalidChoiceCount):
            lifecycle.select_proposal(p.proposal_id, "T", "D", ["only"], now=now_utc())
        assert p.status == ProposalStatus.DRAFT

    def test_only_drafts_can_be_selected(self, lifecycle: ProposalLifecycle) -> None:
        p1 = _create(lifecycle, "admin")
        p2 = _create(lifecycle, "admin2")
        _select(lifecycle, p1.proposal_id)
        # p2 was rejected by the session close
        with pytest.raises(InvalidLifecycleTransition):
            _select(lifecycle, p2.proposal_id)

    def test_unknown_proposal(self, lifecycle: ProposalLifecycle) -> None:
        with pytest.raises(ProposalNotFound):
            _select(lifecycle, 99)

    def test_drafts_of_other_sessions_untouched(
        self, lifecycle: ProposalLifecycle, params: DAOParams,
    ) -> None:
        first = _create(lifecycle, "admin")
        _select(lifecycle, first.proposal_id)
        lifecycle.finalize(first.proposal_id, ProposalStatus.DONE)
        a = _create(lifecycle, "admin")
        b = _create(lifecycle, "admin2")
        _select(lifecycle, b.proposal_id)
        assert a.status == ProposalStatus.REJECTED
        assert first.status == ProposalStatus.DONE


class TestCancelAndFinalize:
    def test_cancel_chosen_clears_active(
        self, lifecycle: ProposalLifecycle, params: DAOParams,
    ) -> None:
        p = _create(lifecycle)
        _select(lifecycle, p.proposal_id)
        lifecycle.cancel(p.proposal_id)
        assert p.status == ProposalStatus.CANCELLED
        assert params.active_proposal_id is None

    def test_cancel_draft_rejected(self, lifecycle: ProposalLifecycle) -> None:
        p = _create(lifecycle)
        with pytest.raises(InvalidLifecycleTransition, match="Only chosen"):
            lifecycle.cancel(p.proposal_id)

    @pytest.mark.parametrize("status", [
        ProposalStatus.PASSED, ProposalStatus.REJECTED, ProposalStatus.DONE,
    ])
    def test_finalize_allowed_statuses(
        self, lifecycle: ProposalLifecycle, params: DAOParams, status: ProposalStatus,
    ) -> None:
        p = _create(lifecycle)
        _select(lifecycle, p.proposal_id)
        lifecycle.finalize(p.proposal_id, status)
        assert p.status == status
        assert params.active_proposal_id is None

    @pytest.mark.parametrize("status", [
        ProposalStatus.DRAFT, ProposalStatus.CHOSEN, ProposalStatus.CANCELLED,
    ])
    def test_finalize_disallowed_target(self, lifecycle: ProposalLifecycle, status) -> None:
        p = _create(lifecycle)
        _select(lifecycle, p.proposal_id)
        with pytest.raises(InvalidLifecycleTransition, match="Final status"):
            lifecycle.finalize(p.proposal_id, status)

    def test_finalize_requires_chosen(self, lifecycle: ProposalLifecycle) -> None:
        p = _create(lifecycle)
        with pytest.raises(InvalidLifecycleTransition):
            lifecycle.finalize(p.proposal_id, ProposalStatus.PASSED)

    def test_draft_cannot_be_finalized_as_rejected(self, lifecycle: ProposalLifecycle) -> None:
        p = _create(lifecycle)
        with pytest.raises(InvalidLifecycleTransition, match="Only chosen"):
            lifecycle.finalize(p.proposal_id, ProposalStatus.REJECTED)
        assert p.status == ProposalStatus.DRAFT

    def test_finalize_of_old_proposal_keeps_newer_active(
        self, lifecycle: ProposalLifecycle, params: DAOParams,
    ) -> None:
        old = _create(lifecycle, "admin")
        _select(lifecycle, old.proposal_id)
        later = now_utc() + timedelta(days=params.voting_duration_days + 1)
        new = lifecycle.create_proposal("admin", "New", "", ["Y", "N"], now=later)
        _select(lifecycle, new.proposal_id, now=later)
        lifecycle.finalize(old.proposal_id, ProposalStatus.DONE)
        assert params.active_proposal_id == new.proposal_id


class TestRecords:
    def test_records_restore_sessions_and_proposals(
        self, lifecycle: ProposalLifecycle, params: DAOParams,
    ) -> None:
        p1 = _create(lifecycle, "admin")
        _create(lifecycle, "admin2")
        _select(lifecycle, p1.proposal_id)

        restored = ProposalLifecycle.from_records(params, lifecycle.to_records())

        assert restored.current_session == 2
        assert restored.get_proposal(1).status == ProposalStatus.CHOSEN
        assert restored.get_proposal(1).end_utc == p1.end_utc
        assert restored.get_proposal(2).status == ProposalStatus.REJECTED
        assert restored.has_created_in_session("admin2", 1)
        nxt = restored.create_proposal(
            "admin", "T", "D", ["Y", "N"], now=p1.end_utc + timedelta(seconds=1),
        )
        assert nxt.proposal_id == 3


class TestUndo:
    def test_restore_removes_created_and_frees_creator(self, lifecycle: ProposalLifecycle) -> None:
        _create(lifecycle, "admin")
        snap = lifecycle.snapshot()
        _create(lifecycle, "admin2")

        lifecycle.restore(snap)

        assert [p.proposal_id for p in lifecycle.list_proposals()] == [1]
        assert not lifecycle.has_created_in_session("admin2")
        assert _create(lifecycle, "admin2").proposal_id == 2

    def test_restore_undoes_session_close_in_place(
        self, lifecycle: ProposalLifecycle, params: DAOParams,
    ) -> None:
        p1 = _create(lifecycle, "admin")
        p2 = _create(lifecycle, "admin2")
        snap = lifecycle.snapshot()
        _select(lifecycle, p2.proposal_id)

        lifecycle.restore(snap)

        assert lifecycle.get_proposal(1) is p1
        assert p1.status == ProposalStatus.DRAFT
        assert (p2.status, p2.title, p2.choices, p2.end_utc) == (
            ProposalStatus.DRAFT, "Title by admin2", ["Yes", "No"], None,
        )
        assert lifecycle.current_session == 1
        assert lifecycle.has_created_in_session("admin2")

    def test_release_keeps_changes(self, lifecycle: ProposalLifecycle) -> None:
        p1 = _create(lifecycle, "admin")
        lifecycle.snapshot()
        _select(lifecycle, p1.proposal_id)
        lifecycle.release()
        assert p1.status == ProposalStatus.CHOSEN
        assert lifecycle.current_session == 2
