"""tierdao service — unified facade for the governance engine.

This is the primary interface for programmatic access. It orchestrates:
- Admin control (thresholds, cap, voting duration, vote method, pause)
- Proposal lifecycle (create, select/close session, cancel, finalize)
- Voting (weighted, one final vote per voter per proposal)
- Result queries (tier, percentages, tallies, winner, active proposal)
- Persistence (event log, state store)

Execution model: every mutating operation runs as one serialized
transaction under a re-entrant lock. State is snapshotted on entry and
restored if the operation is rejected, so no partial effect survives.
Notifications are buffered and written to the event log as one batch after the
operation succeeds. A mutating call that arrives while another mutation
is in progress on the same thread (for example from inside a ledger
query) is rejected with ReentrantCall rather than interleaved.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, Optional

from tierdao.config import DAOConfig
from tierdao.engine.tiering import TierClassifier
from tierdao.engine.weights import WeightCalculator
from tierdao.errors import (
    GovernanceError,
    InvalidParameter,
    ReentrantCall,
    Unauthorized,
)
from tierdao.governance.lifecycle import ProposalLifecycle
from tierdao.governance.params import ParameterController
from tierdao.governance.voting import VotingEngine
from tierdao.ledger.oracle import LedgerOracle
from tierdao.models.governance import (
    DAOParams,
    Proposal,
    ProposalStatus,
    Tier,
    VoteDetail,
    VoteMethod,
)
from tierdao.persistence.event_log import EventKind, EventLog, EventRecord
from tierdao.persistence.state_store import (
    StateStore,
    params_from_record,
    params_to_record,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    error_code: Optional[str] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TierDAOService:
    """Unified governance engine facade.

    Usage:
        config = DAOConfig.from_config_dir(config_dir)
        service = TierDAOService.from_config(config, ledger)

        service.create_proposal("admin", "Treasury", "...", ["Yes", "No"])
        service.select_proposal("admin", 1, "Treasury", "...", ["Yes", "No"])
        service.vote("alice", 1, 0)
        service.get_winner(1)

    Persistence (optional):
        service = TierDAOService(params, ledger, event_log=log, state_store=store)
        # State is persisted after each mutation and loaded on construction.
    """

    def __init__(
        self,
        params: DAOParams,
        ledger: LedgerOracle,
        event_log: Optional[EventLog] = None,
        state_store: Optional[StateStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._ledger = ledger
        self._event_log = event_log
        self._state_store = state_store
        self._clock = clock or _utcnow

        self._classifier = TierClassifier(ledger)
        self._weights = WeightCalculator(self._classifier)

        stored = state_store.load() if state_store is not None else None
        if stored is not None:
            self._params = params_from_record(stored["params"])
            if self._params.admins != params.admins:
                # configured admins win
                logger.warning(
                    "Stored admins %s differ from configured admins %s; using configured",
                    sorted(self._params.admins), sorted(params.admins),
                )
                self._params.admins = params.admins
            self._lifecycle = ProposalLifecycle.from_records(self._params, stored["lifecycle"])
            self._voting = VotingEngine.from_records(
                self._params, self._lifecycle, self._weights, stored["votes"],
            )
            logger.info("Loaded governance state from %s", state_store.path)
        else:
            self._params = params
            self._lifecycle = ProposalLifecycle(self._params)
            self._voting = VotingEngine(self._params, self._lifecycle, self._weights)
        self._controller = ParameterController(self._params, self._lifecycle)

        self._lock = threading.RLock()
        self._in_transaction = False
        self._pending_events: list[tuple[EventKind, str, dict[str, Any]]] = []
        self._event_counter = event_log.count if event_log is not None else 0
        self._persistence_degraded = False

    @classmethod
    def from_config(
        cls,
        config: DAOConfig,
        ledger: LedgerOracle,
        event_log: Optional[EventLog] = None,
        state_store: Optional[StateStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> TierDAOService:
        return cls(config.to_params(), ledger, event_log, state_store, clock)

    @property
    def params(self) -> DAOParams:
        return self._params

    @property
    def persistence_degraded(self) -> bool:
        return self._persistence_degraded

    # ------------------------------------------------------------------
    # Proposal lifecycle (admin)
    # ------------------------------------------------------------------

    def create_proposal(
        self,
        caller_id: str,
        title: str,
        description: str,
        choices: list[str],
        now: Optional[datetime] = None,
    ) -> ServiceResult:
        """Create a draft proposal in the current session."""
        def _op() -> dict[str, Any]:
            proposal = self._lifecycle.create_proposal(
                caller_id, title, description, choices, now=self._now(now),
            )
            self._emit(EventKind.PROPOSAL_CREATED, caller_id, {
                "proposal_id": proposal.proposal_id,
                "session_id": proposal.session_id,
                "creator_id": caller_id,
                "title": proposal.title,
                "description": proposal.description,
                "choices": list(proposal.choices),
            })
            return {"proposal_id": proposal.proposal_id, "session_id": proposal.session_id}

        return self._execute("create_proposal", caller_id, _op)

    def select_proposal(
        self,
        caller_id: str,
        proposal_id: int,
        title: str,
        description: str,
        choices: list[str],
        now: Optional[datetime] = None,
    ) -> ServiceResult:
        """Choose a draft for voting and close its session."""
        def _op() -> dict[str, Any]:
            session_id = self._lifecycle.get_proposal(proposal_id).session_id
            rejected = self._lifecycle.select_proposal(
                proposal_id, title, description, choices, now=self._now(now),
            )
            proposal = self._lifecycle.get_proposal(proposal_id)
            rejected_ids = [p.proposal_id for p in rejected]
            for p in rejected:
                self._emit(EventKind.PROPOSAL_STATUS_UPDATED, caller_id, {
                    "proposal_id": p.proposal_id,
                    "status": p.status.value,
                })
            self._emit(EventKind.PROPOSAL_STATUS_UPDATED, caller_id, {
                "proposal_id": proposal_id,
                "status": proposal.status.value,
                "start_utc": proposal.start_utc.isoformat(),
                "end_utc": proposal.end_utc.isoformat(),
            })
            self._emit(EventKind.SESSION_CLOSED, caller_id, {
                "session_id": session_id,
                "chosen_proposal_id": proposal_id,
                "rejected_proposal_ids": rejected_ids,
            })
            return {
                "proposal_id": proposal_id,
                "session_id": session_id,
                "next_session_id": self._lifecycle.current_session,
                "rejected": rejected_ids,
                "end_utc": proposal.end_utc.isoformat(),
            }

        return self._execute("select_proposal", caller_id, _op)

    def cancel_proposal(self, caller_id: str, proposal_id: int) -> ServiceResult:
        def _op() -> dict[str, Any]:
            proposal = self._lifecycle.cancel(proposal_id)
            self._emit(EventKind.PROPOSAL_CANCELLED, caller_id, {
                "proposal_id": proposal_id,
            })
            return {"proposal_id": proposal_id, "status": proposal.status.value}

        return self._execute("cancel_proposal", caller_id, _op)

    def finalize_status(
        self, caller_id: str, proposal_id: int, status: ProposalStatus | str,
    ) -> ServiceResult:
        """Set a chosen proposal's final status (passed, rejected or done)."""
        def _op() -> dict[str, Any]:
            target = self._parse(ProposalStatus, status)
            proposal = self._lifecycle.finalize(proposal_id, target)
            self._emit(EventKind.PROPOSAL_STATUS_UPDATED, caller_id, {
                "proposal_id": proposal_id,
                "status": proposal.status.value,
            })
            return {"proposal_id": proposal_id, "status": proposal.status.value}

        return self._execute("finalize_status", caller_id, _op)

    # ------------------------------------------------------------------
    # Voting (public)
    # ------------------------------------------------------------------

    def vote(
        self,
        voter_id: str,
        proposal_id: int,
        choice_index: int,
        now: Optional[datetime] = None,
    ) -> ServiceResult:
        """Cast a final, weighted vote on the chosen proposal."""
        def _op() -> dict[str, Any]:
            detail = self._voting.cast_vote(
                voter_id, proposal_id, choice_index, now=self._now(now),
            )
            self._emit(EventKind.VOTED, voter_id, {
                "proposal_id": proposal_id,
                "voter_id": voter_id,
                "choice_index": choice_index,
                "weight": detail.weight,
                "method": detail.method.value,
            })
            return {
                "proposal_id": proposal_id,
                "choice_index": choice_index,
                "weight": detail.weight,
                "method": detail.method.value,
            }

        return self._execute("vote", voter_id, _op, admin_only=False)

    # ------------------------------------------------------------------
    # Parameters (admin)
    # ------------------------------------------------------------------

    def update_thresholds(
        self, caller_id: str, vip: int, gold: int, silver: int, bronze: int,
    ) -> ServiceResult:
        def _op() -> dict[str, Any]:
            t = self._controller.update_thresholds(vip, gold, silver, bronze)
            value = {"vip": t.vip, "gold": t.gold, "silver": t.silver, "bronze": t.bronze}
            self._emit_parameter(caller_id, "thresholds", value)
            return {"thresholds": value}

        return self._execute("update_thresholds", caller_id, _op)

    def set_max_percentage(self, caller_id: str, value: int) -> ServiceResult:
        def _op() -> dict[str, Any]:
            cap = self._controller.set_max_percentage(value)
            self._emit_parameter(caller_id, "max_capped_percentage", cap)
            return {"max_capped_percentage": cap}

        return self._execute("set_max_percentage", caller_id, _op)

    def update_voting_duration(self, caller_id: str, days: int) -> ServiceResult:
        def _op() -> dict[str, Any]:
            duration = self._controller.set_voting_duration(days)
            self._emit_parameter(caller_id, "voting_duration_days", duration)
            return {"voting_duration_days": duration}

        return self._execute("update_voting_duration", caller_id, _op)

    def set_vote_method(
        self,
        caller_id: str,
        method: VoteMethod | str,
        now: Optional[datetime] = None,
    ) -> ServiceResult:
        def _op() -> dict[str, Any]:
            target = self._parse(VoteMethod, method)
            applied = self._controller.set_vote_method(target, now=self._now(now))
            self._emit_parameter(caller_id, "vote_method", applied.value)
            return {"vote_method": applied.value}

        return self._execute("set_vote_method", caller_id, _op)

    def set_paused(self, caller_id: str, paused: bool) -> ServiceResult:
        def _op() -> dict[str, Any]:
            state = self._controller.set_paused(paused)
            self._emit(EventKind.DAO_STATUS_UPDATED, caller_id, {"paused": state})
            return {"paused": state}

        return self._execute("set_paused", caller_id, _op)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_tier(self, account: str) -> Tier:
        with self._ledger_read():
            return self._classifier.tier_of(account, self._params.thresholds)

    def get_vote_percentage(self, account: str) -> int:
        with self._ledger_read():
            return self._weights.vote_percentage(account)

    def get_capped_percentage(self, account: str) -> int:
        with self._ledger_read():
            return self._weights.capped_vote_percentage(
                account, self._params.max_capped_percentage,
            )

    def get_proposal(self, proposal_id: int) -> Optional[Proposal]:
        with self._lock:
            try:
                return self._lifecycle.get_proposal(proposal_id)
            except GovernanceError:
                return None

    def list_proposals(
        self,
        status: Optional[ProposalStatus] = None,
        session_id: Optional[int] = None,
    ) -> list[Proposal]:
        with self._lock:
            return self._lifecycle.list_proposals(status, session_id)

    def get_proposal_vote(self, proposal_id: int, choice_index: int) -> int:
        """Accumulated weight for one choice.

        Raises:
            ProposalNotFound, InvalidChoiceIndex.
        """
        with self._lock:
            return self._voting.tally(proposal_id, choice_index)

    def get_all_tallies(self, proposal_id: int) -> list[int]:
        with self._lock:
            return self._voting.tallies(proposal_id)

    def get_vote_counts(self, proposal_id: int) -> list[int]:
        with self._lock:
            return self._voting.vote_counts(proposal_id)

    def get_winner(self, proposal_id: int) -> int:
        with self._lock:
            return self._voting.winner(proposal_id)

    def get_vote(self, proposal_id: int, voter_id: str) -> Optional[VoteDetail]:
        with self._lock:
            return self._voting.vote_of(proposal_id, voter_id)

    def get_active_proposal(self) -> Optional[int]:
        with self._lock:
            return self._params.active_proposal_id

    def status(self) -> dict[str, Any]:
        """Summary of parameters and proposals."""
        with self._lock:
            counts: dict[str, int] = {}
            for p in self._lifecycle.list_proposals():
                counts[p.status.value] = counts.get(p.status.value, 0) + 1
            return {
                "params": params_to_record(self._params),
                "current_session": self._lifecycle.current_session,
                "proposals": counts,
                "events": self._event_log.count if self._event_log is not None else 0,
                "persistence_degraded": self._persistence_degraded,
            }

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def _execute(
        self,
        operation: str,
        caller_id: str,
        op: Callable[[], dict[str, Any]],
        admin_only: bool = True,
    ) -> ServiceResult:
        """Run one mutating operation as an isolated, all-or-nothing transaction."""
        with self._lock:
            if self._in_transaction:
                err = ReentrantCall(f"{operation} called while another operation is in progress")
                logger.warning("Rejected %s by %s: %s", operation, caller_id, err)
                return ServiceResult(success=False, errors=[str(err)], error_code=err.code)

            self._in_transaction = True
            snapshot = self._snapshot()
            self._pending_events = []
            try:
                if admin_only:
                    self._require_admin(caller_id)
                data = op()
                err = self._commit_events()
                if err:
                    self._restore(snapshot)
                    return ServiceResult(success=False, errors=[err], error_code="EventLogFailure")
            except GovernanceError as e:
                self._restore(snapshot)
                logger.debug("Rejected %s by %s: %s", operation, caller_id, e)
                return ServiceResult(success=False, errors=[str(e)], error_code=e.code)
            except Exception:
                self._restore(snapshot)
                raise
            finally:
                self._release()
                self._in_transaction = False

            logger.info("%s by %s: %s", operation, caller_id, data)
            warning = self._safe_persist_post_audit()
            if warning:
                data["warning"] = warning
            return ServiceResult(success=True, data=data)

    def _require_admin(self, caller_id: str) -> None:
        if caller_id not in self._params.admins:
            raise Unauthorized(f"{caller_id} is not an admin")

    def _snapshot(self) -> tuple[Any, ...]:
        """Start undo records; cost does not grow with stored proposals or votes."""
        return (
            self._controller.snapshot(),
            self._lifecycle.snapshot(),
            self._voting.snapshot(),
        )

    def _restore(self, snapshot: tuple[Any, ...]) -> None:
        params, lifecycle, voting = snapshot
        self._voting.restore(voting)
        self._lifecycle.restore(lifecycle)
        self._controller.restore(params)
        self._pending_events = []

    def _release(self) -> None:
        self._voting.release()
        self._lifecycle.release()

    @contextmanager
    def _ledger_read(self) -> Iterator[None]:
        """Hold the lock for a ledger query and refuse mutations issued from inside it."""
        with self._lock:
            outer = self._in_transaction
            self._in_transaction = True
            try:
                yield
            finally:
                self._in_transaction = outer

    def _now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self._clock()

    @staticmethod
    def _parse(enum_cls: Any, value: Any) -> Any:
        try:
            return enum_cls(value)
        except ValueError:
            raise InvalidParameter(
                f"Unknown {enum_cls.__name__} {value!r}; "
                f"expected one of {[m.value for m in enum_cls]}"
            ) from None

    # ------------------------------------------------------------------
    # Events and persistence
    # ------------------------------------------------------------------

    def _emit(self, kind: EventKind, actor_id: str, payload: dict[str, Any]) -> None:
        self._pending_events.append((kind, actor_id, payload))

    def _emit_parameter(self, actor_id: str, name: str, value: Any) -> None:
        self._emit(EventKind.PARAMETERS_UPDATED, actor_id, {
            "parameter": name,
            "value": value,
            "version": self._params.version,
        })

    def _next_event_id(self) -> str:
        """Generate a monotonically increasing unique event ID."""
        self._event_counter += 1
        return f"EVT-{self._event_counter:08d}"

    def _commit_events(self) -> Optional[str]:
        """Write the buffered events as one batch. Returns error string or None.

        On failure nothing is logged and the event counter is rewound.
        """
        pending, self._pending_events = self._pending_events, []
        if self._event_log is None or not pending:
            return None
        counter = self._event_counter
        batch = [
            EventRecord.create(
                event_id=self._next_event_id(),
                event_kind=kind,
                actor_id=actor_id,
                payload=payload,
                timestamp_utc=self._clock(),
            )
            for kind, actor_id, payload in pending
        ]
        try:
            self._event_log.append_batch(batch)
        except (ValueError, OSError) as e:
            self._event_counter = counter
            logger.error("Event log failure: %s", e)
            return f"Event log failure: {e}"
        return None

    def _persist_state(self) -> None:
        if self._state_store is None:
            return
        self._state_store.save({
            "params": params_to_record(self._params),
            "lifecycle": self._lifecycle.to_records(),
            "votes": self._voting.to_records(),
        })

    def _safe_persist_post_audit(self) -> Optional[str]:
        """Persist state after events have been committed.

        Does not roll back: the event log already records the change.
        On failure the store is stale, the degraded flag is set and a
        warning is returned.
        """
        try:
            self._persist_state()
            return None
        except OSError as e:
            self._persistence_degraded = True
            logger.error("State store write failed: %s", e)
            return f"Persistence degraded: {e} — state committed in event log but StateStore is stale"
