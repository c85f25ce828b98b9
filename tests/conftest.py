"""Shared fixtures for tierdao tests."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from tierdao.config import DAOConfig
from tierdao.engine.tiering import TierClassifier
from tierdao.engine.weights import WeightCalculator
from tierdao.governance.lifecycle import ProposalLifecycle
from tierdao.governance.params import ParameterController
from tierdao.governance.voting import VotingEngine
from tierdao.ledger.oracle import InMemoryLedger
from tierdao.models.governance import DAOParams, TierThresholds
from tierdao.persistence.event_log import EventLog
from tierdao.service import TierDAOService


CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"

ADMIN = "admin"
TOTAL_SUPPLY = 1_000_000


def now_utc() -> datetime:
    return datetime(2026, 3, 2, 12, 0, 0, tzinfo=timezone.utc)


def default_thresholds() -> TierThresholds:
    return TierThresholds(vip=100_000, gold=50_000, silver=10_000, bronze=1_000)


@pytest.fixture
def params() -> DAOParams:
    return DAOParams(thresholds=default_thresholds(), admins=frozenset({ADMIN, "admin2", "admin3"}))


@pytest.fixture
def ledger() -> InMemoryLedger:
    """Holders spanning every tier (balance + locked)."""
    return InMemoryLedger(
        balances={
            "vip": 80_000,
            "gold": 50_000,
            "silver": 9_000,
            "bronze": 1_000,
            "minnow": 10,
        },
        locked={
            "vip": 40_000,
            "silver": 1_000,
        },
        total_supply=TOTAL_SUPPLY,
    )


@pytest.fixture
def classifier(ledger: InMemoryLedger) -> TierClassifier:
    return TierClassifier(ledger)


@pytest.fixture
def weights(classifier: TierClassifier) -> WeightCalculator:
    return WeightCalculator(classifier)


@pytest.fixture
def lifecycle(params: DAOParams) -> ProposalLifecycle:
    return ProposalLifecycle(params)


@pytest.fixture
def voting(
    params: DAOParams, lifecycle: ProposalLifecycle, weights: WeightCalculator,
) -> VotingEngine:
    return VotingEngine(params, lifecycle, weights)


@pytest.fixture
def controller(params: DAOParams, lifecycle: ProposalLifecycle) -> ParameterController:
    return ParameterController(params, lifecycle)


@pytest.fixture
def event_log() -> EventLog:
    return EventLog()


@pytest.fixture
def service(params: DAOParams, ledger: InMemoryLedger, event_log: EventLog) -> TierDAOService:
    return TierDAOService(params, ledger, event_log=event_log, clock=now_utc)


@pytest.fixture
def config() -> DAOConfig:
    return DAOConfig.from_config_dir(CONFIG_DIR)
