"""Governance engine primitives — tiering, weighting, and proposal transitions."""

from tierdao.engine.state_machine import ProposalStateMachine
from tierdao.engine.tiering import TierClassifier
from tierdao.engine.weights import WeightCalculator

__all__ = ["ProposalStateMachine", "TierClassifier", "WeightCalculator"]
