"""Governance engines — proposal lifecycle, voting, and parameter control."""

from tierdao.governance.lifecycle import ProposalLifecycle
from tierdao.governance.params import ParameterController
from tierdao.governance.voting import VotingEngine

__all__ = ["ParameterController", "ProposalLifecycle", "VotingEngine"]
