"""Ledger oracles — read-only sources of holdings and total supply."""

from tierdao.ledger.oracle import InMemoryLedger, LedgerOracle
from tierdao.ledger.chain import ChainLedger

__all__ = ["ChainLedger", "InMemoryLedger", "LedgerOracle"]
