"""Ledger oracle — read-only view of asset holdings.

The governance core never mutates the ledger. It asks three questions:
available balance, locked (staked) amount, and total supply.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional, Protocol


class LedgerOracle(Protocol):
    """Read-only asset ledger consumed by the tier classifier."""

    def balance_of(self, account: str) -> int: ...

    def locked_amount(self, account: str) -> int: ...

    def total_supply(self) -> int: ...


class InMemoryLedger:
    """Dict-backed ledger snapshot.

    Used in tests and by the CLI with a JSON snapshot of the form:
        {"total_supply": 1000000,
         "balances": {"alice": 500},
         "locked": {"alice": 250}}

    If total_supply is omitted it defaults to the sum of all balances
    and locked amounts.
    """

    def __init__(
        self,
        balances: Optional[dict[str, int]] = None,
        locked: Optional[dict[str, int]] = None,
        total_supply: Optional[int] = None,
    ) -> None:
        self._balances: dict[str, int] = dict(balances or {})
        self._locked: dict[str, int] = dict(locked or {})
        self._total_supply = total_supply

    @classmethod
    def from_json_file(cls, path: Path) -> InMemoryLedger:
        if not path.exists():
            raise FileNotFoundError(f"Ledger snapshot not found: {path}")
        with path.open("r", encoding="utf-8") as f:
            data: dict[str, Any] = json.load(f)
        for key in ("balances", "locked"):
            for account, amount in data.get(key, {}).items():
                if not isinstance(amount, int) or amount < 0:
                    raise ValueError(
                        f"Ledger {key} for {account!r} must be a non-negative integer"
                    )
        return cls(
            balances=data.get("balances"),
            locked=data.get("locked"),
            total_supply=data.get("total_supply"),
        )

    def set_balance(self, account: str, amount: int) -> None:
        self._balances[account] = amount

    def set_locked(self, account: str, amount: int) -> None:
        self._locked[account] = amount

    def set_total_supply(self, amount: Optional[int]) -> None:
        self._total_supply = amount

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def locked_amount(self, account: str) -> int:
        return self._locked.get(account, 0)

    def total_supply(self) -> int:
        if self._total_supply is not None:
            return self._total_supply
        return sum(self._balances.values()) + sum(self._locked.values())
