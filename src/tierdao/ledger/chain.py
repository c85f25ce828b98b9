"""On-chain ledger oracle — reads holdings from an ERC-20 token and a locker.

Available balance and total supply come from the token contract
(``balanceOf`` / ``totalSupply``). The locked amount comes from a staking
or locking contract exposing ``lockedAmount(address)``. Only ``call()`` is
ever issued; no transaction is signed or sent from here.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


ERC20_ABI: list[dict[str, Any]] = [
    {
        "constant": True,
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "totalSupply",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]

LOCKER_ABI: list[dict[str, Any]] = [
    {
        "constant": True,
        "inputs": [{"name": "account", "type": "address"}],
        "name": "lockedAmount",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]


class ChainLedger:
    """Ledger oracle backed by contract view calls.

    Usage:
        ledger = ChainLedger.connect(rpc_url, token_address, locker_address)
        ledger.balance_of("0xabc...")

    The locker is optional; without one every locked amount is zero.
    """

    def __init__(
        self,
        token_contract: Any,
        locker_contract: Optional[Any] = None,
        to_checksum: Any = None,
    ) -> None:
        self._token = token_contract
        self._locker = locker_contract
        self._to_checksum = to_checksum or (lambda account: account)

    @classmethod
    def connect(
        cls,
        rpc_url: str,
        token_address: str,
        locker_address: Optional[str] = None,
    ) -> ChainLedger:
        """Build a ledger from an RPC endpoint and contract addresses."""
        from web3 import Web3, HTTPProvider

        w3 = Web3(HTTPProvider(rpc_url))
        token = w3.eth.contract(
            address=Web3.to_checksum_address(token_address), abi=ERC20_ABI,
        )
        locker = None
        if locker_address:
            locker = w3.eth.contract(
                address=Web3.to_checksum_address(locker_address), abi=LOCKER_ABI,
            )
        logger.info(
            "Connected chain ledger token=%s locker=%s", token_address, locker_address,
        )
        return cls(token, locker, to_checksum=Web3.to_checksum_address)

    def balance_of(self, account: str) -> int:
        return int(self._token.functions.balanceOf(self._to_checksum(account)).call())

    def locked_amount(self, account: str) -> int:
        if self._locker is None:
            return 0
        return int(self._locker.functions.lockedAmount(self._to_checksum(account)).call())

    def total_supply(self) -> int:
        return int(self._token.functions.totalSupply().call())
