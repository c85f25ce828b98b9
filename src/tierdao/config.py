"""Configuration — governance parameters from JSON, chain settings from the environment.

Usage:
    config = DAOConfig.from_config_dir(Path("config"))
    params = config.to_params()
    errors, warnings = check_config(Path("config"))

    settings = ChainSettings.from_env(Path(".env"))
    ledger = settings.ledger()

Governance parameters live in config/dao_params.json. Chain access (RPC
endpoint, contract addresses, admin identity) comes from environment
variables, optionally loaded from a .env file.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from tierdao.errors import GovernanceError
from tierdao.governance.params import (
    MAX_PERCENTAGE_UPDATE_BOUND,
    max_percentage_scale_warning,
)
from tierdao.models.governance import (
    DEFAULT_MAX_CAPPED_PERCENTAGE,
    DEFAULT_VOTING_DURATION_DAYS,
    MIN_VOTING_DURATION_DAYS,
    PERCENTAGE_BASE,
    DAOParams,
    TierThresholds,
    VoteMethod,
)


@dataclass(frozen=True)
class DAOConfig:
    """Initial governance parameters."""
    admins: frozenset[str]
    thresholds: TierThresholds
    max_capped_percentage: int = DEFAULT_MAX_CAPPED_PERCENTAGE
    voting_duration_days: int = DEFAULT_VOTING_DURATION_DAYS
    vote_method: VoteMethod = VoteMethod.TIER_POINT
    paused: bool = False

    PARAMS_FILENAME = "dao_params.json"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DAOConfig:
        """Build and validate a config.

        Raises:
            ValueError: If the config is structurally invalid
                (GovernanceError subclasses for bad thresholds).
        """
        admins = data.get("admins")
        if not isinstance(admins, list) or not admins:
            raise ValueError("Config 'admins' must be a non-empty list")
        if any(not isinstance(a, str) or not a.strip() for a in admins):
            raise ValueError("Config 'admins' entries must be non-empty strings")

        raw = data.get("thresholds")
        if not isinstance(raw, dict):
            raise ValueError("Config missing 'thresholds' object")
        missing = {"vip", "gold", "silver", "bronze"} - raw.keys()
        if missing:
            raise ValueError(f"Config thresholds missing: {sorted(missing)}")
        thresholds = TierThresholds(
            vip=int(raw["vip"]),
            gold=int(raw["gold"]),
            silver=int(raw["silver"]),
            bronze=int(raw["bronze"]),
        )

        duration = int(data.get("voting_duration_days", DEFAULT_VOTING_DURATION_DAYS))
        if duration < MIN_VOTING_DURATION_DAYS:
            raise ValueError(
                f"voting_duration_days must be >= {MIN_VOTING_DURATION_DAYS}, got {duration}"
            )
        cap = int(data.get("max_capped_percentage", DEFAULT_MAX_CAPPED_PERCENTAGE))
        if not 0 <= cap <= PERCENTAGE_BASE:
            raise ValueError(
                f"max_capped_percentage must be within 0..{PERCENTAGE_BASE}, got {cap}"
            )
        method = data.get("vote_method", VoteMethod.TIER_POINT.value)
        try:
            vote_method = VoteMethod(method)
        except ValueError:
            raise ValueError(
                f"Unknown vote_method {method!r}; "
                f"expected one of {[m.value for m in VoteMethod]}"
            ) from None

        return cls(
            admins=frozenset(admins),
            thresholds=thresholds,
            max_capped_percentage=cap,
            voting_duration_days=duration,
            vote_method=vote_method,
            paused=bool(data.get("paused", False)),
        )

    @classmethod
    def from_config_dir(cls, config_dir: Path) -> DAOConfig:
        """Load parameters from the canonical config directory.

        Raises:
            FileNotFoundError: If dao_params.json does not exist.
            ValueError: If the parameters are invalid.
        """
        path = config_dir / cls.PARAMS_FILENAME
        if not path.exists():
            raise FileNotFoundError(f"DAO params not found: {path}")
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        return cls.from_dict(data)

    def to_params(self) -> DAOParams:
        return DAOParams(
            thresholds=self.thresholds,
            max_capped_percentage=self.max_capped_percentage,
            voting_duration_days=self.voting_duration_days,
            vote_method=self.vote_method,
            paused=self.paused,
            admins=self.admins,
        )


def check_config(config_dir: Path) -> tuple[list[str], list[str]]:
    """Validate a config directory.

    Returns:
        (errors, warnings). Errors make the config unusable; warnings
        flag values that load but deserve a look.
    """
    errors: list[str] = []
    warnings: list[str] = []
    try:
        config = DAOConfig.from_config_dir(config_dir)
    except (FileNotFoundError, ValueError, GovernanceError) as exc:
        errors.append(str(exc))
        return errors, warnings

    cap = config.max_capped_percentage
    if cap > MAX_PERCENTAGE_UPDATE_BOUND:
        warnings.append(
            f"max_capped_percentage={cap} exceeds the admin update bound "
            f"(<= {MAX_PERCENTAGE_UPDATE_BOUND}); it cannot be set again once changed"
        )
    else:
        warning = max_percentage_scale_warning(cap)
        if warning:
            warnings.append(warning)
    return errors, warnings


@dataclass(frozen=True)
class ChainSettings:
    """Chain access settings read from the environment."""
    rpc_url: Optional[str] = None
    token_address: Optional[str] = None
    locker_address: Optional[str] = None
    admin_address: Optional[str] = None

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> ChainSettings:
        """Read TIERDAO_* variables, loading env_file first if it exists.

        The admin address is taken from TIERDAO_ADMIN_ADDRESS or derived
        from TIERDAO_ADMIN_PRIVATE_KEY.
        """
        from dotenv import load_dotenv

        if env_file is not None and env_file.exists():
            load_dotenv(env_file)

        admin = os.getenv("TIERDAO_ADMIN_ADDRESS")
        key = os.getenv("TIERDAO_ADMIN_PRIVATE_KEY")
        if not admin and key:
            admin = admin_address_from_key(key)

        return cls(
            rpc_url=os.getenv("TIERDAO_RPC_URL"),
            token_address=os.getenv("TIERDAO_TOKEN_ADDRESS"),
            locker_address=os.getenv("TIERDAO_LOCKER_ADDRESS"),
            admin_address=admin,
        )

    @property
    def has_chain(self) -> bool:
        return bool(self.rpc_url and self.token_address)

    def ledger(self) -> Any:
        """Connect a ChainLedger using these settings."""
        if not self.has_chain:
            raise ValueError("TIERDAO_RPC_URL and TIERDAO_TOKEN_ADDRESS are required")
        from tierdao.ledger.chain import ChainLedger

        return ChainLedger.connect(self.rpc_url, self.token_address, self.locker_address)


def admin_address_from_key(private_key: str) -> str:
    """Derive the account address for a hex-encoded private key."""
    from eth_account import Account

    return Account.from_key(private_key).address
