"""tierdao CLI — command-line interface for the governance engine.

Usage:
    python -m tierdao.cli status
    python -m tierdao.cli check-config
    python -m tierdao.cli --ledger ledger.json tier --account alice
    python -m tierdao.cli create-proposal --caller admin --title "Fees" --choice Yes --choice No
    python -m tierdao.cli select-proposal --caller admin --id 1 --title "Fees" --choice Yes --choice No
    python -m tierdao.cli --ledger ledger.json vote --caller alice --id 1 --choice-index 0
    python -m tierdao.cli finalize --caller admin --id 1 --status passed
    python -m tierdao.cli results --id 1

The ledger is read from a JSON snapshot (--ledger) or, when TIERDAO_RPC_URL
and TIERDAO_TOKEN_ADDRESS are set, from the chain. --caller defaults to
the admin address from the environment.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from tierdao.config import ChainSettings, DAOConfig, check_config
from tierdao.ledger.oracle import InMemoryLedger
from tierdao.models.governance import FINAL_STATUSES, VoteMethod
from tierdao.persistence.event_log import EventLog
from tierdao.persistence.state_store import StateStore
from tierdao.service import ServiceResult, TierDAOService


ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG = ROOT / "config"
DEFAULT_DATA = ROOT / "data"
DEFAULT_ENV = ROOT / ".env"


def _settings(args: argparse.Namespace) -> ChainSettings:
    return ChainSettings.from_env(args.env)


def _make_ledger(args: argparse.Namespace) -> Any:
    if args.ledger is not None:
        return InMemoryLedger.from_json_file(args.ledger)
    settings = _settings(args)
    if settings.has_chain:
        return settings.ledger()
    return InMemoryLedger()


def _make_service(args: argparse.Namespace) -> TierDAOService:
    """Create a TierDAOService with durable persistence."""
    data_dir: Path = args.data
    data_dir.mkdir(parents=True, exist_ok=True)
    config = DAOConfig.from_config_dir(args.config)
    return TierDAOService.from_config(
        config,
        _make_ledger(args),
        event_log=EventLog(storage_path=data_dir / "events.jsonl"),
        state_store=StateStore(storage_path=data_dir / "state.json"),
    )


def _caller(args: argparse.Namespace) -> Optional[str]:
    if args.caller:
        return args.caller
    return _settings(args).admin_address


def _report(result: ServiceResult) -> int:
    if result.success:
        print(json.dumps(result.data, indent=2, default=str))
        return 0
    print(f"Failed ({result.error_code}): {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def _require_caller(args: argparse.Namespace) -> Optional[str]:
    caller = _caller(args)
    if not caller:
        print("Failed: --caller is required (or set TIERDAO_ADMIN_ADDRESS)", file=sys.stderr)
    return caller


def cmd_status(args: argparse.Namespace) -> int:
    service = _make_service(args)
    print(json.dumps(service.status(), indent=2))
    return 0


def cmd_check_config(args: argparse.Namespace) -> int:
    errors, warnings = check_config(args.config)
    for w in warnings:
        print(f"WARNING: {w}")
    if errors:
        for e in errors:
            print(f"ERROR: {e}", file=sys.stderr)
        return 1
    print("Config OK")
    return 0


def cmd_tier(args: argparse.Namespace) -> int:
    service = _make_service(args)
    print(json.dumps({
        "account": args.account,
        "tier": service.get_tier(args.account).name,
        "vote_percentage": service.get_vote_percentage(args.account),
        "capped_percentage": service.get_capped_percentage(args.account),
    }, indent=2))
    return 0


def cmd_create_proposal(args: argparse.Namespace) -> int:
    caller = _require_caller(args)
    if not caller:
        return 1
    service = _make_service(args)
    return _report(service.create_proposal(
        caller, args.title, args.description, args.choices or [],
    ))


def cmd_select_proposal(args: argparse.Namespace) -> int:
    caller = _require_caller(args)
    if not caller:
        return 1
    service = _make_service(args)
    proposal = service.get_proposal(args.id)
    title = args.title if args.title is not None else (proposal.title if proposal else "")
    description = (
        args.description if args.description is not None
        else (proposal.description if proposal else "")
    )
    choices = args.choices or (list(proposal.choices) if proposal else [])
    return _report(service.select_proposal(caller, args.id, title, description, choices))


def cmd_vote(args: argparse.Namespace) -> int:
    caller = _require_caller(args)
    if not caller:
        return 1
    service = _make_service(args)
    return _report(service.vote(caller, args.id, args.choice_index))


def cmd_cancel_proposal(args: argparse.Namespace) -> int:
    caller = _require_caller(args)
    if not caller:
        return 1
    service = _make_service(args)
    return _report(service.cancel_proposal(caller, args.id))


def cmd_finalize(args: argparse.Namespace) -> int:
    caller = _require_caller(args)
    if not caller:
        return 1
    service = _make_service(args)
    return _report(service.finalize_status(caller, args.id, args.status))


def cmd_set_method(args: argparse.Namespace) -> int:
    caller = _require_caller(args)
    if not caller:
        return 1
    service = _make_service(args)
    return _report(service.set_vote_method(caller, args.method))


def cmd_pause(args: argparse.Namespace) -> int:
    caller = _require_caller(args)
    if not caller:
        return 1
    service = _make_service(args)
    return _report(service.set_paused(caller, args.state == "on"))


def cmd_results(args: argparse.Namespace) -> int:
    service = _make_service(args)
    proposal = service.get_proposal(args.id)
    if proposal is None:
        print(f"Failed: proposal not found: {args.id}", file=sys.stderr)
        return 1
    winner = service.get_winner(args.id)
    print(json.dumps({
        "proposal_id": proposal.proposal_id,
        "title": proposal.title,
        "status": proposal.status.value,
        "choices": proposal.choices,
        "tallies": service.get_all_tallies(args.id),
        "vote_counts": service.get_vote_counts(args.id),
        "winner_index": winner,
        "winner": proposal.choices[winner],
    }, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tierdao",
        description="tierdao — tiered governance engine CLI",
    )
    parser.add_argument(
        "--config", type=Path, default=DEFAULT_CONFIG,
        help="Path to config directory (default: config/)",
    )
    parser.add_argument(
        "--data", type=Path, default=DEFAULT_DATA,
        help="Path to data directory for events and state (default: data/)",
    )
    parser.add_argument(
        "--ledger", type=Path, default=None,
        help="JSON ledger snapshot (default: chain settings from the environment)",
    )
    parser.add_argument(
        "--env", type=Path, default=DEFAULT_ENV,
        help="Path to .env file (default: .env)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command")

    # status
    sub.add_parser("status", help="Show governance status")

    # check-config
    sub.add_parser("check-config", help="Validate config/dao_params.json")

    # tier
    p_tier = sub.add_parser("tier", help="Show an account's tier and vote percentages")
    p_tier.add_argument("--account", required=True, help="Account ID or address")

    # create-proposal
    p_create = sub.add_parser("create-proposal", help="Create a draft proposal")
    p_create.add_argument("--caller", help="Admin account")
    p_create.add_argument("--title", required=True, help="Proposal title")
    p_create.add_argument("--description", default="", help="Proposal description")
    p_create.add_argument(
        "--choice", dest="choices", action="append",
        help="Choice label (repeat 2-4 times)",
    )

    # select-proposal
    p_select = sub.add_parser("select-proposal", help="Choose a draft and close the session")
    p_select.add_argument("--caller", help="Admin account")
    p_select.add_argument("--id", type=int, required=True, help="Proposal ID")
    p_select.add_argument("--title", help="New title (default: keep)")
    p_select.add_argument("--description", help="New description (default: keep)")
    p_select.add_argument(
        "--choice", dest="choices", action="append",
        help="New choice label (repeat 2-4 times; default: keep)",
    )

    # vote
    p_vote = sub.add_parser("vote", help="Vote on the chosen proposal")
    p_vote.add_argument("--caller", help="Voter account")
    p_vote.add_argument("--id", type=int, required=True, help="Proposal ID")
    p_vote.add_argument("--choice-index", type=int, required=True, help="Choice index")

    # cancel-proposal
    p_cancel = sub.add_parser("cancel-proposal", help="Cancel a chosen proposal")
    p_cancel.add_argument("--caller", help="Admin account")
    p_cancel.add_argument("--id", type=int, required=True, help="Proposal ID")

    # finalize
    p_final = sub.add_parser("finalize", help="Set a chosen proposal's final status")
    p_final.add_argument("--caller", help="Admin account")
    p_final.add_argument("--id", type=int, required=True, help="Proposal ID")
    p_final.add_argument(
        "--status", required=True,
        choices=sorted(s.value for s in FINAL_STATUSES),
    )

    # set-method
    p_method = sub.add_parser("set-method", help="Switch the vote method")
    p_method.add_argument("--caller", help="Admin account")
    p_method.add_argument(
        "--method", required=True, choices=[m.value for m in VoteMethod],
    )

    # pause
    p_pause = sub.add_parser("pause", help="Pause or unpause proposals and voting")
    p_pause.add_argument("--caller", help="Admin account")
    p_pause.add_argument("--state", required=True, choices=["on", "off"])

    # results
    p_results = sub.add_parser("results", help="Show tallies and winner")
    p_results.add_argument("--id", type=int, required=True, help="Proposal ID")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "status": cmd_status,
        "check-config": cmd_check_config,
        "tier": cmd_tier,
        "create-proposal": cmd_create_proposal,
        "select-proposal": cmd_select_proposal,
        "vote": cmd_vote,
        "cancel-proposal": cmd_cancel_proposal,
        "finalize": cmd_finalize,
        "set-method": cmd_set_method,
        "pause": cmd_pause,
        "results": cmd_results,
    }
    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1
    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
