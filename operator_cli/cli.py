"""Operator CLI for vault position steps."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from decimal import Decimal
from typing import List, Optional

from execution_controller.controller import (
    ExecutionBlockedError,
    ExecutionController,
    ModeTransitionError,
    PolicyViolationError,
)
from execution_controller.modes import ExecutionMode, StepOutcome
from execution_controller.policy import GuardPolicy
from ledger_adapter.signer import LocalPermitSigner
from ledger_adapter.simulator import DryRunLedger
from leverage_engine.models import LeverageIntent
from leverage_engine.quotes import ONE_INCH, OneInchQuoteClient
from leverage_engine.solver import LeverageSolver, solve_debt_change, swap_amount
from position_core.errors import PositionError
from position_core.fixed_point import (
    DEBT_CHANGE_TO_CLOSE,
    MAX_DECIMAL,
    ZERO,
    is_close_sentinel,
    to_decimal,
)
from position_core.models import Position
from position_core.tokens import parse_token
from settings.config import NetworkConfig, load_network_config
from settings.logging_utils import setup_logging
from step_engine.models import ManageIntent, Step, StepKind, StepsPrefetch
from step_engine.planner import ManageStepSequence, StepPlanner

DEFAULT_SEED = "00" * 31 + "01"


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="vault-steps")
    parser.add_argument("--network", default=None)
    parser.add_argument("--log-level", default="WARNING")
    subparsers = parser.add_subparsers(dest="command", required=True)

    position_parser = subparsers.add_parser("position")
    position_sub = position_parser.add_subparsers(dest="position_command", required=True)
    position_health = position_sub.add_parser("health")
    _add_position_args(position_health)
    position_health.add_argument("--price", required=True)
    position_health.set_defaults(func=_position_health)

    steps_parser = subparsers.add_parser("steps")
    steps_sub = steps_parser.add_subparsers(dest="steps_command", required=True)

    steps_plan = steps_sub.add_parser("plan")
    _add_steps_args(steps_plan)
    steps_plan.set_defaults(func=_steps_plan)

    steps_run = steps_sub.add_parser("run")
    _add_steps_args(steps_run)
    steps_run.add_argument("--mode", choices=("manual", "guarded"), required=True)
    steps_run.add_argument("--arm", action="store_true")
    steps_run.add_argument("--yes", action="store_true")
    steps_run.add_argument("--allowed-kind", action="append", default=[])
    steps_run.add_argument("--allowed-token", action="append")
    steps_run.set_defaults(func=_steps_run)

    leverage_parser = subparsers.add_parser("leverage")
    leverage_sub = leverage_parser.add_subparsers(dest="leverage_command", required=True)
    leverage_solve = leverage_sub.add_parser("solve")
    _add_position_args(leverage_solve)
    leverage_solve.add_argument("--principal-collateral", default=None)
    leverage_solve.add_argument("--leverage", required=True)
    leverage_solve.add_argument("--principal-collateral-change", default="0")
    leverage_solve.add_argument("--price", required=True)
    leverage_solve.add_argument("--borrowing-rate", default="0")
    leverage_solve.add_argument("--swap-price", default=None)
    leverage_solve.add_argument("--slippage", default="0.005")
    leverage_solve.set_defaults(func=_leverage_solve)

    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    try:
        return args.func(args)
    except (
        ValueError,
        PositionError,
        ExecutionBlockedError,
        PolicyViolationError,
        ModeTransitionError,
    ) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2


def _position_health(args: argparse.Namespace) -> int:
    position = _build_position(args)
    price = to_decimal(args.price)
    output = {
        "underlying_token": position.underlying_token.value,
        "collateral": str(position.collateral),
        "debt": str(position.debt),
        "collateral_ratio": _amount(position.collateral_ratio(price)),
        "min_collateral_ratio": str(position.min_collateral_ratio),
        "below_minimum": position.is_collateral_ratio_below_minimum(price),
        "liquidation_price_limit": (
            str(position.liquidation_price_limit()) if position.collateral > ZERO else None
        ),
        "is_opened": position.is_opened,
        "is_valid": position.is_valid(price),
    }
    print(json.dumps(output, indent=2))
    return 0


def _steps_plan(args: argparse.Namespace) -> int:
    config = load_network_config(args.network)
    ledger = DryRunLedger(config)
    planner = StepPlanner(config, ledger, _build_signer(args))
    sequence = planner.plan(_build_position(args), _build_intent(args), _build_prefetch(args))
    print(json.dumps(_sequence_to_dict(config, sequence), indent=2))
    return 0


def _steps_run(args: argparse.Namespace) -> int:
    config = load_network_config(args.network)
    ledger = DryRunLedger(config)
    planner = StepPlanner(config, ledger, _build_signer(args))

    controller = ExecutionController(ledger)
    if args.mode == "manual":
        controller.set_mode(ExecutionMode.MANUAL)
    else:
        controller.set_mode(ExecutionMode.GUARDED, policy=_build_policy(args))

    if not args.arm:
        raise ExecutionBlockedError("Execution must be armed explicitly.")
    controller.arm()

    sequence = planner.plan(_build_position(args), _build_intent(args), _build_prefetch(args))

    confirm_step = None
    if args.mode == "manual":
        confirm_step = _confirm_step if args.yes else _prompt_step

    outcomes = controller.run(sequence, confirm_step=confirm_step)
    output = {
        "network": config.name,
        "mode": args.mode,
        "outcomes": [_outcome_to_dict(outcome) for outcome in outcomes],
        "dry_run": asdict(ledger.summary()),
    }
    print(json.dumps(output, indent=2))
    return 0


def _leverage_solve(args: argparse.Namespace) -> int:
    position = _build_position(args)
    if args.principal_collateral is not None:
        position.set_principal_collateral(args.principal_collateral)
    intent = LeverageIntent(
        principal_collateral_change=args.principal_collateral_change,
        leverage=args.leverage,
        slippage=args.slippage,
    )
    price = to_decimal(args.price)
    borrowing_rate = to_decimal(args.borrowing_rate)

    if args.swap_price is None:
        config = load_network_config(args.network)
        solver = LeverageSolver(config, OneInchQuoteClient(config, router=ONE_INCH))
        solution = solver.solve(position, intent, price, borrowing_rate)
        output = {
            "debt_change": _amount(solution.debt_change),
            "swap_price": str(solution.swap_price),
            "swap_from": solution.swap_from.value if solution.swap_from is not None else None,
            "swap_to": solution.swap_to.value if solution.swap_to is not None else None,
            "swap_amount": str(solution.swap_amount),
            "min_return": str(solution.min_return),
        }
        print(json.dumps(output, indent=2))
        return 0

    swap_price = to_decimal(args.swap_price)
    principal = position.principal_collateral
    if principal is None:
        principal = position.collateral
    debt_change = solve_debt_change(
        principal,
        position.debt,
        intent.leverage,
        intent.principal_collateral_change,
        price,
        borrowing_rate,
        swap_price,
    )
    output = {
        "debt_change": _amount(debt_change),
        "swap_price": str(swap_price),
        "swap_amount": None if is_close_sentinel(debt_change) else str(swap_amount(debt_change, swap_price)),
    }
    print(json.dumps(output, indent=2))
    return 0


def _add_position_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--underlying", required=True)
    parser.add_argument("--collateral", default="0")
    parser.add_argument("--debt", default="0")


def _add_steps_args(parser: argparse.ArgumentParser) -> None:
    _add_position_args(parser)
    parser.add_argument("--collateral-change", default="0")
    parser.add_argument("--debt-change", default="0")
    parser.add_argument("--close", action="store_true")
    parser.add_argument("--collateral-token", default=None)
    parser.add_argument("--approval", choices=("signature", "transaction"), default="signature")
    parser.add_argument("--max-fee", default="1")
    parser.add_argument("--whitelisted", action="store_true")
    parser.add_argument("--collateral-allowance", default=None)
    parser.add_argument("--debt-allowance", default=None)
    parser.add_argument("--seed", default=DEFAULT_SEED)


def _build_position(args: argparse.Namespace) -> Position:
    return Position(parse_token(args.underlying), args.collateral, args.debt)


def _build_intent(args: argparse.Namespace) -> ManageIntent:
    options = {
        "collateral_token": args.collateral_token,
        "max_fee_percentage": args.max_fee,
        "approval_preference": args.approval,
    }
    if args.close:
        return ManageIntent.close(**options)
    return ManageIntent(args.collateral_change, args.debt_change, **options)


def _build_prefetch(args: argparse.Namespace) -> StepsPrefetch:
    return StepsPrefetch(
        is_delegate_whitelisted=True if args.whitelisted else None,
        collateral_allowance=_optional_amount(args.collateral_allowance),
        debt_allowance=_optional_amount(args.debt_allowance),
    )


def _build_signer(args: argparse.Namespace) -> LocalPermitSigner:
    try:
        seed = bytes.fromhex(args.seed)
    except ValueError as exc:
        raise ValueError("Seed must be hex encoded.") from exc
    return LocalPermitSigner(seed)


def _build_policy(args: argparse.Namespace) -> GuardPolicy:
    if not args.allowed_kind:
        raise PolicyViolationError("Guarded mode requires allowed step kinds.")
    kinds = tuple(_parse_kind(kind) for kind in args.allowed_kind)
    tokens = tuple(parse_token(token) for token in args.allowed_token) if args.allowed_token else None
    return GuardPolicy(allowed_step_kinds=kinds, allowed_tokens=tokens)


def _parse_kind(value: str) -> StepKind:
    normalized = value.strip().upper()
    for kind in StepKind:
        if kind.value == normalized:
            return kind
    raise ValueError(f"Unsupported step kind: {value}")


def _optional_amount(value: Optional[str]) -> Optional[Decimal]:
    if value is None:
        return None
    return to_decimal(value)


def _amount(value: Decimal) -> str:
    if value == MAX_DECIMAL:
        return "max"
    if value == DEBT_CHANGE_TO_CLOSE:
        return "close"
    return str(value)


def _sequence_to_dict(config: NetworkConfig, sequence: ManageStepSequence) -> dict:
    needed = sequence.needed_steps
    return {
        "network": config.name,
        "number_of_steps": sequence.number_of_steps,
        "needed_steps": {
            "whitelist": needed.whitelist_needed,
            "collateral_authorization": needed.collateral_auth_needed,
            "debt_authorization": needed.debt_auth_needed,
        },
        "steps": [str(step_type) for step_type in sequence.outline],
    }


def _outcome_to_dict(outcome: StepOutcome) -> dict:
    return {
        "step_number": outcome.step_number,
        "kind": outcome.kind.value,
        "token": outcome.token.value if outcome.token is not None else None,
        "tx_id": outcome.tx_id,
        "signed": outcome.signed,
        "reason": outcome.reason,
    }


def _confirm(prompt: str) -> bool:
    response = input(prompt)
    return response.strip().lower() in {"y", "yes"}


def _confirm_step(step: Step) -> bool:
    return True


def _prompt_step(step: Step) -> bool:
    return _confirm(f"Confirm step {step.step_number}/{step.number_of_steps} {step.type}: {step.rationale}? [y/N]: ")


if __name__ == "__main__":
    raise SystemExit(main())
