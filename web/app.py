"""Local-first FastAPI shell for planning and dry-running vault steps."""

from __future__ import annotations

import os
from dataclasses import asdict
from decimal import Decimal
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from execution_controller.controller import (
    ExecutionBlockedError,
    ExecutionController,
    ModeTransitionError,
    PolicyViolationError,
)
from execution_controller.modes import ExecutionMode
from execution_controller.policy import GuardPolicy
from ledger_adapter.signer import LocalPermitSigner
from ledger_adapter.simulator import DryRunLedger
from leverage_engine.models import LeverageIntent
from leverage_engine.quotes import OneInchQuoteClient
from leverage_engine.solver import LeverageSolver, solve_debt_change, swap_amount
from position_core.errors import PositionError
from position_core.fixed_point import DEBT_CHANGE_TO_CLOSE, MAX_DECIMAL, ZERO, is_close_sentinel
from position_core.models import Position
from position_core.tokens import parse_token
from settings.config import load_network_config
from step_engine.models import ManageIntent, StepKind, StepsPrefetch
from step_engine.planner import StepPlanner

app = FastAPI(title="Vault Steps", description="Local-first step planner shell")

_CONFIG = load_network_config()
_SIGNER = LocalPermitSigner(bytes.fromhex(os.getenv("VAULT_SIGNER_SEED", "00" * 31 + "01")))
_STATE: Dict[str, object] = {}


class PositionInput(BaseModel):
    underlying_token: str
    collateral: Decimal = Decimal(0)
    debt: Decimal = Decimal(0)
    principal_collateral: Optional[Decimal] = None


class HealthRequest(BaseModel):
    position: PositionInput
    price: Decimal


class IntentInput(BaseModel):
    collateral_change: Decimal = Decimal(0)
    debt_change: Decimal = Decimal(0)
    close: bool = False
    collateral_token: Optional[str] = None
    max_fee_percentage: Decimal = Decimal(1)
    approval_preference: str = "signature"


class StepsRequest(BaseModel):
    position: PositionInput
    intent: IntentInput
    is_delegate_whitelisted: Optional[bool] = None
    collateral_allowance: Optional[Decimal] = None
    debt_allowance: Optional[Decimal] = None


class StepsRunRequest(StepsRequest):
    confirm_all: bool


class LeverageRequest(BaseModel):
    position: PositionInput
    leverage: Decimal
    principal_collateral_change: Decimal = Decimal(0)
    price: Decimal
    borrowing_rate: Decimal = Decimal(0)
    slippage: Decimal = Decimal("0.005")
    swap_price: Optional[Decimal] = None


class ExecutionModeRequest(BaseModel):
    mode: str
    allowed_step_kinds: Optional[List[str]] = None
    allowed_tokens: Optional[List[str]] = None


class ExecutionArmRequest(BaseModel):
    armed: bool


@app.middleware("http")
async def _local_only(request: Request, call_next):
    client = request.client
    if client is not None:
        host = client.host
        if host not in {"127.0.0.1", "::1", "testclient"}:
            return JSONResponse({"error": "Remote access disabled."}, status_code=403)
    return await call_next(request)


async def _handle_errors(request: Request, exc: Exception):
    return JSONResponse({"error": str(exc)}, status_code=400)


for _exc_class in (
    ExecutionBlockedError,
    ModeTransitionError,
    PolicyViolationError,
    PositionError,
    ValueError,
    KeyError,
):
    app.add_exception_handler(_exc_class, _handle_errors)


@app.get("/api/status")
async def status():
    controller = _controller()
    return {
        "network": _CONFIG.name,
        "owner": _SIGNER.address,
        "execution_mode": controller.mode.value,
        "armed": controller.armed,
        "transactions": len(_ledger().summary().tx_results),
    }


@app.post("/api/position/health")
async def position_health(payload: HealthRequest):
    position = _build_position(payload.position)
    ratio = position.collateral_ratio(payload.price)
    return {
        "collateral_ratio": "max" if ratio == MAX_DECIMAL else str(ratio),
        "min_collateral_ratio": str(position.min_collateral_ratio),
        "below_minimum": position.is_collateral_ratio_below_minimum(payload.price),
        "liquidation_price_limit": (
            str(position.liquidation_price_limit()) if position.collateral > ZERO else None
        ),
        "is_opened": position.is_opened,
        "is_valid": position.is_valid(payload.price),
    }


@app.post("/api/steps/preview")
async def preview_steps(payload: StepsRequest):
    sequence = _planner().plan(
        _build_position(payload.position), _build_intent(payload.intent), _build_prefetch(payload)
    )
    needed = sequence.needed_steps
    return {
        "number_of_steps": sequence.number_of_steps,
        "needed_steps": {
            "whitelist": needed.whitelist_needed,
            "collateral_authorization": needed.collateral_auth_needed,
            "debt_authorization": needed.debt_auth_needed,
        },
        "steps": [str(step_type) for step_type in sequence.outline],
    }


@app.post("/api/steps/run")
async def run_steps(payload: StepsRunRequest):
    controller = _controller()
    confirm_step = None
    if controller.mode == ExecutionMode.MANUAL:
        if not payload.confirm_all:
            raise HTTPException(status_code=400, detail="Manual mode requires confirm_all.")
        confirm_step = _confirm_all

    sequence = _planner().plan(
        _build_position(payload.position), _build_intent(payload.intent), _build_prefetch(payload)
    )
    outcomes = controller.run(sequence, confirm_step=confirm_step)
    return {
        "mode": controller.mode.value,
        "outcomes": [
            {
                "step_number": outcome.step_number,
                "kind": outcome.kind.value,
                "token": outcome.token.value if outcome.token is not None else None,
                "tx_id": outcome.tx_id,
                "signed": outcome.signed,
                "reason": outcome.reason,
            }
            for outcome in outcomes
        ],
        "dry_run": asdict(_ledger().summary()),
    }


@app.post("/api/leverage/solve")
async def leverage_solve(payload: LeverageRequest):
    position = _build_position(payload.position)
    intent = LeverageIntent(
        principal_collateral_change=payload.principal_collateral_change,
        leverage=payload.leverage,
        slippage=payload.slippage,
    )
    if payload.swap_price is None:
        solver = LeverageSolver(_CONFIG, OneInchQuoteClient(_CONFIG))
        solution = solver.solve(position, intent, payload.price, payload.borrowing_rate)
        return {
            "debt_change": _amount(solution.debt_change),
            "swap_price": str(solution.swap_price),
            "swap_amount": str(solution.swap_amount),
            "min_return": str(solution.min_return),
        }

    principal = position.principal_collateral
    if principal is None:
        principal = position.collateral
    debt_change = solve_debt_change(
        principal,
        position.debt,
        intent.leverage,
        intent.principal_collateral_change,
        payload.price,
        payload.borrowing_rate,
        payload.swap_price,
    )
    return {
        "debt_change": _amount(debt_change),
        "swap_price": str(payload.swap_price),
        "swap_amount": None if is_close_sentinel(debt_change) else str(swap_amount(debt_change, payload.swap_price)),
    }


@app.post("/api/execution/mode")
async def set_execution_mode(payload: ExecutionModeRequest):
    mode = _parse_mode(payload.mode)
    policy = None
    if mode == ExecutionMode.GUARDED:
        if not payload.allowed_step_kinds:
            raise HTTPException(status_code=400, detail="Guarded mode requires allowed step kinds.")
        kinds = tuple(_parse_kind(kind) for kind in payload.allowed_step_kinds)
        tokens = tuple(parse_token(token) for token in payload.allowed_tokens) if payload.allowed_tokens else None
        policy = GuardPolicy(allowed_step_kinds=kinds, allowed_tokens=tokens)
    controller = _controller()
    controller.set_mode(mode, policy=policy)
    return {"mode": controller.mode.value}


@app.post("/api/execution/arm")
async def set_execution_arm(payload: ExecutionArmRequest):
    controller = _controller()
    if payload.armed:
        controller.arm()
    else:
        controller.disarm()
    return {"armed": controller.armed}


def _confirm_all(step) -> bool:
    return True


def _build_position(data: PositionInput) -> Position:
    position = Position(parse_token(data.underlying_token), data.collateral, data.debt)
    if data.principal_collateral is not None:
        position.set_principal_collateral(data.principal_collateral)
    return position


def _build_intent(data: IntentInput) -> ManageIntent:
    options = {
        "collateral_token": data.collateral_token,
        "max_fee_percentage": data.max_fee_percentage,
        "approval_preference": data.approval_preference,
    }
    if data.close:
        return ManageIntent.close(**options)
    return ManageIntent(data.collateral_change, data.debt_change, **options)


def _build_prefetch(payload: StepsRequest) -> StepsPrefetch:
    return StepsPrefetch(
        is_delegate_whitelisted=payload.is_delegate_whitelisted,
        collateral_allowance=payload.collateral_allowance,
        debt_allowance=payload.debt_allowance,
    )


def _amount(value: Decimal) -> str:
    if value == DEBT_CHANGE_TO_CLOSE:
        return "close"
    return str(value)


def _parse_mode(value: str) -> ExecutionMode:
    normalized = value.strip().upper()
    for mode in ExecutionMode:
        if mode.value == normalized:
            return mode
    raise ValueError(f"Unsupported execution mode: {value}")


def _parse_kind(value: str) -> StepKind:
    normalized = value.strip().upper()
    for kind in StepKind:
        if kind.value == normalized:
            return kind
    raise ValueError(f"Unsupported step kind: {value}")


def _ledger() -> DryRunLedger:
    if "ledger" not in _STATE:
        _reset_state()
    return _STATE["ledger"]


def _controller() -> ExecutionController:
    if "controller" not in _STATE:
        _reset_state()
    return _STATE["controller"]


def _planner() -> StepPlanner:
    return StepPlanner(_CONFIG, _ledger(), _SIGNER)


def _reset_state() -> None:
    ledger = DryRunLedger(_CONFIG)
    _STATE["ledger"] = ledger
    _STATE["controller"] = ExecutionController(ledger)

