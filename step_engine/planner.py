"""Plan the authorization and execution steps that carry out a position intent.

Planning reads the current whitelist, allowance and signer state once, decides
which steps are needed and hands back a ``ManageStepSequence``. The sequence
produces steps one at a time; after a permit step it waits for the signed
payload before producing the next step.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from decimal import Decimal
from functools import partial
from typing import Callable, Dict, Mapping, Optional, Sequence, Tuple

from position_core.constants import PERMIT_DEADLINE_SHIFT
from position_core.errors import UnsupportedCombinationError, UpstreamReadError, ValidationError
from position_core.fixed_point import MAX_DECIMAL, ZERO, DecimalLike, absolute, from_raw, to_decimal, to_raw
from position_core.models import Position
from position_core.tokens import R_TOKEN, Token, is_interest_rate_vault, is_legacy_vault
from settings.config import NetworkConfig
from ledger_adapter.calls import approve_call, encode_tag, signed_change, whitelist_call
from ledger_adapter.models import (
    EMPTY_PERMIT_SIGNATURE,
    LedgerCall,
    PermitRequest,
    PermitSignature,
    TransactionHandle,
)
from ledger_adapter.protocols import LedgerClient, PermitSigner
from ledger_adapter.strategies import ExecuteArgs, select_strategy
from leverage_engine.models import LeverageIntent, LeverageSolution

from .models import (
    ManageIntent,
    NeededSteps,
    SavingsIntent,
    SavingsPrefetch,
    Step,
    StepKind,
    StepsPrefetch,
    StepType,
)
from .permits import PermitCapabilityChecker, PermitChecks

logger = logging.getLogger(__name__)

AllowanceOracle = Callable[[Token, str, str], Decimal]
WhitelistOracle = Callable[[str, str], bool]

_COLLATERAL = "collateral"
_DEBT = "debt"
_SAVINGS = "savings"
_FINAL_KINDS = (StepKind.EXECUTE, StepKind.LEVERAGE, StepKind.SAVINGS)


def ledger_allowance_oracle(config: NetworkConfig, ledger: LedgerClient) -> AllowanceOracle:
    """Allowance of ``spender`` over ``owner``'s tokens, in token units."""

    def read(token: Token, owner: str, spender: str) -> Decimal:
        address = config.get_token_address(token)
        if address is None:
            return MAX_DECIMAL
        return from_raw(ledger.allowance(address, owner, spender), config.token(token).decimals)

    return read


def ledger_whitelist_oracle(ledger: LedgerClient) -> WhitelistOracle:
    def read(owner: str, delegate: str) -> bool:
        return ledger.is_delegate_whitelisted(owner, delegate)

    return read


@dataclass(frozen=True)
class _Authorization:
    slot: str
    token: Token
    amount: Decimal
    spender: str
    use_signature: bool


@dataclass(frozen=True)
class _Stage:
    kind: StepKind
    token: Optional[Token]
    rationale: str
    authorization: Optional[_Authorization] = None
    call: Optional[LedgerCall] = None


class ManageStepSequence:
    """Forward-only step sequence with one outstanding suspension at a time."""

    def __init__(
        self,
        stages: Sequence[_Stage],
        needed_steps: NeededSteps,
        submit: Callable[[LedgerCall], TransactionHandle],
        sign: Callable[[_Authorization], PermitSignature],
        build_final_call: Callable[[Mapping[str, PermitSignature]], LedgerCall],
        signatures: Optional[Mapping[str, PermitSignature]] = None,
    ) -> None:
        self._stages = tuple(stages)
        self._needed_steps = needed_steps
        self._submit = submit
        self._sign = sign
        self._build_final_call = build_final_call
        self._signatures: Dict[str, PermitSignature] = dict(signatures or {})
        self._cursor = 0
        self._awaiting: Optional[_Authorization] = None
        self._done = False

    @property
    def needed_steps(self) -> NeededSteps:
        return self._needed_steps

    @property
    def number_of_steps(self) -> int:
        return len(self._stages)

    @property
    def outline(self) -> Tuple[StepType, ...]:
        return tuple(StepType(stage.kind, stage.token) for stage in self._stages)

    @property
    def done(self) -> bool:
        return self._done

    def next(self, resume: Optional[object] = None) -> Optional[Step]:
        """Return the next step, or ``None`` once the sequence is finished.

        ``resume`` must carry the signed payload after a permit step and be
        ``None`` otherwise.
        """

        if self._done:
            return None

        if self._awaiting is not None:
            authorization = self._awaiting
            self._awaiting = None
            if not isinstance(resume, PermitSignature) or resume.is_empty:
                self._done = True
                raise ValidationError(f"{authorization.token} permit signature is required")
            self._signatures[authorization.slot] = resume
        elif resume is not None:
            raise ValidationError("Only a permit step accepts a resume value.")

        if self._cursor == len(self._stages):
            self._done = True
            return None

        stage = self._stages[self._cursor]
        self._cursor += 1
        step = self._build_step(stage, self._cursor)
        if stage.kind == StepKind.PERMIT:
            self._awaiting = stage.authorization
        logger.debug("Step %d/%d: %s", step.step_number, step.number_of_steps, step.type)
        return step

    def _build_step(self, stage: _Stage, step_number: int) -> Step:
        call = stage.call
        if stage.kind == StepKind.PERMIT:
            action = partial(self._sign, stage.authorization)
        else:
            if stage.kind in _FINAL_KINDS:
                call = self._build_final_call(dict(self._signatures))
            action = partial(self._submit, call)
        return Step(
            type=StepType(stage.kind, stage.token),
            step_number=step_number,
            number_of_steps=len(self._stages),
            rationale=stage.rationale,
            action=action,
            call=call,
        )


class StepPlanner:
    """Turn a position intent into the minimal ordered set of steps."""

    def __init__(
        self,
        config: NetworkConfig,
        ledger: LedgerClient,
        signer: PermitSigner,
        allowance_oracle: Optional[AllowanceOracle] = None,
        whitelist_oracle: Optional[WhitelistOracle] = None,
        capability_checker: Optional[PermitCapabilityChecker] = None,
        time_provider: Optional[Callable[[], float]] = None,
    ) -> None:
        self._config = config
        self._ledger = ledger
        self._signer = signer
        self._allowance_oracle = allowance_oracle or ledger_allowance_oracle(config, ledger)
        self._whitelist_oracle = whitelist_oracle or ledger_whitelist_oracle(ledger)
        self._capability_checker = capability_checker or PermitCapabilityChecker(config, ledger.get_code)
        self._time_provider = time_provider or time.time

    def plan(
        self,
        position: Position,
        intent: ManageIntent,
        prefetch: Optional[StepsPrefetch] = None,
    ) -> ManageStepSequence:
        prefetch = prefetch or StepsPrefetch()
        underlying = position.underlying_token
        collateral_token = intent.collateral_token or underlying
        collateral_change = intent.collateral_change
        debt_change = intent.debt_change
        closing = intent.is_close

        self._require_supported(underlying, collateral_token)
        if collateral_change == ZERO and not closing:
            if debt_change == ZERO:
                raise ValidationError("Collateral and debt change cannot be both zero")
            collateral_token = underlying
        if collateral_token == Token.ETH and (collateral_change < ZERO or closing):
            raise ValidationError("ETH withdrawal from the position is not supported")
        if is_legacy_vault(underlying) and debt_change > ZERO:
            raise ValidationError(f"Debt increase is not supported on the {underlying} vault")

        owner = self._signer.address
        is_underlying = collateral_token == underlying
        interest_rate = is_interest_rate_vault(underlying)
        manager = self._config.get_position_manager_address(underlying, collateral_token)
        strategy = select_strategy(underlying, collateral_token)
        debt_amount = MAX_DECIMAL if closing else absolute(debt_change)

        whitelist_required = not is_underlying
        collateral_auth_required = (
            self._config.get_token_address(collateral_token) is not None and collateral_change > ZERO
        )
        debt_auth_required = debt_change < ZERO and (not is_underlying or interest_rate)

        reads: Dict[str, Callable[[], object]] = {}
        if whitelist_required and prefetch.is_delegate_whitelisted is None:
            reads["whitelist"] = partial(self._whitelist_oracle, owner, manager)
        if collateral_auth_required and prefetch.collateral_allowance is None:
            reads["collateral allowance"] = partial(self._allowance_oracle, collateral_token, owner, manager)
        if debt_auth_required and prefetch.debt_allowance is None:
            reads["debt allowance"] = partial(self._allowance_oracle, R_TOKEN, owner, manager)
        if collateral_auth_required or debt_auth_required:
            reads["signer code"] = partial(self._capability_checker.can_signer_sign, owner)
        readings = _read_all(reads)

        is_whitelisted = _prefer(prefetch.is_delegate_whitelisted, readings.get("whitelist", False))
        can_signer_sign = bool(readings.get("signer code", False))
        collateral_checks = PermitChecks(
            can_signer_sign, self._capability_checker.can_token_use_signature(collateral_token)
        )
        debt_checks = PermitChecks(
            can_signer_sign,
            not interest_rate and self._capability_checker.can_token_use_signature(R_TOKEN),
        )

        signatures: Dict[str, PermitSignature] = {}
        collateral_auth = _resolve_authorization(
            _COLLATERAL,
            collateral_token,
            collateral_change,
            manager,
            required=collateral_auth_required,
            allowance=_prefer(prefetch.collateral_allowance, readings.get("collateral allowance", ZERO)),
            cached=prefetch.collateral_permit_signature,
            signature_allowed=collateral_checks.allows_signature(intent.approval_preference),
            signatures=signatures,
        )
        debt_auth = _resolve_authorization(
            _DEBT,
            R_TOKEN,
            debt_amount,
            manager,
            required=debt_auth_required,
            allowance=_prefer(prefetch.debt_allowance, readings.get("debt allowance", ZERO)),
            cached=prefetch.debt_permit_signature,
            signature_allowed=debt_checks.allows_signature(intent.approval_preference),
            signatures=signatures,
        )

        needed = NeededSteps(
            whitelist_needed=whitelist_required and not is_whitelisted,
            collateral_auth_needed=collateral_auth is not None,
            debt_auth_needed=debt_auth is not None,
        )
        logger.info(
            "Planned %d step(s) for %s/%s: whitelist=%s collateral=%s debt=%s",
            needed.number_of_steps,
            underlying,
            collateral_token,
            needed.whitelist_needed,
            needed.collateral_auth_needed,
            needed.debt_auth_needed,
        )

        stages = []
        if needed.whitelist_needed:
            stages.append(self._whitelist_stage(underlying, manager))
        for authorization in (collateral_auth, debt_auth):
            if authorization is not None:
                stages.append(self._authorization_stage(authorization))
        stages.append(
            _Stage(
                kind=StepKind.EXECUTE,
                token=None,
                rationale=f"Submit the {strategy.name} manage call to {manager}",
            )
        )

        def build_final_call(resolved: Mapping[str, PermitSignature]) -> LedgerCall:
            args = ExecuteArgs(
                owner=owner,
                underlying_token=underlying,
                collateral_token=collateral_token,
                collateral_change=collateral_change,
                debt_change=debt_change,
                max_fee_percentage=intent.max_fee_percentage,
                collateral_permit=resolved.get(_COLLATERAL, EMPTY_PERMIT_SIGNATURE),
                debt_permit=resolved.get(_DEBT, EMPTY_PERMIT_SIGNATURE),
                gas_limit_multiplier=intent.gas_limit_multiplier,
                frontend_tag=intent.frontend_tag,
            )
            return strategy.build_call(self._config, args)

        return ManageStepSequence(
            stages,
            needed,
            submit=self._submit,
            sign=self._sign,
            build_final_call=build_final_call,
            signatures=signatures,
        )

    def open(
        self,
        position: Position,
        collateral_amount: DecimalLike,
        debt_amount: DecimalLike,
        prefetch: Optional[StepsPrefetch] = None,
        **options,
    ) -> ManageStepSequence:
        collateral_amount = to_decimal(collateral_amount)
        debt_amount = to_decimal(debt_amount)
        if collateral_amount <= ZERO:
            raise ValidationError("Collateral amount must be greater than 0")
        if debt_amount <= ZERO:
            raise ValidationError("Debt amount must be greater than 0")
        return self.plan(position, ManageIntent(collateral_amount, debt_amount, **options), prefetch)

    def close(
        self, position: Position, prefetch: Optional[StepsPrefetch] = None, **options
    ) -> ManageStepSequence:
        return self.plan(position, ManageIntent.close(**options), prefetch)

    def add_collateral(
        self, position: Position, amount: DecimalLike, prefetch: Optional[StepsPrefetch] = None, **options
    ) -> ManageStepSequence:
        return self.plan(position, ManageIntent(_positive(amount), ZERO, **options), prefetch)

    def withdraw_collateral(
        self, position: Position, amount: DecimalLike, prefetch: Optional[StepsPrefetch] = None, **options
    ) -> ManageStepSequence:
        return self.plan(position, ManageIntent(_positive(amount).copy_negate(), ZERO, **options), prefetch)

    def borrow(
        self, position: Position, amount: DecimalLike, prefetch: Optional[StepsPrefetch] = None, **options
    ) -> ManageStepSequence:
        return self.plan(position, ManageIntent(ZERO, _positive(amount), **options), prefetch)

    def repay_debt(
        self, position: Position, amount: DecimalLike, prefetch: Optional[StepsPrefetch] = None, **options
    ) -> ManageStepSequence:
        return self.plan(position, ManageIntent(ZERO, _positive(amount).copy_negate(), **options), prefetch)

    def plan_savings(
        self,
        intent: SavingsIntent,
        prefetch: Optional[SavingsPrefetch] = None,
    ) -> ManageStepSequence:
        """Steps for depositing R into, or withdrawing it from, the savings module.

        Deposits need an R authorization for the module; withdrawals are a
        single call.
        """

        prefetch = prefetch or SavingsPrefetch()
        owner = self._signer.address
        module = self._config.r_savings_module
        amount = intent.amount
        deposit = intent.is_deposit

        reads: Dict[str, Callable[[], object]] = {}
        if deposit:
            if prefetch.r_allowance is None:
                reads["R allowance"] = partial(self._allowance_oracle, R_TOKEN, owner, module)
            reads["signer code"] = partial(self._capability_checker.can_signer_sign, owner)
        readings = _read_all(reads)

        checks = PermitChecks(
            bool(readings.get("signer code", False)),
            self._capability_checker.can_token_use_signature(R_TOKEN),
        )
        signature_allowed = checks.allows_signature(intent.approval_preference)
        signatures: Dict[str, PermitSignature] = {}
        authorization = _resolve_authorization(
            _SAVINGS,
            R_TOKEN,
            absolute(amount),
            module,
            required=deposit,
            allowance=_prefer(prefetch.r_allowance, readings.get("R allowance", ZERO)),
            cached=prefetch.r_permit_signature,
            signature_allowed=signature_allowed,
            signatures=signatures,
        )
        needed = NeededSteps(
            whitelist_needed=False,
            collateral_auth_needed=False,
            debt_auth_needed=authorization is not None,
        )
        logger.info(
            "Planned %d savings step(s): %s %s R, authorization=%s",
            needed.number_of_steps,
            "deposit" if deposit else "withdraw",
            absolute(amount),
            needed.debt_auth_needed,
        )

        stages = []
        if authorization is not None:
            stages.append(self._authorization_stage(authorization))
        stages.append(
            _Stage(
                kind=StepKind.SAVINGS,
                token=R_TOKEN,
                rationale=f"{'Deposit' if deposit else 'Withdraw'} {absolute(amount)} R at {module}",
            )
        )

        raw_amount = to_raw(absolute(amount))

        def build_final_call(resolved: Mapping[str, PermitSignature]) -> LedgerCall:
            if not deposit:
                method, args = "withdraw", (raw_amount, owner, owner)
            elif _SAVINGS in resolved:
                method, args = "depositWithPermit", (raw_amount, owner, resolved[_SAVINGS])
            else:
                method, args = "deposit", (raw_amount, owner)
            return LedgerCall(
                to_address=module,
                method=method,
                args=args,
                gas_limit_multiplier=intent.gas_limit_multiplier,
                tag_data=encode_tag(intent.frontend_tag),
            )

        return ManageStepSequence(
            stages,
            needed,
            submit=self._submit,
            sign=self._sign,
            build_final_call=build_final_call,
            signatures=signatures,
        )

    def plan_leverage(
        self,
        position: Position,
        intent: LeverageIntent,
        solution: LeverageSolution,
        prefetch: Optional[StepsPrefetch] = None,
    ) -> ManageStepSequence:
        """Steps for a one-step leverage change; the delegate only takes on-ledger approvals."""

        prefetch = prefetch or StepsPrefetch()
        underlying = position.underlying_token
        collateral_token = intent.collateral_token or underlying
        self._require_supported(underlying, collateral_token)
        if collateral_token != underlying:
            raise UnsupportedCombinationError(
                f"Leveraged positions on {underlying} require {underlying} collateral, not {collateral_token}"
            )

        owner = self._signer.address
        delegate = self._config.one_step_leverage
        principal_change = intent.principal_collateral_change
        collateral_auth_required = principal_change > ZERO

        reads: Dict[str, Callable[[], object]] = {}
        if prefetch.is_delegate_whitelisted is None:
            reads["whitelist"] = partial(self._whitelist_oracle, owner, delegate)
        if collateral_auth_required and prefetch.collateral_allowance is None:
            reads["collateral allowance"] = partial(self._allowance_oracle, collateral_token, owner, delegate)
        readings = _read_all(reads)

        collateral_auth = _resolve_authorization(
            _COLLATERAL,
            collateral_token,
            principal_change,
            delegate,
            required=collateral_auth_required,
            allowance=_prefer(prefetch.collateral_allowance, readings.get("collateral allowance", ZERO)),
            cached=None,
            signature_allowed=False,
            signatures={},
        )
        needed = NeededSteps(
            whitelist_needed=not _prefer(prefetch.is_delegate_whitelisted, readings.get("whitelist", False)),
            collateral_auth_needed=collateral_auth is not None,
            debt_auth_needed=False,
        )
        logger.info(
            "Planned %d leverage step(s) for %s: whitelist=%s collateral=%s",
            needed.number_of_steps,
            underlying,
            needed.whitelist_needed,
            needed.collateral_auth_needed,
        )

        stages = []
        if needed.whitelist_needed:
            stages.append(self._whitelist_stage(underlying, delegate))
        if collateral_auth is not None:
            stages.append(self._authorization_stage(collateral_auth))
        stages.append(
            _Stage(
                kind=StepKind.LEVERAGE,
                token=None,
                rationale=f"Submit the one-step leverage call to {delegate}",
            )
        )

        collateral_address = self._config.get_token_address(collateral_token)
        return_decimals = self._config.token(solution.swap_to).decimals if solution.swap_to else 0

        def build_final_call(resolved: Mapping[str, PermitSignature]) -> LedgerCall:
            debt_amount, debt_increase = signed_change(solution.debt_change)
            collateral_amount, collateral_increase = signed_change(principal_change)
            return LedgerCall(
                to_address=delegate,
                method="manageLeveragedPosition",
                args=(
                    collateral_address,
                    debt_amount,
                    debt_increase,
                    collateral_amount,
                    collateral_increase,
                    solution.call_data,
                    to_raw(solution.min_return, return_decimals),
                    to_raw(intent.max_fee_percentage),
                ),
                gas_limit_multiplier=intent.gas_limit_multiplier,
                tag_data=encode_tag(intent.frontend_tag),
            )

        return ManageStepSequence(
            stages,
            needed,
            submit=self._submit,
            sign=self._sign,
            build_final_call=build_final_call,
        )

    def _require_supported(self, underlying: Token, collateral_token: Token) -> None:
        if collateral_token not in self._config.supported_collateral_tokens(underlying):
            raise UnsupportedCombinationError(
                f"Underlying collateral token {underlying} does not support collateral token {collateral_token}"
            )

    def _whitelist_stage(self, underlying: Token, delegate: str) -> _Stage:
        position_manager = self._config.get_position_manager_address(underlying, underlying)
        return _Stage(
            kind=StepKind.WHITELIST,
            token=None,
            rationale=f"Whitelist delegate {delegate} on {position_manager}",
            call=whitelist_call(position_manager, delegate),
        )

    def _authorization_stage(self, authorization: _Authorization) -> _Stage:
        if authorization.use_signature:
            return _Stage(
                kind=StepKind.PERMIT,
                token=authorization.token,
                rationale=f"Sign a permit for {authorization.amount} {authorization.token} to {authorization.spender}",
                authorization=authorization,
            )
        return _Stage(
            kind=StepKind.APPROVE,
            token=authorization.token,
            rationale=f"Approve {authorization.amount} {authorization.token} for {authorization.spender}",
            authorization=authorization,
            call=approve_call(self._config, authorization.token, authorization.spender, authorization.amount),
        )

    def _submit(self, call: LedgerCall) -> TransactionHandle:
        handle = self._ledger.submit(call, self._signer.address)
        logger.info("Submitted %s to %s as %s", call.method, call.to_address, handle.tx_id)
        return handle

    def _sign(self, authorization: _Authorization) -> PermitSignature:
        token_config = self._config.token(authorization.token)
        address = token_config.address
        owner = self._signer.address
        try:
            nonce = self._ledger.permit_nonce(address, owner)
        except Exception as exc:
            raise UpstreamReadError(f"Permit nonce read for {authorization.token} failed: {exc}") from exc
        request = PermitRequest(
            token=authorization.token,
            token_address=address,
            token_name=token_config.ticker,
            owner=owner,
            spender=authorization.spender,
            value=to_raw(authorization.amount, token_config.decimals),
            nonce=nonce,
            deadline=int(self._time_provider()) + PERMIT_DEADLINE_SHIFT,
            chain_id=self._config.network_id,
        )
        return self._signer.sign_permit(request)


def _resolve_authorization(
    slot: str,
    token: Token,
    amount: Decimal,
    spender: str,
    required: bool,
    allowance: Decimal,
    cached: Optional[object],
    signature_allowed: bool,
    signatures: Dict[str, PermitSignature],
) -> Optional[_Authorization]:
    """Return the authorization step to emit, or ``None`` when none is needed.

    A usable cached signature is recorded in ``signatures`` instead of
    emitting a step. A cached artifact that is not a signature falls back to
    an on-ledger approval.
    """

    if not required or amount <= allowance:
        return None
    if isinstance(cached, PermitSignature) and cached.is_empty:
        cached = None
    if signature_allowed and isinstance(cached, PermitSignature):
        signatures[slot] = cached
        return None
    return _Authorization(
        slot=slot,
        token=token,
        amount=amount,
        spender=spender,
        use_signature=signature_allowed and cached is None,
    )


def _read_all(reads: Mapping[str, Callable[[], object]]) -> Dict[str, object]:
    if not reads:
        return {}
    with ThreadPoolExecutor(max_workers=len(reads)) as executor:
        futures = {name: executor.submit(read) for name, read in reads.items()}

    readings: Dict[str, object] = {}
    for name, future in futures.items():
        try:
            readings[name] = future.result()
        except UpstreamReadError:
            raise
        except Exception as exc:
            raise UpstreamReadError(f"{name.capitalize()} read failed: {exc}") from exc
    logger.debug("Planning reads: %s", readings)
    return readings


def _prefer(supplied, read):
    return read if supplied is None else supplied


def _positive(amount: DecimalLike) -> Decimal:
    value = to_decimal(amount)
    if value <= ZERO:
        raise ValidationError("Amount must be greater than 0.")
    return value
