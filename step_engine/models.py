"""Intent and step models for position management."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Callable, Optional

from position_core.constants import DEFAULT_GAS_LIMIT_MULTIPLIER, DEFAULT_MAX_FEE_PERCENTAGE
from position_core.errors import ValidationError
from position_core.fixed_point import DEBT_CHANGE_TO_CLOSE, ZERO, is_close_sentinel, to_decimal
from position_core.tokens import Token, parse_token
from ledger_adapter.models import LedgerCall


class StepKind(Enum):
    WHITELIST = "WHITELIST"
    PERMIT = "PERMIT"
    APPROVE = "APPROVE"
    EXECUTE = "EXECUTE"
    LEVERAGE = "LEVERAGE"
    SAVINGS = "SAVINGS"


class ApprovalPreference(Enum):
    SIGNATURE = "signature"
    TRANSACTION = "transaction"


@dataclass(frozen=True)
class StepType:
    kind: StepKind
    token: Optional[Token] = None

    def __str__(self) -> str:
        if self.token is None:
            return self.kind.value
        return f"{self.kind.value}({self.token})"


@dataclass(frozen=True)
class Step:
    type: StepType
    step_number: int
    number_of_steps: int
    rationale: str
    action: Callable[[], object] = field(compare=False, repr=False)
    call: Optional[LedgerCall] = None

    @property
    def kind(self) -> StepKind:
        return self.type.kind

    @property
    def token(self) -> Optional[Token]:
        return self.type.token


@dataclass(frozen=True)
class ManageIntent:
    """Requested change to a position; a close sentinel debt change closes it."""

    collateral_change: Decimal
    debt_change: Decimal
    collateral_token: Optional[Token] = None
    max_fee_percentage: Decimal = Decimal(DEFAULT_MAX_FEE_PERCENTAGE)
    gas_limit_multiplier: Decimal = Decimal(DEFAULT_GAS_LIMIT_MULTIPLIER)
    approval_preference: ApprovalPreference = ApprovalPreference.SIGNATURE
    frontend_tag: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "collateral_change", to_decimal(self.collateral_change))
        object.__setattr__(self, "debt_change", to_decimal(self.debt_change))
        object.__setattr__(self, "max_fee_percentage", to_decimal(self.max_fee_percentage))
        object.__setattr__(self, "gas_limit_multiplier", to_decimal(self.gas_limit_multiplier))
        if self.collateral_token is not None:
            try:
                object.__setattr__(self, "collateral_token", parse_token(self.collateral_token))
            except ValueError as exc:
                raise ValidationError(str(exc)) from exc
        try:
            object.__setattr__(self, "approval_preference", ApprovalPreference(self.approval_preference))
        except ValueError as exc:
            raise ValidationError(f"Unknown approval preference: {self.approval_preference}") from exc
        if self.max_fee_percentage < ZERO:
            raise ValidationError("Max fee percentage cannot be negative.")
        if self.gas_limit_multiplier <= ZERO:
            raise ValidationError("Gas limit multiplier must be positive.")

    @property
    def is_close(self) -> bool:
        return is_close_sentinel(self.debt_change)

    @classmethod
    def close(cls, collateral_token: Optional[Token] = None, **options) -> "ManageIntent":
        return cls(
            collateral_change=ZERO,
            debt_change=DEBT_CHANGE_TO_CLOSE,
            collateral_token=collateral_token,
            **options,
        )


@dataclass(frozen=True)
class NeededSteps:
    whitelist_needed: bool
    collateral_auth_needed: bool
    debt_auth_needed: bool

    @property
    def number_of_steps(self) -> int:
        return int(self.whitelist_needed) + int(self.collateral_auth_needed) + int(self.debt_auth_needed) + 1


@dataclass(frozen=True)
class StepsPrefetch:
    """Readings and artifacts the caller already holds; ``None`` means read it."""

    is_delegate_whitelisted: Optional[bool] = None
    collateral_allowance: Optional[Decimal] = None
    collateral_permit_signature: Optional[object] = None
    debt_allowance: Optional[Decimal] = None
    debt_permit_signature: Optional[object] = None


@dataclass(frozen=True)
class SavingsIntent:
    """R savings change: a positive amount deposits, a negative one withdraws."""

    amount: Decimal
    approval_preference: ApprovalPreference = ApprovalPreference.SIGNATURE
    gas_limit_multiplier: Decimal = Decimal(DEFAULT_GAS_LIMIT_MULTIPLIER)
    frontend_tag: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))
        object.__setattr__(self, "gas_limit_multiplier", to_decimal(self.gas_limit_multiplier))
        try:
            object.__setattr__(self, "approval_preference", ApprovalPreference(self.approval_preference))
        except ValueError as exc:
            raise ValidationError(f"Unknown approval preference: {self.approval_preference}") from exc
        if self.amount == ZERO:
            raise ValidationError("Savings amount cannot be zero.")
        if self.gas_limit_multiplier <= ZERO:
            raise ValidationError("Gas limit multiplier must be positive.")

    @property
    def is_deposit(self) -> bool:
        return self.amount > ZERO


@dataclass(frozen=True)
class SavingsPrefetch:
    r_allowance: Optional[Decimal] = None
    r_permit_signature: Optional[object] = None
