"""Guarded execution policy."""

from dataclasses import dataclass
from typing import Optional, Tuple

from ledger_adapter.models import LedgerCall
from position_core.tokens import Token
from step_engine.models import Step, StepKind


@dataclass(frozen=True)
class GuardPolicy:
    allowed_step_kinds: Tuple[StepKind, ...]
    allowed_tokens: Optional[Tuple[Token, ...]] = None
    allowed_targets: Optional[Tuple[str, ...]] = None

    def validate_step(self, step: Step) -> Tuple[str, ...]:
        violations = []

        if step.kind not in self.allowed_step_kinds:
            violations.append(f"Step kind {step.kind.value} not allowed.")

        if self.allowed_tokens is not None and step.token is not None:
            if step.token not in self.allowed_tokens:
                violations.append(f"Token {step.token} not allowed.")

        if self.allowed_targets is not None and step.call is not None:
            if not _targets_allowed(step.call, self.allowed_targets):
                violations.append(f"Target {step.call.to_address} not allowed.")

        return tuple(violations)


def _targets_allowed(call: LedgerCall, allowed_targets: Tuple[str, ...]) -> bool:
    return call.to_address.lower() in {target.lower() for target in allowed_targets}
