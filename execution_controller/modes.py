"""Execution controller modes and step outcomes."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from position_core.tokens import Token
from step_engine.models import StepKind


class ExecutionMode(Enum):
    SAFE = "SAFE"
    MANUAL = "MANUAL"
    GUARDED = "GUARDED"


@dataclass(frozen=True)
class StepOutcome:
    step_number: int
    kind: StepKind
    token: Optional[Token]
    tx_id: Optional[str]
    signed: bool
    reason: str
