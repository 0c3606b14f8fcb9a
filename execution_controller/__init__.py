from .controller import (
    ExecutionBlockedError,
    ExecutionController,
    ModeTransitionError,
    PolicyViolationError,
)
from .modes import ExecutionMode, StepOutcome
from .policy import GuardPolicy

__all__ = [
    "ExecutionBlockedError",
    "ExecutionController",
    "ExecutionMode",
    "GuardPolicy",
    "ModeTransitionError",
    "PolicyViolationError",
    "StepOutcome",
]
