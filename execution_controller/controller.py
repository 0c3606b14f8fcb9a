"""Controlled step execution for manual and guarded modes."""

import logging
from typing import Callable, Optional, Tuple

from ledger_adapter.models import PermitSignature, TransactionHandle
from ledger_adapter.protocols import LedgerClient
from step_engine.models import Step
from step_engine.planner import ManageStepSequence

from .modes import ExecutionMode, StepOutcome
from .policy import GuardPolicy

logger = logging.getLogger(__name__)


class ExecutionBlockedError(RuntimeError):
    """Raised when execution is blocked by mode or arming state."""


class ModeTransitionError(ValueError):
    """Raised when an invalid mode transition is attempted."""


class PolicyViolationError(RuntimeError):
    """Raised when a guarded policy violation is detected."""


class ExecutionController:
    """Drives a step sequence: runs each action, confirms it and resumes permits."""

    def __init__(self, ledger: LedgerClient) -> None:
        self._ledger = ledger
        self._mode = ExecutionMode.SAFE
        self._armed = False
        self._policy: Optional[GuardPolicy] = None

    @property
    def mode(self) -> ExecutionMode:
        return self._mode

    @property
    def armed(self) -> bool:
        return self._armed

    def arm(self) -> None:
        self._armed = True

    def disarm(self) -> None:
        self._armed = False

    def set_mode(self, mode: ExecutionMode, policy: Optional[GuardPolicy] = None) -> None:
        if mode != ExecutionMode.SAFE and self._mode != ExecutionMode.SAFE:
            raise ModeTransitionError("Mode escalation must pass through SAFE.")

        if mode == ExecutionMode.GUARDED and policy is None:
            raise PolicyViolationError("Guarded mode requires an explicit policy.")

        if mode != ExecutionMode.GUARDED and policy is not None:
            raise ModeTransitionError("Policies may only be set in GUARDED mode.")

        self._mode = mode
        self._policy = policy if mode == ExecutionMode.GUARDED else None

    def run(
        self,
        sequence: ManageStepSequence,
        confirm_step: Optional[Callable[[Step], bool]] = None,
        on_step_start: Optional[Callable[[Step], None]] = None,
        on_step_end: Optional[Callable[[Step, Optional[BaseException]], None]] = None,
    ) -> Tuple[StepOutcome, ...]:
        if not self._armed:
            raise ExecutionBlockedError("Execution is not armed.")

        if self._mode == ExecutionMode.SAFE:
            raise ExecutionBlockedError("SAFE mode blocks execution.")

        if self._mode == ExecutionMode.MANUAL and confirm_step is None:
            raise ExecutionBlockedError("Manual mode requires per-step confirmation.")

        if self._mode == ExecutionMode.GUARDED and self._policy is None:
            raise PolicyViolationError("Guarded mode requires a policy.")

        outcomes = []
        resume: Optional[PermitSignature] = None
        while True:
            step = sequence.next(resume)
            if step is None:
                break
            reason = self._gate(step, confirm_step)

            if on_step_start is not None:
                on_step_start(step)
            try:
                result = step.action()
                if isinstance(result, TransactionHandle):
                    self._ledger.wait(result)
            except Exception as exc:
                logger.warning("Step %d/%d (%s) failed: %s", step.step_number, step.number_of_steps, step.type, exc)
                if on_step_end is not None:
                    on_step_end(step, exc)
                raise
            if on_step_end is not None:
                on_step_end(step, None)

            resume = result if isinstance(result, PermitSignature) else None
            outcomes.append(
                StepOutcome(
                    step_number=step.step_number,
                    kind=step.kind,
                    token=step.token,
                    tx_id=result.tx_id if isinstance(result, TransactionHandle) else None,
                    signed=resume is not None,
                    reason=reason,
                )
            )
            logger.info("Step %d/%d (%s) done", step.step_number, step.number_of_steps, step.type)

        return tuple(outcomes)

    def _gate(self, step: Step, confirm_step: Optional[Callable[[Step], bool]]) -> str:
        if self._mode == ExecutionMode.MANUAL:
            if not confirm_step(step):
                raise ExecutionBlockedError("Manual confirmation rejected.")
            return "Confirmed manually."

        violations = self._policy.validate_step(step)
        if violations:
            raise PolicyViolationError("Policy violation: " + ", ".join(violations))
        return "Guarded policy passed."
