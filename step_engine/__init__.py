from .models import (
    ApprovalPreference,
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
from .planner import (
    ManageStepSequence,
    StepPlanner,
    ledger_allowance_oracle,
    ledger_whitelist_oracle,
)

__all__ = [
    "ApprovalPreference",
    "ManageIntent",
    "ManageStepSequence",
    "NeededSteps",
    "PermitCapabilityChecker",
    "PermitChecks",
    "SavingsIntent",
    "SavingsPrefetch",
    "Step",
    "StepKind",
    "StepPlanner",
    "StepType",
    "StepsPrefetch",
    "ledger_allowance_oracle",
    "ledger_whitelist_oracle",
]
