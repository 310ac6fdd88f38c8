"""
Learned execution plans: models, storage, recording and element re-resolution.
"""

from e2e_replay.journal.models import (
    ExecutionMode,
    ExecutionPlan,
    MemoryCheck,
    PlanAction,
    PlanActionType,
    PlanStep,
    PlanStepType,
    PlanSummary,
    VerificationSpec,
)
from e2e_replay.journal.element_resolver import ElementResolver, extract_role
from e2e_replay.journal.plan_recorder import PlanRecorder
from e2e_replay.journal.plan_store import PlanStore

__all__ = [
    # Models
    "ExecutionMode",
    "ExecutionPlan",
    "MemoryCheck",
    "PlanAction",
    "PlanActionType",
    "PlanStep",
    "PlanStepType",
    "PlanSummary",
    "VerificationSpec",
    # Components
    "ElementResolver",
    "PlanRecorder",
    "PlanStore",
    "extract_role",
]
