"""
Step workflow and scenario runner.
"""

from e2e_replay.orchestration.runner import TestRunner
from e2e_replay.orchestration.step_workflow import StepOutcome, StepWorkflow

__all__ = [
    "StepOutcome",
    "StepWorkflow",
    "TestRunner",
]
