"""
File-backed storage of execution plans, one JSON document per scenario.
"""

import json
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from e2e_replay.journal.models import ExecutionPlan, PlanStep, PlanSummary
from e2e_replay.monitoring.logger import get_logger

logger = get_logger(__name__)

PLAN_SUFFIX = ".plan.json"


def plan_file_name(scenario_name: str) -> str:
    """``login.txt`` and ``suites/login.txt`` both map to ``login.plan.json``."""
    name = Path(scenario_name).name
    if name.endswith(".txt"):
        name = name[: -len(".txt")]
    return f"{name}{PLAN_SUFFIX}"


class PlanStore:
    """Loads, saves and lists learned plans."""

    def __init__(self, plans_dir: Union[str, Path]):
        self.plans_dir = Path(plans_dir)

    def plan_path(self, scenario_name: str) -> Path:
        return self.plans_dir / plan_file_name(scenario_name)

    def _read(self, path: Path) -> Optional[ExecutionPlan]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return ExecutionPlan.model_validate(json.load(f))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Could not load plan file {path}: {e}")
            return None

    def load(self, scenario_name: str) -> Optional[ExecutionPlan]:
        """
        Load the plan for a scenario.

        Returns:
            The plan, or None when it is missing or unreadable
        """
        path = self.plan_path(scenario_name)
        if not path.exists():
            return None
        return self._read(path)

    def save(self, plan: ExecutionPlan) -> Optional[Path]:
        """Write a plan, creating the plans directory when needed."""
        path = self.plan_path(plan.scenario_name)
        try:
            self.plans_dir.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(plan.to_document(), f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.error(f"Could not save plan file {path}: {e}")
            return None

        logger.debug(f"Saved plan with {len(plan.steps)} steps to {path}")
        return path

    @staticmethod
    def find_step(plan: Optional[ExecutionPlan], key: str) -> Optional[PlanStep]:
        if plan is None:
            return None
        return plan.find_step(key)

    @staticmethod
    def upsert(plan: ExecutionPlan, step: PlanStep) -> None:
        plan.upsert_step(step)

    @staticmethod
    def new_plan(scenario_name: str) -> ExecutionPlan:
        return ExecutionPlan(scenario_name=Path(scenario_name).name)

    def load_or_create(self, scenario_name: str) -> ExecutionPlan:
        return self.load(scenario_name) or self.new_plan(scenario_name)

    def delete(self, scenario_name: str) -> bool:
        """Delete a scenario's plan. Returns False when there was none."""
        path = self.plan_path(scenario_name)
        if not path.exists():
            return False
        path.unlink()
        logger.info(f"Deleted plan {path}")
        return True

    def list_plans(self) -> List[PlanSummary]:
        """Summaries of every readable plan, sorted by file name."""
        if not self.plans_dir.exists():
            return []

        summaries = []
        for path in sorted(self.plans_dir.glob(f"*{PLAN_SUFFIX}")):
            plan = self._read(path)
            if plan is None:
                continue
            summaries.append(PlanSummary(
                file_name=path.name,
                scenario_name=plan.scenario_name,
                step_count=len(plan.steps),
                learned_count=sum(1 for step in plan.steps if step.is_learned),
                created_at=plan.created_at,
                updated_at=plan.updated_at,
            ))
        return summaries
