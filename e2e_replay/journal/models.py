"""
Data models for learned execution plans.

Plan files keep camelCase keys on disk; the models accept either the
camelCase alias or the Python field name.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from e2e_replay.core.types import DEFAULT_BROWSER_ID, DEFAULT_DELAY_MS, SpecialCommand


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExecutionMode(str, Enum):
    """How a step is executed."""
    PLAIN = "plain"    # Oracle-driven, nothing recorded
    LEARN = "learn"    # Oracle-driven, plan step recorded
    REPLAY = "replay"  # Learned plan replayed, relearn on failure


class PlanActionType(str, Enum):
    """Action vocabulary shared by oracle proposals and plan steps."""
    CLICK = "click"
    FILL = "fill"
    NAVIGATE = "navigate"
    MEMORY_STORE = "memory_store"
    MEMORY_READ = "memory_read"


class PlanStepType(str, Enum):
    ACTION = "action"
    SPECIAL = "special"


class PlanModel(BaseModel):
    """Base for persisted plan records."""

    model_config = ConfigDict(populate_by_name=True)

    def to_document(self) -> Dict[str, Any]:
        """Serialize with on-disk key names, omitting unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class MemoryCheck(PlanModel):
    """Assertion about a memory entry."""

    key: str
    pattern: Optional[str] = None
    should_exist: bool = Field(True, alias="shouldExist")


class VerificationSpec(PlanModel):
    """Regex patterns checked locally against page text and memory."""

    match: List[str] = Field(default_factory=list)
    not_match: List[str] = Field(default_factory=list, alias="notMatch")
    memory_checks: List[MemoryCheck] = Field(default_factory=list, alias="memoryChecks")


class PlanAction(PlanModel):
    """A single browser or memory action, as proposed or as recorded."""

    type: PlanActionType
    element: Optional[str] = Field(None, description="Human-readable element description")
    ref: Optional[str] = Field(None, description="Snapshot reference, valid for one snapshot only")
    text_content: Optional[str] = Field(None, alias="textContent")
    role: Optional[str] = None
    value: Optional[Any] = None
    memory_key: Optional[str] = Field(None, alias="memoryKey")
    url: Optional[str] = None
    key: Optional[str] = None
    extraction_hint: Optional[str] = Field(None, alias="extractionHint")
    extraction_regex: Optional[str] = Field(None, alias="extractionRegex")

    @property
    def targets_element(self) -> bool:
        return self.type in (PlanActionType.CLICK, PlanActionType.FILL)

    @property
    def is_dynamic_store(self) -> bool:
        """memory_store whose value must be extracted from the page at replay time."""
        return self.type == PlanActionType.MEMORY_STORE and bool(
            self.extraction_hint or self.extraction_regex
        )


class PlanStep(PlanModel):
    """Learned recipe for one scenario line."""

    original_instruction: str = Field(..., alias="originalInstruction")
    type: PlanStepType = PlanStepType.ACTION
    actions: List[PlanAction] = Field(default_factory=list)
    special_command: Optional[SpecialCommand] = Field(None, alias="specialCommand")
    verification: Optional[VerificationSpec] = None
    delay: int = Field(DEFAULT_DELAY_MS, ge=0)
    browser_num: int = Field(DEFAULT_BROWSER_ID, ge=1, le=2, alias="browserNum")
    learned_at: Optional[datetime] = Field(None, alias="learnedAt")
    fail_count: int = Field(0, ge=0, alias="failCount")

    @property
    def is_learned(self) -> bool:
        return self.learned_at is not None

    def to_document(self) -> Dict[str, Any]:
        # verification and learnedAt are kept as explicit nulls
        data = super().to_document()
        data.setdefault("verification", None)
        data.setdefault("learnedAt", None)
        return data


class ExecutionPlan(PlanModel):
    """All learned steps of one scenario."""

    scenario_name: str = Field(..., alias="scenarioName")
    created_at: datetime = Field(default_factory=_utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=_utcnow, alias="updatedAt")
    steps: List[PlanStep] = Field(default_factory=list)

    def find_step(self, key: str) -> Optional[PlanStep]:
        """Find the step recorded for an exact (trimmed) instruction line."""
        key = key.strip()
        for step in self.steps:
            if step.original_instruction == key:
                return step
        return None

    def upsert_step(self, step: PlanStep) -> None:
        """Replace the step with the same key, or append it."""
        for index, existing in enumerate(self.steps):
            if existing.original_instruction == step.original_instruction:
                self.steps[index] = step
                break
        else:
            self.steps.append(step)
        self.updated_at = _utcnow()

    def to_document(self) -> Dict[str, Any]:
        return {
            "scenarioName": self.scenario_name,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "steps": [step.to_document() for step in self.steps],
        }


class PlanSummary(BaseModel):
    """Listing entry for a stored plan."""

    file_name: str
    scenario_name: str
    step_count: int
    learned_count: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
