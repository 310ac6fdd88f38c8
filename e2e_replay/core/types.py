"""
Core data models and types for the e2e-replay runner.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


AUTO_PASS = "__AUTO_PASS__"
AUTO_PASS_LABEL = "(auto-pass)"
DEFAULT_DELAY_MS = 200
DEFAULT_BROWSER_ID = 1
BROWSER_IDS = (1, 2)


class SpecialCommandType(str, Enum):
    """Fixed-vocabulary commands executed without the language model."""

    NAVIGATE = "navigate"
    RESET = "reset"
    SCROLL = "scroll"
    NONE = "none"


class SpecialCommand(BaseModel):
    """Classified special command (tagged variant)."""

    type: SpecialCommandType = SpecialCommandType.NONE
    url: Optional[str] = None
    direction: Optional[str] = Field(None, description="'up' or 'down' for scroll")

    @property
    def is_special(self) -> bool:
        return self.type != SpecialCommandType.NONE


class Instruction(BaseModel):
    """One parsed scenario line."""

    raw: str = Field(..., description="Exact trimmed source line, used as the plan key")
    text: str = Field(..., description="Instruction with prefix and delay token removed")
    expected_result: str = Field(AUTO_PASS, description="Expected result or the auto-pass sentinel")
    delay_ms: int = Field(DEFAULT_DELAY_MS, ge=0, description="Settle delay in milliseconds")
    browser_id: int = Field(DEFAULT_BROWSER_ID, ge=1, le=2, description="Target browser")

    @property
    def auto_pass(self) -> bool:
        """Whether the step has no expected-result clause."""
        return self.expected_result == AUTO_PASS

    @property
    def expected_label(self) -> str:
        return AUTO_PASS_LABEL if self.auto_pass else self.expected_result


class TestResult(BaseModel):
    """Outcome of one step execution."""

    step_index: int
    instruction: str
    expected_result: str
    actual_result: str
    success: bool
    executed_actions: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SuiteResult(BaseModel):
    """Aggregated outcome of a scenario run."""

    scenario_name: str
    total_steps: int = 0
    results: List[TestResult] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def all_passed(self) -> bool:
        """True when no attempted step failed."""
        return self.failed == 0

    def finalize(self) -> None:
        """Stamp the end of the run."""
        self.finished_at = datetime.now(timezone.utc)

    def get_summary(self) -> dict:
        """Get a summary of the run."""
        return {
            "scenario": self.scenario_name,
            "total": self.total_steps,
            "attempted": len(self.results),
            "passed": self.passed,
            "failed": self.failed,
        }
