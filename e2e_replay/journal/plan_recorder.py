"""
Turns the actions executed while learning into replayable plan steps.
"""

import re
from datetime import datetime, timezone
from typing import List, Optional

from e2e_replay.core.types import Instruction, SpecialCommand
from e2e_replay.journal.element_resolver import extract_role
from e2e_replay.journal.models import (
    PlanAction,
    PlanActionType,
    PlanStep,
    PlanStepType,
    VerificationSpec,
)
from e2e_replay.monitoring.logger import get_logger

logger = get_logger(__name__)

# Snapshot punctuation that never belongs to a label
_LABEL_BOUNDARY = re.compile(r"[\"\[\]]|^\s*-\s+|\s-\s")
_HAS_WORD = re.compile(r"\w")


def derive_extraction_regex(value: str, snapshot: str) -> Optional[str]:
    """
    Build a regex that finds ``value`` again through its label.

    The label is the text preceding the value on the same snapshot line,
    e.g. ``Order ID:`` in ``- text: Order ID: A-1234``. The value becomes
    capture group 1. Returns None when no usable label precedes the value
    or the derived regex does not reproduce the value.
    """
    for line in snapshot.splitlines():
        index = line.find(value)
        if index < 0:
            continue

        label = _LABEL_BOUNDARY.split(line[:index])[-1].strip()
        if not _HAS_WORD.search(label):
            continue

        capture = r"(\S+)" if not re.search(r"\s", value) else r"([^\"\]\n]+)"
        candidate = rf"{re.escape(label)}\s*{capture}"
        match = re.search(candidate, snapshot, re.IGNORECASE)
        if match and match.group(1).strip() == value:
            return candidate

    return None


class PlanRecorder:
    """Enriches raw oracle actions with anchors and assembles plan steps."""

    def _enrich_action(self, action: PlanAction, snapshot: str) -> PlanAction:
        recorded = action.model_copy()

        if action.targets_element:
            if action.ref:
                recorded.role = extract_role(action.ref, snapshot)
            recorded.text_content = action.element or action.ref
            recorded.ref = None
            if action.type == PlanActionType.FILL and action.memory_key:
                recorded.value = None

        elif action.type == PlanActionType.MEMORY_STORE and action.value is not None:
            value = str(action.value)
            if value and value in snapshot:
                recorded.extraction_hint = (
                    action.element
                    or f'Extract the value labeled "{action.key}" from the page'
                )
                recorded.extraction_regex = derive_extraction_regex(value, snapshot)
                recorded.value = None

        return recorded

    def enrich(self, raw_actions: List[PlanAction], snapshot: str) -> List[PlanAction]:
        """
        Make oracle actions replayable.

        Args:
            raw_actions: Actions as proposed by the oracle
            snapshot: Page snapshot the actions were proposed against

        Returns:
            Actions with snapshot refs replaced by text/role anchors and
            page-derived memory values replaced by extraction hints
        """
        return [self._enrich_action(action, snapshot) for action in raw_actions]

    def build_step(
        self,
        instruction: Instruction,
        special: Optional[SpecialCommand],
        actions: List[PlanAction],
        verification: Optional[VerificationSpec],
        success: bool,
        previous: Optional[PlanStep] = None,
        fallback: bool = False,
        explicit: bool = True,
    ) -> PlanStep:
        """
        Assemble the plan step for a learning attempt.

        ``learnedAt`` is stamped only when the attempt passed. A fallback
        relearn bumps the previous failure count by one; only a successful
        explicit learn resets it, any other attempt leaves it alone.
        """
        prior_count = previous.fail_count if previous else 0
        if fallback:
            fail_count = prior_count + 1
        elif success and explicit:
            fail_count = 0
        else:
            fail_count = prior_count

        is_special = special is not None and special.is_special
        step = PlanStep(
            original_instruction=instruction.raw,
            type=PlanStepType.SPECIAL if is_special else PlanStepType.ACTION,
            actions=[] if is_special else actions,
            special_command=special if is_special else None,
            verification=verification,
            delay=instruction.delay_ms,
            browser_num=instruction.browser_id,
            learned_at=datetime.now(timezone.utc) if success else None,
            fail_count=fail_count,
        )

        logger.info(
            f"Learned: {len(step.actions)} actions, "
            f"verification: {'yes' if step.verification else 'none'}",
            extra={"step_key": instruction.raw, "fail_count": fail_count},
        )
        return step
