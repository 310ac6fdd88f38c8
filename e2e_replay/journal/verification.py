"""
Local verification of expected results.

The oracle turns an expected-result sentence into regex patterns once;
checking them against page text and memory is plain, deterministic regex
work that needs no model call and can be replayed from a stored plan.
"""

import re
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel

from e2e_replay.journal.models import MemoryCheck, VerificationSpec
from e2e_replay.memory.store import MemoryStore
from e2e_replay.models.oracle import LLMOracle, ParsedOk
from e2e_replay.monitoring.logger import get_logger

logger = get_logger(__name__)


class VerificationOutcome(BaseModel):
    """Verdict plus the human-readable reason shown as the actual result."""

    success: bool
    actual_result: str


def _search(pattern: str, text: str) -> Optional[bool]:
    """Case-insensitive search; None when the pattern is not a valid regex."""
    try:
        return re.search(pattern, text, re.IGNORECASE) is not None
    except re.error:
        return None


def _quoted(patterns: List[str]) -> str:
    return ", ".join(f'"{p}"' for p in patterns)


def _check_memory(check: MemoryCheck, memory: Mapping[str, Any]) -> Optional[VerificationOutcome]:
    present = check.key in memory
    value = memory.get(check.key)

    if check.should_exist and not present:
        return VerificationOutcome(
            success=False, actual_result=f'Memory key "{check.key}" not found'
        )
    if not check.should_exist and present:
        return VerificationOutcome(
            success=False,
            actual_result=f'Memory key "{check.key}" should not exist but has value "{value}"',
        )
    if check.should_exist and check.pattern:
        matched = _search(check.pattern, str(value))
        if matched is None:
            logger.warning(f"Invalid memory check pattern skipped: {check.pattern}")
        elif not matched:
            return VerificationOutcome(
                success=False,
                actual_result=(
                    f'Memory "{check.key}" value "{value}" '
                    f'doesn\'t match pattern "{check.pattern}"'
                ),
            )
    return None


def evaluate_patterns(
    spec: VerificationSpec,
    page_text: str,
    memory: Mapping[str, Any],
) -> VerificationOutcome:
    """
    Evaluate a verification spec against page text and memory.

    Order: memory checks, then forbidden patterns, then required patterns
    (at least one must match). Invalid regexes are logged and skipped.

    Args:
        spec: Patterns to check
        page_text: Current page snapshot text
        memory: Memory contents

    Returns:
        VerificationOutcome with the first deciding reason
    """
    for check in spec.memory_checks:
        failure = _check_memory(check, memory)
        if failure:
            return failure

    for pattern in spec.not_match:
        matched = _search(pattern, page_text)
        if matched is None:
            logger.warning(f"Invalid notMatch regex pattern skipped: {pattern}")
        elif matched:
            return VerificationOutcome(
                success=False, actual_result=f'Found forbidden pattern: "{pattern}"'
            )

    if not spec.match:
        return VerificationOutcome(success=True, actual_result="No forbidden patterns found")

    for pattern in spec.match:
        matched = _search(pattern, page_text)
        if matched is None:
            logger.warning(f"Invalid match regex pattern skipped: {pattern}")
        elif matched:
            return VerificationOutcome(success=True, actual_result=f'Matched pattern: "{pattern}"')

    return VerificationOutcome(
        success=False, actual_result=f"No patterns matched. Tried: {_quoted(spec.match)}"
    )


def literal_spec(expected: str) -> VerificationSpec:
    """Degraded spec: the expected text itself, escaped, as the only pattern."""
    return VerificationSpec(match=[re.escape(expected)])


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


def spec_from_payload(payload: Dict[str, Any], expected: str) -> VerificationSpec:
    """Build a spec from the oracle's decoded JSON object."""
    if payload.get("match") is not None:
        match = _as_list(payload["match"])
    elif payload.get("patterns") is not None:
        match = _as_list(payload["patterns"])
    else:
        match = [expected]

    checks = []
    for raw in payload.get("memoryChecks") or []:
        if isinstance(raw, dict) and raw.get("key"):
            checks.append(MemoryCheck.model_validate(raw))
        else:
            logger.debug(f"Ignoring malformed memory check: {raw!r}")

    return VerificationSpec(
        match=match,
        not_match=_as_list(payload.get("notMatch")),
        memory_checks=checks,
    )


class VerificationEngine:
    """Obtains patterns from the oracle and evaluates them locally."""

    def __init__(self, oracle: LLMOracle, memory: MemoryStore):
        self.oracle = oracle
        self.memory = memory

    async def obtain_patterns(self, expected: str) -> VerificationSpec:
        """Ask the oracle for patterns, falling back to the literal expected text."""
        decoded = await self.oracle.propose_verification(expected, self.memory.snapshot())
        if isinstance(decoded, ParsedOk):
            try:
                return spec_from_payload(decoded.payload, expected)
            except ValueError as e:
                logger.warning(f"Unusable verification payload, using literal match: {e}")
                return literal_spec(expected)

        logger.warning(
            f"Verification patterns unavailable ({decoded.reason}), using literal match"
        )
        return literal_spec(expected)

    def evaluate(self, spec: VerificationSpec, page_text: str) -> VerificationOutcome:
        """Evaluate a spec against the page with the current memory."""
        if spec.match:
            logger.info(f"Must match (any): {_quoted(spec.match)}")
        if spec.not_match:
            logger.info(f"Must NOT match: {_quoted(spec.not_match)}")

        outcome = evaluate_patterns(spec, page_text, self.memory.snapshot())
        log = logger.info if outcome.success else logger.warning
        log(f"Verification {'passed' if outcome.success else 'failed'}: {outcome.actual_result}")
        return outcome
