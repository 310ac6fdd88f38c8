"""
Language model oracle: action proposals, verification patterns and value
extraction on top of ``OpenAIClient``.

Decoding never raises. Every structured call yields either ``ParsedOk``
with the decoded JSON object or ``ParseFailed`` with the reason, so callers
choose their own fallback.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import openai
from pydantic import ValidationError

from e2e_replay.config.agent_prompts import (
    ACTION_PROPOSAL_PROMPT,
    VALUE_EXTRACTION_PROMPT,
    VERIFICATION_PATTERN_PROMPT,
)
from e2e_replay.error_handling.exceptions import OracleError
from e2e_replay.journal.models import PlanAction
from e2e_replay.models.openai_client import OpenAIClient
from e2e_replay.monitoring.logger import get_logger

logger = get_logger(__name__)

# Greedy: first "{" through last "}", tolerating prose and reasoning around it
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True)
class ParsedOk:
    payload: Dict[str, Any]


@dataclass(frozen=True)
class ParseFailed:
    reason: str
    raw: str = ""


DecodeResult = Union[ParsedOk, ParseFailed]


def decode_json_payload(text: Optional[str]) -> DecodeResult:
    """Extract and parse the JSON object embedded in a model response."""
    if not text:
        return ParseFailed(reason="empty response", raw=text or "")

    match = _JSON_OBJECT.search(text)
    if not match:
        return ParseFailed(reason="no JSON object in response", raw=text)

    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        return ParseFailed(reason=f"invalid JSON: {e}", raw=text)

    if not isinstance(payload, dict):
        return ParseFailed(reason="JSON payload is not an object", raw=text)
    return ParsedOk(payload=payload)


def actions_from_payload(payload: Mapping[str, Any]) -> List[PlanAction]:
    """Validate proposed actions, dropping entries that are not valid actions."""
    raw_actions = payload.get("actions") or []
    if not isinstance(raw_actions, list):
        logger.warning("Oracle 'actions' is not a list, ignoring it")
        return []

    actions = []
    for raw in raw_actions:
        try:
            actions.append(PlanAction.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"Skipping invalid proposed action {raw!r}: {e.error_count()} errors")
    return actions


def _dump(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, default=str)


class LLMOracle:
    """Prompts the model and decodes its answers."""

    def __init__(self, client: OpenAIClient, excerpt_chars: int = 4000):
        self.client = client
        self.excerpt_chars = excerpt_chars

    async def _ask_json(self, prompt: str, purpose: str) -> DecodeResult:
        try:
            content = await self.client.complete(prompt)
        except (openai.OpenAIError, OracleError) as e:
            logger.error(f"Oracle call for {purpose} failed: {e}")
            return ParseFailed(reason=f"call failed: {e}")

        decoded = decode_json_payload(content)
        if isinstance(decoded, ParseFailed):
            logger.warning(f"Could not decode {purpose} response: {decoded.reason}")
        return decoded

    async def propose_actions(
        self,
        instruction: str,
        page_text: str,
        history: Sequence[str],
        memory: Mapping[str, Any],
    ) -> DecodeResult:
        """
        Ask which actions carry out an instruction on the current page.

        Args:
            instruction: Clean instruction text
            page_text: Current page snapshot
            history: Actions already executed in this step
            memory: Memory snapshot

        Returns:
            ParsedOk with an ``actions`` list, or ParseFailed
        """
        prompt = ACTION_PROPOSAL_PROMPT.format(
            page_text=page_text,
            history="\n".join(history) or "(none yet)",
            instruction=instruction,
            memory=_dump(dict(memory)),
        )
        return await self._ask_json(prompt, "action proposal")

    async def propose_verification(
        self, expected: str, memory: Mapping[str, Any]
    ) -> DecodeResult:
        """Ask for regex patterns that verify an expected result."""
        prompt = VERIFICATION_PATTERN_PROMPT.format(
            expected=expected, memory=_dump(dict(memory))
        )
        return await self._ask_json(prompt, "verification patterns")

    async def extract_value(self, hint: str, page_text: str) -> Optional[str]:
        """Extract a single value described by ``hint``; None on failure."""
        prompt = VALUE_EXTRACTION_PROMPT.format(
            hint=hint, page_text=page_text[: self.excerpt_chars]
        )
        try:
            content = await self.client.complete(prompt)
        except (openai.OpenAIError, OracleError) as e:
            logger.warning(f"LLM extraction failed: {e}")
            return None

        value = (content or "").strip()
        return value or None
