"""
Instruction parsing: browser routing prefix, settle delay, expected result
and the special-command classifier.

Line grammar::

    [*1 |*2 ]instruction [[delayMs]] [>>> expected result]
"""

import re
from typing import Optional, Tuple

from e2e_replay.core.types import (
    AUTO_PASS,
    DEFAULT_BROWSER_ID,
    DEFAULT_DELAY_MS,
    Instruction,
    SpecialCommand,
    SpecialCommandType,
)

RESULT_SEPARATOR = ">>>"

_BROWSER_PREFIX = re.compile(r"^\*([12])\s+")
_DELAY_TOKEN = re.compile(r"\[\[(\d+)\]\]")

_NAVIGATE = re.compile(r"^(?:go\s+to|navigate\s+to)\s+(.+)$", re.IGNORECASE)
_RESET = re.compile(r"^(?:reset|clear)\s+(?:session|storage|localstorage)$", re.IGNORECASE)
_SCROLL = re.compile(r"^scroll\s+(down|up)$", re.IGNORECASE)


def parse_browser_prefix(line: str) -> Tuple[int, str]:
    """Strip a leading ``*1 `` / ``*2 `` token.

    Returns:
        Tuple of (browser id, remainder). Browser 1 when no prefix is present.
    """
    match = _BROWSER_PREFIX.match(line)
    if match:
        return int(match.group(1)), line[match.end():]
    return DEFAULT_BROWSER_ID, line


def parse_delay(text: str) -> Tuple[str, int]:
    """Strip the first ``[[N]]`` token and return (clean text, delay in ms)."""
    match = _DELAY_TOKEN.search(text)
    if not match:
        return text, DEFAULT_DELAY_MS
    clean = (text[:match.start()] + text[match.end():]).strip()
    return clean, int(match.group(1))


def parse_special_command(text: str) -> SpecialCommand:
    """Classify an instruction as navigate, reset, scroll or none.

    Matching is anchored to the whole instruction and case-insensitive.
    """
    text = text.strip()

    match = _NAVIGATE.match(text)
    if match:
        return SpecialCommand(type=SpecialCommandType.NAVIGATE, url=match.group(1).strip())

    if _RESET.match(text):
        return SpecialCommand(type=SpecialCommandType.RESET)

    match = _SCROLL.match(text)
    if match:
        return SpecialCommand(
            type=SpecialCommandType.SCROLL, direction=match.group(1).lower()
        )

    return SpecialCommand(type=SpecialCommandType.NONE)


def parse_line(line: str) -> Optional[Instruction]:
    """
    Parse one scenario line into an Instruction.

    Args:
        line: Raw scenario line

    Returns:
        Parsed instruction, or None for blank or malformed lines
    """
    raw = line.strip()
    if not raw:
        return None

    browser_id, remainder = parse_browser_prefix(raw)

    if RESULT_SEPARATOR in remainder:
        instruction_part, _, expected = remainder.partition(RESULT_SEPARATOR)
        instruction_part = instruction_part.strip()
        expected = expected.strip()
        if not instruction_part or not expected:
            return None
    else:
        instruction_part = remainder.strip()
        expected = AUTO_PASS

    text, delay_ms = parse_delay(instruction_part)
    if not text:
        return None

    return Instruction(
        raw=raw,
        text=text,
        expected_result=expected,
        delay_ms=delay_ms,
        browser_id=browser_id,
    )
