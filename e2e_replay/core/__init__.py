"""
Core module exports.
"""

from e2e_replay.core.instruction import (
    parse_browser_prefix,
    parse_delay,
    parse_line,
    parse_special_command,
)
from e2e_replay.core.interfaces import BrowserTransport
from e2e_replay.core.types import (
    AUTO_PASS,
    Instruction,
    SpecialCommand,
    SpecialCommandType,
    SuiteResult,
    TestResult,
)

__all__ = [
    # Interfaces
    "BrowserTransport",
    # Types
    "AUTO_PASS",
    "Instruction",
    "SpecialCommand",
    "SpecialCommandType",
    "SuiteResult",
    "TestResult",
    # Parsing
    "parse_browser_prefix",
    "parse_delay",
    "parse_line",
    "parse_special_command",
]
