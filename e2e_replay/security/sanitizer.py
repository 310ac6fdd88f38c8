"""
Secret redaction for log output.

Scenario runs log instructions, typed values and model responses; the
sanitizer keeps credentials that end up in those strings out of the logs.
"""

import hashlib
import logging
import re
from copy import deepcopy
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Pattern

logger = logging.getLogger(__name__)


class RedactionMethod(Enum):
    """Methods for redacting sensitive data."""
    MASK = auto()          # Replace with asterisks
    HASH = auto()          # Replace with a short digest
    PLACEHOLDER = auto()   # Replace with placeholder text


@dataclass
class SensitiveDataPattern:
    """Pattern for identifying sensitive data."""

    name: str
    pattern: Pattern[str]
    redaction_method: RedactionMethod = RedactionMethod.PLACEHOLDER
    placeholder: str = "[REDACTED]"
    value_group: Optional[int] = None
    enabled: bool = True

    def matches(self, text: str) -> List[re.Match]:
        """Find all matches in text."""
        if not self.enabled:
            return []
        return list(self.pattern.finditer(text))


SENSITIVE_KEYS = ("password", "api_key", "apikey", "token", "secret", "authorization")


class DataSanitizer:
    """Redacts API keys, bearer tokens and password-like assignments."""

    def __init__(self):
        self.patterns: List[SensitiveDataPattern] = [
            SensitiveDataPattern(
                name="openai_style_key",
                pattern=re.compile(r"\bsk-[A-Za-z0-9_\-]{16,}"),
            ),
            SensitiveDataPattern(
                name="bearer_token",
                pattern=re.compile(r"Bearer\s+[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE),
            ),
            SensitiveDataPattern(
                name="key_assignment",
                pattern=re.compile(
                    r"(api[_-]?key|apikey|access[_-]?token|secret)\s*[:=]\s*[\"']?([^\"'\s,]+)",
                    re.IGNORECASE,
                ),
                value_group=2,
            ),
            SensitiveDataPattern(
                name="password_assignment",
                pattern=re.compile(
                    r"(password|passwd|pwd)\s*[:=]\s*[\"']?([^\"'\s,]+)", re.IGNORECASE
                ),
                placeholder="[PASSWORD]",
                value_group=2,
            ),
            SensitiveDataPattern(
                name="jwt_token",
                pattern=re.compile(r"eyJ[A-Za-z0-9_-]+\.eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+"),
                redaction_method=RedactionMethod.HASH,
            ),
        ]

    def add_pattern(self, pattern: SensitiveDataPattern) -> None:
        """Add a custom pattern."""
        self.patterns.append(pattern)

    def sanitize_string(self, text: str) -> str:
        """
        Redact every enabled pattern in a string.

        Args:
            text: Text to sanitize

        Returns:
            Sanitized text
        """
        if not text:
            return text

        result = text
        for pattern in self.patterns:
            # Process matches from the end so earlier spans stay valid
            for match in reversed(pattern.matches(result)):
                result = self._apply_redaction(result, match, pattern)
        return result

    def _apply_redaction(
        self,
        text: str,
        match: re.Match,
        pattern: SensitiveDataPattern
    ) -> str:
        group = pattern.value_group or 0
        start, end = match.span(group)
        secret = match.group(group)

        if pattern.redaction_method == RedactionMethod.MASK:
            replacement = "*" * len(secret)
        elif pattern.redaction_method == RedactionMethod.HASH:
            digest = hashlib.sha256(secret.encode()).hexdigest()[:8]
            replacement = f"[HASH:{digest}]"
        else:
            replacement = pattern.placeholder

        return text[:start] + replacement + text[end:]

    def sanitize_dict(self, data: Dict[str, Any], max_depth: int = 10) -> Dict[str, Any]:
        """
        Sanitize a dictionary recursively.

        Values stored under sensitive-looking keys are replaced wholesale.

        Returns:
            Sanitized copy of the dictionary
        """
        if max_depth <= 0:
            logger.warning("Max recursion depth reached in sanitize_dict")
            return data

        result = deepcopy(data)
        for key, value in result.items():
            result[key] = self._sanitize_value(key, value, max_depth)
        return result

    def _sanitize_value(self, key: Optional[str], value: Any, max_depth: int) -> Any:
        if isinstance(value, str):
            if key and any(k in key.lower() for k in SENSITIVE_KEYS):
                return "[REDACTED]" if value else value
            return self.sanitize_string(value)
        if isinstance(value, dict):
            return self.sanitize_dict(value, max_depth - 1)
        if isinstance(value, list):
            return [self._sanitize_value(None, item, max_depth) for item in value]
        return value

    def sanitize_log_record(self, record: logging.LogRecord) -> logging.LogRecord:
        """Sanitize a log record's message and arguments in place."""
        record.msg = self.sanitize_string(str(record.msg))

        if record.args:
            if isinstance(record.args, dict):
                record.args = self.sanitize_dict(record.args)
            else:
                record.args = tuple(
                    self.sanitize_string(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )

        return record
