"""
Element re-resolution against fresh page snapshots.

Snapshot references (``[ref=e24]``) change between page loads, so recorded
actions carry text and role anchors instead. The resolver finds the line
of the current snapshot carrying the anchor and returns its reference.
"""

import re
from typing import List, Optional

from e2e_replay.error_handling.exceptions import ElementResolutionError
from e2e_replay.journal.models import PlanAction
from e2e_replay.monitoring.logger import get_logger

logger = get_logger(__name__)

ROLE_KEYWORDS = (
    "button", "link", "textbox", "checkbox", "radio",
    "combobox", "heading", "img", "tab", "menu",
)

_REF = r"\[ref=(\w+)\]"
_SAME_LINE = r"[^\n]*"


def extract_role(ref: str, snapshot: str) -> Optional[str]:
    """Return the role keyword on the snapshot line that carries ``ref``."""
    pattern = re.compile(
        rf"({'|'.join(ROLE_KEYWORDS)}){_SAME_LINE}\[ref={re.escape(ref)}\]",
        re.IGNORECASE,
    )
    match = pattern.search(snapshot)
    return match.group(1).lower() if match else None


class ElementResolver:
    """Finds the current reference of a recorded click/fill target."""

    def _strategies(self, action: PlanAction) -> List[str]:
        text = re.escape(action.text_content)
        patterns = []

        if action.role:
            role = re.escape(action.role)
            patterns.append(rf"{role}{_SAME_LINE}{text}{_SAME_LINE}{_REF}")
            patterns.append(rf"{role}{_SAME_LINE}{_REF}{_SAME_LINE}{text}")

        patterns.append(rf"{text}{_SAME_LINE}{_REF}")
        patterns.append(rf"{_REF}{_SAME_LINE}{text}")

        if action.element and action.element != action.text_content:
            element = re.escape(action.element)
            patterns.append(rf"{element}{_SAME_LINE}{_REF}")
            patterns.append(rf"{_REF}{_SAME_LINE}{element}")

        return patterns

    def resolve(self, action: PlanAction, snapshot: str) -> Optional[str]:
        """
        Resolve the current reference for an action.

        Args:
            action: Recorded action
            snapshot: Current page snapshot text

        Returns:
            Reference id, the action's own ref when no anchor was recorded,
            or None when the anchor is not on the page
        """
        if not action.text_content:
            return action.ref

        for pattern in self._strategies(action):
            match = re.search(pattern, snapshot, re.IGNORECASE)
            if match:
                logger.debug(
                    f"Resolved '{action.text_content}' to ref {match.group(1)}"
                )
                return match.group(1)

        logger.warning(f'Could not resolve element: "{action.text_content}"')
        return None

    def require(self, action: PlanAction, snapshot: str) -> str:
        """
        Resolve the current reference or raise.

        Raises:
            ElementResolutionError: If the anchor is not on the page
        """
        ref = self.resolve(action, snapshot)
        if ref is None:
            raise ElementResolutionError(
                f'Could not find element: "{action.text_content}"',
                anchor=action.text_content,
            )
        return ref
