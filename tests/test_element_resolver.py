"""
Tests for element re-resolution against fresh snapshots.
"""

import pytest

from e2e_replay.error_handling.exceptions import ElementResolutionError
from e2e_replay.journal.element_resolver import ElementResolver, extract_role
from e2e_replay.journal.models import PlanAction, PlanActionType

SNAPSHOT = """- navigation [ref=e2]:
  - link "Home" [ref=e3]
  - link "Sign in" [ref=e4]
- main [ref=e5]:
  - heading "Sign in" [ref=e6]
  - textbox "Email" [ref=e7]
  - button "Sign in" [ref=e8]"""


class TestExtractRole:
    """Tests for extract_role."""

    def test_role_on_ref_line(self):
        assert extract_role("e8", SNAPSHOT) == "button"
        assert extract_role("e7", SNAPSHOT) == "textbox"

    def test_unknown_ref(self):
        assert extract_role("e99", SNAPSHOT) is None

    def test_ref_is_matched_exactly(self):
        assert extract_role("e1", '- button "A" [ref=e10]') is None


class TestElementResolver:
    """Tests for ElementResolver.resolve."""

    def test_role_disambiguates_same_text(self):
        action = PlanAction(type=PlanActionType.CLICK, text_content="Sign in", role="button")

        assert ElementResolver().resolve(action, SNAPSHOT) == "e8"

    def test_text_only_takes_first_line(self):
        action = PlanAction(type=PlanActionType.CLICK, text_content="Sign in")

        assert ElementResolver().resolve(action, SNAPSHOT) == "e4"

    def test_matching_is_case_insensitive(self):
        action = PlanAction(type=PlanActionType.FILL, text_content="email", role="TextBox")

        assert ElementResolver().resolve(action, SNAPSHOT) == "e7"

    def test_ref_before_text(self):
        snapshot = '- cell [ref=e12] "Total due"'
        action = PlanAction(type=PlanActionType.CLICK, text_content="Total due")

        assert ElementResolver().resolve(action, snapshot) == "e12"

    def test_falls_back_to_element_description(self):
        action = PlanAction(
            type=PlanActionType.CLICK,
            text_content="Log in",
            element="Home",
        )

        assert ElementResolver().resolve(action, SNAPSHOT) == "e3"

    def test_missing_anchor(self):
        action = PlanAction(type=PlanActionType.CLICK, text_content="Checkout", role="button")

        assert ElementResolver().resolve(action, SNAPSHOT) is None

    def test_anchor_does_not_span_lines(self):
        snapshot = '- text: Sign\n- button "in" [ref=e1]'
        action = PlanAction(type=PlanActionType.CLICK, text_content="Sign in")

        assert ElementResolver().resolve(action, snapshot) is None

    def test_without_anchor_returns_own_ref(self):
        action = PlanAction(type=PlanActionType.CLICK, ref="e5")

        assert ElementResolver().resolve(action, SNAPSHOT) == "e5"

    def test_require_returns_resolved_ref(self):
        action = PlanAction(type=PlanActionType.CLICK, text_content="Email", role="textbox")

        assert ElementResolver().require(action, SNAPSHOT) == "e7"

    def test_require_raises_for_missing_anchor(self):
        action = PlanAction(type=PlanActionType.CLICK, text_content="Checkout")

        with pytest.raises(ElementResolutionError) as exc_info:
            ElementResolver().require(action, SNAPSHOT)

        assert exc_info.value.message == 'Could not find element: "Checkout"'
        assert exc_info.value.details["anchor"] == "Checkout"
