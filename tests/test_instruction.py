"""
Unit tests for scenario line parsing.
"""

import pytest

from e2e_replay.core.instruction import (
    parse_browser_prefix,
    parse_delay,
    parse_line,
    parse_special_command,
)
from e2e_replay.core.types import AUTO_PASS, AUTO_PASS_LABEL, SpecialCommandType


class TestParseLine:
    """Tests for parse_line."""

    def test_instruction_with_expected_result(self):
        instruction = parse_line("Click the login button >>> Dashboard is visible")

        assert instruction.text == "Click the login button"
        assert instruction.expected_result == "Dashboard is visible"
        assert instruction.delay_ms == 200
        assert instruction.browser_id == 1
        assert instruction.auto_pass is False

    def test_line_without_separator_is_auto_pass(self):
        instruction = parse_line("Wait for the banner")

        assert instruction.expected_result == AUTO_PASS
        assert instruction.auto_pass is True
        assert instruction.expected_label == AUTO_PASS_LABEL

    def test_browser_prefix_and_delay(self):
        instruction = parse_line("*2 Type hello in chat [[1500]] >>> hello appears")

        assert instruction.browser_id == 2
        assert instruction.text == "Type hello in chat"
        assert instruction.delay_ms == 1500
        assert instruction.expected_result == "hello appears"

    def test_raw_is_trimmed_source_line(self):
        instruction = parse_line("   *1 Click Save [[300]] >>> Saved   ")

        assert instruction.raw == "*1 Click Save [[300]] >>> Saved"

    def test_splits_on_first_separator_only(self):
        instruction = parse_line("Type a >>> b >>> c")

        assert instruction.text == "Type a"
        assert instruction.expected_result == "b >>> c"

    @pytest.mark.parametrize("line", [
        "",
        "   ",
        ">>> only expected",
        "Click something >>>",
        "[[500]] >>> text",
    ])
    def test_malformed_lines(self, line):
        assert parse_line(line) is None

    def test_prefix_requires_whitespace(self):
        instruction = parse_line("*2Click >>> ok")

        assert instruction.browser_id == 1
        assert instruction.text == "*2Click"


class TestPrefixAndDelay:
    """Tests for the prefix and delay helpers."""

    def test_prefix_absent_defaults_to_browser_one(self):
        assert parse_browser_prefix("Click") == (1, "Click")

    def test_prefix_browser_two(self):
        assert parse_browser_prefix("*2 Click") == (2, "Click")

    def test_only_first_delay_token_is_used(self):
        text, delay = parse_delay("Wait [[100]] then [[900]]")

        assert delay == 100
        assert text == "Wait  then [[900]]"

    def test_default_delay(self):
        assert parse_delay("Click") == ("Click", 200)


class TestSpecialCommands:
    """Tests for the special-command classifier."""

    @pytest.mark.parametrize("text,url", [
        ("go to https://example.com", "https://example.com"),
        ("Navigate to /settings", "/settings"),
        ("GO TO   https://example.com/a b", "https://example.com/a b"),
    ])
    def test_navigate(self, text, url):
        command = parse_special_command(text)

        assert command.type == SpecialCommandType.NAVIGATE
        assert command.url == url
        assert command.is_special

    @pytest.mark.parametrize("text", [
        "reset session", "clear storage", "Clear localStorage", "RESET STORAGE",
    ])
    def test_reset(self, text):
        assert parse_special_command(text).type == SpecialCommandType.RESET

    def test_scroll(self):
        command = parse_special_command("Scroll Up")

        assert command.type == SpecialCommandType.SCROLL
        assert command.direction == "up"

    @pytest.mark.parametrize("text", [
        "Please go to the settings page",
        "scroll down a bit",
        "reset the form",
        "Click the Go to top link",
    ])
    def test_matching_is_anchored(self, text):
        command = parse_special_command(text)

        assert command.type == SpecialCommandType.NONE
        assert not command.is_special
