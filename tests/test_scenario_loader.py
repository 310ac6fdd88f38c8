"""
Tests for scenario file loading and includes.
"""

import logging

import pytest

from e2e_replay.core.instruction import parse_special_command
from e2e_replay.core.types import SpecialCommandType
from e2e_replay.error_handling.exceptions import ScenarioFileError
from e2e_replay.scenarios.loader import ScenarioLoader


@pytest.fixture
def loader():
    return ScenarioLoader()


class TestScenarioLoader:
    """Tests for ScenarioLoader.parse."""

    def test_parses_lines_in_order(self, loader, tmp_path):
        scenario = tmp_path / "login.txt"
        scenario.write_text(
            "go to https://example.com\n"
            "\n"
            "*2 Type admin in username [[500]] >>> admin is shown\n"
            "Click Sign in >>> Welcome\n",
            encoding="utf-8",
        )

        instructions = loader.parse(scenario)

        assert [i.text for i in instructions] == [
            "go to https://example.com",
            "Type admin in username",
            "Click Sign in",
        ]
        assert instructions[0].auto_pass
        assert instructions[1].browser_id == 2
        assert instructions[1].delay_ms == 500

    def test_include_expands_in_place(self, loader, tmp_path):
        (tmp_path / "common").mkdir()
        (tmp_path / "common" / "login.txt").write_text(
            "Type admin in username\nClick Sign in >>> Welcome\n", encoding="utf-8"
        )
        scenario = tmp_path / "main.txt"
        scenario.write_text(
            "go to https://example.com\n##common/login.txt\nClick Logout >>> Bye\n",
            encoding="utf-8",
        )

        instructions = loader.parse(scenario)

        assert [i.text for i in instructions] == [
            "go to https://example.com",
            "Type admin in username",
            "Click Sign in",
            "Click Logout",
        ]

    def test_nested_include_resolves_relative_to_including_file(self, loader, tmp_path):
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        (nested / "leaf.txt").write_text("Leaf step\n", encoding="utf-8")
        (tmp_path / "a" / "middle.txt").write_text("##b/leaf.txt\n", encoding="utf-8")
        scenario = tmp_path / "root.txt"
        scenario.write_text("##a/middle.txt\n", encoding="utf-8")

        assert [i.text for i in loader.parse(scenario)] == ["Leaf step"]

    def test_circular_include_is_skipped(self, loader, tmp_path, caplog):
        (tmp_path / "a.txt").write_text("Step A\n##b.txt\n", encoding="utf-8")
        (tmp_path / "b.txt").write_text("Step B\n##a.txt\n", encoding="utf-8")

        with caplog.at_level(logging.WARNING):
            instructions = loader.parse(tmp_path / "a.txt")

        assert [i.text for i in instructions] == ["Step A", "Step B"]
        assert "Circular include" in caplog.text

    def test_self_include_is_skipped(self, loader, tmp_path):
        (tmp_path / "self.txt").write_text("Only step\n##self.txt\n", encoding="utf-8")

        assert [i.text for i in loader.parse(tmp_path / "self.txt")] == ["Only step"]

    def test_missing_include_is_skipped(self, loader, tmp_path, caplog):
        scenario = tmp_path / "main.txt"
        scenario.write_text("First\n##missing.txt\nSecond\n", encoding="utf-8")

        with caplog.at_level(logging.ERROR):
            instructions = loader.parse(scenario)

        assert [i.text for i in instructions] == ["First", "Second"]
        assert "missing.txt" in caplog.text

    def test_missing_top_level_file_raises(self, loader, tmp_path):
        with pytest.raises(ScenarioFileError) as exc_info:
            loader.parse(tmp_path / "nope.txt")

        assert exc_info.value.path.endswith("nope.txt")

    def test_include_directive_is_case_insensitive(self, loader, tmp_path):
        (tmp_path / "Part.TXT").write_text("Included\n", encoding="utf-8")
        scenario = tmp_path / "main.txt"
        scenario.write_text("##Part.TXT\n", encoding="utf-8")

        assert [i.text for i in loader.parse(scenario)] == ["Included"]

    def test_malformed_lines_are_skipped(self, loader, tmp_path):
        scenario = tmp_path / "main.txt"
        scenario.write_text(">>> nothing\nValid >>> ok\nBroken >>>\n", encoding="utf-8")

        assert [i.text for i in loader.parse(scenario)] == ["Valid"]

    def test_mixed_browser_scenario(self, loader, tmp_path):
        scenario = tmp_path / "login.txt"
        scenario.write_text(
            'go to https://example.test\n'
            'click "Login" >>> login form is shown\n'
            '*2 scroll down\n',
            encoding="utf-8",
        )

        navigate, click, scroll = loader.parse(scenario)

        assert (navigate.browser_id, navigate.auto_pass) == (1, True)
        assert parse_special_command(navigate.text).type == SpecialCommandType.NAVIGATE
        assert (click.browser_id, click.auto_pass) == (1, False)
        assert click.expected_result == "login form is shown"
        assert (scroll.browser_id, scroll.auto_pass) == (2, True)
        assert parse_special_command(scroll.text).type == SpecialCommandType.SCROLL
