"""Tests for the command line interface."""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

import e2e_replay.main as cli
from e2e_replay.core.types import SuiteResult, TestResult
from e2e_replay.error_handling.exceptions import ScenarioFileError
from e2e_replay.journal.models import ExecutionMode
from e2e_replay.journal.plan_store import PlanStore
from e2e_replay.memory.store import MemoryStore


def suite_with(*successes):
    return SuiteResult(
        scenario_name="login.txt",
        total_steps=len(successes),
        results=[
            TestResult(
                step_index=i, instruction=f"step {i}", expected_result="ok",
                actual_result="done", success=success,
            )
            for i, success in enumerate(successes)
        ],
    )


@pytest.fixture
def patched_env(settings):
    """Run the CLI against test settings without touching global logging."""
    with patch.object(cli, "get_settings", return_value=settings), \
            patch.object(cli, "setup_logging"):
        yield settings


@pytest.fixture
def fake_runner():
    runner = MagicMock()
    runner.run_suite = AsyncMock()
    runner.run_single_step = AsyncMock()
    runner.controller.connect_all = AsyncMock()
    runner.controller.initialize_browser = AsyncMock()
    runner.controller.close_all = AsyncMock()
    with patch.object(cli, "build_runner", return_value=runner):
        yield runner


class TestCLIParser:
    """Test command line parser."""

    def test_positionals(self):
        args = cli.create_parser().parse_args(["scenarios/login.txt", "https://example.com"])

        assert str(args.scenario) == "scenarios/login.txt"
        assert args.url == "https://example.com"
        assert cli.selected_mode(args) == ExecutionMode.PLAIN

    def test_modes(self):
        parser = cli.create_parser()

        assert cli.selected_mode(parser.parse_args(["a.txt", "--learn"])) == ExecutionMode.LEARN
        assert cli.selected_mode(parser.parse_args(["a.txt", "--replay"])) == ExecutionMode.REPLAY

    def test_modes_are_exclusive(self):
        with pytest.raises(SystemExit):
            cli.create_parser().parse_args(["a.txt", "--learn", "--replay"])

    def test_diagram_default_path(self):
        args = cli.create_parser().parse_args(["a.txt", "--diagram"])

        assert args.diagram == cli.DEFAULT_DIAGRAM_PATH


class TestAsyncMain:
    """Test CLI dispatch and exit codes."""

    @pytest.mark.asyncio
    async def test_version(self):
        assert await cli.async_main(["--version"]) == 0

    @pytest.mark.asyncio
    async def test_missing_scenario_prints_help(self, patched_env):
        assert await cli.async_main([]) == 1

    @pytest.mark.asyncio
    async def test_all_passed_exits_zero(self, patched_env, fake_runner, tmp_path):
        fake_runner.run_suite.return_value = suite_with(True, True)

        code = await cli.async_main([str(tmp_path / "login.txt"), "https://example.com", "--learn"])

        assert code == 0
        _, kwargs = fake_runner.run_suite.call_args
        assert kwargs == {"start_url": "https://example.com", "mode": ExecutionMode.LEARN}

    @pytest.mark.asyncio
    async def test_failure_exits_one(self, patched_env, fake_runner, tmp_path):
        fake_runner.run_suite.return_value = suite_with(True, False)

        assert await cli.async_main([str(tmp_path / "login.txt")]) == 1

    @pytest.mark.asyncio
    async def test_output_file(self, patched_env, fake_runner, tmp_path):
        fake_runner.run_suite.return_value = suite_with(True)
        output = tmp_path / "out" / "result.json"

        await cli.async_main([str(tmp_path / "login.txt"), "-o", str(output)])

        assert '"scenario_name": "login.txt"' in output.read_text()

    @pytest.mark.asyncio
    async def test_scenario_error_exits_one(self, patched_env, fake_runner, tmp_path, caplog):
        fake_runner.run_suite.side_effect = ScenarioFileError("missing", path="x.txt")

        with caplog.at_level(logging.ERROR, logger="e2e_replay.main"):
            assert await cli.async_main([str(tmp_path / "x.txt")]) == 1

        [record] = [r for r in caplog.records if r.name == "e2e_replay.main"]
        assert record.error["error_code"] == "ScenarioFileError"
        assert record.error["details"] == {"path": "x.txt"}

    @pytest.mark.asyncio
    async def test_configured_log_format_kept_without_verbose(
        self, patched_env, fake_runner, tmp_path
    ):
        patched_env.log_format = "json"
        fake_runner.run_suite.return_value = suite_with(True)

        await cli.async_main([str(tmp_path / "login.txt")])

        assert patched_env.log_format == "json"
        assert cli.setup_logging.call_args.kwargs["log_format"] == "json"

    @pytest.mark.asyncio
    async def test_verbose_switches_to_json(self, patched_env, fake_runner, tmp_path):
        fake_runner.run_suite.return_value = suite_with(True)

        await cli.async_main([str(tmp_path / "login.txt"), "--verbose"])

        assert cli.setup_logging.call_args.kwargs["log_format"] == "json"

    @pytest.mark.asyncio
    async def test_single_step(self, patched_env, fake_runner, tmp_path):
        fake_runner.run_single_step.return_value = suite_with(True).results[0]

        code = await cli.async_main(
            [str(tmp_path / "login.txt"), "--replay", "--step", "Click Save >>> Saved"]
        )

        assert code == 0
        fake_runner.run_single_step.assert_awaited_once_with(
            "Click Save >>> Saved", scenario_name="login.txt", mode=ExecutionMode.REPLAY
        )
        fake_runner.controller.close_all.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fresh_session_clears_memory(self, patched_env, fake_runner, tmp_path):
        MemoryStore(patched_env.memory_file).store("stale", 1)
        fake_runner.run_suite.return_value = suite_with(True)

        await cli.async_main([str(tmp_path / "login.txt"), "--fresh-session"])

        assert "stale" not in MemoryStore(patched_env.memory_file)

    @pytest.mark.asyncio
    async def test_list_and_delete_plans(self, patched_env):
        store = PlanStore(patched_env.plans_dir)
        store.save(store.new_plan("login.txt"))

        assert await cli.async_main(["--list-plans"]) == 0
        assert await cli.async_main(["--delete-plan", "login.txt"]) == 0
        assert await cli.async_main(["--delete-plan", "login.txt"]) == 1


class TestMain:
    """Test the synchronous entry point."""

    def test_main_returns_exit_code(self):
        assert cli.main(["--version"]) == 0

    def test_keyboard_interrupt(self):
        with patch.object(cli, "async_main", MagicMock(side_effect=KeyboardInterrupt)):
            assert cli.main([]) == 130
