"""
e2e-replay - AI-driven end-to-end test runner with plan learning and replay.
Main entry point for the application.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from e2e_replay import __version__
from e2e_replay.browser.controller import BrowserController
from e2e_replay.config.settings import Settings, get_settings
from e2e_replay.core.types import BROWSER_IDS, SuiteResult, TestResult
from e2e_replay.error_handling.exceptions import NonRetryableError
from e2e_replay.journal.models import ExecutionMode
from e2e_replay.journal.plan_store import PlanStore
from e2e_replay.memory.store import MemoryStore
from e2e_replay.models.oracle import LLMOracle
from e2e_replay.models.openai_client import OpenAIClient
from e2e_replay.monitoring.logger import get_logger, setup_logging
from e2e_replay.orchestration.runner import TestRunner

console = Console()
logger = get_logger("e2e_replay.main")

DEFAULT_DIAGRAM_PATH = Path("workflow-diagram.md")


def create_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    parser = argparse.ArgumentParser(
        prog="e2e-replay",
        description=f"e2e-replay - AI-driven end-to-end test runner v{__version__}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Scenario lines:
  [*1 |*2 ]instruction [[delayMs]] [>>> expected result]
  ##other-file.txt        include another scenario in place

Examples:
  # Run a scenario against a starting URL
  e2e-replay scenarios/login.txt https://example.com

  # Learn a plan, then replay it without LLM calls
  e2e-replay scenarios/login.txt https://example.com --learn
  e2e-replay scenarios/login.txt https://example.com --replay

  # Run a single line and record it in the scenario's plan
  e2e-replay scenarios/login.txt --learn --step "click Sign in >>> dashboard is shown"

  # Write the per-step state machine as a Mermaid diagram
  e2e-replay scenarios/login.txt --diagram
        """,
    )

    parser.add_argument(
        "scenario",
        nargs="?",
        type=Path,
        help="Scenario file to run",
    )
    parser.add_argument(
        "url",
        nargs="?",
        help="Starting URL for browser 1 (default: settings, else the current page)",
    )

    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--learn",
        action="store_true",
        help="Run with the LLM and record an execution plan",
    )
    mode_group.add_argument(
        "--replay",
        action="store_true",
        help="Replay the recorded plan, relearning steps that fail",
    )

    # Utility commands
    utility_group = parser.add_mutually_exclusive_group()
    utility_group.add_argument(
        "--tabs",
        action="store_true",
        help="List open tabs of each browser and exit",
    )
    utility_group.add_argument(
        "--list-plans",
        action="store_true",
        help="List recorded plans and exit",
    )
    utility_group.add_argument(
        "--delete-plan",
        metavar="SCENARIO",
        help="Delete the recorded plan of a scenario and exit",
    )
    utility_group.add_argument(
        "--test-api",
        action="store_true",
        help="Test the LLM API key configuration",
    )
    utility_group.add_argument(
        "--version",
        action="store_true",
        help="Show version information",
    )

    # Execution options
    parser.add_argument(
        "--step",
        metavar="LINE",
        help="Run a single scenario line instead of the whole file",
    )
    parser.add_argument(
        "--max-retries",
        type=int,
        help="Additional attempts for a failing step (default: 2)",
    )
    parser.add_argument(
        "--fresh-session",
        action="store_true",
        help="Clear persistent memory before running",
    )
    parser.add_argument(
        "--diagram",
        nargs="?",
        const=DEFAULT_DIAGRAM_PATH,
        type=Path,
        metavar="PATH",
        help=f"Write the workflow diagram (default: {DEFAULT_DIAGRAM_PATH})",
    )

    # Output options
    parser.add_argument(
        "-o", "--output",
        type=Path,
        help="Write the suite result as JSON to this file",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable structured logging output (JSON)",
    )

    return parser


def selected_mode(parsed_args: argparse.Namespace) -> ExecutionMode:
    if parsed_args.learn:
        return ExecutionMode.LEARN
    if parsed_args.replay:
        return ExecutionMode.REPLAY
    return ExecutionMode.PLAIN


def build_runner(
    settings: Settings,
    memory: MemoryStore,
    max_retries: Optional[int] = None,
) -> TestRunner:
    """Wire the runner with its collaborators from settings."""
    client = OpenAIClient(settings)
    oracle = LLMOracle(client, excerpt_chars=settings.extraction_excerpt_chars)
    controller = BrowserController.from_settings(settings, memory)
    return TestRunner(
        settings=settings,
        oracle=oracle,
        controller=controller,
        memory=memory,
        plan_store=PlanStore(settings.plans_dir),
        max_retries=max_retries,
    )


def _render_results(results: list[TestResult], title: str) -> None:
    table = Table(title=title, show_lines=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Instruction")
    table.add_column("Expected")
    table.add_column("Actual")
    table.add_column("Status", justify="center")

    for result in results:
        status = "[green]PASS[/green]" if result.success else "[red]FAIL[/red]"
        table.add_row(
            str(result.step_index + 1),
            result.instruction,
            result.expected_result,
            result.actual_result,
            status,
        )

    console.print(table)


def print_summary(suite: SuiteResult) -> None:
    """Print the per-step table and the pass/fail totals."""
    _render_results(suite.results, f"Results: {suite.scenario_name}")

    summary = suite.get_summary()
    style = "green" if suite.all_passed else "red"
    console.print(Panel.fit(
        f"[green]Passed: {summary['passed']}[/green]   "
        f"[red]Failed: {summary['failed']}[/red]   "
        f"Total: {summary['total']}",
        title="Test Summary",
        border_style=style,
    ))


def write_output(suite: SuiteResult, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(suite.model_dump(mode="json"), indent=2), encoding="utf-8"
    )
    console.print(f"[dim]Results written to {path}[/dim]")


def list_plans(settings: Settings) -> int:
    """Print the recorded plans."""
    plans = PlanStore(settings.plans_dir).list_plans()
    if not plans:
        console.print(f"[yellow]No plans in {settings.plans_dir}[/yellow]")
        return 0

    table = Table(title="Recorded Plans")
    table.add_column("Plan file")
    table.add_column("Scenario")
    table.add_column("Steps", justify="right")
    table.add_column("Learned", justify="right")
    table.add_column("Updated")
    for plan in plans:
        table.add_row(
            plan.file_name,
            plan.scenario_name,
            str(plan.step_count),
            str(plan.learned_count),
            plan.updated_at.isoformat() if plan.updated_at else "-",
        )
    console.print(table)
    return 0


def delete_plan(settings: Settings, scenario: str) -> int:
    if PlanStore(settings.plans_dir).delete(scenario):
        console.print(f"[green]Deleted plan for {scenario}[/green]")
        return 0
    console.print(f"[yellow]No plan recorded for {scenario}[/yellow]")
    return 1


async def list_tabs(settings: Settings) -> int:
    """Print the open tabs of every browser."""
    controller = BrowserController.from_settings(settings, MemoryStore(settings.memory_file))
    try:
        await controller.connect_all()
        for browser_id in BROWSER_IDS:
            tabs = await controller.list_tabs(browser_id)
            console.print(Panel(str(tabs or "(no tabs)"), title=f"Browser {browser_id}"))
    finally:
        await controller.close_all()
    return 0


async def test_api_connection(settings: Settings) -> int:
    """Test the LLM API connection."""
    console.print("\n[bold cyan]Testing LLM API Connection[/bold cyan]")

    try:
        client = OpenAIClient(settings)
        response = await client.call(
            messages=[{"role": "user", "content": "Say 'API test successful' and nothing else."}],
        )
    except Exception as e:
        console.print(f"[red]API test failed: {e}[/red]")
        console.print("\n[yellow]Please check that OPENROUTER_API_KEY is set and valid.[/yellow]")
        return 1

    if "API test successful" in response["content"]:
        console.print("[green]LLM API connection successful![/green]")
        console.print(f"[dim]Model: {response['model']}[/dim]")
        console.print(f"[dim]Usage: {response['usage']['total_tokens']} tokens[/dim]")
        return 0

    console.print("[red]Unexpected API response[/red]")
    return 1


def show_version() -> int:
    """Show version information."""
    console.print("\n[bold cyan]e2e-replay[/bold cyan]")
    console.print(f"Version: [green]{__version__}[/green]")
    return 0


async def run_scenario(parsed_args: argparse.Namespace, settings: Settings) -> int:
    """
    Run a scenario file (or a single line of it).

    Returns:
        Exit code (0 when no attempted step failed)
    """
    mode = selected_mode(parsed_args)
    memory = MemoryStore(settings.memory_file)
    if parsed_args.fresh_session:
        memory.reset()

    runner = build_runner(settings, memory, max_retries=parsed_args.max_retries)

    if parsed_args.diagram:
        runner.save_workflow_diagram(parsed_args.diagram)
        console.print(f"[green]Workflow diagram written to {parsed_args.diagram}[/green]")

    if parsed_args.step:
        try:
            if parsed_args.url:
                await runner.controller.connect_all()
                await runner.controller.initialize_browser(1, parsed_args.url)
            result = await runner.run_single_step(
                parsed_args.step,
                scenario_name=parsed_args.scenario.name,
                mode=mode,
            )
        finally:
            await runner.controller.close_all()
        _render_results([result], "Single step")
        return 0 if result.success else 1

    console.print(Panel.fit(
        f"[bold cyan]e2e-replay[/bold cyan]\n"
        f"Scenario: {parsed_args.scenario}\n"
        f"Mode: {mode.value}",
        border_style="cyan",
    ))

    suite = await runner.run_suite(parsed_args.scenario, start_url=parsed_args.url, mode=mode)

    print_summary(suite)
    if parsed_args.output:
        write_output(suite, parsed_args.output)

    return 0 if suite.all_passed else 1


async def async_main(args: Optional[list[str]] = None) -> int:
    """Async main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if parsed_args.version:
        return show_version()

    settings = get_settings()

    if parsed_args.debug:
        settings.log_level = "DEBUG"
    if parsed_args.verbose:
        settings.log_format = "json"

    setup_logging(
        log_level=settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
    )

    if parsed_args.test_api:
        return await test_api_connection(settings)
    if parsed_args.list_plans:
        return list_plans(settings)
    if parsed_args.delete_plan:
        return delete_plan(settings, parsed_args.delete_plan)

    try:
        if parsed_args.tabs:
            return await list_tabs(settings)

        if not parsed_args.scenario:
            parser.print_help()
            return 1

        return await run_scenario(parsed_args, settings)
    except NonRetryableError as e:
        logger.error(
            f"{e.error_code}: {e.message}", extra={"component": "main", "error": e.to_dict()}
        )
        console.print(f"[red]Error: {e.message}[/red]")
        return 1


def main(args: Optional[list[str]] = None) -> int:
    """
    Main entry point for e2e-replay.

    Args:
        args: Command line arguments

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    try:
        return asyncio.run(async_main(args))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        return 130
    except Exception as e:
        console.print(f"[red]Fatal error: {e}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
