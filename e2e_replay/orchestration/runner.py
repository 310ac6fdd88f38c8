"""
Scenario runner: sequential steps, bounded retries, fail-fast, plan upkeep.
"""

import asyncio
from pathlib import Path
from typing import List, Optional, Tuple, Union

from langgraph.errors import GraphRecursionError

from e2e_replay.browser.controller import BrowserController
from e2e_replay.config.settings import Settings
from e2e_replay.core.instruction import parse_line
from e2e_replay.core.types import DEFAULT_BROWSER_ID, Instruction, SuiteResult, TestResult
from e2e_replay.error_handling.exceptions import RetryableError
from e2e_replay.error_handling.recovery import FixedBackoffStrategy, RetryContext
from e2e_replay.journal.models import ExecutionMode, ExecutionPlan
from e2e_replay.journal.plan_store import PlanStore
from e2e_replay.memory.store import MemoryStore
from e2e_replay.models.oracle import LLMOracle
from e2e_replay.monitoring.logger import get_logger, log_step_event
from e2e_replay.orchestration.step_workflow import StepOutcome, StepWorkflow
from e2e_replay.scenarios.loader import ScenarioLoader

logger = get_logger(__name__)


class TestRunner:
    """Runs scenarios step by step through the per-step workflow."""

    __test__ = False  # not a pytest test class

    def __init__(
        self,
        settings: Settings,
        oracle: LLMOracle,
        controller: BrowserController,
        memory: MemoryStore,
        plan_store: PlanStore,
        max_retries: Optional[int] = None,
        loader: Optional[ScenarioLoader] = None,
    ) -> None:
        """
        Initialize the runner.

        Args:
            settings: Application settings
            oracle: Language model oracle
            controller: Browser controller with one transport per browser
            memory: Memory store shared by all steps
            plan_store: Storage for learned plans
            max_retries: Additional attempts per failing step (defaults to settings)
            loader: Scenario loader
        """
        self.settings = settings
        self.oracle = oracle
        self.controller = controller
        self.memory = memory
        self.plan_store = plan_store
        self.loader = loader or ScenarioLoader()
        self.retry_strategy = FixedBackoffStrategy(
            max_retries=settings.max_retries_per_step if max_retries is None else max_retries,
            backoff_ms=settings.retry_backoff_ms,
        )
        self.workflow = StepWorkflow(settings, oracle, controller, memory)

    @property
    def max_retries(self) -> int:
        return self.retry_strategy.max_retries

    def render_workflow_diagram(self) -> str:
        """Mermaid diagram of the per-step state machine."""
        return self.workflow.draw_mermaid()

    def save_workflow_diagram(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.write_text(self.render_workflow_diagram(), encoding="utf-8")
        logger.info(f"Workflow diagram saved to: {path}")
        return path

    async def _attempt(
        self,
        instruction: Instruction,
        index: int,
        mode: ExecutionMode,
        plan: Optional[ExecutionPlan],
        history: List[str],
    ) -> StepOutcome:
        plan_step = plan.find_step(instruction.raw) if plan else None
        try:
            return await self.workflow.run(
                instruction,
                mode=mode,
                plan_step=plan_step,
                step_index=index,
                history=history,
            )
        except (RetryableError, GraphRecursionError) as e:
            if isinstance(e, RetryableError):
                message = e.message
                extra = {"step_index": index, "error": e.to_dict()}
            else:
                message = f"Step aborted: {e}"
                extra = {"step_index": index}
            logger.error(f"Step {index + 1} failed: {message}", extra=extra)
            return StepOutcome(result=TestResult(
                step_index=index,
                instruction=instruction.text,
                expected_result=instruction.expected_label,
                actual_result=message,
                success=False,
            ))

    def _record(self, plan: Optional[ExecutionPlan], outcome: StepOutcome) -> None:
        if plan is None or outcome.recorded_step is None:
            return
        self.plan_store.upsert(plan, outcome.recorded_step)
        self.plan_store.save(plan)

    async def _run_step_with_retry(
        self,
        instruction: Instruction,
        index: int,
        mode: ExecutionMode,
        plan: Optional[ExecutionPlan],
        results: List[TestResult],
        history: List[str],
    ) -> Tuple[List[TestResult], StepOutcome]:
        """
        Run a step until it passes or its retries are exhausted.

        Every attempt builds a new result list without the step's previous
        entry; the caller's list is never modified.

        Returns:
            Tuple of (new result list, outcome of the last attempt)
        """
        context = RetryContext(operation_name=f"step {index + 1}")
        scenario = plan.scenario_name if plan else ""

        while True:
            if context.attempt_number > 1:
                logger.info(
                    f"Retry attempt {context.attempt_number - 1}/{self.max_retries} "
                    f"for step {index + 1}"
                )
                log_step_event("retried", scenario, index, {"attempt": context.attempt_number})
                delay_ms = self.retry_strategy.get_delay_ms(context.attempt_number)
                if delay_ms > 0:
                    await asyncio.sleep(delay_ms / 1000)

            outcome = await self._attempt(instruction, index, mode, plan, history)
            self._record(plan, outcome)
            if outcome.fell_back:
                log_step_event("relearned", scenario, index)

            results = [r for r in results if r.step_index != index] + [outcome.result]

            if outcome.result.success:
                if context.attempt_number > 1:
                    logger.info(f"Step {index + 1} succeeded on retry {context.attempt_number - 1}")
                return results, outcome

            context.add_attempt(outcome.result.actual_result)
            if not self.retry_strategy.should_retry(context):
                logger.error(f"Step {index + 1} failed after {self.max_retries} retries")
                return results, outcome

    async def run_suite(
        self,
        scenario_path: Union[str, Path],
        start_url: Optional[str] = None,
        mode: ExecutionMode = ExecutionMode.PLAIN,
    ) -> SuiteResult:
        """
        Run every step of a scenario file.

        Args:
            scenario_path: Scenario file
            start_url: URL to initialize browser 1 with (defaults to settings,
                then to the page the browser already shows)
            mode: Execution mode

        Returns:
            SuiteResult with one entry per attempted step; stops at the first
            step that fails after its retries

        Raises:
            ScenarioFileError: If the scenario file cannot be read
            ConfigurationError: If a transport cannot be set up
        """
        scenario_path = Path(scenario_path)
        instructions = self.loader.parse(scenario_path)
        scenario_name = scenario_path.name

        self.memory.reload()
        plan = self.plan_store.load_or_create(scenario_name) if mode != ExecutionMode.PLAIN else None

        suite = SuiteResult(scenario_name=scenario_name, total_steps=len(instructions))
        logger.info(
            f"Running {scenario_name}: {len(instructions)} steps, mode={mode.value}",
            extra={"scenario": scenario_name, "mode": mode.value},
        )

        try:
            await self.controller.connect_all()

            url = start_url or self.settings.default_start_url
            if url:
                await self.controller.initialize_browser(DEFAULT_BROWSER_ID, url)
            else:
                logger.info(f"Using current page on browser {DEFAULT_BROWSER_ID}")

            results: List[TestResult] = []
            history: List[str] = []
            for index, instruction in enumerate(instructions):
                log_step_event(
                    "started", scenario_name, index,
                    {"browser_id": instruction.browser_id, "instruction": instruction.text},
                )
                results, outcome = await self._run_step_with_retry(
                    instruction, index, mode, plan, results, history
                )
                suite.results = results
                history = (history + outcome.result.executed_actions)[-self.settings.history_window:]

                status = "passed" if outcome.result.success else "failed"
                log_step_event(status, scenario_name, index, {"actual_result": outcome.result.actual_result})
                if not outcome.result.success:
                    break
        finally:
            await self.controller.close_all()
            suite.finalize()

        summary = suite.get_summary()
        logger.info(
            f"Test Summary: {summary['passed']} passed, {summary['failed']} failed, "
            f"{summary['total']} total",
            extra={"scenario": scenario_name},
        )
        return suite

    async def run_single_step(
        self,
        line: str,
        scenario_name: Optional[str] = None,
        mode: ExecutionMode = ExecutionMode.PLAIN,
        step_index: int = 0,
    ) -> TestResult:
        """
        Run one scenario line, keeping the browser sessions open afterwards.

        With a scenario name and a non-plain mode the line's plan step is
        looked up and recorded in that scenario's plan.

        Raises:
            ValueError: If the line is blank or malformed
        """
        instruction = parse_line(line)
        if instruction is None:
            raise ValueError(f"Not a valid instruction line: {line!r}")

        plan = None
        if scenario_name and mode != ExecutionMode.PLAIN:
            plan = self.plan_store.load_or_create(scenario_name)

        await self.controller.connect_all()
        _, outcome = await self._run_step_with_retry(
            instruction, step_index, mode, plan, [], []
        )
        return outcome.result
