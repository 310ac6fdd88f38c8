"""
Per-step execution state machine.

One compiled LangGraph graph executes a single scenario step and is
invoked afresh for every attempt, so its recursion limit bounds the
transitions of one step rather than of the whole suite::

    START -> replay_plan -> END                      (learned plan replayed)
               |  failed
               v
    START -> read_page -> special_command | execute_actions -> verify
                                                               |
                                              record_plan <----+ (learning)
                                                  |            |
                                                 END <---------+
"""

import asyncio
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, TypedDict

from langgraph.graph import END, START, StateGraph

from e2e_replay.browser.controller import BrowserController
from e2e_replay.config.settings import Settings
from e2e_replay.core.instruction import parse_special_command
from e2e_replay.core.types import Instruction, SpecialCommand, TestResult
from e2e_replay.error_handling.exceptions import ElementResolutionError, TransportError
from e2e_replay.journal.element_resolver import ElementResolver
from e2e_replay.journal.models import (
    ExecutionMode,
    PlanAction,
    PlanStep,
    PlanStepType,
    VerificationSpec,
)
from e2e_replay.journal.plan_recorder import PlanRecorder
from e2e_replay.journal.verification import VerificationEngine
from e2e_replay.memory.store import MemoryStore
from e2e_replay.models.oracle import LLMOracle, ParsedOk, actions_from_payload
from e2e_replay.monitoring.logger import get_logger

logger = get_logger(__name__)

AUTO_PASS_RESULT = "Command executed successfully"


class StepState(TypedDict, total=False):
    """Graph state for one step attempt."""

    instruction: Instruction
    step_index: int
    mode: ExecutionMode
    plan_step: Optional[PlanStep]
    history: List[str]
    learning: bool
    fallback: bool
    page_text: str
    special: SpecialCommand
    raw_actions: List[PlanAction]
    executed_actions: List[str]
    action_error: Optional[str]
    verification: Optional[VerificationSpec]
    success: bool
    actual_result: str
    recorded_step: Optional[PlanStep]


@dataclass
class StepOutcome:
    """Result of one step attempt plus the plan step it produced, if any."""

    result: TestResult
    recorded_step: Optional[PlanStep] = None
    fell_back: bool = False


def _extract_with_regex(pattern: str, page_text: str) -> Optional[str]:
    try:
        match = re.search(pattern, page_text, re.IGNORECASE)
    except re.error:
        logger.warning(f"Invalid extraction regex skipped: {pattern}")
        return None
    if not match:
        return None
    return match.group(1) if match.groups() else match.group(0)


class StepWorkflow:
    """Builds and runs the per-step graph."""

    def __init__(
        self,
        settings: Settings,
        oracle: LLMOracle,
        controller: BrowserController,
        memory: MemoryStore,
        resolver: Optional[ElementResolver] = None,
        recorder: Optional[PlanRecorder] = None,
    ) -> None:
        self.settings = settings
        self.oracle = oracle
        self.controller = controller
        self.memory = memory
        self.resolver = resolver or ElementResolver()
        self.recorder = recorder or PlanRecorder()
        self.verifier = VerificationEngine(oracle, memory)
        self.graph = self._build_graph()

    def _build_graph(self):
        workflow = StateGraph(StepState)

        workflow.add_node("replay_plan", self._replay_plan)
        workflow.add_node("read_page", self._read_page)
        workflow.add_node("special_command", self._special_command)
        workflow.add_node("execute_actions", self._execute_actions)
        workflow.add_node("verify", self._verify)
        workflow.add_node("record_plan", self._record_plan)

        workflow.add_conditional_edges(
            START,
            self._route_start,
            {"replay_plan": "replay_plan", "read_page": "read_page"},
        )
        workflow.add_conditional_edges(
            "replay_plan",
            self._route_after_replay,
            {"done": END, "read_page": "read_page"},
        )
        workflow.add_conditional_edges(
            "read_page",
            self._route_after_read,
            {"special_command": "special_command", "execute_actions": "execute_actions"},
        )
        workflow.add_edge("special_command", "verify")
        workflow.add_edge("execute_actions", "verify")
        workflow.add_conditional_edges(
            "verify",
            self._route_after_verify,
            {"record_plan": "record_plan", "done": END},
        )
        workflow.add_edge("record_plan", END)

        return workflow.compile()

    def draw_mermaid(self) -> str:
        """Render the state machine as a Mermaid diagram."""
        return self.graph.get_graph().draw_mermaid()

    async def _settle(self, ms: int) -> None:
        if ms > 0:
            await asyncio.sleep(ms / 1000)

    # Routing

    def _route_start(self, state: StepState) -> str:
        plan_step = state.get("plan_step")
        if state["mode"] == ExecutionMode.REPLAY and plan_step and plan_step.is_learned:
            return "replay_plan"
        return "read_page"

    def _route_after_replay(self, state: StepState) -> str:
        return "done" if state.get("success") else "read_page"

    def _route_after_read(self, state: StepState) -> str:
        return "special_command" if state["special"].is_special else "execute_actions"

    def _route_after_verify(self, state: StepState) -> str:
        return "record_plan" if state.get("learning") else "done"

    # Nodes

    async def _read_page(self, state: StepState) -> StepState:
        instruction = state["instruction"]
        logger.debug(f"Reading page on browser {instruction.browser_id}")
        page_text = await self.controller.read_page(instruction.browser_id)
        return {
            "page_text": page_text,
            "special": parse_special_command(instruction.text),
            "executed_actions": [],
            "raw_actions": [],
            "action_error": None,
        }

    async def _special_command(self, state: StepState) -> StepState:
        instruction = state["instruction"]
        try:
            description = await self.controller.execute_special(
                state["special"], instruction.browser_id
            )
        except TransportError as e:
            message = f"{e.tool or 'special command'} error: {e.message}"
            return {"executed_actions": [message], "action_error": message}
        return {"executed_actions": [description]}

    async def _execute_actions(self, state: StepState) -> StepState:
        instruction = state["instruction"]
        decoded = await self.oracle.propose_actions(
            instruction.text,
            state["page_text"],
            state.get("history", []),
            self.memory.snapshot(),
        )
        if not isinstance(decoded, ParsedOk):
            logger.warning(f"No actions proposed for '{instruction.text}': {decoded.reason}")
            return {"raw_actions": [], "executed_actions": []}

        raw_actions = actions_from_payload(decoded.payload)
        executed: List[str] = []
        for action in raw_actions:
            outcome = await self.controller.execute_action(action, instruction.browser_id)
            executed.append(outcome.description)
            if outcome.error:
                return {
                    "raw_actions": raw_actions,
                    "executed_actions": executed,
                    "action_error": outcome.description,
                }

        return {"raw_actions": raw_actions, "executed_actions": executed}

    async def _check(
        self,
        instruction: Instruction,
        spec: Optional[VerificationSpec],
    ) -> StepState:
        """Settle, re-read and evaluate; obtains patterns when none are given."""
        await self._settle(instruction.delay_ms)
        page_text = await self.controller.read_page(instruction.browser_id)
        if spec is None:
            spec = await self.verifier.obtain_patterns(instruction.expected_result)
        outcome = self.verifier.evaluate(spec, page_text)
        return {
            "verification": spec,
            "success": outcome.success,
            "actual_result": outcome.actual_result,
        }

    async def _auto_pass(self, delay_ms: int) -> StepState:
        await self._settle(max(delay_ms, self.settings.default_delay_ms))
        return {"verification": None, "success": True, "actual_result": AUTO_PASS_RESULT}

    async def _verify(self, state: StepState) -> StepState:
        instruction = state["instruction"]

        if state.get("action_error"):
            return {"success": False, "actual_result": state["action_error"], "verification": None}

        if instruction.auto_pass:
            return await self._auto_pass(instruction.delay_ms)

        return await self._check(instruction, None)

    async def _record_plan(self, state: StepState) -> StepState:
        actions = self.recorder.enrich(state.get("raw_actions", []), state.get("page_text", ""))
        step = self.recorder.build_step(
            instruction=state["instruction"],
            special=state.get("special"),
            actions=actions,
            verification=state.get("verification"),
            success=bool(state.get("success")),
            previous=state.get("plan_step"),
            fallback=bool(state.get("fallback")),
            explicit=state["mode"] == ExecutionMode.LEARN,
        )
        return {"recorded_step": step}

    async def _replay_plan(self, state: StepState) -> StepState:
        instruction = state["instruction"]
        plan_step = state["plan_step"]
        browser_id = instruction.browser_id
        logger.info(f"Replaying learned plan on browser {browser_id} (no LLM)")

        result = await self._replay(plan_step, instruction)
        if result["success"]:
            return result

        logger.warning(
            f"Plan replay failed ({result['actual_result']}), falling back to learning"
        )
        return {**result, "fallback": True, "learning": True}

    async def _replay(self, plan_step: PlanStep, instruction: Instruction) -> StepState:
        browser_id = instruction.browser_id
        executed: List[str] = []

        def failed(reason: str) -> StepState:
            return {"success": False, "actual_result": reason, "executed_actions": executed}

        if plan_step.type == PlanStepType.SPECIAL and plan_step.special_command:
            try:
                executed.append(
                    await self.controller.execute_special(plan_step.special_command, browser_id)
                )
            except TransportError as e:
                return failed(f"{e.tool or 'special command'} error: {e.message}")
        else:
            page_text = await self.controller.read_page(browser_id)
            for action in plan_step.actions:
                if action.is_dynamic_store:
                    value = await self._extract_dynamic_value(action, page_text)
                    if not value or not action.key:
                        return failed(f"Failed to extract dynamic value for {action.key}")
                    self.controller.store_memory(action.key, value)
                    executed.append(f"memory_store: {action.key} = {value}")
                    continue

                if action.targets_element and action.text_content:
                    try:
                        ref = self.resolver.require(action, page_text)
                    except ElementResolutionError as e:
                        return failed(e.message)
                    action = action.model_copy(update={"ref": ref})

                outcome = await self.controller.execute_action(action, browser_id)
                executed.append(outcome.description)
                if outcome.error:
                    return failed(outcome.description)

        if plan_step.verification is None:
            return {**await self._auto_pass(plan_step.delay), "executed_actions": executed}

        checked = await self._check(instruction, plan_step.verification)
        return {**checked, "executed_actions": executed}

    async def _extract_dynamic_value(self, action: PlanAction, page_text: str) -> Optional[str]:
        if action.extraction_regex:
            value = _extract_with_regex(action.extraction_regex, page_text)
            if value:
                return value.strip()
        if action.extraction_hint:
            return await self.oracle.extract_value(action.extraction_hint, page_text)
        return None

    async def run(
        self,
        instruction: Instruction,
        mode: ExecutionMode = ExecutionMode.PLAIN,
        plan_step: Optional[PlanStep] = None,
        step_index: int = 0,
        history: Sequence[str] = (),
    ) -> StepOutcome:
        """
        Execute one attempt of a step.

        Args:
            instruction: Parsed step
            mode: Execution mode
            plan_step: Previously recorded plan step for this line, if any
            step_index: Zero-based index within the suite
            history: Recently executed actions, given to the oracle as context

        Returns:
            StepOutcome with the step result and any newly recorded plan step
        """
        learned = plan_step is not None and plan_step.is_learned
        initial: StepState = {
            "instruction": instruction,
            "step_index": step_index,
            "mode": mode,
            "plan_step": plan_step,
            "history": list(history)[-self.settings.history_window:],
            "learning": mode == ExecutionMode.LEARN or (mode == ExecutionMode.REPLAY and not learned),
            "fallback": False,
            "executed_actions": [],
            "action_error": None,
            "recorded_step": None,
        }

        final = await self.graph.ainvoke(
            initial, config={"recursion_limit": self.settings.step_recursion_limit}
        )

        result = TestResult(
            step_index=step_index,
            instruction=instruction.text,
            expected_result=instruction.expected_label,
            actual_result=final.get("actual_result", "No result"),
            success=bool(final.get("success")),
            executed_actions=list(final.get("executed_actions", []))[-self.settings.history_window:],
        )
        return StepOutcome(
            result=result,
            recorded_step=final.get("recorded_step"),
            fell_back=bool(final.get("fallback")),
        )
