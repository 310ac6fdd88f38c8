"""
Shared fixtures: an in-memory browser transport, a mocked oracle and
settings that never sleep.
"""

from typing import Dict, Iterable, List, Optional, Tuple
from unittest.mock import AsyncMock

import pytest

from e2e_replay.browser.controller import BrowserController
from e2e_replay.config.settings import Settings
from e2e_replay.core.interfaces import BrowserTransport
from e2e_replay.error_handling.exceptions import TransportError
from e2e_replay.journal.plan_store import PlanStore
from e2e_replay.memory.store import MemoryStore
from e2e_replay.models.oracle import LLMOracle, ParsedOk
from e2e_replay.orchestration.runner import TestRunner


class FakeTransport(BrowserTransport):
    """Records tool calls and serves a settable page snapshot."""

    def __init__(
        self,
        browser_id: int = 1,
        page_text: str = "",
        failing_tools: Iterable[str] = (),
    ):
        self.browser_id = browser_id
        self.page_text = page_text
        self.failing_tools = set(failing_tools)
        self.calls: List[Tuple[str, Dict]] = []
        self._connected = False
        self.close_count = 0

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self._connected = True

    async def close(self) -> None:
        self._connected = False
        self.close_count += 1

    def _record(self, tool: str, **arguments) -> None:
        self.calls.append((tool, arguments))
        if tool in self.failing_tools:
            raise TransportError(f"{tool} failed", browser_id=self.browser_id, tool=tool)

    def tools(self) -> List[str]:
        return [tool for tool, _ in self.calls]

    async def navigate(self, url: str) -> None:
        self._record("browser_navigate", url=url)

    async def evaluate(self, function: str) -> str:
        self._record("browser_evaluate", function=function)
        return ""

    async def click(self, element: str, ref: str) -> None:
        self._record("browser_click", element=element, ref=ref)

    async def type_text(self, element: str, ref: str, text: str) -> None:
        self._record("browser_type", element=element, ref=ref, text=text)

    async def snapshot(self) -> str:
        self._record("browser_snapshot")
        return self.page_text

    async def list_tabs(self) -> Optional[str]:
        self._record("browser_tabs", action="list")
        return "- 0: (current) [Home] (https://example.com)"


@pytest.fixture
def settings(tmp_path):
    """Settings with all waits disabled and storage under tmp_path."""
    return Settings(
        openrouter_api_key="test-key",
        navigation_settle_ms=0,
        scroll_settle_ms=0,
        default_delay_ms=0,
        retry_backoff_ms=0,
        default_start_url=None,
        memory_file=tmp_path / "memory.json",
        plans_dir=tmp_path / "plans",
    )


@pytest.fixture
def memory(settings):
    return MemoryStore(settings.memory_file)


@pytest.fixture
def transports():
    return {1: FakeTransport(1), 2: FakeTransport(2)}


@pytest.fixture
def controller(transports, memory, settings):
    return BrowserController(transports, memory, settings)


@pytest.fixture
def oracle():
    """Oracle that proposes nothing and accepts any page."""
    mock = AsyncMock(spec=LLMOracle)
    mock.propose_actions.return_value = ParsedOk(payload={"actions": []})
    mock.propose_verification.return_value = ParsedOk(payload={"match": []})
    mock.extract_value.return_value = None
    return mock


@pytest.fixture
def plan_store(settings):
    return PlanStore(settings.plans_dir)


@pytest.fixture
def runner(settings, oracle, controller, memory, plan_store):
    return TestRunner(
        settings=settings,
        oracle=oracle,
        controller=controller,
        memory=memory,
        plan_store=plan_store,
    )


@pytest.fixture
def write_scenario(tmp_path):
    """Write a scenario file from lines and return its path."""

    def _write(lines: List[str], name: str = "scenario.txt"):
        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write
