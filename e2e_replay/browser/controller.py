"""
Browser controller: routes page reads, actions and special commands to the
transport of the step's browser, and handles memory actions locally.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from e2e_replay.browser.mcp_transport import McpBrowserTransport
from e2e_replay.config.settings import Settings
from e2e_replay.core.interfaces import BrowserTransport
from e2e_replay.core.types import BROWSER_IDS, SpecialCommand, SpecialCommandType
from e2e_replay.error_handling.exceptions import ConfigurationError, TransportError
from e2e_replay.journal.models import PlanAction, PlanActionType
from e2e_replay.memory.store import MemoryStore
from e2e_replay.monitoring.logger import get_logger

logger = get_logger(__name__)

CLEAR_STORAGE_SCRIPT = "() => { localStorage.clear(); sessionStorage.clear(); }"
RELOAD_SCRIPT = "() => { location.reload(); }"
SCROLL_SCRIPT = '() => {{ window.scrollBy({{ top: {sign}window.innerHeight * 0.8, behavior: "smooth" }}); }}'


@dataclass(frozen=True)
class ActionOutcome:
    """Human-readable record of an executed action."""
    description: str
    error: bool = False


class BrowserController:
    """Per-browser routing over a set of transports."""

    def __init__(
        self,
        transports: Mapping[int, BrowserTransport],
        memory: MemoryStore,
        settings: Settings,
    ) -> None:
        self.transports: Dict[int, BrowserTransport] = dict(transports)
        self.memory = memory
        self.settings = settings

    @classmethod
    def from_settings(cls, settings: Settings, memory: MemoryStore) -> "BrowserController":
        """Build a controller with one MCP transport per configured browser."""
        transports = {
            browser_id: McpBrowserTransport(browser_id, settings.mcp_url_for(browser_id))
            for browser_id in BROWSER_IDS
        }
        return cls(transports, memory, settings)

    def transport(self, browser_id: int) -> BrowserTransport:
        try:
            return self.transports[browser_id]
        except KeyError:
            raise ConfigurationError(
                f"No transport configured for browser {browser_id}",
                setting=f"mcp_url_browser_{browser_id}",
            ) from None

    async def _settle(self, ms: int) -> None:
        if ms > 0:
            await asyncio.sleep(ms / 1000)

    async def connect_all(self) -> None:
        """Connect every transport that is not connected yet."""
        for transport in self.transports.values():
            if not transport.connected:
                await transport.connect()

    async def close_all(self) -> None:
        """Close every transport."""
        for transport in self.transports.values():
            await transport.close()

    async def read_page(self, browser_id: int) -> str:
        """Take a text snapshot of the browser's current page."""
        return await self.transport(browser_id).snapshot()

    async def initialize_browser(self, browser_id: int, url: str) -> None:
        """
        Bring a browser to a clean starting state.

        Navigates, clears local and session storage, then navigates again so
        the application boots without leftover state.
        """
        transport = self.transport(browser_id)
        logger.info(f"Initializing browser {browser_id} at {url}")

        await transport.navigate(url)
        await self._settle(self.settings.navigation_settle_ms)

        try:
            await transport.evaluate(CLEAR_STORAGE_SCRIPT)
        except TransportError as e:
            logger.warning(f"Could not clear storage on browser {browser_id}: {e}")

        await transport.navigate(url)
        await self._settle(self.settings.navigation_settle_ms)

    async def execute_special(self, command: SpecialCommand, browser_id: int) -> str:
        """
        Execute a special command directly, without the language model.

        Returns:
            Description of what was done

        Raises:
            TransportError: If the browser rejects a tool call
        """
        transport = self.transport(browser_id)

        if command.type == SpecialCommandType.NAVIGATE and command.url:
            logger.info(f"Navigating browser {browser_id} to {command.url}")
            await transport.navigate(command.url)
            await self._settle(self.settings.navigation_settle_ms)
            return f"Navigated to {command.url}"

        if command.type == SpecialCommandType.RESET:
            logger.info(f"Clearing session/storage on browser {browser_id}")
            await transport.evaluate(CLEAR_STORAGE_SCRIPT)
            await transport.evaluate(RELOAD_SCRIPT)
            await self._settle(self.settings.navigation_settle_ms)
            return "Session/storage cleared and page reloaded"

        if command.type == SpecialCommandType.SCROLL:
            direction = command.direction or "down"
            sign = "" if direction == "down" else "-"
            await transport.evaluate(SCROLL_SCRIPT.format(sign=sign))
            await self._settle(self.settings.scroll_settle_ms)
            return f"Scrolled {direction}"

        return "Unknown command"

    def store_memory(self, key: str, value: Any) -> str:
        self.memory.store(key, value)
        return f"Stored {key} in memory"

    async def execute_action(self, action: PlanAction, browser_id: int) -> ActionOutcome:
        """
        Execute one action.

        Memory actions run locally. Browser tool failures are captured into
        an error outcome instead of raised.
        """
        if action.type == PlanActionType.MEMORY_STORE:
            return ActionOutcome(self.store_memory(action.key, action.value))

        if action.type == PlanActionType.MEMORY_READ:
            value = self.memory.read(action.key)
            return ActionOutcome(
                f"Read {action.key} from memory: {json.dumps(value, default=str)}"
            )

        transport = self.transport(browser_id)
        element = action.element or action.ref

        if action.type == PlanActionType.CLICK:
            tool = "browser_click"
            args: Dict[str, Any] = {"element": element, "ref": action.ref}
            call = transport.click(element, action.ref)
        elif action.type == PlanActionType.FILL:
            tool = "browser_type"
            text = action.value
            if action.memory_key:
                if action.memory_key not in self.memory:
                    logger.warning(
                        f'Memory key "{action.memory_key}" not found, using empty string'
                    )
                text = self.memory.read(action.memory_key, "")
            text = "" if text is None else str(text)
            args = {"element": element, "ref": action.ref, "text": text}
            call = transport.type_text(element, action.ref, text)
        else:
            tool = "browser_navigate"
            args = {"url": action.url}
            call = transport.navigate(action.url)

        try:
            await call
        except TransportError as e:
            logger.error(f"{tool} failed on browser {browser_id}: {e.message}")
            return ActionOutcome(f"{tool} error: {e.message}", error=True)

        return ActionOutcome(f"{tool}({json.dumps(args, default=str)})")

    async def list_tabs(self, browser_id: int) -> Optional[Any]:
        """List the open tabs of a browser."""
        return await self.transport(browser_id).list_tabs()
