"""
Playwright MCP server transport.

Each transport owns one streamable-HTTP MCP session, and therefore one
browser. Tool calls are thin wrappers over ``ClientSession.call_tool``.
"""

from contextlib import AsyncExitStack
from typing import Any, Dict, Optional

from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client

from e2e_replay.core.interfaces import BrowserTransport
from e2e_replay.error_handling.exceptions import ConfigurationError, TransportError
from e2e_replay.monitoring.logger import get_logger

logger = get_logger(__name__)


def result_text(result: Any) -> str:
    """Join the text content blocks of a tool result with newlines."""
    content = getattr(result, "content", None) or []
    texts = [
        getattr(block, "text", "")
        for block in content
        if getattr(block, "type", None) == "text"
    ]
    return "\n".join(texts)


class McpBrowserTransport(BrowserTransport):
    """Browser transport backed by a Playwright MCP server."""

    def __init__(self, browser_id: int, url: str):
        """
        Initialize the transport.

        Args:
            browser_id: Browser this transport serves (1 or 2)
            url: Streamable HTTP endpoint of the MCP server
        """
        self.browser_id = browser_id
        self.url = url
        self._session: Optional[ClientSession] = None
        self._exit_stack: Optional[AsyncExitStack] = None

    @property
    def connected(self) -> bool:
        return self._session is not None

    async def connect(self) -> None:
        """Open the MCP session. Connection failures abort the run."""
        if self._session is not None:
            return

        stack = AsyncExitStack()
        try:
            read_stream, write_stream, _ = await stack.enter_async_context(
                streamablehttp_client(self.url)
            )
            session = await stack.enter_async_context(
                ClientSession(read_stream, write_stream)
            )
            await session.initialize()
        except Exception as e:
            await stack.aclose()
            raise ConfigurationError(
                f"Could not connect to MCP server for browser {self.browser_id} at {self.url}: {e}",
                setting=f"mcp_url_browser_{self.browser_id}",
                cause=e,
            ) from e

        self._exit_stack = stack
        self._session = session
        logger.info(f"Connected to browser {self.browser_id} MCP server at {self.url}")

    async def close(self) -> None:
        """Close the MCP session; safe to call when not connected."""
        stack, self._exit_stack = self._exit_stack, None
        self._session = None
        if stack is None:
            return
        try:
            await stack.aclose()
        except Exception as e:
            logger.warning(f"Error closing browser {self.browser_id} MCP session: {e}")
        else:
            logger.debug(f"Closed browser {self.browser_id} MCP session")

    async def _call(self, tool: str, arguments: Dict[str, Any]) -> str:
        if self._session is None:
            raise ConfigurationError(
                f"Browser {self.browser_id} transport used before connect",
                setting=f"mcp_url_browser_{self.browser_id}",
            )

        logger.debug(f"{tool} on browser {self.browser_id}: {arguments}")
        try:
            result = await self._session.call_tool(tool, arguments=arguments)
        except Exception as e:
            raise TransportError(
                str(e), browser_id=self.browser_id, tool=tool, cause=e
            ) from e

        text = result_text(result)
        if getattr(result, "isError", False):
            raise TransportError(
                text or f"{tool} reported an error",
                browser_id=self.browser_id,
                tool=tool,
            )
        return text

    async def navigate(self, url: str) -> None:
        await self._call("browser_navigate", {"url": url})

    async def evaluate(self, function: str) -> str:
        return await self._call("browser_evaluate", {"function": function})

    async def click(self, element: str, ref: str) -> None:
        await self._call("browser_click", {"element": element, "ref": ref})

    async def type_text(self, element: str, ref: str, text: str) -> None:
        await self._call("browser_type", {"element": element, "ref": ref, "text": text})

    async def snapshot(self) -> str:
        return await self._call("browser_snapshot", {})

    async def list_tabs(self) -> Optional[str]:
        return await self._call("browser_tabs", {"action": "list"})
