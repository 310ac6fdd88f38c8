"""
Browser automation module exports.
"""

from e2e_replay.browser.controller import ActionOutcome, BrowserController
from e2e_replay.browser.mcp_transport import McpBrowserTransport

__all__ = [
    "ActionOutcome",
    "BrowserController",
    "McpBrowserTransport",
]
