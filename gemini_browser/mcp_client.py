"""
MCP client for Chrome DevTools automation.

Connects to an MCP browser server over stdio and exposes its tools as
capabilities.
"""

import logging
import os
import sys
from contextlib import AsyncExitStack
from typing import Any, Optional, Protocol

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from mcp.types import Implementation

from . import __version__
from .errors import CapabilityExecutionError, NotConnectedError
from .types import CapabilityDescriptor


logger = logging.getLogger(__name__)


# Client info sent to the MCP server during initialization
_CLIENT_INFO = Implementation(name="gemini-browser", version=__version__)

DEFAULT_MCP_COMMAND = "npx"
DEFAULT_MCP_ARGS = ["chrome-devtools-mcp@latest"]


class AutomationBackend(Protocol):
    """What the agent loop needs from a browser automation backend."""

    async def connect(self) -> None: ...

    async def list_tools(self) -> list[CapabilityDescriptor]: ...

    async def call_tool(self, name: str, arguments: Optional[dict[str, Any]] = None) -> Any: ...

    async def close(self) -> None: ...


class MCPBrowserClient:
    """Stdio MCP client for chrome-devtools-mcp (or any compatible server).

    Usage:
        client = MCPBrowserClient()
        await client.connect()
        tools = await client.list_tools()
        result = await client.call_tool("navigate_page", {"url": "https://example.com"})
        await client.close()
    """

    def __init__(
        self,
        command: str = DEFAULT_MCP_COMMAND,
        args: Optional[list[str]] = None,
        env: Optional[dict[str, str]] = None,
        quiet: bool = False,
    ):
        """Initialize the client.

        Args:
            command: Command that starts the MCP server
            args: Command arguments
            env: Extra environment variables for the server process
            quiet: Discard the server's stderr
        """
        self.command = command
        self.args = list(args) if args is not None else list(DEFAULT_MCP_ARGS)
        self.env = env
        self.quiet = quiet

        self._stack: Optional[AsyncExitStack] = None
        self._session: Optional[ClientSession] = None

    @property
    def connected(self) -> bool:
        """Whether a session is open."""
        return self._session is not None

    def _server_params(self) -> StdioServerParameters:
        return StdioServerParameters(
            command=self.command,
            args=self.args,
            env={**os.environ, **(self.env or {})},
        )

    async def connect(self) -> None:
        """Start the server process and initialize the MCP session."""
        if self.connected:
            return

        logger.info(f"Connecting to MCP server: {self.command} {' '.join(self.args)}")
        stack = AsyncExitStack()
        try:
            errlog = stack.enter_context(open(os.devnull, "w")) if self.quiet else sys.stderr
            read, write = await stack.enter_async_context(
                stdio_client(self._server_params(), errlog=errlog)
            )
            session = await stack.enter_async_context(
                ClientSession(read, write, client_info=_CLIENT_INFO)
            )
            await session.initialize()
        except BaseException:
            logger.error("Failed to connect to MCP server")
            await stack.aclose()
            raise

        self._stack = stack
        self._session = session
        logger.info("Connected to MCP server")

    async def list_tools(self) -> list[CapabilityDescriptor]:
        """List the server's tools as capability descriptors."""
        session = self._ensure_connected()
        result = await session.list_tools()

        return [
            CapabilityDescriptor(
                name=tool.name,
                description=tool.description or "",
                parameter_schema=tool.inputSchema or {"type": "object", "properties": {}},
            )
            for tool in result.tools
        ]

    async def call_tool(self, name: str, arguments: Optional[dict[str, Any]] = None) -> Any:
        """Call a tool by name.

        Returns:
            The tool result as a JSON-compatible dict with a ``content`` list

        Raises:
            CapabilityExecutionError: If the server reports the call as failed
        """
        session = self._ensure_connected()
        logger.debug(f"Calling tool: {name}")

        result = await session.call_tool(name, arguments or {})
        data = result.model_dump(mode="json", exclude_none=True)

        if result.isError:
            message = "\n".join(
                item.get("text", "") for item in data.get("content", []) if item.get("type") == "text"
            )
            raise CapabilityExecutionError(name, message or f"Tool {name} failed")

        return data

    async def close(self) -> None:
        """Close the session and stop the server process."""
        if self._stack is None:
            return

        stack, self._stack, self._session = self._stack, None, None
        logger.info("Closing MCP connection...")
        try:
            await stack.aclose()
        except Exception as e:
            logger.error(f"Error closing MCP connection: {e}")
        else:
            logger.info("MCP connection closed")

    def _ensure_connected(self) -> ClientSession:
        if self._session is None:
            raise NotConnectedError("MCP client is not connected. Call connect() first.")
        return self._session
