"""
Tests for the MCP browser client with a mocked session.
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from mcp.types import CallToolResult, ListToolsResult, TextContent, Tool

from gemini_browser.errors import CapabilityExecutionError, NotConnectedError
from gemini_browser.mcp_client import MCPBrowserClient


def connected_client(session) -> MCPBrowserClient:
    client = MCPBrowserClient()
    client._session = session
    client._stack = MagicMock(aclose=AsyncMock())
    return client


class TestMCPBrowserClient:
    """Tests for MCPBrowserClient."""

    def test_defaults(self):
        client = MCPBrowserClient()
        assert client.command == "npx"
        assert client.args == ["chrome-devtools-mcp@latest"]
        assert not client.connected

    @pytest.mark.asyncio
    async def test_requires_connection(self):
        client = MCPBrowserClient()

        with pytest.raises(NotConnectedError):
            await client.list_tools()
        with pytest.raises(NotConnectedError):
            await client.call_tool("take_snapshot")

    @pytest.mark.asyncio
    async def test_list_tools(self):
        session = MagicMock()
        session.list_tools = AsyncMock(return_value=ListToolsResult(tools=[
            Tool(
                name="navigate_page",
                description="Navigate to a URL",
                inputSchema={"type": "object", "properties": {"url": {"type": "string"}}},
            ),
            Tool(name="take_snapshot", inputSchema={"type": "object"}),
        ]))
        client = connected_client(session)

        tools = await client.list_tools()

        assert [t.name for t in tools] == ["navigate_page", "take_snapshot"]
        assert tools[0].parameter_schema["properties"]["url"] == {"type": "string"}
        assert tools[1].description == ""

    @pytest.mark.asyncio
    async def test_call_tool(self):
        session = MagicMock()
        session.call_tool = AsyncMock(return_value=CallToolResult(
            content=[TextContent(type="text", text="Navigated to https://example.com")],
        ))
        client = connected_client(session)

        result = await client.call_tool("navigate_page", {"url": "https://example.com"})

        session.call_tool.assert_awaited_once_with("navigate_page", {"url": "https://example.com"})
        assert result["content"] == [{"type": "text", "text": "Navigated to https://example.com"}]

    @pytest.mark.asyncio
    async def test_call_tool_error_result(self):
        session = MagicMock()
        session.call_tool = AsyncMock(return_value=CallToolResult(
            content=[TextContent(type="text", text="No element with uid 1_9")],
            isError=True,
        ))
        client = connected_client(session)

        with pytest.raises(CapabilityExecutionError, match="uid 1_9") as exc_info:
            await client.call_tool("click", {"uid": "1_9"})

        assert exc_info.value.tool_name == "click"

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        client = connected_client(MagicMock())
        stack = client._stack

        await client.close()
        await client.close()

        stack.aclose.assert_awaited_once()
        assert not client.connected

    @pytest.mark.asyncio
    async def test_connect(self):
        """connect() starts the server over stdio and initializes the session."""
        session = MagicMock()
        session.initialize = AsyncMock()
        session_cm = MagicMock()
        session_cm.__aenter__ = AsyncMock(return_value=session)
        session_cm.__aexit__ = AsyncMock(return_value=False)
        streams_closed = []

        @asynccontextmanager
        async def fake_stdio_client(params, errlog=None):
            yield ("read", "write")
            streams_closed.append(params.command)

        client = MCPBrowserClient(command="node", args=["server.js"], quiet=True)

        with patch("gemini_browser.mcp_client.stdio_client", fake_stdio_client), \
             patch("gemini_browser.mcp_client.ClientSession", return_value=session_cm) as session_cls:
            await client.connect()
            await client.connect()

            assert client.connected
            session.initialize.assert_awaited_once()
            assert session_cls.call_args.args == ("read", "write")

            await client.close()

        assert streams_closed == ["node"]
