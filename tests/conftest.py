"""
Shared fakes for the Gemini Browser tests.

FakeLanguageBackend replays scripted Gemini replies; FakeAutomation stands
in for the MCP browser server.
"""

import asyncio
import copy
from typing import Any, Optional

from gemini_browser.adapters import LanguageBackend
from gemini_browser.types import CapabilityDescriptor, function_call_part


def gemini_reply(*parts: dict) -> dict:
    """Build a generateContent reply with a single candidate."""
    return {"candidates": [{"content": {"role": "model", "parts": list(parts)}}]}


def call(name: str, **args: Any) -> dict:
    """Build a functionCall part."""
    return function_call_part(name, args)


def answer(text: str) -> dict:
    """Build a provide_answer functionCall part."""
    return call("provide_answer", answer=text)


class FakeLanguageBackend(LanguageBackend):
    """Language backend that returns scripted replies in order."""

    def __init__(self, replies: Optional[list] = None, delay: float = 0.0):
        self.replies = list(replies or [])
        self.delay = delay
        self.calls: list[dict[str, Any]] = []
        self.gate: Optional[asyncio.Event] = None
        self.entered = asyncio.Event()
        self.closed = False

    async def generate(self, contents, **options):
        self.calls.append({"contents": copy.deepcopy(contents), "options": options})
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)

        if not self.replies:
            raise AssertionError("No scripted reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def aclose(self):
        self.closed = True


class FakeAutomation:
    """Automation backend with canned tool results."""

    def __init__(self, tools: Optional[list[str]] = None, results: Optional[dict] = None):
        self.tools = tools or ["navigate_page", "take_snapshot", "click"]
        self.results = results or {}
        self.calls: list[tuple[str, dict]] = []
        self.connect_count = 0
        self.close_count = 0

    async def connect(self):
        self.connect_count += 1

    async def list_tools(self):
        return [
            CapabilityDescriptor(
                name=name,
                description=f"{name} tool",
                parameter_schema={"type": "object", "properties": {}},
            )
            for name in self.tools
        ]

    async def call_tool(self, name, arguments=None):
        self.calls.append((name, dict(arguments or {})))
        result = self.results.get(name, {"content": [{"type": "text", "text": f"{name} ok"}]})
        if isinstance(result, Exception):
            raise result
        return result

    async def close(self):
        self.close_count += 1
