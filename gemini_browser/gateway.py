"""
Capability gateway for Gemini Browser.

Executes the model's capability calls against the automation backend and
normalizes every result into a string the model can read.
"""

import json
import logging
from typing import TYPE_CHECKING, Any, Optional, Sequence

from pydantic import BaseModel

from .prompts import ANSWER_ARG, PROVIDE_ANSWER
from .types import CapabilityInvocationRequest, CapabilityInvocationResult
from .utils import NAVIGATION_TOOL, rewrite_search_url

if TYPE_CHECKING:
    from .agent import AgentObserver
    from .mcp_client import AutomationBackend


logger = logging.getLogger(__name__)


IMAGE_PLACEHOLDER = "[Image content not shown to agent]"

EMPTY_ANSWER_ERROR = f"Error: {PROVIDE_ANSWER} requires a non-empty '{ANSWER_ARG}' argument"


def format_tool_result(result: Any) -> str:
    """Format a raw tool result into a string for the model.

    Args:
        result: Whatever the automation backend returned

    Returns:
        Plain strings unchanged; content lists flattened line by line with
        images replaced by a placeholder; other structures as JSON
    """
    if isinstance(result, str):
        return result

    if isinstance(result, BaseModel):
        result = result.model_dump(mode="json", exclude_none=True)

    if isinstance(result, dict):
        content = result.get("content")
        if isinstance(content, list):
            lines = []
            for item in content:
                item_type = item.get("type") if isinstance(item, dict) else None
                if item_type == "text":
                    lines.append(item.get("text") or "")
                elif item_type == "image":
                    lines.append(IMAGE_PLACEHOLDER)
                else:
                    lines.append(json.dumps(item, default=str))
            return "\n".join(lines)

        return json.dumps(result, indent=2, default=str)

    if isinstance(result, list):
        return json.dumps(result, indent=2, default=str)

    return str(result)


def _error_text(error: Exception) -> str:
    message = str(error) or type(error).__name__
    return f"Error: {message}"


class CapabilityGateway:
    """Dispatches capability calls to the automation backend.

    Holds no per-run state; the current query is passed in with each batch.
    """

    def __init__(
        self,
        backend: "AutomationBackend",
        observer: Optional["AgentObserver"] = None,
    ):
        """Initialize the gateway.

        Args:
            backend: Automation backend that executes tools
            observer: Optional receiver of tool call/result events
        """
        self.backend = backend
        self.observer = observer

    async def invoke_all(
        self,
        requests: Sequence[CapabilityInvocationRequest],
        query: str = "",
    ) -> list[CapabilityInvocationResult]:
        """Execute requests one after another, in order.

        Args:
            requests: Calls requested by the model
            query: Current task query, used by the search URL fix-up

        Returns:
            Exactly one result per request, in request order
        """
        results = []
        for request in requests:
            results.append(await self.invoke(request, query))
        return results

    async def invoke(
        self,
        request: CapabilityInvocationRequest,
        query: str = "",
    ) -> CapabilityInvocationResult:
        """Execute a single request; failures become "Error: ..." results."""
        arguments = self.prepare_arguments(request, query)
        if self.observer:
            self.observer.on_tool_call(CapabilityInvocationRequest(name=request.name, arguments=arguments))
        logger.debug(f"Calling tool {request.name} with {arguments}")

        if request.name == PROVIDE_ANSWER:
            # Reaches here only when the answer was missing or blank
            result = CapabilityInvocationResult(request.name, EMPTY_ANSWER_ERROR, is_error=True)
        else:
            try:
                raw = await self.backend.call_tool(request.name, arguments)
                result = CapabilityInvocationResult(request.name, format_tool_result(raw))
            except Exception as e:
                logger.warning(f"Tool {request.name} failed: {e}")
                result = CapabilityInvocationResult(request.name, _error_text(e), is_error=True)

        if self.observer:
            self.observer.on_tool_result(result)
        return result

    def prepare_arguments(
        self,
        request: CapabilityInvocationRequest,
        query: str,
    ) -> dict[str, Any]:
        """Apply argument fix-ups before execution.

        A navigate_page call to a bare Google homepage is rewritten into a
        results URL for the current query, because "fill" is unreliable on
        that page.
        """
        arguments = dict(request.arguments)

        if request.name == NAVIGATION_TOOL and arguments.get("url"):
            url = str(arguments["url"])
            rewritten = rewrite_search_url(url, query)
            if rewritten != url:
                logger.info(f"Rewrote search homepage {url} -> {rewritten}")
                arguments["url"] = rewritten

        return arguments
