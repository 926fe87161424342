"""
Agent core for Gemini Browser.

Provides the agent loop that alternates model decisions and capability
execution until the model answers or the step ceiling is reached.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Sequence, Union

from .errors import AgentBusyError, NotConnectedError
from .gateway import CapabilityGateway
from .model_session import ModelSession
from .types import (
    AgentResponse,
    AnswerResponse,
    CapabilityDescriptor,
    CapabilityInvocationRequest,
    CapabilityInvocationResult,
    InvokeResponse,
    RunState,
)

if TYPE_CHECKING:
    from .config import AgentConfig
    from .mcp_client import AutomationBackend


logger = logging.getLogger(__name__)


TASK_INCOMPLETE = "Maximum steps reached. Task incomplete."

TaskResult = Union[str, dict[str, Any], list[Any]]


class AgentObserver:
    """Receives progress events from the agent loop.

    All hooks are no-ops; subclass and override the ones you need.
    """

    def on_connected(self, tool_count: int) -> None:
        pass

    def on_task_started(self, query: str) -> None:
        pass

    def on_step(self, step: int, ceiling: int, rationale: Optional[str]) -> None:
        pass

    def on_tool_call(self, request: CapabilityInvocationRequest) -> None:
        pass

    def on_tool_result(self, result: CapabilityInvocationResult) -> None:
        pass

    def on_answer(self, value: TaskResult) -> None:
        pass

    def on_exhausted(self, steps: int) -> None:
        pass

    def on_cleanup(self) -> None:
        pass


class AgentLoop:
    """Orchestrates the model session and the capability gateway.

    One task runs at a time; submitting another while one is in flight
    raises AgentBusyError.
    """

    def __init__(
        self,
        session: ModelSession,
        backend: "AutomationBackend",
        max_steps: int = 30,
        observer: Optional[AgentObserver] = None,
    ):
        """Initialize the agent loop.

        Args:
            session: Model session that makes decisions
            backend: Automation backend that executes capabilities
            max_steps: Step ceiling per task
            observer: Optional receiver of progress events
        """
        if max_steps < 1:
            raise ValueError("max_steps must be a positive number")

        self.session = session
        self.backend = backend
        self.max_steps = max_steps
        self.observer = observer or AgentObserver()
        self.gateway = CapabilityGateway(backend, self.observer)

        self.capabilities: list[CapabilityDescriptor] = []
        self.last_run: Optional[RunState] = None
        self._connected = False
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(
        cls,
        config: "AgentConfig",
        observer: Optional[AgentObserver] = None,
    ) -> "AgentLoop":
        """Build an agent loop with the Gemini and MCP backends."""
        from .adapters import GeminiAdapter
        from .mcp_client import MCPBrowserClient

        adapter = GeminiAdapter(
            api_key=config.api_key,
            model=config.model,
            base_url=config.base_url,
            timeout=config.request_timeout,
        )
        session = ModelSession(
            adapter,
            response_schema=config.response_schema,
            temperature=config.temperature,
            thinking_budget=config.thinking_budget,
            request_delay_ms=config.request_delay_ms,
            request_timeout=config.request_timeout,
        )
        backend = MCPBrowserClient(
            command=config.mcp_command,
            args=config.mcp_args,
            quiet=config.quiet,
        )
        return cls(session, backend, max_steps=config.max_steps, observer=observer)

    @property
    def connected(self) -> bool:
        """Whether connect() has completed."""
        return self._connected

    async def connect(self) -> None:
        """Connect the automation backend and load its capabilities."""
        if self._connected:
            return

        await self.backend.connect()
        self.capabilities = await self.backend.list_tools()
        self._connected = True

        logger.info(f"Loaded {len(self.capabilities)} tools from the automation backend")
        self.observer.on_connected(len(self.capabilities))

    async def execute_task(self, query: str) -> TaskResult:
        """Run a new task with a fresh conversation.

        Args:
            query: Natural-language task

        Returns:
            The answer (string or structured object), or TASK_INCOMPLETE
        """
        return await self._run(query, self.session.start)

    async def continue_conversation(self, message: str) -> TaskResult:
        """Run a follow-up task that shares the current conversation."""
        return await self._run(message, self.session.add_user_message)

    async def cleanup(self) -> None:
        """Release the automation backend and clear the conversation."""
        await self.backend.close()
        self.session.reset()
        self._connected = False
        self.observer.on_cleanup()

    async def __aenter__(self) -> "AgentLoop":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            await self.cleanup()
        finally:
            await self.session.aclose()

    async def _run(
        self,
        query: str,
        opener: Callable[[str, Sequence[CapabilityDescriptor]], Awaitable[AgentResponse]],
    ) -> TaskResult:
        if not self._connected:
            raise NotConnectedError("Agent not connected. Call connect() first.")
        if self._lock.locked():
            raise AgentBusyError()

        async with self._lock:
            state = RunState(query=query, ceiling=self.max_steps)
            self.last_run = state
            self.observer.on_task_started(query)

            response = await opener(query, self.capabilities)

            while isinstance(response, InvokeResponse) and state.has_budget:
                step = state.advance()
                logger.debug(f"Step {step}/{state.ceiling}: {[r.name for r in response.requests]}")
                self.observer.on_step(step, state.ceiling, response.rationale)

                results = await self.gateway.invoke_all(response.requests, state.query)
                response = await self.session.continue_(self.capabilities, results)

            if isinstance(response, AnswerResponse):
                state.outcome = "answered"
                self.observer.on_answer(response.value)
                return response.value

            state.outcome = "exhausted"
            logger.info(f"Maximum steps reached ({state.steps_taken})")
            self.observer.on_exhausted(state.steps_taken)
            return TASK_INCOMPLETE
