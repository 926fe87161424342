"""
Exceptions for Gemini Browser.

Fatal conditions propagate to the caller and abort the current task.
CapabilityExecutionError is the one exception the agent loop recovers from
locally: the gateway turns it into an observation for the model.
"""

from typing import Optional


class AgentError(Exception):
    """Base exception for agent errors."""

    pass


class BackendTimeout(AgentError):
    """Raised when a language backend request exceeds its deadline."""

    def __init__(self, timeout_s: float):
        self.timeout_s = timeout_s
        super().__init__(f"Gemini API call timed out after {timeout_s:g}s")


class ProtocolViolation(AgentError):
    """Raised when the backend breaks the forced function-calling contract."""

    pass


class StructuredOutputError(AgentError):
    """Raised when the reformatted answer is not valid for the schema."""

    def __init__(self, reason: str, raw_text: Optional[str] = None):
        self.reason = reason
        self.raw_text = raw_text

        message = f"Structured output invalid: {reason}"
        if raw_text:
            message += f"\nRaw response: {raw_text[:200]}"

        super().__init__(message)


class CapabilityExecutionError(AgentError):
    """Raised when a single tool invocation fails."""

    def __init__(self, tool_name: str, message: str):
        self.tool_name = tool_name
        super().__init__(message)


class AgentBusyError(AgentError):
    """Raised when a task is submitted while another one is running."""

    def __init__(self):
        super().__init__("Agent is already running a task. Wait for it to finish.")


class NotConnectedError(AgentError):
    """Raised when the automation backend is used before connect()."""

    pass


class ConfigError(AgentError):
    """Raised for invalid configuration files, presets or schemas."""

    pass
