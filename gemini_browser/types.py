"""
Type definitions for Gemini Browser.

Provides the data shapes shared by the model session, the capability
gateway and the agent loop. Conversation parts are kept in the raw
Gemini wire format so the backend reply can be stored verbatim.
"""

from dataclasses import dataclass, field
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


Role = Literal["user", "model"]


def text_part(text: str) -> dict[str, Any]:
    """Build a text fragment."""
    return {"text": text}


def function_call_part(name: str, args: dict[str, Any]) -> dict[str, Any]:
    """Build a capability-invocation-request fragment."""
    return {"functionCall": {"name": name, "args": args}}


def function_response_part(name: str, result: str) -> dict[str, Any]:
    """Build a capability-invocation-result fragment."""
    return {"functionResponse": {"name": name, "response": {"result": result}}}


@dataclass
class ConversationTurn:
    """One turn of the conversation history.

    Attributes:
        role: "user" or "model"
        parts: Ordered content fragments (text, functionCall, functionResponse)
    """
    role: Role
    parts: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the Gemini ``contents`` entry format."""
        return {"role": self.role, "parts": self.parts}

    @property
    def function_calls(self) -> list[dict[str, Any]]:
        """The functionCall payloads of this turn, in order."""
        return [p["functionCall"] for p in self.parts if p.get("functionCall")]


class CapabilityDescriptor(BaseModel):
    """An automation capability the model may call."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    parameter_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def to_function_declaration(self) -> dict[str, Any]:
        """Convert to a Gemini function declaration."""
        return {
            "name": self.name,
            "description": self.description,
            "parametersJsonSchema": self.parameter_schema,
        }


class CapabilityInvocationRequest(BaseModel):
    """A capability call requested by the model."""

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


@dataclass
class CapabilityInvocationResult:
    """Normalized outcome of one capability call.

    Attributes:
        capability_name: Name of the capability that was called
        result_text: String rendering of the result (or "Error: ...")
        is_error: Whether the call failed
    """
    capability_name: str
    result_text: str
    is_error: bool = False


class InvokeResponse(BaseModel):
    """The model wants one or more capabilities executed."""

    kind: Literal["invoke"] = "invoke"
    requests: list[CapabilityInvocationRequest]
    rationale: Optional[str] = None


class AnswerResponse(BaseModel):
    """The model produced its final answer."""

    kind: Literal["answer"] = "answer"
    value: Union[str, dict[str, Any], list[Any]]


AgentResponse = Annotated[
    Union[InvokeResponse, AnswerResponse],
    Field(discriminator="kind"),
]


Outcome = Literal["answered", "exhausted"]


@dataclass
class RunState:
    """Bookkeeping for a single task execution.

    Attributes:
        query: The natural-language query driving the task
        ceiling: Maximum number of steps allowed
        steps_taken: Steps executed so far
        outcome: Set once the task terminates
    """
    query: str
    ceiling: int
    steps_taken: int = 0
    outcome: Optional[Outcome] = None

    def __post_init__(self):
        if self.ceiling < 1:
            raise ValueError("ceiling must be a positive number")

    @property
    def has_budget(self) -> bool:
        """Whether another step may run."""
        return self.steps_taken < self.ceiling

    def advance(self) -> int:
        """Consume one step and return its 1-based number."""
        if not self.has_budget:
            raise RuntimeError("Step ceiling already reached")
        self.steps_taken += 1
        return self.steps_taken
