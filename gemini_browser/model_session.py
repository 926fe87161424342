"""
Model session for Gemini Browser.

Owns the conversation history and turns it into agent decisions using
Gemini's forced function-calling mode.
"""

import asyncio
import json
import logging
from typing import Any, Optional, Sequence

from .adapters import LanguageBackend
from .errors import BackendTimeout, ProtocolViolation, StructuredOutputError
from .prompts import (
    ANSWER_ARG,
    CONTINUATION_PROMPT,
    PROVIDE_ANSWER,
    STRUCTURED_OUTPUT_PROMPT,
    initial_prompt,
    provide_answer_descriptor,
)
from .types import (
    AgentResponse,
    AnswerResponse,
    CapabilityDescriptor,
    CapabilityInvocationRequest,
    CapabilityInvocationResult,
    ConversationTurn,
    InvokeResponse,
    function_response_part,
    text_part,
)
from .utils import extract_json_from_response


logger = logging.getLogger(__name__)


ANSWER_DELIVERED = "Answer delivered to the user."

NOT_EXECUTED = "Error: not executed (the task ended before this call ran)"


class ModelSession:
    """Conversation state plus the decision protocol with the backend."""

    def __init__(
        self,
        backend: LanguageBackend,
        response_schema: Optional[dict[str, Any]] = None,
        temperature: float = 0.2,
        thinking_budget: int = 1024,
        request_delay_ms: int = 1000,
        request_timeout: float = 60.0,
    ):
        """Initialize the session.

        Args:
            backend: Language backend to query
            response_schema: If set, final answers are reformatted to this schema
            temperature: Sampling temperature for decision turns
            thinking_budget: Thinking token budget for decision turns
            request_delay_ms: Delay before every backend request
            request_timeout: Deadline for a single backend request, in seconds
        """
        self.backend = backend
        self.response_schema = response_schema
        self.temperature = temperature
        self.thinking_budget = thinking_budget
        self.request_delay_ms = request_delay_ms
        self.request_timeout = request_timeout

        self.history: list[ConversationTurn] = []

    async def start(
        self,
        query: str,
        capabilities: Sequence[CapabilityDescriptor],
    ) -> AgentResponse:
        """Start a new task: clear history and send the directive plus query."""
        self.history = [ConversationTurn("user", [text_part(initial_prompt(query))])]
        return await self.continue_(capabilities)

    async def add_user_message(
        self,
        message: str,
        capabilities: Sequence[CapabilityDescriptor],
    ) -> AgentResponse:
        """Add a follow-up user message to the existing conversation."""
        if not self.history:
            self.history.append(ConversationTurn("user", [text_part(initial_prompt(message))]))
        else:
            parts = self._acknowledge_open_calls()
            parts.append(text_part(message))
            self.history.append(ConversationTurn("user", parts))

        return await self.continue_(capabilities)

    async def continue_(
        self,
        capabilities: Sequence[CapabilityDescriptor],
        prior_results: Optional[Sequence[CapabilityInvocationResult]] = None,
    ) -> AgentResponse:
        """Ask the backend for its next decision.

        Args:
            capabilities: Capabilities the model may call
            prior_results: Results of the previous turn's calls, in call order

        Returns:
            InvokeResponse or AnswerResponse

        Raises:
            BackendTimeout: If the request exceeds its deadline
            ProtocolViolation: If the reply carries no function call
            StructuredOutputError: If the structured reformat is invalid
        """
        if prior_results:
            parts = [
                function_response_part(r.capability_name, r.result_text)
                for r in prior_results
            ]
            parts.append(text_part(CONTINUATION_PROMPT))
            self.history.append(ConversationTurn("user", parts))

        reply = await self._request(
            [turn.to_dict() for turn in self.history],
            function_declarations=self._function_declarations(capabilities),
            force_function_call=True,
            temperature=self.temperature,
            thinking_budget=self.thinking_budget,
        )

        turn = ConversationTurn("model", self._candidate_parts(reply))
        self.history.append(turn)

        calls = turn.function_calls
        if not calls:
            logger.error("Model returned no function call in ANY mode")
            raise ProtocolViolation(
                "Unexpected response: Model did not call any function despite "
                "ANY mode being enabled."
            )

        requests = [
            CapabilityInvocationRequest(
                name=call.get("name") or "",
                arguments=call.get("args") or {},
            )
            for call in calls
        ]

        for request in requests:
            if request.name != PROVIDE_ANSWER:
                continue
            answer = request.arguments.get(ANSWER_ARG)
            if answer is None or not str(answer).strip():
                logger.warning("provide_answer called without an answer, continuing")
                continue

            answer_text = str(answer)
            if self.response_schema is not None:
                return AnswerResponse(value=await self._structured_answer(answer_text))
            return AnswerResponse(value=answer_text)

        return InvokeResponse(requests=requests, rationale=self._rationale(turn))

    def reset(self) -> None:
        """Clear the conversation history."""
        self.history = []

    async def aclose(self) -> None:
        """Release the backend."""
        await self.backend.aclose()

    async def _structured_answer(self, answer_text: str) -> Any:
        """Reformat a free-text answer into the configured schema."""
        reply = await self._request(
            [{
                "role": "user",
                "parts": [text_part(STRUCTURED_OUTPUT_PROMPT.format(answer=answer_text))],
            }],
            response_schema=self.response_schema,
        )

        try:
            parts = self._candidate_parts(reply)
        except ProtocolViolation as e:
            raise StructuredOutputError(str(e)) from e

        raw_text = "".join(p.get("text", "") for p in parts if not p.get("thought")).strip()
        if not raw_text:
            raise StructuredOutputError("empty response")

        try:
            value = json.loads(raw_text)
        except json.JSONDecodeError:
            extracted = extract_json_from_response(raw_text)
            if extracted is None:
                raise StructuredOutputError("response is not JSON", raw_text)
            try:
                value = json.loads(extracted)
            except json.JSONDecodeError as e:
                raise StructuredOutputError(f"response is not JSON ({e.msg})", raw_text) from e

        problem = check_schema_shape(value, self.response_schema)
        if problem:
            raise StructuredOutputError(problem, raw_text)

        return value

    async def _request(self, contents: list[dict[str, Any]], **options: Any) -> dict[str, Any]:
        """Send one backend request after the rate-limit delay, under the timeout."""
        if self.request_delay_ms > 0:
            await asyncio.sleep(self.request_delay_ms / 1000)

        logger.debug(f"Sending request with {len(contents)} turns")
        try:
            return await asyncio.wait_for(
                self.backend.generate(contents, **options),
                timeout=self.request_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Gemini request timed out after {self.request_timeout}s")
            raise BackendTimeout(self.request_timeout) from e

    def _function_declarations(
        self,
        capabilities: Sequence[CapabilityDescriptor],
    ) -> list[dict[str, Any]]:
        declarations = [
            c.to_function_declaration() for c in capabilities if c.name != PROVIDE_ANSWER
        ]
        declarations.append(provide_answer_descriptor().to_function_declaration())
        return declarations

    def _candidate_parts(self, reply: dict[str, Any]) -> list[dict[str, Any]]:
        candidates = reply.get("candidates") or []
        if not candidates:
            raise ProtocolViolation("No response from Gemini")
        content = candidates[0].get("content") or {}
        return list(content.get("parts") or [])

    def _rationale(self, turn: ConversationTurn) -> Optional[str]:
        for part in turn.parts:
            if part.get("text") and not part.get("thought"):
                return part["text"]
        return None

    def _acknowledge_open_calls(self) -> list[dict[str, Any]]:
        """Pair any unanswered calls of the last model turn with a response.

        The turn that delivered the final answer, or the last turn before the
        step ceiling, is never followed by tool results, and Gemini rejects a
        call turn without responses. Only a non-blank provide_answer is reported
        as delivered; any other call is reported as not executed.
        """
        if not self.history or self.history[-1].role != "model":
            return []
        return [
            function_response_part(
                call.get("name") or "",
                ANSWER_DELIVERED if _is_delivered_answer(call) else NOT_EXECUTED,
            )
            for call in self.history[-1].function_calls
        ]


def _is_delivered_answer(call: dict[str, Any]) -> bool:
    answer = (call.get("args") or {}).get(ANSWER_ARG)
    return call.get("name") == PROVIDE_ANSWER and answer is not None and bool(str(answer).strip())


def check_schema_shape(value: Any, schema: Optional[dict[str, Any]]) -> Optional[str]:
    """Check the top-level shape of a value against a response schema.

    Returns:
        A description of the mismatch, or None if the shape fits
    """
    if not schema:
        return None

    schema_type = str(schema.get("type", "")).lower()
    if schema_type == "object":
        if not isinstance(value, dict):
            return f"expected an object, got {type(value).__name__}"
        missing = [key for key in schema.get("required", []) if key not in value]
        if missing:
            return f"missing required fields: {', '.join(missing)}"
    elif schema_type == "array" and not isinstance(value, list):
        return f"expected an array, got {type(value).__name__}"

    return None
