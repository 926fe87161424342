"""
Language backend adapters for Gemini Browser.

Provides the narrow interface the model session talks to, and its
implementation over the Gemini generateContent REST API.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from .errors import BackendTimeout


logger = logging.getLogger(__name__)


GOOGLE_API_URL = "https://generativelanguage.googleapis.com/v1beta/models"


class LanguageBackend(ABC):
    """Abstract base class for language backends."""

    @abstractmethod
    async def generate(
        self,
        contents: list[dict[str, Any]],
        *,
        function_declarations: Optional[list[dict[str, Any]]] = None,
        force_function_call: bool = False,
        temperature: Optional[float] = None,
        thinking_budget: Optional[int] = None,
        response_schema: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Send one generation request.

        Args:
            contents: Conversation history in Gemini ``contents`` format
            function_declarations: Capabilities the model may call
            force_function_call: Require at least one function call in the reply
            temperature: Sampling temperature
            thinking_budget: Thinking token budget (-1 dynamic, 0 disabled)
            response_schema: JSON response schema for structured output

        Returns:
            The raw JSON reply
        """
        pass

    @abstractmethod
    async def aclose(self) -> None:
        """Close any resources."""
        pass


class GeminiAdapter(LanguageBackend):
    """Adapter for the Google Gemini API.

    Uses the native generateContent format with function calling.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        max_retries: int = 3,
    ):
        """Initialize the adapter.

        Args:
            api_key: Gemini API key
            model: Model name (e.g. "gemini-2.5-flash")
            base_url: Override for the models endpoint
            timeout: HTTP timeout in seconds
            max_retries: Retries on HTTP 429
        """
        self.api_key = api_key
        self.model = model
        self.base_url = (base_url or GOOGLE_API_URL).rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries

        self.client = httpx.AsyncClient(timeout=timeout)

    @property
    def url(self) -> str:
        """The generateContent endpoint for the configured model."""
        return f"{self.base_url}/{self.model}:generateContent"

    def build_payload(
        self,
        contents: list[dict[str, Any]],
        *,
        function_declarations: Optional[list[dict[str, Any]]] = None,
        force_function_call: bool = False,
        temperature: Optional[float] = None,
        thinking_budget: Optional[int] = None,
        response_schema: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Build the request body for generateContent."""
        payload: dict[str, Any] = {"contents": contents}
        generation_config: dict[str, Any] = {}

        if function_declarations:
            payload["tools"] = [{"functionDeclarations": function_declarations}]
            if force_function_call:
                payload["toolConfig"] = {
                    "functionCallingConfig": {"mode": "ANY"}
                }

        if temperature is not None:
            generation_config["temperature"] = temperature
        if thinking_budget is not None:
            generation_config["thinkingConfig"] = {"thinkingBudget": thinking_budget}
        if response_schema is not None:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = response_schema

        if generation_config:
            payload["generationConfig"] = generation_config

        return payload

    async def generate(
        self,
        contents: list[dict[str, Any]],
        *,
        function_declarations: Optional[list[dict[str, Any]]] = None,
        force_function_call: bool = False,
        temperature: Optional[float] = None,
        thinking_budget: Optional[int] = None,
        response_schema: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        payload = self.build_payload(
            contents,
            function_declarations=function_declarations,
            force_function_call=force_function_call,
            temperature=temperature,
            thinking_budget=thinking_budget,
            response_schema=response_schema,
        )
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key,
        }

        for attempt in range(self.max_retries + 1):
            if attempt > 0:
                # Exponential backoff: 2s, 4s, 8s
                wait_time = 2 ** attempt
                logger.warning(f"Rate limited by Gemini API, retrying in {wait_time}s")
                await asyncio.sleep(wait_time)

            try:
                response = await self.client.post(self.url, json=payload, headers=headers)
                response.raise_for_status()
            except httpx.TimeoutException as e:
                raise BackendTimeout(self.timeout) from e
            except httpx.HTTPStatusError as e:
                if e.response.status_code == 429 and attempt < self.max_retries:
                    continue
                raise

            return response.json()

        # Unreachable: the last attempt either returns or raises
        raise RuntimeError("Retry loop exited without a response")

    async def aclose(self) -> None:
        await self.client.aclose()
