"""
Tests for the Gemini adapter with mocked HTTP responses.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from gemini_browser.adapters import GOOGLE_API_URL, GeminiAdapter
from gemini_browser.errors import BackendTimeout


class MockResponse:
    """Mock HTTP response for testing."""

    def __init__(self, json_data: dict, status_code: int = 200):
        self._json_data = json_data
        self.status_code = status_code

    def json(self):
        return self._json_data

    def raise_for_status(self):
        if self.status_code >= 400:
            raise httpx.HTTPStatusError(
                f"HTTP {self.status_code}",
                request=MagicMock(),
                response=self,
            )


OK_REPLY = {"candidates": [{"content": {"role": "model", "parts": [{"text": "hi"}]}}]}

CONTENTS = [{"role": "user", "parts": [{"text": "hello"}]}]


class TestBuildPayload:
    """Tests for request body construction."""

    def test_forced_function_calling(self):
        adapter = GeminiAdapter(api_key="test-key", model="gemini-2.5-flash")
        declarations = [{"name": "navigate_page", "description": "", "parametersJsonSchema": {}}]

        payload = adapter.build_payload(
            CONTENTS,
            function_declarations=declarations,
            force_function_call=True,
            temperature=0.2,
            thinking_budget=1024,
        )

        assert payload["contents"] == CONTENTS
        assert payload["tools"] == [{"functionDeclarations": declarations}]
        assert payload["toolConfig"] == {"functionCallingConfig": {"mode": "ANY"}}
        assert payload["generationConfig"] == {
            "temperature": 0.2,
            "thinkingConfig": {"thinkingBudget": 1024},
        }

    def test_structured_output(self):
        adapter = GeminiAdapter(api_key="test-key", model="gemini-2.5-flash")
        schema = {"type": "OBJECT", "properties": {"price": {"type": "NUMBER"}}}

        payload = adapter.build_payload(CONTENTS, response_schema=schema)

        assert "tools" not in payload
        assert "toolConfig" not in payload
        assert payload["generationConfig"] == {
            "responseMimeType": "application/json",
            "responseSchema": schema,
        }

    def test_minimal_payload(self):
        adapter = GeminiAdapter(api_key="test-key", model="gemini-2.5-flash")
        assert adapter.build_payload(CONTENTS) == {"contents": CONTENTS}

    def test_url(self):
        adapter = GeminiAdapter(api_key="k", model="gemini-2.5-pro")
        assert adapter.url == f"{GOOGLE_API_URL}/gemini-2.5-pro:generateContent"

        custom = GeminiAdapter(api_key="k", model="m", base_url="http://localhost:8080/v1beta/models/")
        assert custom.url == "http://localhost:8080/v1beta/models/m:generateContent"


class TestGenerate:
    """Tests for GeminiAdapter.generate."""

    @pytest.mark.asyncio
    async def test_success(self):
        adapter = GeminiAdapter(api_key="test-key", model="gemini-2.5-flash")

        with patch.object(adapter.client, "post", new=AsyncMock(return_value=MockResponse(OK_REPLY))) as post:
            result = await adapter.generate(CONTENTS, temperature=0.2)

        assert result == OK_REPLY
        args, kwargs = post.call_args
        assert args[0] == adapter.url
        assert kwargs["headers"]["x-goog-api-key"] == "test-key"
        assert kwargs["json"]["generationConfig"]["temperature"] == 0.2
        await adapter.aclose()

    @pytest.mark.asyncio
    async def test_retries_on_rate_limit(self):
        adapter = GeminiAdapter(api_key="test-key", model="gemini-2.5-flash")
        post = AsyncMock(side_effect=[MockResponse({}, 429), MockResponse(OK_REPLY)])

        with patch.object(adapter.client, "post", new=post), \
             patch("gemini_browser.adapters.asyncio.sleep", new=AsyncMock()) as sleep:
            result = await adapter.generate(CONTENTS)

        assert result == OK_REPLY
        assert post.await_count == 2
        sleep.assert_awaited_once_with(2)
        await adapter.aclose()

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        adapter = GeminiAdapter(api_key="test-key", model="gemini-2.5-flash", max_retries=2)
        post = AsyncMock(return_value=MockResponse({}, 429))

        with patch.object(adapter.client, "post", new=post), \
             patch("gemini_browser.adapters.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(httpx.HTTPStatusError):
                await adapter.generate(CONTENTS)

        assert post.await_count == 3
        await adapter.aclose()

    @pytest.mark.asyncio
    async def test_other_http_errors_not_retried(self):
        adapter = GeminiAdapter(api_key="test-key", model="gemini-2.5-flash")
        post = AsyncMock(return_value=MockResponse({}, 400))

        with patch.object(adapter.client, "post", new=post):
            with pytest.raises(httpx.HTTPStatusError):
                await adapter.generate(CONTENTS)

        assert post.await_count == 1
        await adapter.aclose()

    @pytest.mark.asyncio
    async def test_http_timeout_mapped(self):
        adapter = GeminiAdapter(api_key="test-key", model="gemini-2.5-flash", timeout=30)
        post = AsyncMock(side_effect=httpx.ReadTimeout("slow"))

        with patch.object(adapter.client, "post", new=post):
            with pytest.raises(BackendTimeout, match="30s"):
                await adapter.generate(CONTENTS)

        await adapter.aclose()
