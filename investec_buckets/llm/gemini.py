"""
Gemini chat provider over the Generative Language REST API.
Supports Google-search grounding, so the model can look merchants up itself.
"""

import httpx
import structlog

from investec_buckets.errors import LlmError
from investec_buckets.llm.base import ChatProvider

logger = structlog.get_logger(__name__)

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta"


class GeminiProvider(ChatProvider):
    """LLM-A: Gemini with optional built-in Google Search tool."""

    provider_name = "gemini"
    supports_builtin_search = True

    def __init__(self, http: httpx.AsyncClient, api_key: str, model: str):
        self.http = http
        self.model = model
        self._api_key = api_key

    async def chat(self, prompt: str) -> str:
        return await self._generate(prompt, with_search=False)

    async def chat_with_builtin_search(self, prompt: str) -> str:
        return await self._generate(prompt, with_search=True)

    async def health_check(self) -> bool:
        try:
            response = await self.http.get(
                f"{GEMINI_API_URL}/models/{self.model}",
                headers={"x-goog-api-key": self._api_key},
            )
        except httpx.HTTPError as e:
            logger.warning("gemini_unreachable", error=str(e))
            return False
        return response.is_success

    async def _generate(self, prompt: str, with_search: bool) -> str:
        body: dict = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        if with_search:
            body["tools"] = [{"google_search": {}}]

        try:
            response = await self.http.post(
                f"{GEMINI_API_URL}/models/{self.model}:generateContent",
                headers={"x-goog-api-key": self._api_key},
                json=body,
            )
        except httpx.HTTPError as e:
            raise LlmError(self.provider_name, f"request failed: {e}") from e

        if not response.is_success:
            raise LlmError(
                self.provider_name,
                f"status {response.status_code}: {response.text[:500]}",
            )

        try:
            payload = response.json()
            parts = payload["candidates"][0]["content"]["parts"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LlmError(self.provider_name, f"unexpected response shape: {e}") from e

        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        return text.strip()
