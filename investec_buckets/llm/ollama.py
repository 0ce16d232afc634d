"""
Ollama chat provider (local models).
"""

import httpx
import structlog

from investec_buckets.errors import LlmError
from investec_buckets.llm.base import ChatProvider

logger = structlog.get_logger(__name__)


class OllamaProvider(ChatProvider):
    """LLM-B: a local Ollama server, non-streaming /api/chat."""

    provider_name = "ollama"

    def __init__(self, http: httpx.AsyncClient, model: str, base_url: str = "http://localhost:11434"):
        self.http = http
        self.model = model
        self.base_url = base_url.rstrip("/")

    async def chat(self, prompt: str) -> str:
        try:
            response = await self.http.post(
                f"{self.base_url}/api/chat",
                json={
                    "model": self.model,
                    "messages": [{"role": "user", "content": prompt}],
                    "stream": False,
                },
            )
        except httpx.HTTPError as e:
            raise LlmError(self.provider_name, f"request failed: {e}") from e

        if not response.is_success:
            raise LlmError(
                self.provider_name,
                f"status {response.status_code}: {response.text[:500]}",
            )

        try:
            content = response.json()["message"]["content"]
        except (ValueError, KeyError, TypeError) as e:
            raise LlmError(self.provider_name, f"unexpected response shape: {e}") from e

        if not isinstance(content, str):
            raise LlmError(self.provider_name, "reply content is not text")
        return content.strip()

    async def health_check(self) -> bool:
        """Available if the server answers the local model listing."""
        try:
            response = await self.http.get(f"{self.base_url}/api/tags")
        except httpx.HTTPError as e:
            logger.warning("ollama_unreachable", base_url=self.base_url, error=str(e))
            return False
        return response.is_success
