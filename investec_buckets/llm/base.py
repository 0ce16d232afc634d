"""
Abstract base class for all chat providers.
Every provider turns a prompt into a single trimmed text reply.
"""

from abc import ABC, abstractmethod

from investec_buckets.errors import LlmError


class ChatProvider(ABC):
    """
    Abstract base class for LLM chat providers.

    Every provider must:
    1. Accept a plain-text prompt
    2. Return the model's reply with surrounding whitespace trimmed
    3. Report its name and capabilities
    4. Raise LlmError on any transport or protocol failure
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Unique identifier: 'gemini', 'ollama'"""
        ...

    @property
    def supports_builtin_search(self) -> bool:
        """Whether the remote model can run its own web retrieval."""
        return False

    @abstractmethod
    async def chat(self, prompt: str) -> str:
        """Send one user message and return the reply text."""
        ...

    async def chat_with_builtin_search(self, prompt: str) -> str:
        """Like chat(), but instructs the remote model to search first."""
        raise LlmError(self.provider_name, "built-in search is not supported")

    @abstractmethod
    async def health_check(self) -> bool:
        """Verify the provider is reachable and the model is usable."""
        ...
