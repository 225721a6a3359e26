"""
Abstract base class for copy-generation providers.
All providers must implement generate_json().
"""
import abc
import hashlib
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


class AIProviderError(Exception):
    """Raised when a provider call fails or returns unusable output."""

    def __init__(self, message: str, provider: str = "", model: str = ""):
        self.provider = provider
        self.model = model
        super().__init__(message)


class AIResponse(BaseModel):
    """Standardised response from any provider."""
    data: dict
    provider: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    latency_ms: float = 0.0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    request_prompt_hash: str = ""

    @staticmethod
    def hash_prompt(prompt: str) -> str:
        """SHA-256 hash of the prompt for audit traceability."""
        return hashlib.sha256(prompt.encode("utf-8")).hexdigest()


class AIProvider(abc.ABC):
    """Abstract provider. Subclasses must implement generate_json()."""

    provider_name: str = "base"

    @abc.abstractmethod
    async def generate_json(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: Optional[int] = None,
        operation: str = "generate_json",
    ) -> AIResponse:
        """
        Send a prompt to the LLM and return parsed JSON.

        Args:
            system_prompt: System-level instruction.
            user_prompt: User-level prompt content.
            max_tokens: Optional max tokens for response.
            operation: Name recorded in the audit log.

        Returns:
            AIResponse with parsed data and usage metadata.

        Raises:
            AIProviderError on any failure.
        """
        ...
