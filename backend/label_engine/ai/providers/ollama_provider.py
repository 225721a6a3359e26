"""
Ollama provider: implements AIProvider for local LLMs via Ollama.
Uses the AsyncOpenAI client pointed at Ollama's OpenAI-compatible /v1
endpoint. Small local models often wrap or pad their JSON, so output is
extracted leniently; anything still unparsable fails the call.
"""
import json
import re
import time
from typing import Optional

from openai import AsyncOpenAI

from label_engine.ai.llm_audit_logger import LLMCallRecord, log_llm_call
from label_engine.ai.providers.base import AIProvider, AIProviderError, AIResponse
from label_engine.config import Settings
from label_engine.core.logging import get_logger

logger = get_logger(__name__)

_MAX_TOKENS = 1024
_TOP_P = 0.80


def _extract_json(text: str) -> dict:
    """Extract a JSON object from LLM output, handling markdown fences and preamble."""
    text = text.strip()

    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\s*\n?", "", text)
        text = re.sub(r"\n?```\s*$", "", text)
        text = text.strip()

    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    # First balanced { ... }
    start = text.find("{")
    if start != -1:
        depth = 0
        for i in range(start, len(text)):
            if text[i] == "{":
                depth += 1
            elif text[i] == "}":
                depth -= 1
            if depth == 0:
                try:
                    return json.loads(text[start : i + 1])
                except json.JSONDecodeError:
                    break

    raise json.JSONDecodeError("No JSON object found in response", text, 0)


class OllamaProvider(AIProvider):
    """Ollama provider using the OpenAI-compatible /v1 endpoint."""

    provider_name = "ollama"

    def __init__(self, settings: Settings):
        if not settings.OLLAMA_BASE_URL:
            raise AIProviderError(
                "OLLAMA_BASE_URL is not configured",
                provider="ollama",
                model=settings.OLLAMA_MODEL,
            )
        self._client = AsyncOpenAI(
            base_url=settings.OLLAMA_BASE_URL,
            api_key="ollama",  # ignored by Ollama, required by the client
            timeout=float(settings.AI_TIMEOUT_SECONDS),
        )
        self._model = settings.OLLAMA_MODEL
        self._temperature = settings.AI_TEMPERATURE

    def _audit(self, operation, prompt_hash, user_prompt, system_prompt, start, **fields) -> float:
        latency = round((time.perf_counter() - start) * 1000, 2)
        log_llm_call(LLMCallRecord(
            provider="ollama",
            model=self._model,
            operation=operation,
            prompt_hash=prompt_hash,
            prompt_length=len(user_prompt),
            system_prompt_length=len(system_prompt),
            latency_ms=latency,
            temperature=self._temperature,
            **fields,
        ))
        return latency

    async def generate_json(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: Optional[int] = None,
        operation: str = "generate_json",
    ) -> AIResponse:
        """Generate JSON with lenient extraction. A single unusable reply fails the call."""
        start = time.perf_counter()
        prompt_hash = AIResponse.hash_prompt(user_prompt)
        effective_system = (
            system_prompt.rstrip()
            + "\n\nRESPOND WITH ONLY A VALID JSON OBJECT. NO explanations, NO markdown."
        )

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": effective_system},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self._temperature,
                top_p=_TOP_P,
                max_tokens=max_tokens or _MAX_TOKENS,
                stream=False,
            )
        except Exception as exc:
            self._audit(operation, prompt_hash, user_prompt, effective_system, start,
                        success=False, error=str(exc))
            raise AIProviderError(
                f"Ollama call failed: {exc}",
                provider="ollama",
                model=self._model,
            ) from exc

        content = (response.choices[0].message.content or "").strip()
        # Reasoning models prepend <think> blocks
        content = re.sub(r"<think>.*?</think>", "", content, flags=re.DOTALL).strip()

        try:
            data = _extract_json(content)
        except json.JSONDecodeError as exc:
            logger.warning(
                "Ollama returned invalid JSON",
                extra={"event": "ollama_invalid_json", "model": self._model, "raw_length": len(content)},
            )
            self._audit(operation, prompt_hash, user_prompt, effective_system, start,
                        success=False, error=f"Invalid JSON: {exc}")
            raise AIProviderError(
                f"Ollama returned invalid JSON: {exc}",
                provider="ollama",
                model=self._model,
            ) from exc

        usage = response.usage
        prompt_tokens = usage.prompt_tokens if usage else 0
        completion_tokens = usage.completion_tokens if usage else 0
        total_tokens = usage.total_tokens if usage else 0

        latency = self._audit(
            operation, prompt_hash, user_prompt, effective_system, start,
            success=True,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
        )

        return AIResponse(
            data=data,
            provider="ollama",
            model=self._model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
            latency_ms=latency,
            request_prompt_hash=prompt_hash,
        )
