"""
OpenAI provider: implements AIProvider for gpt-4o / gpt-4o-mini.
Temperature and timeout come from Settings; every call is audited.
"""
import json
import time
from typing import Optional

from openai import AsyncOpenAI

from label_engine.ai.llm_audit_logger import LLMCallRecord, log_llm_call
from label_engine.ai.providers.base import AIProvider, AIProviderError, AIResponse
from label_engine.config import Settings


class OpenAIProvider(AIProvider):
    """OpenAI ChatCompletion provider with JSON-object output."""

    provider_name = "openai"

    def __init__(self, settings: Settings):
        if not settings.OPENAI_API_KEY:
            raise AIProviderError(
                "OPENAI_API_KEY is not configured",
                provider="openai",
                model=settings.AI_MODEL_OPENAI,
            )
        self._client = AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY,
            timeout=float(settings.AI_TIMEOUT_SECONDS),
        )
        self._model = settings.AI_MODEL_OPENAI
        self._temperature = settings.AI_TEMPERATURE

    def _audit(self, operation, prompt_hash, user_prompt, system_prompt, start, **fields) -> float:
        latency = round((time.perf_counter() - start) * 1000, 2)
        log_llm_call(LLMCallRecord(
            provider="openai",
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
        start = time.perf_counter()
        prompt_hash = AIResponse.hash_prompt(user_prompt)

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self._temperature,
                max_tokens=max_tokens,
                response_format={"type": "json_object"},
            )
        except Exception as exc:
            self._audit(operation, prompt_hash, user_prompt, system_prompt, start,
                        success=False, error=str(exc))
            raise AIProviderError(
                f"OpenAI call failed: {exc}",
                provider="openai",
                model=self._model,
            ) from exc

        content = response.choices[0].message.content or ""
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            self._audit(operation, prompt_hash, user_prompt, system_prompt, start,
                        success=False, error=f"Invalid JSON: {exc}")
            raise AIProviderError(
                f"OpenAI returned invalid JSON: {exc}",
                provider="openai",
                model=self._model,
            ) from exc

        if not isinstance(data, dict):
            self._audit(operation, prompt_hash, user_prompt, system_prompt, start,
                        success=False, error="JSON root is not an object")
            raise AIProviderError(
                "OpenAI returned JSON that is not an object",
                provider="openai",
                model=self._model,
            )

        usage = response.usage
        prompt_tokens = usage.prompt_tokens if usage else 0
        completion_tokens = usage.completion_tokens if usage else 0
        total_tokens = usage.total_tokens if usage else 0

        latency = self._audit(
            operation, prompt_hash, user_prompt, system_prompt, start,
            success=True,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
        )

        return AIResponse(
            data=data,
            provider="openai",
            model=self._model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
            latency_ms=latency,
            request_prompt_hash=prompt_hash,
        )
