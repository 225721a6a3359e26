"""
Centralized LLM audit logger.
Every provider call (success or failure) flows through log_llm_call and
produces one structured `llm_audit` log line.
"""
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from label_engine.core.logging import get_logger

logger = get_logger(__name__)


class LLMCallRecord(BaseModel):
    """Audit record for one LLM call."""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    provider: str
    model: str
    operation: str  # e.g. "generate_label_copy"
    prompt_hash: str  # SHA-256 of user_prompt
    prompt_length: int
    system_prompt_length: int
    success: bool
    latency_ms: float = 0.0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    temperature: float = 0.7
    error: Optional[str] = None


def log_llm_call(record: LLMCallRecord) -> None:
    """Emit the structured audit line for one provider call."""
    log_extra = {
        "event": "llm_audit",
        "provider": record.provider,
        "model": record.model,
        "operation": record.operation,
        "success": record.success,
        "latency_ms": record.latency_ms,
        "prompt_tokens": record.prompt_tokens,
        "completion_tokens": record.completion_tokens,
        "total_tokens": record.total_tokens,
        "temperature": record.temperature,
        "prompt_hash": record.prompt_hash,
        "prompt_length": record.prompt_length,
    }
    if record.error:
        log_extra["error"] = record.error

    if record.success:
        logger.info("LLM call completed", extra=log_extra)
    else:
        logger.error("LLM call failed", extra=log_extra)
