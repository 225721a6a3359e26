"""
Tests for copy generation: brief validation, provider parsing, templated
fallback, provider factory and the audit logger.
"""
import json
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import make_settings
from label_engine.ai.llm_audit_logger import LLMCallRecord, log_llm_call
from label_engine.ai.providers import AIProviderError, AIResponse, get_ai_provider
from label_engine.ai.providers.ollama_provider import OllamaProvider, _extract_json
from label_engine.copywriter.ai_copy_composer import AICopyComposer, build_user_prompt
from label_engine.copywriter.fallback import GOVERNMENT_WARNING, fallback_copy
from label_engine.copywriter.schemas import CopyBrief
from label_engine.copywriter.service import LabelCopywriter
from label_engine.core.errors import AdapterFailure, ValidationError

BRIEF = CopyBrief(
    brand_name="Old River",
    product_name="Single Barrel",
    category="Bourbon",
    abv=45.0,
    volume_ml=750,
    region="Kentucky",
)


def _mock_provider(data=None, error=None):
    provider = MagicMock()
    if error is not None:
        provider.generate_json = AsyncMock(side_effect=error)
    else:
        provider.generate_json = AsyncMock(return_value=AIResponse(
            data=data, provider="openai", model="gpt-4o-mini", total_tokens=42,
        ))
    return provider


# ═══════════════════════════════════════════════════════════════════
#  Brief
# ═══════════════════════════════════════════════════════════════════

class TestCopyBrief:

    def test_accepts_camel_case(self):
        brief = CopyBrief.model_validate({
            "brandName": "A", "productName": "B", "category": "Gin", "abv": 40, "volumeMl": 700,
        })
        assert brief.brand_name == "A"
        assert brief.volume_ml == 700

    def test_default_tone(self):
        assert BRIEF.require().tone == "heritage"

    def test_missing_fields_listed(self):
        with pytest.raises(ValidationError) as exc_info:
            CopyBrief(brand_name="  ", abv=40).require()
        assert exc_info.value.details["missing"] == ["brandName", "productName", "category", "volumeMl"]

    def test_prompt_includes_optional_fields_when_present(self):
        prompt = build_user_prompt(BRIEF.require())
        assert "Region: Kentucky" in prompt
        assert "Brand story" not in prompt
        assert "ABV: 45%" in prompt


# ═══════════════════════════════════════════════════════════════════
#  Fallback
# ═══════════════════════════════════════════════════════════════════

class TestFallbackCopy:

    def test_fallback_is_deterministic(self):
        assert fallback_copy(BRIEF) == fallback_copy(BRIEF)

    def test_fallback_content(self):
        copy = fallback_copy(BRIEF)
        assert copy.source == "fallback"
        assert copy.front_copy.splitlines()[0] == "Old River"
        assert "45% ABV • 750ml" in copy.front_copy
        assert "Crafted in Kentucky." in copy.back_copy
        assert copy.compliance_statement.startswith(GOVERNMENT_WARNING)
        for part in ("Old River", "Bourbon", "45%", "750 mL"):
            assert part in copy.compliance_statement


# ═══════════════════════════════════════════════════════════════════
#  AICopyComposer
# ═══════════════════════════════════════════════════════════════════

class TestAICopyComposer:

    @pytest.mark.asyncio
    async def test_parses_provider_output(self):
        provider = _mock_provider({
            "frontCopy": "OLD RIVER",
            "backCopy": "Aged by the river.",
            "complianceStatement": "GOVERNMENT WARNING: (1) ...",
        })
        with patch("label_engine.copywriter.ai_copy_composer.get_ai_provider", return_value=provider):
            copy = await AICopyComposer(make_settings()).generate(BRIEF.require())

        assert copy.source == "ai"
        assert copy.front_copy == "OLD RIVER"
        assert copy.provider == "openai"
        assert copy.compliance_statement == "GOVERNMENT WARNING: (1) ..."
        kwargs = provider.generate_json.call_args.kwargs
        assert kwargs["operation"] == "generate_label_copy"

    @pytest.mark.asyncio
    async def test_statement_without_warning_replaced(self):
        provider = _mock_provider({"frontCopy": "F", "backCopy": "B", "complianceStatement": "Drink up"})
        with patch("label_engine.copywriter.ai_copy_composer.get_ai_provider", return_value=provider):
            copy = await AICopyComposer(make_settings()).generate(BRIEF.require())
        assert copy.compliance_statement.startswith(GOVERNMENT_WARNING)

    @pytest.mark.asyncio
    async def test_missing_copy_fields_fail(self):
        provider = _mock_provider({"frontCopy": "only front"})
        with patch("label_engine.copywriter.ai_copy_composer.get_ai_provider", return_value=provider):
            with pytest.raises(AdapterFailure):
                await AICopyComposer(make_settings()).generate(BRIEF.require())

    @pytest.mark.asyncio
    async def test_provider_error_becomes_adapter_failure(self):
        provider = _mock_provider(error=AIProviderError("boom", provider="openai", model="gpt-4o-mini"))
        with patch("label_engine.copywriter.ai_copy_composer.get_ai_provider", return_value=provider):
            with pytest.raises(AdapterFailure) as exc_info:
                await AICopyComposer(make_settings()).generate(BRIEF.require())
        assert exc_info.value.provider == "openai"


class TestLabelCopywriter:

    @pytest.mark.asyncio
    async def test_falls_back_on_adapter_failure(self, caplog):
        composer = MagicMock()
        composer.generate = AsyncMock(side_effect=AdapterFailure("down", provider="openai"))
        with caplog.at_level(logging.WARNING):
            copy = await LabelCopywriter(composer).compose(BRIEF)
        assert copy.source == "fallback"
        assert any(getattr(r, "event", None) == "copy_fallback_used" for r in caplog.records)

    @pytest.mark.asyncio
    async def test_disabled_provider_uses_fallback(self):
        writer = LabelCopywriter(AICopyComposer(make_settings(AI_PROVIDER="none")))
        copy = await writer.compose(BRIEF)
        assert copy.source == "fallback"

    @pytest.mark.asyncio
    async def test_validation_error_is_not_swallowed(self):
        writer = LabelCopywriter(AICopyComposer(make_settings(AI_PROVIDER="none")))
        with pytest.raises(ValidationError):
            await writer.compose(CopyBrief(brand_name="x"))


# ═══════════════════════════════════════════════════════════════════
#  Provider factory + helpers
# ═══════════════════════════════════════════════════════════════════

class TestProviderFactory:

    def test_openai_without_key_raises(self):
        with pytest.raises(AIProviderError) as exc_info:
            get_ai_provider(make_settings(AI_PROVIDER="openai", OPENAI_API_KEY=""))
        assert "OPENAI_API_KEY" in str(exc_info.value)

    def test_none_raises(self):
        with pytest.raises(AIProviderError):
            get_ai_provider(make_settings(AI_PROVIDER="none"))

    def test_openai_with_key(self):
        provider = get_ai_provider(make_settings(AI_PROVIDER="openai", OPENAI_API_KEY="sk-test"))
        assert provider.provider_name == "openai"

    def test_auto_skips_unconfigured_openai(self):
        provider = get_ai_provider(make_settings(AI_PROVIDER="auto", OPENAI_API_KEY=""))
        assert provider.provider_name == "ollama"

    def test_auto_with_nothing_configured(self):
        with pytest.raises(AIProviderError):
            get_ai_provider(make_settings(AI_PROVIDER="auto", OPENAI_API_KEY="", OLLAMA_BASE_URL=""))


def _ollama_with_reply(content):
    provider = OllamaProvider(make_settings(AI_PROVIDER="ollama"))
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    response.usage = None
    provider._client = MagicMock()
    provider._client.chat.completions.create = AsyncMock(return_value=response)
    return provider


class TestOllamaProvider:

    @pytest.mark.asyncio
    async def test_unparsable_reply_fails_after_one_call(self):
        provider = _ollama_with_reply("not json")
        with pytest.raises(AIProviderError) as exc_info:
            await provider.generate_json("system", "user", operation="generate_label_copy")
        assert provider._client.chat.completions.create.await_count == 1
        assert exc_info.value.provider == "ollama"

    @pytest.mark.asyncio
    async def test_think_block_stripped(self):
        provider = _ollama_with_reply('<think>hmm</think>{"frontCopy": "F", "backCopy": "B"}')
        result = await provider.generate_json("system", "user")
        assert result.data == {"frontCopy": "F", "backCopy": "B"}
        assert result.total_tokens == 0
        assert provider._client.chat.completions.create.await_count == 1


class TestExtractJson:

    def test_fenced(self):
        assert _extract_json('```json\n{"a": 1}\n```') == {"a": 1}

    def test_preamble(self):
        assert _extract_json('Sure! {"a": {"b": 2}} hope that helps') == {"a": {"b": 2}}

    def test_no_json(self):
        with pytest.raises(json.JSONDecodeError):
            _extract_json("nothing here")


class TestAuditLogger:

    def test_failure_logged_as_error(self, caplog):
        record = LLMCallRecord(
            provider="openai", model="m", operation="generate_label_copy",
            prompt_hash="h", prompt_length=1, system_prompt_length=1,
            success=False, error="timeout",
        )
        with caplog.at_level(logging.INFO):
            log_llm_call(record)
        audit = [r for r in caplog.records if getattr(r, "event", None) == "llm_audit"]
        assert len(audit) == 1
        assert audit[0].levelno == logging.ERROR
        assert audit[0].error == "timeout"
