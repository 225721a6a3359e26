"""
Tests for Settings validation, the error taxonomy, input helpers,
JSON logging and the transaction scope.
"""
import json
import logging

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import text

from conftest import SAMPLE_CONTENT, make_settings
from label_engine.core.errors import (
    AdapterFailure,
    GateViolationError,
    IncompleteStateError,
    StorageError,
    ValidationError,
    VersionControlledContentError,
    require_positive_int,
    require_text,
)
from label_engine.core.logging import JSONFormatter
from label_engine.labels.models import Label


# ═══════════════════════════════════════════════════════════════════
#  Config Validation
# ═══════════════════════════════════════════════════════════════════

class TestConfigValidation:

    def test_defaults(self):
        s = make_settings()
        assert s.HISTORY_DEFAULT_LIMIT == 50
        assert s.HISTORY_MAX_LIMIT == 250
        assert s.GATE_RELOCK_ON_OPEN_REVIEW is False

    def test_missing_openai_key_is_allowed(self):
        s = make_settings(AI_PROVIDER="openai", OPENAI_API_KEY="")
        assert s.AI_PROVIDER == "openai"

    def test_provider_is_normalized(self):
        assert make_settings(AI_PROVIDER=" Ollama ").AI_PROVIDER == "ollama"

    def test_invalid_provider_raises(self):
        with pytest.raises(PydanticValidationError) as exc_info:
            make_settings(AI_PROVIDER="claude")
        assert "AI_PROVIDER must be one of" in str(exc_info.value)

    @pytest.mark.parametrize("temperature", [-0.1, 2.5])
    def test_temperature_range(self, temperature):
        with pytest.raises(PydanticValidationError):
            make_settings(AI_TEMPERATURE=temperature)

    def test_default_limit_cannot_exceed_max(self):
        with pytest.raises(PydanticValidationError):
            make_settings(HISTORY_DEFAULT_LIMIT=300, HISTORY_MAX_LIMIT=250)

    def test_cors_origins_list(self):
        s = make_settings(CORS_ORIGINS="http://a, http://b ,")
        assert s.cors_origins_list == ["http://a", "http://b"]

    def test_active_model(self):
        assert make_settings(AI_PROVIDER="ollama", OLLAMA_MODEL="llama3").active_ai_model == "llama3"
        assert make_settings(AI_PROVIDER="openai").active_ai_model == "gpt-4o-mini"


# ═══════════════════════════════════════════════════════════════════
#  Errors
# ═══════════════════════════════════════════════════════════════════

class TestErrors:

    def test_to_dict_drops_none_details(self):
        err = AdapterFailure("down", provider="openai")
        assert err.to_dict() == {"error": "down", "code": "ADAPTER_FAILURE", "provider": "openai"}

    def test_gate_violation_payload(self):
        body = GateViolationError(7, "SUBMITTED").to_dict()
        assert body["code"] == "COMPLIANCE_NOT_FINALIZED"
        assert body["versionId"] == 7
        assert body["statusCode"] == "SUBMITTED"

    def test_incomplete_state_carries_missing(self):
        missing = [{"ruleCode": "R2", "ruleVersion": "1"}]
        err = IncompleteStateError("incomplete", missing)
        assert err.http_status == 422
        assert err.to_dict()["missing"] == missing

    def test_version_controlled_is_validation_error(self):
        err = VersionControlledContentError("frontCopy")
        assert isinstance(err, ValidationError)
        assert err.http_status == 403
        assert err.field == "frontCopy"


class TestInputHelpers:

    @pytest.mark.parametrize("value,expected", [(3, 3), ("12", 12), (" 4 ", 4), (5.0, 5)])
    def test_positive_int_accepts(self, value, expected):
        assert require_positive_int("id", value) == expected

    @pytest.mark.parametrize("value", [0, -1, "abc", "1.5", 2.5, None, True, ""])
    def test_positive_int_rejects(self, value):
        with pytest.raises(ValidationError):
            require_positive_int("id", value)

    def test_require_text(self):
        assert require_text("name", "  x ") == "x"
        with pytest.raises(ValidationError):
            require_text("name", "   ")
        with pytest.raises(ValidationError):
            require_text("name", 5)


# ═══════════════════════════════════════════════════════════════════
#  Logging + transactions
# ═══════════════════════════════════════════════════════════════════

class TestJSONFormatter:

    def test_extra_fields_in_json(self):
        record = logging.LogRecord("t", logging.INFO, __file__, 1, "hello", None, None)
        record.event = "version_appended"
        record.version_id = 3
        record.when = object()
        payload = json.loads(JSONFormatter().format(record))
        assert payload["event"] == "version_appended"
        assert payload["version_id"] == 3
        assert payload["message"] == "hello"
        assert isinstance(payload["when"], str)


class TestTransaction:

    @pytest.mark.asyncio
    async def test_storage_failure_rolls_back(self, database, versions):
        with pytest.raises(StorageError):
            async with database.transaction() as db:
                await versions.create_or_update_label(db, 50, SAMPLE_CONTENT)
                await db.execute(text("SELECT * FROM no_such_table"))

        async with database.transaction() as db:
            assert await db.get(Label, 50) is None

    @pytest.mark.asyncio
    async def test_domain_error_rolls_back_and_propagates(self, database, versions):
        with pytest.raises(ValidationError):
            async with database.transaction() as db:
                await versions.create_or_update_label(db, 51, SAMPLE_CONTENT)
                raise ValidationError("late failure")

        async with database.transaction() as db:
            assert await db.get(Label, 51) is None
