"""
Error taxonomy for the label engine.

Every failure a component can report is a LabelEngineError subclass carrying
its HTTP status, a stable machine code, and any structured details the caller
needs to act without re-querying. The composition root renders them with a
single exception handler, camelCasing detail keys like every other response
body; components never build HTTP responses themselves.
"""
from typing import Any, Dict, List, Optional

from pydantic.alias_generators import to_camel


class LabelEngineError(Exception):
    """Base class. Subclasses override http_status and code."""

    http_status: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details: Dict[str, Any] = {k: v for k, v in details.items() if v is not None}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.message, "code": self.code}
        body.update({to_camel(key): value for key, value in self.details.items()})
        return body


class ValidationError(LabelEngineError):
    """Missing or malformed input. Always caller-fixable."""

    http_status = 400
    code = "VALIDATION_ERROR"


class VersionControlledContentError(ValidationError):
    """Label content was sent to a metadata-only operation."""

    http_status = 403
    code = "CONTENT_IS_VERSION_CONTROLLED"

    def __init__(self, field: str):
        super().__init__(
            "Label content is version-controlled; publish a new version instead",
            field=field,
        )
        self.field = field


class InvalidDecisionError(ValidationError):
    """Review decision outside the closed decision set."""

    http_status = 422
    code = "INVALID_DECISION"


class NotFoundError(LabelEngineError):
    http_status = 404
    code = "NOT_FOUND"


class RuleNotActiveError(NotFoundError):
    """Decision recorded against a rule that is unknown or inactive for the category."""

    http_status = 422
    code = "RULE_NOT_ACTIVE"


class ConflictError(LabelEngineError):
    """Operation is legal in general but not in the current state."""

    http_status = 409
    code = "CONFLICT"


class VersionLockedError(ConflictError):
    code = "VERSION_LOCKED"

    def __init__(self, version_id: int, status_code: Optional[str]):
        super().__init__(
            "Version locked (already submitted). Create a new version.",
            version_id=version_id,
            status_code=status_code,
        )
        self.version_id = version_id
        self.status_code = status_code


class IncompleteStateError(LabelEngineError):
    """Finalize attempted while active rules are still undecided."""

    http_status = 422
    code = "REVIEW_INCOMPLETE"

    def __init__(self, message: str, missing: List[Dict[str, str]]):
        super().__init__(message)
        self.missing = missing
        self.details["missing"] = missing


class GateViolationError(LabelEngineError):
    """Forward status requested for a version without a finalized compliance review."""

    http_status = 409
    code = "COMPLIANCE_NOT_FINALIZED"

    def __init__(self, version_id: int, status_code: str):
        super().__init__(
            "Compliance review must be finalized before advancing regulatory status.",
            version_id=version_id,
            status_code=status_code,
        )
        self.version_id = version_id
        self.status_code = status_code


class AdapterFailure(LabelEngineError):
    """Copy generation failed or returned unusable output. Recovered locally."""

    http_status = 502
    code = "ADAPTER_FAILURE"

    def __init__(self, message: str, provider: str = "", model: str = ""):
        super().__init__(message, provider=provider or None, model=model or None)
        self.provider = provider
        self.model = model


class StorageError(LabelEngineError):
    """The transactional store failed; the whole transaction was rolled back."""

    http_status = 503
    code = "STORAGE_ERROR"


class AuthError(LabelEngineError):
    http_status = 403
    code = "FORBIDDEN"


class ServerMisconfiguredError(AuthError):
    """A gate cannot be evaluated because its secret is not configured."""

    http_status = 500
    code = "SERVER_MISCONFIGURED"


def require_positive_int(name: str, value: Any) -> int:
    """Return value as an int, or raise ValidationError if it is not a positive integer."""
    if isinstance(value, int) and not isinstance(value, bool):
        number = value
    elif isinstance(value, float) and value.is_integer():
        number = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        number = int(value.strip())
    else:
        raise ValidationError(f"{name} must be a positive integer")
    if number <= 0:
        raise ValidationError(f"{name} must be a positive integer")
    return number


def require_text(name: str, value: Any) -> str:
    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise ValidationError(f"{name} is required")
    return text
