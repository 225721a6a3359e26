"""
Label schemas: snapshot reads, metadata patches, generation and saves.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from label_engine.copywriter.schemas import CopyBrief
from label_engine.core.errors import ValidationError, VersionControlledContentError
from label_engine.core.schemas import CamelModel
from label_engine.labels.models import METADATA_FIELDS
from label_engine.versioning.models import CONTENT_FIELDS
from label_engine.versioning.schemas import LabelContent, VersionResponse

# "brief" is the generation input; it is content too.
_FORBIDDEN_METADATA_KEYS = {
    spelling
    for field in CONTENT_FIELDS + ("brief",)
    for spelling in (field, to_camel(field))
}
_ALLOWED_METADATA_KEYS = {
    spelling: field
    for field in METADATA_FIELDS
    for spelling in (field, to_camel(field))
}
REQUIRED_SAVE_FIELDS = (
    "brand_name", "category", "product_name", "abv", "volume_ml",
    "front_copy", "back_copy", "compliance_statement",
)


class LabelResponse(CamelModel):
    id: int
    current_version_id: Optional[int] = None
    brand_name: Optional[str] = None
    product_name: Optional[str] = None
    category: Optional[str] = None
    abv: Optional[float] = None
    volume_ml: Optional[int] = None
    front_copy: Optional[str] = None
    back_copy: Optional[str] = None
    compliance_statement: Optional[str] = None
    tags: Optional[List[str]] = None
    internal_notes: Optional[str] = None
    tracking_number: Optional[str] = None
    external_application_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class LabelSnapshotResponse(CamelModel):
    label: LabelResponse
    current_version: Optional[VersionResponse] = None


class MetadataPatch(BaseModel):
    """Validated metadata-only change set, keyed by snake_case column name."""
    tags: Optional[List[str]] = None
    internal_notes: Optional[str] = None
    tracking_number: Optional[str] = None
    external_application_id: Optional[str] = None

    @classmethod
    def from_body(cls, body: Dict[str, Any]) -> "MetadataPatch":
        """Reject any content key, keep only allowed metadata keys (either spelling)."""
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")
        for key in body:
            if key in _FORBIDDEN_METADATA_KEYS:
                raise VersionControlledContentError(key)
        picked = {
            _ALLOWED_METADATA_KEYS[key]: value
            for key, value in body.items()
            if key in _ALLOWED_METADATA_KEYS
        }
        try:
            return cls(**picked)
        except ValueError as exc:
            raise ValidationError(f"Invalid metadata: {exc}")

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class MetadataPatchResponse(CamelModel):
    updated: bool
    reason: Optional[str] = None
    label: Optional[LabelResponse] = None


class GenerateLabelRequest(CopyBrief):
    """Brief plus an optional existing label id to append to."""
    id: Optional[int] = None


class GenerateLabelResponse(CamelModel):
    label_id: int
    action: str
    version_id: int
    front_copy: str
    back_copy: str
    compliance_statement: str
    copy_source: str


class SaveLabelRequest(LabelContent):
    """Complete label content from the wizard. Parsed leniently; require()
    enforces the fields a saved version cannot be without."""

    def require(self) -> "SaveLabelRequest":
        """Return a copy with text fields trimmed, or raise listing the missing fields."""
        text = {
            name: value.strip() or None
            for name, value in self.model_dump().items()
            if isinstance(value, str)
        }
        trimmed = self.model_copy(update=text)
        missing = [name for name in REQUIRED_SAVE_FIELDS if getattr(trimmed, name) is None]
        if missing:
            camel = [to_camel(name) for name in missing]
            raise ValidationError(f"Missing required fields: {', '.join(camel)}", missing=camel)
        return trimmed


class SaveLabelResponse(CamelModel):
    label_id: int
    action: str
    version_id: int
