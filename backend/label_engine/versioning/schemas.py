"""
Versioning schemas: label content, versions, drafts, history feeds.
"""
from datetime import datetime
from typing import List, Optional

from label_engine.core.schemas import CamelModel


class LabelContent(CamelModel):
    """Every content field, each optional. Used for partial writes."""
    brand_name: Optional[str] = None
    product_name: Optional[str] = None
    category: Optional[str] = None
    abv: Optional[float] = None
    volume_ml: Optional[int] = None
    tone: Optional[str] = None
    flavor_notes: Optional[str] = None
    region: Optional[str] = None
    brand_story: Optional[str] = None
    additional_notes: Optional[str] = None
    front_copy: Optional[str] = None
    back_copy: Optional[str] = None
    compliance_statement: Optional[str] = None

    def changes(self) -> dict:
        """Snake_case fields the caller actually sent with a non-null value."""
        return {
            name: value
            for name, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }


class VersionResponse(LabelContent):
    id: int
    label_id: int
    action: str
    created_at: datetime
    status_code: Optional[str] = None
    external_application_id: Optional[str] = None
    status_changed_at: Optional[datetime] = None


class VersionListResponse(CamelModel):
    versions: List[VersionResponse]
    total: int = 0


class DraftResponse(LabelContent):
    label_id: int
    updated_at: Optional[datetime] = None


class PublishResponse(CamelModel):
    label_id: int
    version: VersionResponse
