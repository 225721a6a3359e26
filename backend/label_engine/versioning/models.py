"""
Label versions and drafts: SQLAlchemy models.
A LabelVersion is an append-only content snapshot with a regulatory-status
mirror; a LabelDraft is the single mutable scratch record per label.
"""
import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text

from label_engine.database.engine import Base


class VersionAction(str, enum.Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


# Canonical content field names shared by versions, drafts and the boundary schemas.
CONTENT_FIELDS = (
    "brand_name",
    "product_name",
    "category",
    "abv",
    "volume_ml",
    "tone",
    "flavor_notes",
    "region",
    "brand_story",
    "additional_notes",
    "front_copy",
    "back_copy",
    "compliance_statement",
)

# Mirror value given to freshly published versions.
PREPARING_STATUS = "PREPARING"

# Status mirror values under which a version may still be edited in place.
EDITABLE_STATUS_CODES = frozenset({None, PREPARING_STATUS})


class LabelContentMixin:
    """Content columns, all nullable."""

    brand_name = Column(String(255), nullable=True)
    product_name = Column(String(255), nullable=True)
    category = Column(String(100), nullable=True)
    abv = Column(Float, nullable=True)
    volume_ml = Column(Integer, nullable=True)
    tone = Column(String(100), nullable=True)
    flavor_notes = Column(Text, nullable=True)
    region = Column(String(255), nullable=True)
    brand_story = Column(Text, nullable=True)
    additional_notes = Column(Text, nullable=True)
    front_copy = Column(Text, nullable=True)
    back_copy = Column(Text, nullable=True)
    compliance_statement = Column(Text, nullable=True)

    def content(self) -> dict:
        return {field: getattr(self, field) for field in CONTENT_FIELDS}


class LabelVersion(LabelContentMixin, Base):
    """Immutable snapshot of label content (frozen once submitted)."""
    __tablename__ = "label_versions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    label_id = Column(Integer, ForeignKey("labels.id", ondelete="CASCADE"), nullable=False, index=True)
    action = Column(String(10), nullable=False, default=VersionAction.UPDATE.value)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )

    # Regulatory-status mirror, written only by the status timeline after creation
    status_code = Column(String(50), nullable=True)
    external_application_id = Column(String(100), nullable=True)
    status_changed_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def is_editable(self) -> bool:
        return self.status_code in EDITABLE_STATUS_CODES


class LabelDraft(LabelContentMixin, Base):
    """Editable workspace; one row per label."""
    __tablename__ = "label_drafts"

    label_id = Column(Integer, ForeignKey("labels.id", ondelete="CASCADE"), primary_key=True)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
