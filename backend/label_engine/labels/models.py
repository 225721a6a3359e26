"""
Label: durable identity of a product label.
Holds a denormalized copy of the latest content plus free-form metadata.
Content history lives in label_versions; metadata edits never touch it.
"""
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Float, Integer, String, Text

from label_engine.database.engine import Base


class Label(Base):
    __tablename__ = "labels"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Pointer to label_versions.id; null until the first version is appended.
    # No FK constraint: labels and label_versions reference each other.
    current_version_id = Column(Integer, nullable=True, index=True)

    # ── Denormalized latest content ──
    brand_name = Column(String(255), nullable=True)
    product_name = Column(String(255), nullable=True)
    category = Column(String(100), nullable=True)
    abv = Column(Float, nullable=True)
    volume_ml = Column(Integer, nullable=True)
    front_copy = Column(Text, nullable=True)
    back_copy = Column(Text, nullable=True)
    compliance_statement = Column(Text, nullable=True)

    # ── Metadata (mutable, never versioned) ──
    tags = Column(JSON, nullable=True)
    internal_notes = Column(Text, nullable=True)
    tracking_number = Column(String(100), nullable=True)
    external_application_id = Column(String(100), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


# Columns of Label that mirror the latest version.
DENORMALIZED_FIELDS = (
    "brand_name",
    "product_name",
    "category",
    "abv",
    "volume_ml",
    "front_copy",
    "back_copy",
    "compliance_statement",
)

METADATA_FIELDS = (
    "tags",
    "internal_notes",
    "tracking_number",
    "external_application_id",
)
